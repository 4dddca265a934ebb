# fireworks_inference/fireworksai/action.py
# SPDX-License-Identifier: Apache-2.0
"""
Action dispatch for Fireworks AI models.

`FireworksAiActionCreator.create` matches on the model variant, applies
request-time task-setting overrides and returns an executable action wired to
the right request codec and response handler.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Union

from fireworks_inference.fireworksai.constants import NAME, SERVICE_NAME
from fireworks_inference.fireworksai.embeddings import FireworksAiEmbeddingsModel
from fireworks_inference.fireworksai.request import (
    FireworksAiEmbeddingsRequest,
    FireworksAiRerankRequest,
)
from fireworks_inference.fireworksai.rerank import FireworksAiRerankModel
from fireworks_inference.fireworksai.response import (
    FireworksAiResponseHandler,
    embeddings_from_response,
    rerank_from_response,
)
from fireworks_inference.inference.inference_base import ExecutableAction, QueryAndDocsInputs
from fireworks_inference.inference.sender import (
    GenericRequestManager,
    HttpRequestSender,
    SenderExecutableAction,
    ServiceComponents,
    TruncatingRequestManager,
)
from fireworks_inference.inference.settings import create_invalid_model_exception
from fireworks_inference.inference.truncation import TruncationResult

LOG = logging.getLogger(__name__)

FireworksAiModel = Union[FireworksAiEmbeddingsModel, FireworksAiRerankModel]

EMBEDDINGS_HANDLER = FireworksAiResponseHandler("fireworksai embeddings", embeddings_from_response)
RERANK_HANDLER = FireworksAiResponseHandler("fireworksai rerank", rerank_from_response)


def construct_failed_to_send_request_message(request_kind: str) -> str:
    return f"Failed to send {request_kind} request"


class FireworksAiActionCreator:
    def __init__(self, sender: HttpRequestSender, service_components: ServiceComponents) -> None:
        self.sender = sender
        self.service_components = service_components

    def create(self, model: Any, task_settings: Optional[Mapping[str, Any]]) -> ExecutableAction:
        match model:
            case FireworksAiEmbeddingsModel():
                return self._create_embeddings(model, task_settings)
            case FireworksAiRerankModel():
                return self._create_rerank(model, task_settings)
            case _:
                raise create_invalid_model_exception(model, NAME)

    def _create_embeddings(
        self,
        model: FireworksAiEmbeddingsModel,
        task_settings: Optional[Mapping[str, Any]],
    ) -> ExecutableAction:
        overridden = FireworksAiEmbeddingsModel.of(model, task_settings)
        truncator = self.service_components.truncator

        def request_creator(truncation_result: TruncationResult) -> FireworksAiEmbeddingsRequest:
            return FireworksAiEmbeddingsRequest(truncator, truncation_result, overridden)

        manager = TruncatingRequestManager(
            overridden,
            EMBEDDINGS_HANDLER,
            request_creator,
            overridden.service_settings.max_input_tokens,
            truncator,
        )
        LOG.debug("created embeddings action for [%s]", overridden.inference_entity_id)
        return SenderExecutableAction(
            self.sender,
            manager,
            construct_failed_to_send_request_message(f"{SERVICE_NAME} embeddings"),
        )

    def _create_rerank(
        self,
        model: FireworksAiRerankModel,
        task_settings: Optional[Mapping[str, Any]],
    ) -> ExecutableAction:
        overridden = FireworksAiRerankModel.of(model, task_settings)

        def request_creator(inputs: QueryAndDocsInputs) -> FireworksAiRerankRequest:
            return FireworksAiRerankRequest(
                inputs.query,
                inputs.chunks,
                inputs.top_n,
                inputs.return_documents,
                overridden,
            )

        manager = GenericRequestManager(overridden, RERANK_HANDLER, request_creator)
        LOG.debug("created rerank action for [%s]", overridden.inference_entity_id)
        return SenderExecutableAction(
            self.sender,
            manager,
            construct_failed_to_send_request_message(f"{SERVICE_NAME} rerank"),
        )


__all__ = [
    "FireworksAiModel",
    "EMBEDDINGS_HANDLER",
    "RERANK_HANDLER",
    "construct_failed_to_send_request_message",
    "FireworksAiActionCreator",
]
