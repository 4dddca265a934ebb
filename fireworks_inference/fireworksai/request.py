# fireworks_inference/fireworksai/request.py
# SPDX-License-Identifier: Apache-2.0
"""
Fireworks AI request codecs.

Each request object is immutable: `truncate()` returns a new request and
leaves the original untouched, so a retry never changes what an earlier
attempt sent.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from fireworks_inference.fireworksai.embeddings import FireworksAiEmbeddingsModel
from fireworks_inference.fireworksai.rerank import FireworksAiRerankModel
from fireworks_inference.inference.inference_base import AuthError
from fireworks_inference.inference.sender import HttpRequest
from fireworks_inference.inference.truncation import TruncationResult, Truncator

LOG = logging.getLogger(__name__)

CONTENT_TYPE_JSON = "application/json"


def _headers(model: Any) -> Dict[str, str]:
    api_key = model.api_key
    if not api_key:
        raise AuthError(
            f"No API key configured for inference endpoint [{model.inference_entity_id}]",
            status_code=401,
        )
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": CONTENT_TYPE_JSON,
    }


def embeddings_request_entity(
    inputs: List[str],
    model_id: str,
    dimensions: Optional[int],
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"model": model_id, "input": list(inputs)}
    if dimensions is not None:
        body["dimensions"] = dimensions
    return body


def rerank_request_entity(
    query: str,
    documents: List[str],
    top_n: Optional[int],
    return_documents: Optional[bool],
    model: FireworksAiRerankModel,
) -> Dict[str, Any]:
    """Call-time `top_n` / `return_documents` win over stored task settings; unset fields are omitted."""
    body: Dict[str, Any] = {
        "model": model.model_id,
        "query": query,
        "documents": list(documents),
    }
    if top_n is None:
        top_n = model.task_settings.top_n
    if top_n is not None:
        body["top_n"] = top_n
    if return_documents is None:
        return_documents = model.task_settings.return_documents
    if return_documents is not None:
        body["return_documents"] = return_documents
    return body


class FireworksAiEmbeddingsRequest:
    def __init__(
        self,
        truncator: Truncator,
        truncation_result: TruncationResult,
        model: FireworksAiEmbeddingsModel,
    ) -> None:
        self.truncator = truncator
        self.truncation_result = truncation_result
        self.model = model

    @property
    def inference_entity_id(self) -> str:
        return self.model.inference_entity_id

    @property
    def uri(self) -> str:
        return self.model.uri

    @property
    def dimensions(self) -> Optional[int]:
        dims = self.model.task_settings.dimensions
        return dims if dims is not None else self.model.service_settings.dimensions

    def create_http_request(self) -> HttpRequest:
        body = embeddings_request_entity(self.truncation_result.input, self.model.model_id, self.dimensions)
        return HttpRequest(
            method="POST",
            url=self.uri,
            headers=_headers(self.model),
            body=json.dumps(body).encode("utf-8"),
            inference_entity_id=self.inference_entity_id,
        )

    def truncate(self) -> "FireworksAiEmbeddingsRequest":
        truncated = self.truncator.truncate(self.truncation_result.input)
        # Keep earlier flags so an input truncated by the token cap stays marked.
        flags = [a or b for a, b in zip(self.truncation_result.truncated, truncated.truncated)]
        return FireworksAiEmbeddingsRequest(
            self.truncator,
            TruncationResult(truncated.input, flags),
            self.model,
        )

    def truncation_info(self) -> List[bool]:
        return list(self.truncation_result.truncated)


class FireworksAiRerankRequest:
    def __init__(
        self,
        query: str,
        documents: List[str],
        top_n: Optional[int],
        return_documents: Optional[bool],
        model: FireworksAiRerankModel,
    ) -> None:
        self.query = query
        self.documents = list(documents)
        self.top_n = top_n
        self.return_documents = return_documents
        self.model = model

    @property
    def inference_entity_id(self) -> str:
        return self.model.inference_entity_id

    @property
    def uri(self) -> str:
        return self.model.uri

    def create_http_request(self) -> HttpRequest:
        body = rerank_request_entity(self.query, self.documents, self.top_n, self.return_documents, self.model)
        return HttpRequest(
            method="POST",
            url=self.uri,
            headers=_headers(self.model),
            body=json.dumps(body).encode("utf-8"),
            inference_entity_id=self.inference_entity_id,
        )

    def truncate(self) -> "FireworksAiRerankRequest":
        # Rerank inputs are never truncated.
        return self

    def truncation_info(self) -> None:
        return None


__all__ = [
    "CONTENT_TYPE_JSON",
    "embeddings_request_entity",
    "rerank_request_entity",
    "FireworksAiEmbeddingsRequest",
    "FireworksAiRerankRequest",
]
