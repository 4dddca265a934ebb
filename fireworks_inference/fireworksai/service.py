# fireworks_inference/fireworksai/service.py
# SPDX-License-Identifier: Apache-2.0
"""
Fireworks AI inference service.

Entry point for parsing model configurations and running embeddings and
rerank inference against the Fireworks AI HTTP API. All operations report
through an `ActionListener`; validation failures are delivered to
`listener.on_failure` before anything is sent.

Example:
    async with HttpRequestSender() as sender:
        service = FireworksAiService(sender)

        parsed = ListenerFuture()
        service.parse_request_config(
            "my-embeddings",
            TaskType.TEXT_EMBEDDING,
            {"service_settings": {"model_id": "nomic-ai/nomic-embed-text-v1.5", "api_key": "..."}},
            parsed,
        )
        model = await parsed

        result = ListenerFuture()
        service.infer(model, EmbeddingsInput(["hello world"]), None, 30.0, result)
        embeddings = await result
"""

from __future__ import annotations

import functools
import logging
from dataclasses import replace
from typing import Any, Dict, FrozenSet, Mapping, Optional, Sequence, Union

from fireworks_inference.fireworksai.action import FireworksAiActionCreator, FireworksAiModel
from fireworks_inference.fireworksai.constants import (
    EMBEDDING_MAX_BATCH_SIZE,
    NAME,
    RERANKER_WINDOW_SIZE,
    SERVICE_NAME,
)
from fireworks_inference.fireworksai.embeddings import FireworksAiEmbeddingsModel
from fireworks_inference.fireworksai.rerank import FireworksAiRerankModel
from fireworks_inference.inference.chunking import ChunkingSettings, EmbeddingRequestChunker
from fireworks_inference.inference.inference_base import (
    ActionListener,
    BadRequest,
    ChunkInferenceInput,
    EmbeddingsInput,
    InputType,
    NotSupported,
    QueryAndDocsInputs,
    TaskType,
    UnifiedChatInput,
    ValidationError,
)
from fireworks_inference.inference.sender import HttpRequestSender, ServiceComponents
from fireworks_inference.inference.settings import (
    CHUNKING_SETTINGS,
    MODEL_ID,
    SECRET_SETTINGS,
    SERVICE_SETTINGS,
    TASK_SETTINGS,
    ConfigurationParseContext,
    DefaultSecretSettings,
    InferenceServiceConfiguration,
    RateLimitSettings,
    SettingsConfiguration,
    SettingsConfigurationFieldType,
    SimilarityMeasure,
    create_invalid_model_exception,
    create_invalid_task_type_exception,
    remove_from_map,
    remove_from_map_or_default_empty,
    remove_from_map_or_throw_if_null,
    throw_if_not_empty_map,
)

LOG = logging.getLogger(__name__)

SUPPORTED_TASK_TYPES: FrozenSet[TaskType] = frozenset({TaskType.TEXT_EMBEDDING, TaskType.RERANK})


def _as_task_type(task_type: Union[TaskType, str]) -> TaskType:
    return task_type if isinstance(task_type, TaskType) else TaskType.from_string(task_type)


@functools.lru_cache(maxsize=None)
def _configuration() -> InferenceServiceConfiguration:
    configurations: Dict[str, SettingsConfiguration] = {
        MODEL_ID: SettingsConfiguration(
            description=(
                "The model ID to use for FireworksAI requests. "
                "Supports Qwen3 embeddings, Nomic embeddings, and reranker models."
            ),
            label="Model ID",
            required=True,
            sensitive=False,
            updatable=False,
            type=SettingsConfigurationFieldType.STRING,
            supported_task_types=SUPPORTED_TASK_TYPES,
        ),
    }
    configurations.update(DefaultSecretSettings.to_settings_configuration(SUPPORTED_TASK_TYPES))
    configurations.update(RateLimitSettings.to_settings_configuration(SUPPORTED_TASK_TYPES))
    return InferenceServiceConfiguration(
        service=NAME,
        name=SERVICE_NAME,
        task_types=SUPPORTED_TASK_TYPES,
        configurations=configurations,
    )


def _create_model(
    inference_entity_id: str,
    task_type: TaskType,
    service_settings: Dict[str, Any],
    task_settings: Dict[str, Any],
    chunking_settings: Optional[ChunkingSettings],
    secrets: Optional[Dict[str, Any]],
    context: ConfigurationParseContext,
) -> FireworksAiModel:
    if task_type is TaskType.TEXT_EMBEDDING:
        return FireworksAiEmbeddingsModel.from_config(
            inference_entity_id,
            service_settings,
            task_settings,
            chunking_settings,
            secrets,
            context,
        )
    if task_type is TaskType.RERANK:
        return FireworksAiRerankModel.from_config(
            inference_entity_id,
            service_settings,
            task_settings,
            secrets,
            context,
        )
    raise create_invalid_task_type_exception(inference_entity_id, NAME, task_type, context)


class FireworksAiService:
    """Inference service for Fireworks AI text embeddings and rerank."""

    def __init__(
        self,
        sender: HttpRequestSender,
        service_components: Optional[ServiceComponents] = None,
    ) -> None:
        self.sender = sender
        self.service_components = service_components or ServiceComponents()

    # ------------------------------------------------------------------ #
    # Identity & capabilities
    # ------------------------------------------------------------------ #

    def name(self) -> str:
        return NAME

    def supported_task_types(self) -> FrozenSet[TaskType]:
        return SUPPORTED_TASK_TYPES

    def get_configuration(self) -> InferenceServiceConfiguration:
        return _configuration()

    def reranker_window_size(self, model_id: str) -> int:
        return RERANKER_WINDOW_SIZE

    async def start(self) -> None:
        await self.sender.start()

    async def close(self) -> None:
        await self.sender.close()

    # ------------------------------------------------------------------ #
    # Configuration parsing
    # ------------------------------------------------------------------ #

    def parse_request_config(
        self,
        inference_entity_id: str,
        task_type: Union[TaskType, str],
        config: Mapping[str, Any],
        listener: ActionListener,
    ) -> None:
        """
        Parse a user-supplied model configuration.

        The secrets are read from `service_settings` (the api key is supplied
        alongside the other service settings). Unknown keys at any level fail
        the parse.
        """
        try:
            task = _as_task_type(task_type)
            remaining = dict(config)
            service_settings = remove_from_map_or_throw_if_null(remaining, SERVICE_SETTINGS)
            task_settings = remove_from_map_or_default_empty(remaining, TASK_SETTINGS)
            chunking_settings = None
            if task is TaskType.TEXT_EMBEDDING:
                chunking_settings = ChunkingSettings.from_map(
                    remove_from_map_or_default_empty(remaining, CHUNKING_SETTINGS)
                )

            model = _create_model(
                inference_entity_id,
                task,
                service_settings,
                task_settings,
                chunking_settings,
                service_settings,
                ConfigurationParseContext.REQUEST,
            )

            throw_if_not_empty_map(remaining, NAME)
            throw_if_not_empty_map(service_settings, NAME)
            throw_if_not_empty_map(task_settings, NAME)
        except Exception as e:  # noqa: BLE001
            LOG.debug("failed to parse request config for [%s]: %s", inference_entity_id, e)
            listener.on_failure(e)
            return
        listener.on_response(model)

    def parse_persisted_config_with_secrets(
        self,
        inference_entity_id: str,
        task_type: Union[TaskType, str],
        config: Mapping[str, Any],
        secrets: Mapping[str, Any],
    ) -> FireworksAiModel:
        task = _as_task_type(task_type)
        remaining = dict(config)
        service_settings = remove_from_map_or_throw_if_null(remaining, SERVICE_SETTINGS)
        task_settings = remove_from_map_or_default_empty(remaining, TASK_SETTINGS)
        secret_settings = remove_from_map_or_default_empty(dict(secrets), SECRET_SETTINGS)
        chunking_settings = None
        if task is TaskType.TEXT_EMBEDDING:
            chunking_settings = ChunkingSettings.from_map(remove_from_map(remaining, CHUNKING_SETTINGS))
        return _create_model(
            inference_entity_id,
            task,
            service_settings,
            task_settings,
            chunking_settings,
            secret_settings,
            ConfigurationParseContext.PERSISTENT,
        )

    def parse_persisted_config(
        self,
        inference_entity_id: str,
        task_type: Union[TaskType, str],
        config: Mapping[str, Any],
    ) -> FireworksAiModel:
        """Parse a stored configuration without secrets; the model's `secret_settings` is None."""
        task = _as_task_type(task_type)
        remaining = dict(config)
        service_settings = remove_from_map_or_throw_if_null(remaining, SERVICE_SETTINGS)
        task_settings = remove_from_map_or_default_empty(remaining, TASK_SETTINGS)
        chunking_settings = None
        if task is TaskType.TEXT_EMBEDDING:
            chunking_settings = ChunkingSettings.from_map(remove_from_map(remaining, CHUNKING_SETTINGS))
        return _create_model(
            inference_entity_id,
            task,
            service_settings,
            task_settings,
            chunking_settings,
            None,
            ConfigurationParseContext.PERSISTENT,
        )

    # ------------------------------------------------------------------ #
    # Inference
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_input_type(input_type: Optional[InputType], model: Any) -> None:
        if getattr(model, "task_type", None) is TaskType.RERANK:
            return
        if not InputType.is_specified(input_type) or input_type.is_internal:
            return
        raise ValidationError([f"Invalid input_type [{input_type}]"])

    @staticmethod
    def _validate_inputs(inputs: Any, model: Any) -> None:
        expected = QueryAndDocsInputs if isinstance(model, FireworksAiRerankModel) else EmbeddingsInput
        if not isinstance(inputs, expected):
            raise BadRequest(
                f"Invalid inputs [{type(inputs).__name__}] for task type [{model.task_type.value}], expected [{expected.__name__}]"
            )

    def infer(
        self,
        model: Any,
        inputs: Union[EmbeddingsInput, Any],
        task_settings: Optional[Mapping[str, Any]],
        timeout: Optional[float],
        listener: ActionListener,
    ) -> None:
        try:
            if not isinstance(model, (FireworksAiEmbeddingsModel, FireworksAiRerankModel)):
                raise create_invalid_model_exception(model, NAME)
            self._validate_inputs(inputs, model)
            self._validate_input_type(getattr(inputs, "input_type", None), model)
            action = FireworksAiActionCreator(self.sender, self.service_components).create(model, task_settings)
        except Exception as e:  # noqa: BLE001
            listener.on_failure(e)
            return
        action.execute(inputs, timeout, listener)

    def chunked_infer(
        self,
        model: Any,
        inputs: Sequence[ChunkInferenceInput],
        task_settings: Optional[Mapping[str, Any]],
        input_type: Optional[InputType],
        timeout: Optional[float],
        listener: ActionListener,
    ) -> None:
        """
        Embed long inputs by chunking them and sending the chunks in batches.

        The listener receives one `ChunkedInferenceEmbedding` per input, in
        input order, or the first batch failure.
        """
        try:
            if getattr(model, "task_type", None) is TaskType.RERANK:
                raise NotSupported("Chunked inference is not supported for rerank task")
            if not isinstance(model, FireworksAiEmbeddingsModel):
                raise create_invalid_model_exception(model, NAME)
            self._validate_input_type(input_type, model)
            action = FireworksAiActionCreator(self.sender, self.service_components).create(model, task_settings)
            batches = EmbeddingRequestChunker(
                inputs,
                EMBEDDING_MAX_BATCH_SIZE,
                model.chunking_settings,
            ).batch_requests_with_listeners(listener)
        except Exception as e:  # noqa: BLE001
            listener.on_failure(e)
            return

        for batch in batches:
            action.execute(EmbeddingsInput(batch.inputs, input_type), timeout, batch.listener)

    def unified_completion_infer(
        self,
        model: Any,
        inputs: UnifiedChatInput,
        timeout: Optional[float],
        listener: ActionListener,
    ) -> None:
        listener.on_failure(NotSupported(f"Unified completion is not supported for {SERVICE_NAME} service"))

    # ------------------------------------------------------------------ #
    # Model updates
    # ------------------------------------------------------------------ #

    def update_model_with_embedding_details(self, model: Any, embedding_size: int) -> Any:
        """
        Record the embedding size discovered by a probe call.

        Embeddings models get `dimensions` set and a cosine similarity when
        none was configured. Models whose dimensions were chosen by the user,
        and non-embeddings models, are returned unchanged.
        """
        if not isinstance(model, FireworksAiEmbeddingsModel):
            return model
        settings = model.service_settings
        if settings.dimensions_set_by_user:
            return model
        updated = replace(
            settings,
            dimensions=embedding_size,
            similarity=settings.similarity or SimilarityMeasure.COSINE,
        )
        return model.with_service_settings(updated)


__all__ = [
    "SUPPORTED_TASK_TYPES",
    "FireworksAiService",
]
