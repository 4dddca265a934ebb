# fireworks_inference/fireworksai/embeddings.py
# SPDX-License-Identifier: Apache-2.0
"""
Fireworks AI text-embedding settings and model descriptor.

Service settings are fixed when the model is created; task settings may be
overridden per request (`FireworksAiEmbeddingsModel.of`). All objects are
frozen, and overrides always produce new instances.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, ClassVar, Dict, Mapping, Optional

from fireworks_inference.fireworksai.constants import (
    DEFAULT_EMBEDDINGS_URL,
    DEFAULT_RATE_LIMIT_SETTINGS,
    NAME,
)
from fireworks_inference.inference.chunking import ChunkingSettings
from fireworks_inference.inference.inference_base import TaskType
from fireworks_inference.inference.settings import (
    DIMENSIONS,
    DIMENSIONS_SET_BY_USER,
    MAX_INPUT_TOKENS,
    MODEL_ID,
    SERVICE_SETTINGS,
    SIMILARITY,
    TASK_SETTINGS,
    URL,
    ConfigurationParseContext,
    DefaultSecretSettings,
    RateLimitSettings,
    SimilarityMeasure,
    ValidationErrors,
    convert_to_uri,
    extract_optional_positive_integer,
    extract_optional_string,
    extract_required_string,
    extract_similarity,
    remove_as_type,
)

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class FireworksAiEmbeddingsServiceSettings:
    model_id: str
    uri: str = DEFAULT_EMBEDDINGS_URL
    similarity: Optional[SimilarityMeasure] = None
    dimensions: Optional[int] = None
    max_input_tokens: Optional[int] = None
    dimensions_set_by_user: bool = False
    rate_limit_settings: RateLimitSettings = DEFAULT_RATE_LIMIT_SETTINGS

    @classmethod
    def from_map(
        cls,
        source: Dict[str, Any],
        context: ConfigurationParseContext,
    ) -> "FireworksAiEmbeddingsServiceSettings":
        """
        Build settings from a `service_settings` mapping, consuming known keys.

        In the REQUEST context `dimensions_set_by_user` is derived from whether
        `dimensions` was given; in the PERSISTENT context the stored flag is
        read back (default False).
        """
        errors = ValidationErrors()

        url = extract_optional_string(source, URL, SERVICE_SETTINGS, errors)
        similarity = extract_similarity(source, SERVICE_SETTINGS, errors)
        max_input_tokens = extract_optional_positive_integer(source, MAX_INPUT_TOKENS, SERVICE_SETTINGS, errors)
        dimensions = extract_optional_positive_integer(source, DIMENSIONS, SERVICE_SETTINGS, errors)
        uri = convert_to_uri(url, URL, SERVICE_SETTINGS, errors)
        model_id = extract_required_string(source, MODEL_ID, SERVICE_SETTINGS, errors)
        rate_limit = RateLimitSettings.from_map(source, DEFAULT_RATE_LIMIT_SETTINGS, errors, NAME, context)

        if context.is_request:
            dimensions_set_by_user = dimensions is not None
        else:
            stored = remove_as_type(source, DIMENSIONS_SET_BY_USER, bool, errors)
            dimensions_set_by_user = bool(stored) if stored is not None else False

        errors.raise_if_any()
        return cls(
            model_id=model_id,  # type: ignore[arg-type]
            uri=uri or DEFAULT_EMBEDDINGS_URL,
            similarity=similarity,
            dimensions=dimensions,
            max_input_tokens=max_input_tokens,
            dimensions_set_by_user=dimensions_set_by_user,
            rate_limit_settings=rate_limit,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {MODEL_ID: self.model_id, URL: self.uri}
        if self.similarity is not None:
            out[SIMILARITY] = self.similarity.value
        if self.dimensions is not None:
            out[DIMENSIONS] = self.dimensions
        if self.max_input_tokens is not None:
            out[MAX_INPUT_TOKENS] = self.max_input_tokens
        out[DIMENSIONS_SET_BY_USER] = self.dimensions_set_by_user
        out.update(self.rate_limit_settings.to_dict())
        return out


@dataclass(frozen=True)
class FireworksAiEmbeddingsTaskSettings:
    """Per-request embeddings options. `dimensions` overrides the service default."""

    EMPTY_SETTINGS: ClassVar["FireworksAiEmbeddingsTaskSettings"]

    dimensions: Optional[int] = None

    @classmethod
    def from_map(cls, source: Optional[Mapping[str, Any]]) -> "FireworksAiEmbeddingsTaskSettings":
        if not source:
            return cls.EMPTY_SETTINGS
        raw = source if isinstance(source, dict) else dict(source)
        errors = ValidationErrors()
        dimensions = extract_optional_positive_integer(raw, DIMENSIONS, TASK_SETTINGS, errors)
        errors.raise_if_any()
        return cls(dimensions=dimensions)

    @classmethod
    def of(
        cls,
        original: "FireworksAiEmbeddingsTaskSettings",
        override: "FireworksAiEmbeddingsTaskSettings",
    ) -> "FireworksAiEmbeddingsTaskSettings":
        return cls(dimensions=override.dimensions if override.dimensions is not None else original.dimensions)

    def is_empty(self) -> bool:
        return self.dimensions is None

    def to_dict(self) -> Dict[str, Any]:
        return {DIMENSIONS: self.dimensions} if self.dimensions is not None else {}


FireworksAiEmbeddingsTaskSettings.EMPTY_SETTINGS = FireworksAiEmbeddingsTaskSettings()


@dataclass(frozen=True)
class FireworksAiEmbeddingsModel:
    """Text-embedding model descriptor for the Fireworks AI service."""

    inference_entity_id: str
    service_settings: FireworksAiEmbeddingsServiceSettings
    task_settings: FireworksAiEmbeddingsTaskSettings = FireworksAiEmbeddingsTaskSettings.EMPTY_SETTINGS
    secret_settings: Optional[DefaultSecretSettings] = None
    chunking_settings: Optional[ChunkingSettings] = None
    task_type: TaskType = field(default=TaskType.TEXT_EMBEDDING, init=False)
    service: str = field(default=NAME, init=False)

    @classmethod
    def from_config(
        cls,
        inference_entity_id: str,
        service_settings: Dict[str, Any],
        task_settings: Optional[Dict[str, Any]],
        chunking_settings: Optional[ChunkingSettings],
        secrets: Optional[Dict[str, Any]],
        context: ConfigurationParseContext,
    ) -> "FireworksAiEmbeddingsModel":
        return cls(
            inference_entity_id=inference_entity_id,
            service_settings=FireworksAiEmbeddingsServiceSettings.from_map(service_settings, context),
            task_settings=FireworksAiEmbeddingsTaskSettings.from_map(task_settings),
            secret_settings=DefaultSecretSettings.from_map(secrets),
            chunking_settings=chunking_settings,
        )

    @classmethod
    def of(
        cls,
        model: "FireworksAiEmbeddingsModel",
        task_settings: Optional[Mapping[str, Any]],
    ) -> "FireworksAiEmbeddingsModel":
        """
        Apply request-time task-setting overrides.

        Returns `model` itself when there is nothing to override. The given
        mapping is copied, never modified.
        """
        if not task_settings:
            return model
        override = FireworksAiEmbeddingsTaskSettings.from_map(dict(task_settings))
        if override.is_empty():
            return model
        merged = FireworksAiEmbeddingsTaskSettings.of(model.task_settings, override)
        return replace(model, task_settings=merged)

    def with_service_settings(
        self, service_settings: FireworksAiEmbeddingsServiceSettings
    ) -> "FireworksAiEmbeddingsModel":
        return replace(self, service_settings=service_settings)

    @property
    def uri(self) -> str:
        return self.service_settings.uri

    @property
    def model_id(self) -> str:
        return self.service_settings.model_id

    @property
    def api_key(self) -> Optional[str]:
        return self.secret_settings.api_key if self.secret_settings is not None else None


__all__ = [
    "FireworksAiEmbeddingsServiceSettings",
    "FireworksAiEmbeddingsTaskSettings",
    "FireworksAiEmbeddingsModel",
]
