# fireworks_inference/fireworksai/rerank.py
# SPDX-License-Identifier: Apache-2.0
"""Fireworks AI rerank settings and model descriptor."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, ClassVar, Dict, Mapping, Optional

from fireworks_inference.fireworksai.constants import (
    DEFAULT_RATE_LIMIT_SETTINGS,
    DEFAULT_RERANK_URL,
    NAME,
    RETURN_DOCUMENTS,
    TOP_N,
)
from fireworks_inference.inference.inference_base import TaskType
from fireworks_inference.inference.settings import (
    MODEL_ID,
    SERVICE_SETTINGS,
    TASK_SETTINGS,
    URL,
    ConfigurationParseContext,
    DefaultSecretSettings,
    RateLimitSettings,
    ValidationErrors,
    convert_to_uri,
    extract_optional_boolean,
    extract_optional_positive_integer,
    extract_optional_string,
    extract_required_string,
)

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class FireworksAiRerankServiceSettings:
    model_id: str
    uri: str = DEFAULT_RERANK_URL
    rate_limit_settings: RateLimitSettings = DEFAULT_RATE_LIMIT_SETTINGS

    @classmethod
    def from_map(
        cls,
        source: Dict[str, Any],
        context: ConfigurationParseContext,
    ) -> "FireworksAiRerankServiceSettings":
        errors = ValidationErrors()
        url = extract_optional_string(source, URL, SERVICE_SETTINGS, errors)
        uri = convert_to_uri(url, URL, SERVICE_SETTINGS, errors)
        model_id = extract_required_string(source, MODEL_ID, SERVICE_SETTINGS, errors)
        rate_limit = RateLimitSettings.from_map(source, DEFAULT_RATE_LIMIT_SETTINGS, errors, NAME, context)
        errors.raise_if_any()
        return cls(
            model_id=model_id,  # type: ignore[arg-type]
            uri=uri or DEFAULT_RERANK_URL,
            rate_limit_settings=rate_limit,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {MODEL_ID: self.model_id, URL: self.uri}
        out.update(self.rate_limit_settings.to_dict())
        return out


@dataclass(frozen=True)
class FireworksAiRerankTaskSettings:
    """
    Stored rerank options.

    Attributes:
        return_documents: ask the provider to echo document text in results
        top_n: number of top documents to return
    """

    EMPTY_SETTINGS: ClassVar["FireworksAiRerankTaskSettings"]

    return_documents: Optional[bool] = None
    top_n: Optional[int] = None

    @classmethod
    def from_map(cls, source: Optional[Mapping[str, Any]]) -> "FireworksAiRerankTaskSettings":
        if not source:
            return cls.EMPTY_SETTINGS
        raw = source if isinstance(source, dict) else dict(source)
        errors = ValidationErrors()
        return_documents = extract_optional_boolean(raw, RETURN_DOCUMENTS, errors)
        top_n = extract_optional_positive_integer(raw, TOP_N, TASK_SETTINGS, errors)
        errors.raise_if_any()
        return cls(return_documents=return_documents, top_n=top_n)

    @classmethod
    def of(
        cls,
        original: "FireworksAiRerankTaskSettings",
        override: "FireworksAiRerankTaskSettings",
    ) -> "FireworksAiRerankTaskSettings":
        return cls(
            return_documents=(
                override.return_documents if override.return_documents is not None else original.return_documents
            ),
            top_n=override.top_n if override.top_n is not None else original.top_n,
        )

    def updated_task_settings(self, new_settings: Optional[Mapping[str, Any]]) -> "FireworksAiRerankTaskSettings":
        return type(self).from_map(dict(new_settings) if new_settings else None)

    def is_empty(self) -> bool:
        return self.return_documents is None and self.top_n is None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.return_documents is not None:
            out[RETURN_DOCUMENTS] = self.return_documents
        if self.top_n is not None:
            out[TOP_N] = self.top_n
        return out


FireworksAiRerankTaskSettings.EMPTY_SETTINGS = FireworksAiRerankTaskSettings()


@dataclass(frozen=True)
class FireworksAiRerankModel:
    """Rerank model descriptor for the Fireworks AI service."""

    inference_entity_id: str
    service_settings: FireworksAiRerankServiceSettings
    task_settings: FireworksAiRerankTaskSettings = FireworksAiRerankTaskSettings.EMPTY_SETTINGS
    secret_settings: Optional[DefaultSecretSettings] = None
    task_type: TaskType = field(default=TaskType.RERANK, init=False)
    service: str = field(default=NAME, init=False)

    @classmethod
    def from_config(
        cls,
        inference_entity_id: str,
        service_settings: Dict[str, Any],
        task_settings: Optional[Dict[str, Any]],
        secrets: Optional[Dict[str, Any]],
        context: ConfigurationParseContext,
    ) -> "FireworksAiRerankModel":
        return cls(
            inference_entity_id=inference_entity_id,
            service_settings=FireworksAiRerankServiceSettings.from_map(service_settings, context),
            task_settings=FireworksAiRerankTaskSettings.from_map(task_settings),
            secret_settings=DefaultSecretSettings.from_map(secrets),
        )

    @classmethod
    def of(
        cls,
        model: "FireworksAiRerankModel",
        task_settings: Optional[Mapping[str, Any]],
    ) -> "FireworksAiRerankModel":
        if not task_settings:
            return model
        override = FireworksAiRerankTaskSettings.from_map(dict(task_settings))
        if override.is_empty():
            return model
        return replace(model, task_settings=FireworksAiRerankTaskSettings.of(model.task_settings, override))

    def with_service_settings(self, service_settings: FireworksAiRerankServiceSettings) -> "FireworksAiRerankModel":
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
    "FireworksAiRerankServiceSettings",
    "FireworksAiRerankTaskSettings",
    "FireworksAiRerankModel",
]
