# fireworks_inference/inference/settings.py
# SPDX-License-Identifier: Apache-2.0
"""
Settings model primitives shared by inference services.

Model configuration arrives as untyped, JSON-like mappings (either from a user
request or from a persisted model definition). The helpers here consume keys
from those mappings, convert and validate the values, and collect every
problem found into a single `ValidationError` so callers see all mistakes at
once instead of one per round trip.

Parsing is context sensitive:

- REQUEST:    strict; unknown keys are rejected by the calling service.
- PERSISTENT: lenient; stored configuration is trusted and leftovers ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    MutableMapping,
    Optional,
    Protocol,
    Type,
    TypeVar,
    runtime_checkable,
)

import httpx

from fireworks_inference.inference.inference_base import (
    BadRequest,
    InferenceAdapterError,
    InvalidModel,
    NotSupported,
    TaskType,
    ValidationError,
)

LOG = logging.getLogger(__name__)

T = TypeVar("T")

# Mapping keys used across services
SERVICE_SETTINGS = "service_settings"
TASK_SETTINGS = "task_settings"
CHUNKING_SETTINGS = "chunking_settings"
SECRET_SETTINGS = "secret_settings"

MODEL_ID = "model_id"
URL = "url"
SIMILARITY = "similarity"
DIMENSIONS = "dimensions"
DIMENSIONS_SET_BY_USER = "dimensions_set_by_user"
MAX_INPUT_TOKENS = "max_input_tokens"
API_KEY = "api_key"
RATE_LIMIT = "rate_limit"
REQUESTS_PER_MINUTE = "requests_per_minute"

_TYPE_NAMES = {str: "String", int: "Integer", bool: "Boolean", float: "Double", dict: "Map"}


class ConfigurationParseContext(str, Enum):
    """Where a configuration mapping came from."""

    REQUEST = "request"
    PERSISTENT = "persistent"

    @property
    def is_request(self) -> bool:
        return self is ConfigurationParseContext.REQUEST


class SimilarityMeasure(str, Enum):
    """Vector similarity function associated with an embeddings model."""

    COSINE = "cosine"
    DOT_PRODUCT = "dot_product"
    L2_NORM = "l2_norm"

    def __str__(self) -> str:
        return self.value


class ValidationErrors:
    """Accumulates validation messages; raises them together."""

    def __init__(self) -> None:
        self._errors: List[str] = []

    def add(self, message: str) -> None:
        self._errors.append(message)

    @property
    def errors(self) -> List[str]:
        return list(self._errors)

    def __bool__(self) -> bool:
        return bool(self._errors)

    def __len__(self) -> int:
        return len(self._errors)

    def raise_if_any(self) -> None:
        if self._errors:
            raise ValidationError(self._errors)


# =============================================================================
# Value extraction helpers
# =============================================================================


def _type_name(expected: type) -> str:
    return _TYPE_NAMES.get(expected, expected.__name__)


def remove_as_type(
    source: MutableMapping[str, Any],
    key: str,
    expected: Type[T],
    errors: ValidationErrors,
) -> Optional[T]:
    """
    Pop `key` from `source` and check that it is an instance of `expected`.

    Booleans are not accepted as integers. Integral floats are accepted for
    integers since JSON decoders may produce them.
    """
    if key not in source:
        return None
    value = source.pop(key)
    if value is None:
        return None

    if expected is int:
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif expected is float:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        if ok:
            value = float(value)
    else:
        ok = isinstance(value, expected)

    if not ok:
        errors.add(
            f"field [{key}] is not of the expected type. "
            f"The value [{value}] cannot be converted to a [{_type_name(expected)}]"
        )
        return None
    return value  # type: ignore[return-value]


def extract_required_string(
    source: MutableMapping[str, Any],
    key: str,
    scope: str,
    errors: ValidationErrors,
) -> Optional[str]:
    if source.get(key) is None:
        source.pop(key, None)
        errors.add(f"[{scope}] does not contain the required setting [{key}]")
        return None
    value = remove_as_type(source, key, str, errors)
    if value is None:
        return None
    if not value.strip():
        errors.add(f"[{scope}] Invalid value empty string. [{key}] must be a non-empty string")
        return None
    return value


def extract_optional_string(
    source: MutableMapping[str, Any],
    key: str,
    scope: str,
    errors: ValidationErrors,
) -> Optional[str]:
    value = remove_as_type(source, key, str, errors)
    if value is not None and not value.strip():
        errors.add(f"[{scope}] Invalid value empty string. [{key}] must be a non-empty string")
        return None
    return value


def extract_optional_boolean(
    source: MutableMapping[str, Any],
    key: str,
    errors: ValidationErrors,
) -> Optional[bool]:
    return remove_as_type(source, key, bool, errors)


def extract_optional_positive_integer(
    source: MutableMapping[str, Any],
    key: str,
    scope: str,
    errors: ValidationErrors,
) -> Optional[int]:
    if key not in source:
        return None
    raw = source.get(key)
    value = remove_as_type(source, key, int, errors)
    if value is None:
        return None
    if value <= 0:
        errors.add(f"[{scope}] Invalid value [{raw}]. [{key}] must be a positive integer")
        return None
    return value


def extract_similarity(
    source: MutableMapping[str, Any],
    scope: str,
    errors: ValidationErrors,
) -> Optional[SimilarityMeasure]:
    value = extract_optional_string(source, SIMILARITY, scope, errors)
    if value is None:
        return None
    try:
        return SimilarityMeasure(value.strip().lower())
    except ValueError:
        allowed = sorted(m.value for m in SimilarityMeasure)
        errors.add(
            f"[{scope}] Invalid value [{value}] received. "
            f"[{SIMILARITY}] must be one of {allowed}"
        )
        return None


def convert_to_uri(
    value: Optional[str],
    key: str,
    scope: str,
    errors: ValidationErrors,
) -> Optional[str]:
    """Validate an absolute http(s) URL; returns the normalized string form."""
    if value is None:
        return None
    try:
        url = httpx.URL(value)
    except (httpx.InvalidURL, TypeError, ValueError):
        url = None
    if url is None or url.scheme not in ("http", "https") or not url.host:
        errors.add(f"[{scope}] Invalid url [{value}] received for field [{key}]")
        return None
    return str(url)


# =============================================================================
# Mapping helpers
# =============================================================================


def remove_from_map(source: MutableMapping[str, Any], key: str) -> Optional[Dict[str, Any]]:
    value = source.pop(key, None)
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise BadRequest(f"Model configuration field [{key}] must be a map, got [{value}]")
    return dict(value)


def remove_from_map_or_throw_if_null(source: MutableMapping[str, Any], key: str) -> Dict[str, Any]:
    value = remove_from_map(source, key)
    if value is None:
        raise BadRequest(f"Model configuration is missing [{key}]")
    return value


def remove_from_map_or_default_empty(source: MutableMapping[str, Any], key: str) -> Dict[str, Any]:
    value = remove_from_map(source, key)
    return value if value is not None else {}


def throw_if_not_empty_map(
    settings: Optional[Mapping[str, Any]],
    service_name: str,
) -> None:
    if settings:
        raise ValidationError(
            [
                f"Model configuration contains settings {sorted(settings)} "
                f"unknown to the [{service_name}] service"
            ]
        )


def create_invalid_task_type_exception(
    inference_entity_id: str,
    service_name: str,
    task_type: Any,
    context: ConfigurationParseContext,
) -> InferenceAdapterError:
    if context.is_request:
        return NotSupported(
            f"The [{service_name}] service does not support task type [{task_type}]",
            details={"inference_entity_id": inference_entity_id},
        )
    return InferenceAdapterError(
        f"Failed to parse stored model [{inference_entity_id}] for [{service_name}] "
        "service, please delete and add the service again",
        details={"task_type": str(task_type)},
    )


def create_invalid_model_exception(model: Any, service_name: str) -> InferenceAdapterError:
    entity_id = getattr(model, "inference_entity_id", None)
    return InvalidModel(
        f"The internal model was invalid, please delete the service "
        f"[{entity_id}] and add it again.",
        details={"service": service_name, "model_type": type(model).__name__},
    )


# =============================================================================
# Shared settings objects
# =============================================================================


@dataclass(frozen=True)
class RateLimitSettings:
    """Requests-per-minute budget for one rate-limit group."""

    requests_per_minute: int

    @classmethod
    def from_map(
        cls,
        source: MutableMapping[str, Any],
        default: "RateLimitSettings",
        errors: ValidationErrors,
        service_name: str,
        context: ConfigurationParseContext,
    ) -> "RateLimitSettings":
        nested = source.pop(RATE_LIMIT, None)
        if nested is None:
            return default
        if not isinstance(nested, Mapping):
            errors.add(f"field [{RATE_LIMIT}] must be a map, got [{nested}]")
            return default
        nested = dict(nested)
        rpm = extract_optional_positive_integer(nested, REQUESTS_PER_MINUTE, RATE_LIMIT, errors)
        if context.is_request and nested:
            errors.add(
                f"Model configuration contains settings {sorted(nested)} "
                f"unknown to the [{service_name}] service"
            )
        return cls(rpm) if rpm is not None else default

    def to_dict(self) -> Dict[str, Any]:
        return {RATE_LIMIT: {REQUESTS_PER_MINUTE: self.requests_per_minute}}

    @staticmethod
    def to_settings_configuration(task_types: Iterable[TaskType]) -> Dict[str, "SettingsConfiguration"]:
        return {
            f"{RATE_LIMIT}.{REQUESTS_PER_MINUTE}": SettingsConfiguration(
                description="Minimize the number of rate limit errors.",
                label="Rate Limit",
                required=False,
                sensitive=False,
                updatable=True,
                type=SettingsConfigurationFieldType.INTEGER,
                supported_task_types=frozenset(task_types),
            )
        }


@dataclass(frozen=True)
class DefaultSecretSettings:
    """API key holder. The key is kept out of repr and logs."""

    api_key: str = field(repr=False)

    @classmethod
    def from_map(cls, source: Optional[MutableMapping[str, Any]]) -> Optional["DefaultSecretSettings"]:
        if source is None:
            return None
        errors = ValidationErrors()
        api_key = extract_required_string(source, API_KEY, SECRET_SETTINGS, errors)
        errors.raise_if_any()
        return cls(api_key=api_key)  # type: ignore[arg-type]

    def to_dict(self) -> Dict[str, Any]:
        return {API_KEY: self.api_key}

    @staticmethod
    def to_settings_configuration(task_types: Iterable[TaskType]) -> Dict[str, "SettingsConfiguration"]:
        return {
            API_KEY: SettingsConfiguration(
                description="API Key for the provider you're connecting to.",
                label="API Key",
                required=True,
                sensitive=True,
                updatable=True,
                type=SettingsConfigurationFieldType.STRING,
                supported_task_types=frozenset(task_types),
            )
        }


# =============================================================================
# Configuration schema descriptor
# =============================================================================


class SettingsConfigurationFieldType(str, Enum):
    STRING = "str"
    INTEGER = "int"
    BOOLEAN = "bool"
    MAP = "map"


@dataclass(frozen=True)
class SettingsConfiguration:
    """Schema entry describing one user-facing configuration field."""

    description: str
    label: str
    required: bool
    sensitive: bool
    updatable: bool
    type: SettingsConfigurationFieldType
    supported_task_types: frozenset = frozenset()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "label": self.label,
            "required": self.required,
            "sensitive": self.sensitive,
            "updatable": self.updatable,
            "type": self.type.value,
            "supported_task_types": sorted(t.value for t in self.supported_task_types),
        }


@dataclass(frozen=True)
class InferenceServiceConfiguration:
    """Schema descriptor for a whole service."""

    service: str
    name: str
    task_types: frozenset
    configurations: Mapping[str, SettingsConfiguration]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "name": self.name,
            "task_types": sorted(t.value for t in self.task_types),
            "configurations": {k: v.to_dict() for k, v in sorted(self.configurations.items())},
        }


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class RateLimitedServiceSettings(Protocol):
    """Service settings that identify a rate-limit group."""

    @property
    def model_id(self) -> str:
        ...

    @property
    def uri(self) -> str:
        ...

    @property
    def rate_limit_settings(self) -> RateLimitSettings:
        ...


__all__ = [
    "SERVICE_SETTINGS",
    "TASK_SETTINGS",
    "CHUNKING_SETTINGS",
    "SECRET_SETTINGS",
    "MODEL_ID",
    "URL",
    "SIMILARITY",
    "DIMENSIONS",
    "DIMENSIONS_SET_BY_USER",
    "MAX_INPUT_TOKENS",
    "API_KEY",
    "RATE_LIMIT",
    "REQUESTS_PER_MINUTE",
    "ConfigurationParseContext",
    "SimilarityMeasure",
    "ValidationErrors",
    "remove_as_type",
    "extract_required_string",
    "extract_optional_string",
    "extract_optional_boolean",
    "extract_optional_positive_integer",
    "extract_similarity",
    "convert_to_uri",
    "remove_from_map",
    "remove_from_map_or_throw_if_null",
    "remove_from_map_or_default_empty",
    "throw_if_not_empty_map",
    "create_invalid_task_type_exception",
    "create_invalid_model_exception",
    "RateLimitSettings",
    "DefaultSecretSettings",
    "SettingsConfigurationFieldType",
    "SettingsConfiguration",
    "InferenceServiceConfiguration",
    "RateLimitedServiceSettings",
]
