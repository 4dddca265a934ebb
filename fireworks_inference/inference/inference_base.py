# fireworks_inference/inference/inference_base.py
# SPDX-License-Identifier: Apache-2.0
"""
Inference SDK - provider-neutral contract (types, errors, listeners, infra policies)

Purpose
-------
A stable, vendor-neutral contract for adapting third-party embedding and rerank
HTTP APIs: task types, call-time inputs, typed results, a normalized error
taxonomy, the asynchronous listener contract, and small pluggable policies
(metrics, rate limiting) used by the HTTP sender.

Design Philosophy
-----------------
- Listener-first: every operation reports exactly once through an
  `ActionListener`; no failure is thrown across an asynchronous boundary.
- Immutable values: inputs, results and settings are frozen dataclasses that
  can be shared across concurrent batches without locking.
- Normalized errors: provider failures are mapped onto a small taxonomy with
  machine-readable codes and an HTTP-like status classification.

Deliberate Non-Goals
--------------------
- No model persistence and no credential storage
- No thread scheduling policy (the sender owns its event loop)
- No streaming or chat completion

Listener Contract
-----------------
    listener.on_response(result)   # success, called at most once
    listener.on_failure(exc)       # failure, called at most once

Exactly one of the two is invoked per operation. `ListenerFuture` adapts the
contract to `await` for asyncio callers:

    future = ListenerFuture()
    service.infer(model, EmbeddingsInput(["hello"]), None, 30.0, future)
    result = await future
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    runtime_checkable,
)

LOG = logging.getLogger(__name__)

# =============================================================================
# Task & input types
# =============================================================================


class TaskType(str, Enum):
    """Inference operation kinds known to the contract."""

    TEXT_EMBEDDING = "text_embedding"
    SPARSE_EMBEDDING = "sparse_embedding"
    RERANK = "rerank"
    COMPLETION = "completion"
    CHAT_COMPLETION = "chat_completion"

    @classmethod
    def from_string(cls, name: str) -> "TaskType":
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            raise BadRequest(f"Unknown task_type [{name}]") from None

    def __str__(self) -> str:
        return self.value


class InputType(str, Enum):
    """How the caller intends to use the inputs of an embeddings call."""

    INGEST = "ingest"
    SEARCH = "search"
    CLASSIFICATION = "classification"
    CLUSTERING = "clustering"
    INTERNAL_INGEST = "internal_ingest"
    INTERNAL_SEARCH = "internal_search"
    UNSPECIFIED = "unspecified"

    @property
    def is_internal(self) -> bool:
        return self in (InputType.INTERNAL_INGEST, InputType.INTERNAL_SEARCH)

    @staticmethod
    def is_specified(input_type: Optional["InputType"]) -> bool:
        return input_type is not None and input_type is not InputType.UNSPECIFIED

    def __str__(self) -> str:
        return self.value


# =============================================================================
# Normalized Errors
# =============================================================================


class InferenceAdapterError(Exception):
    """
    Base exception for all inference adapter errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        status: HTTP-like classification (4xx client error, 5xx server error)
        retry_after_ms: Suggested delay before retry (None if not retryable)
        details: Additional context (JSON-serializable, never secrets)
    """

    default_code = "INFERENCE_ERROR"
    default_status = 500

    def __init__(
        self,
        message: str = "",
        *,
        code: Optional[str] = None,
        status: Optional[int] = None,
        retry_after_ms: Optional[int] = None,
        details: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.status = int(status) if status is not None else self.default_status
        self.retry_after_ms = retry_after_ms
        self.details = dict(details or {})

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status < 500

    def asdict(self) -> Dict[str, Any]:
        """Convert error to a dictionary for serialization and logging."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "code": self.code,
            "status": self.status,
            "retry_after_ms": self.retry_after_ms,
            "details": {k: self.details[k] for k in sorted(self.details)},
        }

    def __str__(self) -> str:
        base = self.message or self.__class__.__name__
        base += f" [code={self.code}, status={self.status}]"
        if self.retry_after_ms is not None:
            base += f" retry_after_ms={self.retry_after_ms}"
        if self.details:
            base += f" details={self.details}"
        return base


class BadRequest(InferenceAdapterError):
    """Client sent an invalid request (malformed settings, wrong inputs)."""

    default_code = "BAD_REQUEST"
    default_status = 400


class ValidationError(BadRequest):
    """
    One or more settings fields failed validation.

    All problems found while parsing a configuration are reported together in
    `errors`, in the order they were detected.
    """

    default_code = "VALIDATION_ERROR"

    def __init__(self, errors: Sequence[str], **kwargs: Any):
        self.errors: List[str] = [str(e) for e in errors]
        message = "Validation Failed: " + "".join(
            f"{i}: {err};" for i, err in enumerate(self.errors, start=1)
        )
        super().__init__(message, **kwargs)


class NotSupported(BadRequest):
    """Operation is not supported for this task type or service."""

    default_code = "NOT_SUPPORTED"


class InvalidModel(BadRequest):
    """The supplied model does not belong to this provider's model family."""

    default_code = "INVALID_MODEL"


class TransportError(InferenceAdapterError):
    """Network or HTTP-layer failure before a response was received."""

    default_code = "TRANSPORT_ERROR"
    default_status = 503


class DeadlineExceeded(InferenceAdapterError):
    """The per-call timeout expired before a response was received."""

    default_code = "DEADLINE_EXCEEDED"
    default_status = 408


class ParseError(InferenceAdapterError):
    """Provider response body does not match the expected shape."""

    default_code = "PARSE_ERROR"
    default_status = 500


class ProviderError(InferenceAdapterError):
    """
    The provider answered with a non-success HTTP status.

    `message` is the HTTP status line; `status_code` is the upstream status.
    """

    default_code = "PROVIDER_ERROR"

    def __init__(self, message: str, *, status_code: int, **kwargs: Any):
        kwargs.setdefault("status", status_code)
        super().__init__(message, **kwargs)
        self.status_code = int(status_code)


class AuthError(ProviderError):
    """Authentication or authorization failed."""

    default_code = "AUTH_ERROR"


class ContentTooLarge(ProviderError):
    """Request payload exceeds the provider's input limit; truncation may help."""

    default_code = "CONTENT_TOO_LARGE"


class ResourceExhausted(ProviderError):
    """Rate limit or quota exceeded."""

    default_code = "RESOURCE_EXHAUSTED"


class Unavailable(ProviderError):
    """Provider is temporarily unavailable or overloaded."""

    default_code = "UNAVAILABLE"


# =============================================================================
# Call-time inputs
# =============================================================================


@dataclass(frozen=True)
class EmbeddingsInput:
    """
    Inputs for a single (already batched) embeddings call.

    Attributes:
        inputs: Texts to embed, in order
        input_type: Caller's intended usage of the embeddings
    """

    inputs: List[str]
    input_type: Optional[InputType] = None


@dataclass(frozen=True)
class QueryAndDocsInputs:
    """
    Inputs for a rerank call.

    `return_documents` and `top_n` given here take precedence over the
    values stored in the model's task settings.
    """

    query: str
    chunks: List[str]
    return_documents: Optional[bool] = None
    top_n: Optional[int] = None


@dataclass(frozen=True)
class ChunkInferenceInput:
    """A single logical document for chunked inference, with optional per-input chunking."""

    text: str
    chunking_settings: Optional[Any] = None


@dataclass(frozen=True)
class UnifiedChatInput:
    messages: List[Mapping[str, Any]]
    model: Optional[str] = None


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class EmbeddingVector:
    """A single float embedding."""

    values: List[float]

    @property
    def dimensions(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class TextEmbeddingFloatResults:
    """Ordered embeddings, one per input text."""

    embeddings: List[EmbeddingVector]

    def __len__(self) -> int:
        return len(self.embeddings)

    def first_embedding_size(self) -> int:
        if not self.embeddings:
            raise ParseError("Embeddings list is empty")
        return self.embeddings[0].dimensions


@dataclass(frozen=True)
class RankedDoc:
    """
    One reranked document.

    Attributes:
        index: Position of the document in the request's document list
        relevance_score: Provider relevance score
        text: Document text, when the provider returned it
    """

    index: int
    relevance_score: float
    text: Optional[str] = None


@dataclass(frozen=True)
class RankedDocsResults:
    """Reranked documents in provider ranking order."""

    ranked_docs: List[RankedDoc]

    def __len__(self) -> int:
        return len(self.ranked_docs)


@dataclass(frozen=True)
class EmbeddingChunk:
    """Embedding of one chunk of a chunked input, with its character offsets."""

    values: List[float]
    offset: Tuple[int, int]


@dataclass(frozen=True)
class ChunkedInferenceEmbedding:
    """All chunk embeddings produced for one `ChunkInferenceInput`."""

    chunks: List[EmbeddingChunk]


# =============================================================================
# Listener contract
# =============================================================================


@runtime_checkable
class ActionListener(Protocol):
    """Receives the outcome of an asynchronous operation exactly once."""

    def on_response(self, result: Any) -> None:
        ...

    def on_failure(self, exc: Exception) -> None:
        ...


class CallbackListener:
    """ActionListener built from two callables."""

    def __init__(
        self,
        on_response: Callable[[Any], None],
        on_failure: Callable[[Exception], None],
    ) -> None:
        self._on_response = on_response
        self._on_failure = on_failure

    def on_response(self, result: Any) -> None:
        self._on_response(result)

    def on_failure(self, exc: Exception) -> None:
        self._on_failure(exc)


class NotifyOnceListener:
    """
    Wraps a listener so that only the first notification is delivered.

    Later notifications are dropped and logged at debug level.
    """

    def __init__(self, delegate: ActionListener) -> None:
        self._delegate = delegate
        self._lock = threading.Lock()
        self._notified = False

    def _claim(self) -> bool:
        with self._lock:
            if self._notified:
                return False
            self._notified = True
            return True

    def on_response(self, result: Any) -> None:
        if self._claim():
            self._delegate.on_response(result)
        else:
            LOG.debug("dropping duplicate response notification")

    def on_failure(self, exc: Exception) -> None:
        if self._claim():
            self._delegate.on_failure(exc)
        else:
            LOG.debug("dropping duplicate failure notification: %s", exc)


class ListenerFuture:
    """
    ActionListener that resolves an asyncio future.

    Safe to notify from any thread; resolution is marshalled onto the loop that
    created the future. Must be constructed while that loop is running.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._future: asyncio.Future = self._loop.create_future()

    def on_response(self, result: Any) -> None:
        self._loop.call_soon_threadsafe(self._resolve, result, None)

    def on_failure(self, exc: Exception) -> None:
        self._loop.call_soon_threadsafe(self._resolve, None, exc)

    def _resolve(self, result: Any, exc: Optional[Exception]) -> None:
        if self._future.done():
            return
        if exc is not None:
            self._future.set_exception(exc)
        else:
            self._future.set_result(result)

    def done(self) -> bool:
        return self._future.done()

    async def result(self, timeout: Optional[float] = None) -> Any:
        return await asyncio.wait_for(asyncio.shield(self._future), timeout)

    def __await__(self):
        return self._future.__await__()


@runtime_checkable
class ExecutableAction(Protocol):
    """A fully resolved operation, ready to be handed to the transport."""

    def execute(
        self,
        inputs: Any,
        timeout: Optional[float],
        listener: ActionListener,
    ) -> None:
        ...


# =============================================================================
# Metrics Interface (low-cardinality)
# =============================================================================


class MetricsSink(Protocol):
    """
    Protocol for metrics collection implementations.

    All metrics must be low-cardinality and never include secrets or input text.
    """

    def observe(
        self,
        *,
        component: str,
        op: str,
        ms: float,
        ok: bool,
        code: str = "OK",
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        ...

    def counter(
        self,
        *,
        component: str,
        name: str,
        value: int = 1,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        ...


class NoopMetrics:
    """No-operation metrics sink for testing or when metrics are disabled."""

    def observe(self, **_: Any) -> None:
        ...

    def counter(self, **_: Any) -> None:
        ...


# =============================================================================
# Rate limiting
# =============================================================================


class RateLimiter(Protocol):
    """Minimal rate limiter interface."""

    async def acquire(self) -> None:
        ...

    def release(self) -> None:
        ...


class NoopLimiter:
    """Limiter that never waits."""

    async def acquire(self) -> None:
        return None

    def release(self) -> None:
        return None


class TokenBucketLimiter:
    """
    Very simple token bucket limiter.

    Args:
        rate: tokens per second
        burst: max bucket size
    """

    def __init__(self, rate: float = 50.0, burst: int = 50) -> None:
        self._rate = max(0.001, float(rate))
        self._burst = max(1, int(burst))
        self._tokens = float(self._burst)
        self._last = time.monotonic()
        self._lock = asyncio.Lock()

    @classmethod
    def per_minute(cls, requests_per_minute: int) -> "TokenBucketLimiter":
        rate = requests_per_minute / 60.0
        return cls(rate=rate, burst=max(1, int(rate)))

    async def acquire(self) -> None:
        async with self._lock:
            while True:
                now = time.monotonic()
                elapsed = now - self._last
                if elapsed > 0:
                    self._tokens = min(
                        self._burst,
                        self._tokens + elapsed * self._rate,
                    )
                    self._last = now
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return
                needed = (1.0 - self._tokens) / self._rate
                await asyncio.sleep(max(needed, 0.001))

    def release(self) -> None:
        # Classic token bucket: only charge on acquire.
        return None


__all__ = [
    "TaskType",
    "InputType",
    "InferenceAdapterError",
    "BadRequest",
    "ValidationError",
    "NotSupported",
    "InvalidModel",
    "TransportError",
    "DeadlineExceeded",
    "ParseError",
    "ProviderError",
    "AuthError",
    "ContentTooLarge",
    "ResourceExhausted",
    "Unavailable",
    "EmbeddingsInput",
    "QueryAndDocsInputs",
    "ChunkInferenceInput",
    "UnifiedChatInput",
    "EmbeddingVector",
    "TextEmbeddingFloatResults",
    "RankedDoc",
    "RankedDocsResults",
    "EmbeddingChunk",
    "ChunkedInferenceEmbedding",
    "ActionListener",
    "CallbackListener",
    "NotifyOnceListener",
    "ListenerFuture",
    "ExecutableAction",
    "MetricsSink",
    "NoopMetrics",
    "RateLimiter",
    "NoopLimiter",
    "TokenBucketLimiter",
]
