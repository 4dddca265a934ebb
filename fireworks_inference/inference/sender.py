# fireworks_inference/inference/sender.py
# SPDX-License-Identifier: Apache-2.0
"""
HTTP transport for inference requests.

The sender owns an `httpx.AsyncClient` and an event loop. Callers hand it a
request manager (which knows how to build the provider request and which
response handler applies), the call inputs, a timeout and a listener. The
call returns immediately; the outcome is delivered to the listener once.

Per call the sender:

1. builds the provider request from the inputs,
2. waits on the rate limiter of the request's rate-limit group,
3. sends the HTTP request,
4. validates the status; on HTTP 413 it truncates the inputs and resends,
   up to `max_truncation_retries` times,
5. parses the body into a typed result.

Example:
    sender = HttpRequestSender(settings=HttpSenderSettings.from_env())
    await sender.start()
    action.execute(EmbeddingsInput(["hello"]), 30.0, ListenerFuture())
    ...
    await sender.close()
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import hashlib
import logging
import os
import time
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Set,
    Tuple,
    runtime_checkable,
)

import httpx

from fireworks_inference.core.error_context import attach_context
from fireworks_inference.inference.inference_base import (
    ActionListener,
    CallbackListener,
    ContentTooLarge,
    DeadlineExceeded,
    EmbeddingsInput,
    InferenceAdapterError,
    MetricsSink,
    NoopMetrics,
    NotifyOnceListener,
    RateLimiter,
    TokenBucketLimiter,
    TransportError,
)
from fireworks_inference.inference.settings import RateLimitSettings, RateLimitedServiceSettings
from fireworks_inference.inference.truncation import TruncationResult, Truncator

LOG = logging.getLogger(__name__)

_COMPONENT = "http_sender"


# =============================================================================
# Wire-level values
# =============================================================================


@dataclass(frozen=True)
class HttpRequest:
    """A fully built outbound HTTP request."""

    method: str
    url: str
    headers: Mapping[str, str]
    body: bytes
    inference_entity_id: str


@dataclass(frozen=True)
class HttpResult:
    """Status, headers and raw body of a provider response."""

    status_code: int
    status_line: str
    headers: Mapping[str, str]
    body: bytes

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @classmethod
    def from_response(cls, response: httpx.Response) -> "HttpResult":
        return cls(
            status_code=response.status_code,
            status_line=f"{response.http_version} {response.status_code} {response.reason_phrase}",
            headers={k.lower(): v for k, v in response.headers.items()},
            body=response.content,
        )


@runtime_checkable
class Request(Protocol):
    """Provider request codec: builds the HTTP request and supports truncation."""

    @property
    def inference_entity_id(self) -> str:
        ...

    def create_http_request(self) -> HttpRequest:
        ...

    def truncate(self) -> "Request":
        ...

    def truncation_info(self) -> Optional[List[bool]]:
        ...


@runtime_checkable
class ResponseHandler(Protocol):
    """Classifies a provider response and parses successful ones."""

    @property
    def request_type(self) -> str:
        ...

    def validate_response(self, request: Request, result: HttpResult) -> None:
        ...

    def parse_result(self, request: Request, result: HttpResult) -> Any:
        ...


# =============================================================================
# Request managers
# =============================================================================


class RequestManager:
    """
    Binds a model to the response handler and request factory for one call.

    `model` must expose `inference_entity_id`, `service_settings` (a
    `RateLimitedServiceSettings`) and optionally `secret_settings`.
    """

    def __init__(self, model: Any, response_handler: ResponseHandler) -> None:
        self.model = model
        self.response_handler = response_handler

    @property
    def inference_entity_id(self) -> str:
        return self.model.inference_entity_id

    @property
    def service_settings(self) -> RateLimitedServiceSettings:
        return self.model.service_settings

    @property
    def rate_limit_settings(self) -> RateLimitSettings:
        return self.service_settings.rate_limit_settings

    def rate_limit_group(self) -> Tuple[str, str, str]:
        """Calls sharing model, endpoint and credentials share one limiter."""
        service_settings = self.service_settings
        secrets = getattr(self.model, "secret_settings", None)
        api_key = getattr(secrets, "api_key", "") or ""
        key_hash = hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:16]
        return (service_settings.model_id, service_settings.uri, key_hash)

    def create_request(self, inputs: Any) -> Request:
        raise NotImplementedError


class GenericRequestManager(RequestManager):
    """Builds the request directly from the call inputs."""

    def __init__(
        self,
        model: Any,
        response_handler: ResponseHandler,
        request_creator: Callable[[Any], Request],
    ) -> None:
        super().__init__(model, response_handler)
        self._request_creator = request_creator

    def create_request(self, inputs: Any) -> Request:
        return self._request_creator(inputs)


class TruncatingRequestManager(RequestManager):
    """Caps embeddings inputs at the model's token limit before building the request."""

    def __init__(
        self,
        model: Any,
        response_handler: ResponseHandler,
        request_creator: Callable[[TruncationResult], Request],
        max_input_tokens: Optional[int],
        truncator: Truncator,
    ) -> None:
        super().__init__(model, response_handler)
        self._request_creator = request_creator
        self._max_input_tokens = max_input_tokens
        self._truncator = truncator

    def create_request(self, inputs: Any) -> Request:
        texts = inputs.inputs if isinstance(inputs, EmbeddingsInput) else list(inputs)
        truncation = self._truncator.truncate_to_token_limit(texts, self._max_input_tokens)
        return self._request_creator(truncation)


@dataclass(frozen=True)
class ServiceComponents:
    """Shared collaborators handed to services and action creators."""

    truncator: Truncator = field(default_factory=Truncator)


# =============================================================================
# Sender
# =============================================================================


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw else default


@dataclass(frozen=True)
class HttpSenderSettings:
    """
    Transport tuning knobs.

    Attributes:
        max_connections: connection pool size
        max_keepalive_connections: idle connections kept open
        connect_timeout_s: TCP/TLS connect timeout
        max_truncation_retries: resends after HTTP 413 with truncated input
    """

    max_connections: int = 100
    max_keepalive_connections: int = 20
    connect_timeout_s: float = 10.0
    max_truncation_retries: int = 1

    @classmethod
    def from_env(cls, prefix: str = "FIREWORKS_SENDER_") -> "HttpSenderSettings":
        defaults = cls()
        return cls(
            max_connections=_env_int(f"{prefix}MAX_CONNECTIONS", defaults.max_connections),
            max_keepalive_connections=_env_int(
                f"{prefix}MAX_KEEPALIVE_CONNECTIONS", defaults.max_keepalive_connections
            ),
            connect_timeout_s=_env_float(f"{prefix}CONNECT_TIMEOUT_S", defaults.connect_timeout_s),
            max_truncation_retries=_env_int(
                f"{prefix}MAX_TRUNCATION_RETRIES", defaults.max_truncation_retries
            ),
        )


class HttpRequestSender:
    """
    Asynchronous HTTP sender bound to one event loop.

    `send()` is non-blocking and may be called from any thread. When called
    from a thread other than the sender's loop, the work is scheduled with
    `asyncio.run_coroutine_threadsafe`.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        settings: Optional[HttpSenderSettings] = None,
        metrics: Optional[MetricsSink] = None,
        limiter_factory: Optional[Callable[[RateLimitSettings], RateLimiter]] = None,
    ) -> None:
        self.settings = settings or HttpSenderSettings()
        self._client = client
        self._owns_client = client is None
        self._transport = transport
        self._metrics: MetricsSink = metrics or NoopMetrics()
        self._limiter_factory = limiter_factory or (
            lambda rl: TokenBucketLimiter.per_minute(rl.requests_per_minute)
        )
        self._limiters: Dict[Tuple[str, str, str], RateLimiter] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._inflight: Set[asyncio.Task] = set()
        self._scheduled: Set[concurrent.futures.Future] = set()
        self._closed = False

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def start(self) -> None:
        """Bind to the running loop and open the HTTP client."""
        self._loop = asyncio.get_running_loop()
        self._closed = False
        self._ensure_client()
        LOG.debug("http sender started")

    async def close(self) -> None:
        """Wait for in-flight calls, then close the client if this sender created it."""
        self._closed = True
        current = asyncio.current_task()
        while True:
            pending: List[Any] = [t for t in list(self._inflight) if t is not current]
            pending.extend(asyncio.wrap_future(f) for f in list(self._scheduled))
            if not pending:
                break
            await asyncio.gather(*pending, return_exceptions=True)
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        LOG.debug("http sender closed")

    async def __aenter__(self) -> "HttpRequestSender":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            if self._closed:
                raise TransportError("HTTP sender is closed")
            self._client = httpx.AsyncClient(
                limits=httpx.Limits(
                    max_connections=self.settings.max_connections,
                    max_keepalive_connections=self.settings.max_keepalive_connections,
                ),
                timeout=httpx.Timeout(None, connect=self.settings.connect_timeout_s),
                transport=self._transport,
            )
            self._owns_client = True
        return self._client

    def _resolve_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        if self._loop is not None and not self._loop.is_closed():
            return self._loop
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            return None
        return self._loop

    # ------------------------------------------------------------------ #
    # Sending
    # ------------------------------------------------------------------ #

    def send(
        self,
        request_manager: RequestManager,
        inputs: Any,
        timeout: Optional[float],
        listener: ActionListener,
    ) -> None:
        if self._closed:
            listener.on_failure(TransportError("HTTP sender is closed"))
            return
        loop = self._resolve_loop()
        if loop is None:
            listener.on_failure(
                TransportError("HTTP sender has no event loop; call start() from a running loop")
            )
            return

        coro = self._execute(request_manager, inputs, timeout, listener)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            task = loop.create_task(coro)
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
        else:
            future = asyncio.run_coroutine_threadsafe(coro, loop)
            self._scheduled.add(future)
            future.add_done_callback(self._scheduled.discard)

    def _limiter_for(self, request_manager: RequestManager) -> RateLimiter:
        group = request_manager.rate_limit_group()
        limiter = self._limiters.get(group)
        if limiter is None:
            limiter = self._limiter_factory(request_manager.rate_limit_settings)
            self._limiters[group] = limiter
        return limiter

    async def _execute(
        self,
        request_manager: RequestManager,
        inputs: Any,
        timeout: Optional[float],
        listener: ActionListener,
    ) -> None:
        op = request_manager.response_handler.request_type
        t0 = time.monotonic()
        result: Any = None
        error: Optional[Exception] = None
        try:
            result = await asyncio.wait_for(
                self._send_with_truncation_retries(request_manager, inputs),
                timeout,
            )
        except asyncio.TimeoutError:
            error = DeadlineExceeded(f"{op} request timed out after {timeout}s")
        except httpx.TimeoutException as e:
            error = DeadlineExceeded(f"{op} request timed out: {e}")
        except httpx.HTTPError as e:
            error = TransportError(f"{op} request failed: {e}")
            error.__cause__ = e
        except Exception as e:  # noqa: BLE001
            error = e

        elapsed_ms = (time.monotonic() - t0) * 1000.0
        code = "OK"
        if error is not None:
            code = getattr(error, "code", None) or type(error).__name__
            attach_context(
                error,
                component=_COMPONENT,
                operation=op,
                inference_entity_id=request_manager.inference_entity_id,
                elapsed_ms=round(elapsed_ms, 2),
            )
        self._metrics.observe(component=_COMPONENT, op=op, ms=elapsed_ms, ok=error is None, code=code)

        try:
            if error is None:
                listener.on_response(result)
            else:
                listener.on_failure(error)
        except Exception:  # noqa: BLE001
            LOG.exception("listener raised while handling %s outcome", op)

    async def _send_with_truncation_retries(self, request_manager: RequestManager, inputs: Any) -> Any:
        handler = request_manager.response_handler
        request = request_manager.create_request(inputs)
        limiter = self._limiter_for(request_manager)
        retries = 0
        while True:
            await limiter.acquire()
            try:
                result = await self._send_once(request)
            finally:
                limiter.release()
            try:
                handler.validate_response(request, result)
            except ContentTooLarge:
                if request.truncation_info() is None or retries >= self.settings.max_truncation_retries:
                    raise
                retries += 1
                self._metrics.counter(component=_COMPONENT, name="truncation_retries", extra={"op": handler.request_type})
                LOG.warning(
                    "%s request for [%s] exceeded the input limit; retrying with truncated input (%d/%d)",
                    handler.request_type,
                    request.inference_entity_id,
                    retries,
                    self.settings.max_truncation_retries,
                )
                request = request.truncate()
                continue
            return handler.parse_result(request, result)

    async def _send_once(self, request: Request) -> HttpResult:
        http_request = request.create_http_request()
        client = self._ensure_client()
        response = await client.request(
            http_request.method,
            http_request.url,
            headers=dict(http_request.headers),
            content=http_request.body,
        )
        return HttpResult.from_response(response)


# =============================================================================
# Executable action
# =============================================================================


def wrap_failed_to_send(exc: Exception, failed_to_send_message: str) -> InferenceAdapterError:
    if isinstance(exc, InferenceAdapterError):
        return exc
    err = TransportError(f"{failed_to_send_message}. Cause: {exc}")
    err.__cause__ = exc
    return err


class SenderExecutableAction:
    """
    Hands a request manager to the sender; normalizes unexpected failures.

    The caller's listener is notified at most once per `execute`.
    """

    def __init__(
        self,
        sender: HttpRequestSender,
        request_manager: RequestManager,
        failed_to_send_message: str,
    ) -> None:
        self.sender = sender
        self.request_manager = request_manager
        self.failed_to_send_message = failed_to_send_message

    def execute(self, inputs: Any, timeout: Optional[float], listener: ActionListener) -> None:
        once = NotifyOnceListener(listener)
        wrapped = CallbackListener(
            once.on_response,
            lambda exc: once.on_failure(wrap_failed_to_send(exc, self.failed_to_send_message)),
        )
        try:
            self.sender.send(self.request_manager, inputs, timeout, wrapped)
        except Exception as exc:  # noqa: BLE001
            once.on_failure(wrap_failed_to_send(exc, self.failed_to_send_message))


__all__ = [
    "HttpRequest",
    "HttpResult",
    "Request",
    "ResponseHandler",
    "RequestManager",
    "GenericRequestManager",
    "TruncatingRequestManager",
    "ServiceComponents",
    "HttpSenderSettings",
    "HttpRequestSender",
    "wrap_failed_to_send",
    "SenderExecutableAction",
]
