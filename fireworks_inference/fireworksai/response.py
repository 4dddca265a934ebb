# fireworks_inference/fireworksai/response.py
# SPDX-License-Identifier: Apache-2.0
"""
Fireworks AI response handling.

Non-2xx responses are mapped onto the normalized error taxonomy by status
bucket; the error message is the HTTP status line. Successful bodies are
decoded into typed results:

    embeddings: {"data": [{"embedding": [float, ...]}, ...]}
    rerank:     {"data": [{"index": int, "relevance_score": float, "document"?: ...}, ...]}
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, List, Mapping, Optional

from fireworks_inference.inference.inference_base import (
    AuthError,
    ContentTooLarge,
    EmbeddingVector,
    ParseError,
    ProviderError,
    RankedDoc,
    RankedDocsResults,
    ResourceExhausted,
    TextEmbeddingFloatResults,
    Unavailable,
)
from fireworks_inference.inference.sender import HttpResult, Request

LOG = logging.getLogger(__name__)

_BODY_EXCERPT = 512

ParseFunction = Callable[[Request, HttpResult], Any]


def _extract_retry_after_ms(headers: Mapping[str, str]) -> Optional[int]:
    """Best-effort extraction of the Retry-After header (seconds) as milliseconds."""
    val = headers.get("retry-after")
    if val is None:
        return None
    try:
        seconds = int(str(val).strip())
    except ValueError:
        return None
    return max(0, seconds) * 1000


def _body_excerpt(body: bytes) -> str:
    return body[:_BODY_EXCERPT].decode("utf-8", errors="replace")


def error_from_response(request_type: str, result: HttpResult) -> ProviderError:
    """Map an unsuccessful response onto a `ProviderError` subclass by status bucket."""
    status = result.status_code
    message = result.status_line
    details = {"request_type": request_type}

    if status in (401, 403):
        return AuthError(message, status_code=status, details=details)
    if status == 413:
        return ContentTooLarge(message, status_code=status, details=details)
    if status == 429:
        return ResourceExhausted(
            message,
            status_code=status,
            retry_after_ms=_extract_retry_after_ms(result.headers),
            details=details,
        )
    if 500 <= status <= 599:
        return Unavailable(
            message,
            status_code=status,
            retry_after_ms=_extract_retry_after_ms(result.headers),
            details=details,
        )
    return ProviderError(message, status_code=status, details=details)


class FireworksAiResponseHandler:
    """Validates responses for one request type and delegates body parsing."""

    def __init__(self, request_type: str, parse_function: ParseFunction) -> None:
        self._request_type = request_type
        self._parse_function = parse_function

    @property
    def request_type(self) -> str:
        return self._request_type

    def validate_response(self, request: Request, result: HttpResult) -> None:
        if result.is_success:
            return
        error = error_from_response(self._request_type, result)
        LOG.warning(
            "%s request for [%s] failed: %s",
            self._request_type,
            request.inference_entity_id,
            result.status_line,
        )
        raise error

    def parse_result(self, request: Request, result: HttpResult) -> Any:
        return self._parse_function(request, result)


def _load_data(result: HttpResult, what: str) -> List[Any]:
    try:
        payload = json.loads(result.body)
    except (ValueError, UnicodeDecodeError):
        raise ParseError(
            f"Failed to parse {what} response: body is not valid JSON",
            details={"status": result.status_code, "body": _body_excerpt(result.body)},
        ) from None
    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, list):
        raise ParseError(
            f"Failed to parse {what} response: missing [data] array",
            details={"status": result.status_code, "body": _body_excerpt(result.body)},
        )
    return data


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def embeddings_from_response(request: Request, result: HttpResult) -> TextEmbeddingFloatResults:
    """
    Decode an embeddings response.

    Entries are taken in `data` order; the `index` field is not consulted.
    """
    data = _load_data(result, "embeddings")
    embeddings: List[EmbeddingVector] = []
    for position, entry in enumerate(data):
        values = entry.get("embedding") if isinstance(entry, dict) else None
        if not isinstance(values, list) or not all(_is_number(v) for v in values):
            raise ParseError(
                f"Failed to parse embeddings response: entry [{position}] has no numeric [embedding] list",
                details={"status": result.status_code},
            )
        embeddings.append(EmbeddingVector(values=[float(v) for v in values]))
    return TextEmbeddingFloatResults(embeddings=embeddings)


def rerank_from_response(request: Request, result: HttpResult) -> RankedDocsResults:
    """Decode a rerank response, keeping provider ranking order."""
    data = _load_data(result, "rerank")
    docs: List[RankedDoc] = []
    for position, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise ParseError(f"Failed to parse rerank response: entry [{position}] is not an object")
        index = entry.get("index")
        score = entry.get("relevance_score")
        if not isinstance(index, int) or isinstance(index, bool) or not _is_number(score):
            raise ParseError(
                f"Failed to parse rerank response: entry [{position}] needs integer [index] "
                "and numeric [relevance_score]",
                details={"status": result.status_code},
            )
        document = entry.get("document")
        if isinstance(document, dict):
            document = document.get("text")
        if document is not None and not isinstance(document, str):
            raise ParseError(f"Failed to parse rerank response: entry [{position}] has an invalid [document]")
        docs.append(RankedDoc(index=index, relevance_score=float(score), text=document))
    return RankedDocsResults(ranked_docs=docs)


__all__ = [
    "FireworksAiResponseHandler",
    "error_from_response",
    "embeddings_from_response",
    "rerank_from_response",
]
