# fireworks_inference/core/error_context.py
# SPDX-License-Identifier: Apache-2.0

"""
Error context utilities for inference components.

Helpers for attaching debugging context to exceptions as they travel from the
HTTP sender, through batch listeners, to the caller's listener. The context is
stored as exception attributes so the original exception type and message are
preserved for whoever finally handles the failure.

Typical usage
-------------

    from fireworks_inference.core.error_context import attach_context

    try:
        result = handler.parse_result(request, http_result)
    except Exception as exc:
        attach_context(
            exc,
            component="http_sender",
            operation="fireworksai embeddings",
            inference_entity_id=request.inference_entity_id,
        )
        raise

Later, in error handlers or observability systems:

    context = get_context(exc)
    LOG.error("inference failed", extra={"operation": context.get("operation")})

Two attributes are set:

- `__inference_context__` (canonical), merged across calls.
- `__<component>_context__` (component-specific), for discoverability.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, MutableMapping

logger = logging.getLogger(__name__)

_CANONICAL_ATTR = "__inference_context__"


def attach_context(
    exc: BaseException,
    component: str,
    **context: Any,
) -> None:
    """
    Attach debugging context to an exception.

    If context already exists on the exception (from a previous call), the new
    context is merged into it. The `component` key is set once and never
    overwritten, so it records where the failure was first observed.

    Avoid including secrets or raw input text in context.
    """
    try:
        merged_context: MutableMapping[str, Any] = {}

        existing = getattr(exc, _CANONICAL_ATTR, None)
        if isinstance(existing, Mapping):
            merged_context.update(existing)

        merged_context.setdefault("component", component)
        merged_context.update(context)

        setattr(exc, _CANONICAL_ATTR, merged_context)
        setattr(exc, f"__{component}_context__", merged_context)
    except Exception as attachment_error:  # noqa: BLE001
        # Context attachment must never interfere with exception propagation.
        logger.debug(
            "Failed to attach error context to %s: %s",
            type(exc).__name__,
            attachment_error,
        )


def get_context(exc: BaseException) -> Dict[str, Any]:
    """Return a copy of the canonical context attached to `exc` (empty if none)."""
    existing = getattr(exc, _CANONICAL_ATTR, None)
    if isinstance(existing, Mapping):
        return dict(existing)
    return {}


__all__ = [
    "attach_context",
    "get_context",
]
