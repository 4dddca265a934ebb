# fireworks_inference/fireworksai/constants.py
# SPDX-License-Identifier: Apache-2.0
"""Fireworks AI service identifiers, endpoints and limits."""

from __future__ import annotations

from fireworks_inference.inference.settings import RateLimitSettings

NAME = "fireworksai"
SERVICE_NAME = "FireworksAI"

DEFAULT_EMBEDDINGS_URL = "https://api.fireworks.ai/inference/v1/embeddings"
DEFAULT_RERANK_URL = "https://api.fireworks.ai/inference/v1/rerank"

DEFAULT_RATE_LIMIT_SETTINGS = RateLimitSettings(requests_per_minute=3000)

# Provider limit on inputs per embeddings request
EMBEDDING_MAX_BATCH_SIZE = 2048

RERANKER_WINDOW_SIZE = 5500

RETURN_DOCUMENTS = "return_documents"
TOP_N = "top_n"

__all__ = [
    "NAME",
    "SERVICE_NAME",
    "DEFAULT_EMBEDDINGS_URL",
    "DEFAULT_RERANK_URL",
    "DEFAULT_RATE_LIMIT_SETTINGS",
    "EMBEDDING_MAX_BATCH_SIZE",
    "RERANKER_WINDOW_SIZE",
    "RETURN_DOCUMENTS",
    "TOP_N",
]
