# fireworks_inference/fireworksai/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""Fireworks AI embeddings and rerank service."""

from fireworks_inference.fireworksai.constants import NAME, SERVICE_NAME
from fireworks_inference.fireworksai.embeddings import (
    FireworksAiEmbeddingsModel,
    FireworksAiEmbeddingsServiceSettings,
    FireworksAiEmbeddingsTaskSettings,
)
from fireworks_inference.fireworksai.rerank import (
    FireworksAiRerankModel,
    FireworksAiRerankServiceSettings,
    FireworksAiRerankTaskSettings,
)
from fireworks_inference.fireworksai.action import FireworksAiActionCreator, FireworksAiModel
from fireworks_inference.fireworksai.service import FireworksAiService

__all__ = [
    "NAME",
    "SERVICE_NAME",
    "FireworksAiEmbeddingsModel",
    "FireworksAiEmbeddingsServiceSettings",
    "FireworksAiEmbeddingsTaskSettings",
    "FireworksAiRerankModel",
    "FireworksAiRerankServiceSettings",
    "FireworksAiRerankTaskSettings",
    "FireworksAiActionCreator",
    "FireworksAiModel",
    "FireworksAiService",
]
