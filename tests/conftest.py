# SPDX-License-Identifier: Apache-2.0
"""
Shared fixtures for the Fireworks AI inference test suite.

Model fixtures return fully built descriptors with an API key so tests can go
straight to dispatch. HTTP is always faked through `httpx.MockTransport`.
"""

from __future__ import annotations

import pytest

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
from fireworks_inference.inference.settings import DefaultSecretSettings
from fireworks_inference.inference.truncation import Truncator

from tests.utils.fake_provider import FakeFireworks, RecordingListener

API_KEY = "fw-test-secret-key"


@pytest.fixture
def api_key() -> str:
    return API_KEY


@pytest.fixture
def embeddings_model() -> FireworksAiEmbeddingsModel:
    return FireworksAiEmbeddingsModel(
        inference_entity_id="fw-embeddings",
        service_settings=FireworksAiEmbeddingsServiceSettings(model_id="nomic-ai/nomic-embed-text-v1.5"),
        task_settings=FireworksAiEmbeddingsTaskSettings.EMPTY_SETTINGS,
        secret_settings=DefaultSecretSettings(api_key=API_KEY),
    )


@pytest.fixture
def rerank_model() -> FireworksAiRerankModel:
    return FireworksAiRerankModel(
        inference_entity_id="fw-rerank",
        service_settings=FireworksAiRerankServiceSettings(model_id="fireworks/qwen3-reranker-8b"),
        task_settings=FireworksAiRerankTaskSettings.EMPTY_SETTINGS,
        secret_settings=DefaultSecretSettings(api_key=API_KEY),
    )


@pytest.fixture
def fake_provider() -> FakeFireworks:
    return FakeFireworks()


@pytest.fixture
def truncator() -> Truncator:
    return Truncator()


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()
