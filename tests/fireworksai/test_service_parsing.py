# SPDX-License-Identifier: Apache-2.0
"""
Service configuration parsing and descriptors.

Covers:
  • request parsing for embeddings and rerank, with secrets in service_settings
  • unknown keys at every level fail request parsing
  • unsupported task types (request vs stored configs)
  • persisted parsing with and without secrets
  • chunking settings apply to embeddings only
  • configuration descriptor, window size, embedding-size updates
"""

import pytest

from fireworks_inference.fireworksai.embeddings import FireworksAiEmbeddingsModel
from fireworks_inference.fireworksai.rerank import FireworksAiRerankModel
from fireworks_inference.fireworksai.service import FireworksAiService
from fireworks_inference.inference.chunking import ChunkingSettings
from fireworks_inference.inference.inference_base import (
    BadRequest,
    InferenceAdapterError,
    NotSupported,
    TaskType,
    ValidationError,
)
from fireworks_inference.inference.sender import HttpRequestSender
from fireworks_inference.inference.settings import SimilarityMeasure

from tests.utils.fake_provider import RecordingListener

EMBED_MODEL = "nomic-ai/nomic-embed-text-v1.5"
RERANK_MODEL = "fireworks/qwen3-reranker-8b"


@pytest.fixture
def service():
    return FireworksAiService(HttpRequestSender())


def _parse(service, task_type, config):
    listener = RecordingListener()
    service.parse_request_config("endpoint-1", task_type, config, listener)
    assert listener.notified == 1
    return listener


def test_parse_embeddings_request(service, api_key):
    config = {
        "service_settings": {"model_id": EMBED_MODEL, "api_key": api_key, "dimensions": 384},
        "task_settings": {"dimensions": 128},
    }
    model = _parse(service, TaskType.TEXT_EMBEDDING, config).result

    assert isinstance(model, FireworksAiEmbeddingsModel)
    assert model.inference_entity_id == "endpoint-1"
    assert model.service_settings.dimensions == 384
    assert model.service_settings.dimensions_set_by_user is True
    assert model.task_settings.dimensions == 128
    assert model.api_key == api_key
    assert model.chunking_settings is None
    # the caller's mapping is left intact
    assert config["service_settings"]["api_key"] == api_key


def test_parse_rerank_request_from_string_task_type(service, api_key):
    config = {
        "service_settings": {"model_id": RERANK_MODEL, "api_key": api_key},
        "task_settings": {"top_n": 3},
    }
    model = _parse(service, "rerank", config).result
    assert isinstance(model, FireworksAiRerankModel)
    assert model.task_settings.top_n == 3


def test_parse_embeddings_with_chunking(service, api_key):
    config = {
        "service_settings": {"model_id": EMBED_MODEL, "api_key": api_key},
        "chunking_settings": {"strategy": "word", "max_chunk_size": 100, "overlap": 10},
    }
    model = _parse(service, TaskType.TEXT_EMBEDDING, config).result
    assert model.chunking_settings == ChunkingSettings.word(100, 10)


@pytest.mark.parametrize(
    "config",
    [
        {"service_settings": {"model_id": EMBED_MODEL, "api_key": "k", "colour": "blue"}},
        {"service_settings": {"model_id": EMBED_MODEL, "api_key": "k"}, "task_settings": {"temperature": 1}},
        {"service_settings": {"model_id": EMBED_MODEL, "api_key": "k"}, "extra_section": {}},
    ],
)
def test_unknown_keys_fail_request_parse(service, config):
    err = _parse(service, TaskType.TEXT_EMBEDDING, config).failure
    assert isinstance(err, ValidationError)
    assert "unknown to the [fireworksai] service" in err.errors[0]


def test_chunking_settings_rejected_for_rerank(service):
    config = {
        "service_settings": {"model_id": RERANK_MODEL, "api_key": "k"},
        "chunking_settings": {"strategy": "none"},
    }
    err = _parse(service, TaskType.RERANK, config).failure
    assert isinstance(err, ValidationError)
    assert "chunking_settings" in err.errors[0]


def test_missing_service_settings(service):
    err = _parse(service, TaskType.RERANK, {"task_settings": {}}).failure
    assert isinstance(err, BadRequest)
    assert "service_settings" in err.message


def test_missing_api_key_fails_request_parse(service):
    err = _parse(service, TaskType.RERANK, {"service_settings": {"model_id": RERANK_MODEL}}).failure
    assert isinstance(err, ValidationError)
    assert "[api_key]" in err.errors[0]


def test_unsupported_task_type_in_request(service):
    err = _parse(service, TaskType.COMPLETION, {"service_settings": {"model_id": "m", "api_key": "k"}}).failure
    assert isinstance(err, NotSupported)
    assert err.message == "The [fireworksai] service does not support task type [completion]"


def test_unknown_task_type_string(service):
    err = _parse(service, "translation", {"service_settings": {"model_id": "m", "api_key": "k"}}).failure
    assert isinstance(err, BadRequest)


def test_persisted_with_secrets(service, api_key):
    config = {
        "service_settings": {
            "model_id": EMBED_MODEL,
            "dimensions": 768,
            "dimensions_set_by_user": False,
            "similarity": "cosine",
            "legacy_field": "ignored",
        },
        "chunking_settings": {"strategy": "sentence", "max_chunk_size": 250, "sentence_overlap": 1},
    }
    secrets = {"secret_settings": {"api_key": api_key}}

    model = service.parse_persisted_config_with_secrets("stored-1", TaskType.TEXT_EMBEDDING, config, secrets)

    assert model.api_key == api_key
    assert model.service_settings.dimensions == 768
    assert model.service_settings.dimensions_set_by_user is False
    assert model.service_settings.similarity is SimilarityMeasure.COSINE
    assert model.chunking_settings == ChunkingSettings.default()


def test_persisted_without_secrets(service):
    config = {"service_settings": {"model_id": RERANK_MODEL}, "task_settings": {"return_documents": True}}
    model = service.parse_persisted_config("stored-2", "rerank", config)

    assert isinstance(model, FireworksAiRerankModel)
    assert model.secret_settings is None
    assert model.api_key is None
    assert model.task_settings.return_documents is True


def test_persisted_unsupported_task_type(service):
    with pytest.raises(InferenceAdapterError) as exc_info:
        service.parse_persisted_config("stored-3", TaskType.SPARSE_EMBEDDING, {"service_settings": {"model_id": "m"}})
    assert exc_info.value.status == 500
    assert "Failed to parse stored model [stored-3]" in exc_info.value.message


def test_configuration_descriptor(service):
    config = service.get_configuration().to_dict()

    assert config["service"] == "fireworksai"
    assert config["name"] == "FireworksAI"
    assert sorted(config["task_types"]) == ["rerank", "text_embedding"]
    fields = config["configurations"]
    assert set(fields) == {"model_id", "api_key", "rate_limit.requests_per_minute"}
    assert fields["model_id"]["required"] is True
    assert fields["model_id"]["updatable"] is False
    assert fields["api_key"]["sensitive"] is True
    assert fields["rate_limit.requests_per_minute"]["type"] == "int"
    assert service.get_configuration() is service.get_configuration()


def test_identity_and_window_size(service):
    assert service.name() == "fireworksai"
    assert service.supported_task_types() == {TaskType.TEXT_EMBEDDING, TaskType.RERANK}
    assert service.reranker_window_size(RERANK_MODEL) == 5500


def test_update_model_with_embedding_details(service, embeddings_model, rerank_model):
    updated = service.update_model_with_embedding_details(embeddings_model, 768)
    assert updated.service_settings.dimensions == 768
    assert updated.service_settings.similarity is SimilarityMeasure.COSINE
    assert embeddings_model.service_settings.dimensions is None

    assert service.update_model_with_embedding_details(rerank_model, 768) is rerank_model


def test_update_model_keeps_configured_similarity(service, api_key):
    config = {"service_settings": {"model_id": EMBED_MODEL, "api_key": api_key, "similarity": "l2_norm"}}
    model = _parse(service, TaskType.TEXT_EMBEDDING, config).result
    updated = service.update_model_with_embedding_details(model, 256)
    assert updated.service_settings.similarity is SimilarityMeasure.L2_NORM


def test_update_model_keeps_user_chosen_dimensions(service, api_key):
    config = {"service_settings": {"model_id": EMBED_MODEL, "api_key": api_key, "dimensions": 128}}
    model = _parse(service, TaskType.TEXT_EMBEDDING, config).result
    assert model.service_settings.dimensions_set_by_user is True

    assert service.update_model_with_embedding_details(model, 768) is model
