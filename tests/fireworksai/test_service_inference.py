# SPDX-License-Identifier: Apache-2.0
"""
End-to-end inference through the service against a fake Fireworks endpoint.

Covers:
  • embeddings and rerank inference, including request-time overrides
  • input type and input kind validation happen before anything is sent
  • token-limit truncation from max_input_tokens
  • chunked inference: per-input ordering across several batches
  • chunked inference failures and rerank rejection
  • unified completion is not supported
"""

from dataclasses import replace

import httpx
import pytest

from fireworks_inference.fireworksai.service import FireworksAiService
from fireworks_inference.inference.chunking import ChunkingSettings
from fireworks_inference.inference.inference_base import (
    BadRequest,
    ChunkInferenceInput,
    EmbeddingsInput,
    InputType,
    InvalidModel,
    ListenerFuture,
    NotSupported,
    QueryAndDocsInputs,
    RankedDocsResults,
    TaskType,
    UnifiedChatInput,
    Unavailable,
    ValidationError,
)

from tests.utils.fake_provider import FakeFireworks, default_responder


async def _run(call, *args):
    future = ListenerFuture()
    call(*args, future)
    return await future.result(timeout=2.0)


@pytest.mark.asyncio
async def test_infer_embeddings(embeddings_model, fake_provider):
    async with fake_provider.sender() as sender:
        service = FireworksAiService(sender)
        results = await _run(service.infer, embeddings_model, EmbeddingsInput(["hello", "hi"]), None, 5.0)

    assert [e.values for e in results.embeddings] == [[5.0, 0.0], [2.0, 1.0]]
    (body,) = fake_provider.json_bodies()
    assert body == {"model": embeddings_model.model_id, "input": ["hello", "hi"]}
    assert str(fake_provider.requests[0].url) == embeddings_model.uri


@pytest.mark.asyncio
async def test_infer_embeddings_with_dimension_override(embeddings_model, fake_provider):
    async with fake_provider.sender() as sender:
        service = FireworksAiService(sender)
        await _run(service.infer, embeddings_model, EmbeddingsInput(["x"]), {"dimensions": 32}, 5.0)

    assert fake_provider.json_bodies()[0]["dimensions"] == 32


@pytest.mark.asyncio
async def test_infer_rerank(rerank_model, fake_provider):
    docs = ["short", "the longest document", "medium doc"]
    async with fake_provider.sender() as sender:
        service = FireworksAiService(sender)
        results = await _run(
            service.infer,
            rerank_model,
            QueryAndDocsInputs("which is longest?", docs, return_documents=True, top_n=2),
            None,
            5.0,
        )

    assert isinstance(results, RankedDocsResults)
    assert [d.index for d in results.ranked_docs] == [1, 2]
    assert results.ranked_docs[0].text == "the longest document"
    body = fake_provider.json_bodies()[0]
    assert body["top_n"] == 2
    assert body["return_documents"] is True


@pytest.mark.asyncio
async def test_search_input_type_rejected_for_embeddings(embeddings_model, fake_provider):
    async with fake_provider.sender() as sender:
        service = FireworksAiService(sender)
        with pytest.raises(ValidationError, match="Invalid input_type"):
            await _run(service.infer, embeddings_model, EmbeddingsInput(["x"], InputType.SEARCH), None, 5.0)

    assert fake_provider.requests == []


@pytest.mark.asyncio
async def test_internal_input_type_accepted(embeddings_model, fake_provider):
    async with fake_provider.sender() as sender:
        service = FireworksAiService(sender)
        results = await _run(
            service.infer, embeddings_model, EmbeddingsInput(["x"], InputType.INTERNAL_INGEST), None, 5.0
        )
    assert len(results) == 1


@pytest.mark.asyncio
async def test_infer_rejects_foreign_model(fake_provider):
    async with fake_provider.sender() as sender:
        service = FireworksAiService(sender)
        with pytest.raises(InvalidModel):
            await _run(service.infer, object(), EmbeddingsInput(["x"]), None, 5.0)


@pytest.mark.asyncio
async def test_rerank_with_embeddings_input_is_a_bad_request(rerank_model, fake_provider):
    async with fake_provider.sender() as sender:
        service = FireworksAiService(sender)
        with pytest.raises(BadRequest, match="expected \[QueryAndDocsInputs\]") as exc_info:
            await _run(service.infer, rerank_model, EmbeddingsInput(["x"]), None, 5.0)

    assert exc_info.value.status == 400
    assert fake_provider.requests == []


@pytest.mark.asyncio
async def test_embeddings_with_rerank_input_is_a_bad_request(embeddings_model, fake_provider):
    async with fake_provider.sender() as sender:
        service = FireworksAiService(sender)
        with pytest.raises(BadRequest, match="expected \[EmbeddingsInput\]"):
            await _run(service.infer, embeddings_model, QueryAndDocsInputs("q", ["d"]), None, 5.0)

    assert fake_provider.requests == []

@pytest.mark.asyncio
async def test_max_input_tokens_caps_inputs(fake_provider, api_key):
    async with fake_provider.sender() as sender:
        service = FireworksAiService(sender)
        model = await _run(
            service.parse_request_config,
            "capped",
            TaskType.TEXT_EMBEDDING,
            {"service_settings": {"model_id": "m", "api_key": api_key, "max_input_tokens": 2}},
        )
        await _run(service.infer, model, EmbeddingsInput(["abcdefghijkl", "abc"]), None, 5.0)

    assert fake_provider.json_bodies()[0]["input"] == ["abcdef", "abc"]


@pytest.mark.asyncio
async def test_chunked_infer_preserves_input_order_across_batches(embeddings_model, fake_provider, monkeypatch):
    monkeypatch.setattr("fireworks_inference.fireworksai.service.EMBEDDING_MAX_BATCH_SIZE", 2)
    texts = ["a", "bbb", "cc", "dddddd", "eeee"]
    inputs = [ChunkInferenceInput(t, ChunkingSettings.none()) for t in texts]

    async with fake_provider.sender() as sender:
        service = FireworksAiService(sender)
        results = await _run(service.chunked_infer, embeddings_model, inputs, None, InputType.INTERNAL_INGEST, 5.0)

    assert len(fake_provider.requests) == 3
    assert all(len(body["input"]) <= 2 for body in fake_provider.json_bodies())
    assert [r.chunks[0].values[0] for r in results] == [float(len(t)) for t in texts]
    assert [r.chunks[0].offset for r in results] == [(0, len(t)) for t in texts]


@pytest.mark.asyncio
async def test_chunked_infer_uses_model_chunking_settings(embeddings_model, fake_provider):
    model = replace(embeddings_model, chunking_settings=ChunkingSettings.word(10, 0))
    long_text = " ".join(f"w{i}" for i in range(25))

    async with fake_provider.sender() as sender:
        service = FireworksAiService(sender)
        (result,) = await _run(service.chunked_infer, model, [ChunkInferenceInput(long_text)], None, None, 5.0)

    assert len(result.chunks) == 3
    assert len(fake_provider.json_bodies()[0]["input"]) == 3


@pytest.mark.asyncio
async def test_chunked_infer_reports_batch_failure_once(embeddings_model, monkeypatch):
    monkeypatch.setattr("fireworks_inference.fireworksai.service.EMBEDDING_MAX_BATCH_SIZE", 1)

    def flaky(request):
        if b"broken" in request.content:
            return httpx.Response(503)
        return default_responder(request)

    fake = FakeFireworks(flaky)
    inputs = [ChunkInferenceInput(t, ChunkingSettings.none()) for t in ["ok", "broken", "fine"]]

    async with fake.sender() as sender:
        service = FireworksAiService(sender)
        with pytest.raises(Unavailable) as exc_info:
            await _run(service.chunked_infer, embeddings_model, inputs, None, None, 5.0)

    assert exc_info.value.status == 503
    assert len(fake.requests) == 3


@pytest.mark.asyncio
async def test_chunked_infer_with_no_inputs(embeddings_model, fake_provider):
    async with fake_provider.sender() as sender:
        service = FireworksAiService(sender)
        assert await _run(service.chunked_infer, embeddings_model, [], None, None, 5.0) == []
    assert fake_provider.requests == []


@pytest.mark.asyncio
async def test_chunked_infer_not_supported_for_rerank(rerank_model, fake_provider):
    async with fake_provider.sender() as sender:
        service = FireworksAiService(sender)
        with pytest.raises(NotSupported, match="Chunked inference is not supported for rerank task"):
            await _run(service.chunked_infer, rerank_model, [ChunkInferenceInput("x")], None, None, 5.0)

    assert fake_provider.requests == []


@pytest.mark.asyncio
async def test_unified_completion_not_supported(embeddings_model, fake_provider):
    async with fake_provider.sender() as sender:
        service = FireworksAiService(sender)
        with pytest.raises(NotSupported, match="Unified completion is not supported for FireworksAI service"):
            await _run(
                service.unified_completion_infer,
                embeddings_model,
                UnifiedChatInput([{"role": "user", "content": "hi"}]),
                5.0,
            )


@pytest.mark.asyncio
async def test_service_start_and_close_drive_the_sender(embeddings_model, fake_provider):
    service = FireworksAiService(fake_provider.sender())
    await service.start()
    results = await _run(service.infer, embeddings_model, EmbeddingsInput(["abc"]), None, 5.0)
    await service.close()

    assert results.first_embedding_size() == 2
