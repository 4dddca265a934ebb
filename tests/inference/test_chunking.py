# SPDX-License-Identifier: Apache-2.0
"""
Chunking policy and embedding batch fan-out.

Covers:
  • chunking settings parsing and validation
  • word / sentence / none chunk offsets
  • batches never exceed the maximum size and preserve order
  • out-of-order batch completion still yields input-ordered results
  • first failure wins; count mismatches fail the batch
  • zero inputs complete immediately
"""

import pytest

from fireworks_inference.inference.chunking import (
    ChunkingSettings,
    ChunkingStrategy,
    EmbeddingRequestChunker,
)
from fireworks_inference.inference.inference_base import (
    ChunkedInferenceEmbedding,
    ChunkInferenceInput,
    EmbeddingVector,
    ParseError,
    ProviderError,
    TextEmbeddingFloatResults,
    ValidationError,
)

from tests.utils.fake_provider import RecordingListener


def _results_for(inputs):
    return TextEmbeddingFloatResults([EmbeddingVector([float(len(t))]) for t in inputs])


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def test_chunking_settings_empty_map_means_default():
    assert ChunkingSettings.from_map(None) is None
    assert ChunkingSettings.from_map({}) is None
    assert ChunkingSettings.default() == ChunkingSettings.sentence(250, 1)


def test_chunking_settings_parse_word_strategy():
    settings = ChunkingSettings.from_map({"strategy": "word", "max_chunk_size": 20, "overlap": 5})
    assert settings == ChunkingSettings.word(20, 5)
    assert settings.to_dict() == {"strategy": "word", "max_chunk_size": 20, "overlap": 5}


def test_chunking_settings_parse_none_strategy():
    assert ChunkingSettings.from_map({"strategy": "none"}).strategy is ChunkingStrategy.NONE


@pytest.mark.parametrize(
    "raw",
    [
        {"max_chunk_size": 20},
        {"strategy": "paragraph"},
        {"strategy": "word", "max_chunk_size": 5, "overlap": 0},
        {"strategy": "word", "max_chunk_size": 20, "overlap": 15},
        {"strategy": "sentence", "max_chunk_size": 10, "sentence_overlap": 0},
        {"strategy": "sentence", "max_chunk_size": 50, "sentence_overlap": 2},
        {"strategy": "sentence", "max_chunk_size": 50, "overlap": 2},
    ],
)
def test_chunking_settings_reject_invalid_maps(raw):
    with pytest.raises(ValidationError):
        ChunkingSettings.from_map(raw)


def test_none_strategy_keeps_whole_text():
    text = "one two three. four five six."
    assert ChunkingSettings.none().chunk(text) == [(0, len(text))]


def test_word_chunks_with_overlap():
    text = " ".join(f"w{i}" for i in range(25))
    offsets = ChunkingSettings.word(10, 5).chunk(text)

    chunks = [text[s:e].split() for s, e in offsets]
    assert all(len(c) <= 10 for c in chunks)
    assert chunks[0][0] == "w0"
    assert chunks[-1][-1] == "w24"
    # consecutive windows share `overlap` words
    assert chunks[1][:5] == chunks[0][5:]


def test_sentence_chunks_pack_sentences_up_to_limit():
    sentence = "alpha beta gamma delta epsilon zeta eta theta iota kappa."
    text = " ".join([sentence] * 5)
    offsets = ChunkingSettings.sentence(20, 0).chunk(text)

    assert len(offsets) == 3
    for start, end in offsets:
        assert len(text[start:end].split()) <= 20
        assert text[start:end].endswith(".")


def test_sentence_chunks_split_oversized_sentence_by_words():
    text = " ".join(f"w{i}" for i in range(45)) + "."
    offsets = ChunkingSettings.sentence(20, 1).chunk(text)
    assert len(offsets) == 3
    assert all(len(text[s:e].split()) <= 20 for s, e in offsets)


# ---------------------------------------------------------------------------
# Batching
# ---------------------------------------------------------------------------


def test_zero_inputs_complete_immediately():
    listener = RecordingListener()
    batches = EmbeddingRequestChunker([], 2048).batch_requests_with_listeners(listener)
    assert batches == []
    assert listener.result == []


def test_batches_respect_max_size_and_order():
    """Concatenating batch inputs reproduces the chunks in input order."""
    texts = [f"doc {i}" for i in range(10)]
    inputs = [ChunkInferenceInput(t, ChunkingSettings.none()) for t in texts]
    listener = RecordingListener()

    batches = EmbeddingRequestChunker(inputs, 3).batch_requests_with_listeners(listener)

    assert [len(b.inputs) for b in batches] == [3, 3, 3, 1]
    assert [t for b in batches for t in b.inputs] == texts


def test_out_of_order_completion_preserves_input_order():
    texts = ["a", "bb", "ccc", "dddd", "eeeee"]
    inputs = [ChunkInferenceInput(t, ChunkingSettings.none()) for t in texts]
    listener = RecordingListener()
    batches = EmbeddingRequestChunker(inputs, 2).batch_requests_with_listeners(listener)

    for batch in reversed(batches):
        batch.listener.on_response(_results_for(batch.inputs))

    results = listener.result
    assert len(results) == len(texts)
    assert all(isinstance(r, ChunkedInferenceEmbedding) for r in results)
    assert [r.chunks[0].values for r in results] == [[float(len(t))] for t in texts]
    assert [r.chunks[0].offset for r in results] == [(0, len(t)) for t in texts]


def test_multi_chunk_inputs_regroup_per_input():
    long_text = " ".join(f"w{i}" for i in range(30))
    inputs = [
        ChunkInferenceInput(long_text, ChunkingSettings.word(10, 0)),
        ChunkInferenceInput("short", ChunkingSettings.none()),
    ]
    listener = RecordingListener()
    chunker = EmbeddingRequestChunker(inputs, 2048)
    batches = chunker.batch_requests_with_listeners(listener)

    assert chunker.chunk_count == 4
    assert len(batches) == 1
    batches[0].listener.on_response(_results_for(batches[0].inputs))

    first, second = listener.result
    assert len(first.chunks) == 3
    assert len(second.chunks) == 1
    assert second.chunks[0].values == [5.0]


def test_default_chunking_settings_apply_when_input_has_none():
    long_text = " ".join(f"w{i}" for i in range(30))
    listener = RecordingListener()
    chunker = EmbeddingRequestChunker([ChunkInferenceInput(long_text)], 2048, ChunkingSettings.word(10, 0))
    chunker.batch_requests_with_listeners(listener)
    assert chunker.chunk_count == 3


def test_first_failure_wins_and_no_partial_results():
    inputs = [ChunkInferenceInput(f"t{i}", ChunkingSettings.none()) for i in range(6)]
    listener = RecordingListener()
    batches = EmbeddingRequestChunker(inputs, 2).batch_requests_with_listeners(listener)

    first_error = ProviderError("HTTP/1.1 500 Internal Server Error", status_code=500)
    batches[1].listener.on_failure(first_error)
    batches[0].listener.on_response(_results_for(batches[0].inputs))
    assert listener.notified == 0
    batches[2].listener.on_failure(ProviderError("HTTP/1.1 502 Bad Gateway", status_code=502))

    assert listener.failure is first_error


def test_count_mismatch_fails_batch():
    inputs = [ChunkInferenceInput(f"t{i}", ChunkingSettings.none()) for i in range(3)]
    listener = RecordingListener()
    batches = EmbeddingRequestChunker(inputs, 3).batch_requests_with_listeners(listener)

    batches[0].listener.on_response(_results_for(["only one"]))

    assert isinstance(listener.failure, ParseError)
    assert "returned [1] embeddings for [3] inputs" in listener.failure.message


def test_emit_without_listener_raises_runtime_error():
    chunker = EmbeddingRequestChunker([ChunkInferenceInput("a", ChunkingSettings.none())], 2)
    with pytest.raises(RuntimeError, match="batch_requests_with_listeners"):
        chunker._emit()
