# fireworks_inference/inference/chunking.py
# SPDX-License-Identifier: Apache-2.0
"""
Chunking policy and batched embedding fan-out.

Long documents are split into chunks before embedding, and the resulting
chunk strings are grouped into provider-sized batches. Each batch is sent
independently; results are written back into position-indexed slots so the
caller receives one `ChunkedInferenceEmbedding` per original input, in input
order, regardless of the order in which batches complete.

Chunking strategies
-------------------
- word:     sliding window of `max_chunk_size` words with `overlap` words shared
- sentence: sentences packed up to `max_chunk_size` words, optionally carrying
            the last sentence into the next chunk (`sentence_overlap`)
- none:     the whole input is a single chunk
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from fireworks_inference.inference.inference_base import (
    ActionListener,
    ChunkedInferenceEmbedding,
    ChunkInferenceInput,
    EmbeddingChunk,
    ParseError,
    TextEmbeddingFloatResults,
    ValidationError,
)
from fireworks_inference.inference.settings import (
    ValidationErrors,
    extract_optional_positive_integer,
    remove_as_type,
)

LOG = logging.getLogger(__name__)

STRATEGY = "strategy"
MAX_CHUNK_SIZE = "max_chunk_size"
OVERLAP = "overlap"
SENTENCE_OVERLAP = "sentence_overlap"

_WORD_RE = re.compile(r"\S+")
_SENTENCE_RE = re.compile(r"[^.!?\s][^.!?]*(?:[.!?]+|$)")

Offset = Tuple[int, int]


class ChunkingStrategy(str, Enum):
    WORD = "word"
    SENTENCE = "sentence"
    NONE = "none"


@dataclass(frozen=True)
class ChunkingSettings:
    """
    Immutable chunking configuration.

    Only the fields relevant to `strategy` are meaningful; the others stay None.
    """

    strategy: ChunkingStrategy = ChunkingStrategy.SENTENCE
    max_chunk_size: Optional[int] = 250
    overlap: Optional[int] = None
    sentence_overlap: Optional[int] = 1

    @classmethod
    def default(cls) -> "ChunkingSettings":
        return cls(ChunkingStrategy.SENTENCE, 250, None, 1)

    @classmethod
    def word(cls, max_chunk_size: int, overlap: int) -> "ChunkingSettings":
        return cls(ChunkingStrategy.WORD, max_chunk_size, overlap, None)

    @classmethod
    def sentence(cls, max_chunk_size: int, sentence_overlap: int = 1) -> "ChunkingSettings":
        return cls(ChunkingStrategy.SENTENCE, max_chunk_size, None, sentence_overlap)

    @classmethod
    def none(cls) -> "ChunkingSettings":
        return cls(ChunkingStrategy.NONE, None, None, None)

    @classmethod
    def from_map(cls, source: Optional[Mapping[str, Any]]) -> Optional["ChunkingSettings"]:
        """Parse a `chunking_settings` mapping; None or empty means "use the default"."""
        if not source:
            return None
        raw: Dict[str, Any] = dict(source)
        errors = ValidationErrors()

        if raw.get(STRATEGY) is None:
            raise ValidationError([f"[chunking_settings] does not contain the required setting [{STRATEGY}]"])
        name = raw.pop(STRATEGY)
        try:
            strategy = ChunkingStrategy(str(name).strip().lower())
        except ValueError:
            raise ValidationError([f"Invalid chunking strategy [{name}]"]) from None

        if strategy is ChunkingStrategy.NONE:
            settings = cls.none()
        elif strategy is ChunkingStrategy.WORD:
            size = extract_optional_positive_integer(raw, MAX_CHUNK_SIZE, "chunking_settings", errors)
            overlap = remove_as_type(raw, OVERLAP, int, errors)
            if size is None and MAX_CHUNK_SIZE not in source:
                errors.add(f"[chunking_settings] does not contain the required setting [{MAX_CHUNK_SIZE}]")
            if overlap is None and OVERLAP not in source:
                errors.add(f"[chunking_settings] does not contain the required setting [{OVERLAP}]")
            if size is not None and size < 10:
                errors.add(f"[chunking_settings] Invalid value [{size}]. [{MAX_CHUNK_SIZE}] must be a greater than or equal to [10]")
            if size is not None and overlap is not None and (overlap < 0 or overlap > size // 2):
                errors.add(
                    f"[chunking_settings] Invalid value [{overlap}]. "
                    f"[{OVERLAP}] must be between 0 and half of [{MAX_CHUNK_SIZE}]"
                )
            settings = cls.word(size or 0, overlap or 0)
        else:
            size = extract_optional_positive_integer(raw, MAX_CHUNK_SIZE, "chunking_settings", errors)
            sentence_overlap = remove_as_type(raw, SENTENCE_OVERLAP, int, errors)
            if size is None and MAX_CHUNK_SIZE not in source:
                errors.add(f"[chunking_settings] does not contain the required setting [{MAX_CHUNK_SIZE}]")
            if size is not None and size < 20:
                errors.add(f"[chunking_settings] Invalid value [{size}]. [{MAX_CHUNK_SIZE}] must be a greater than or equal to [20]")
            if sentence_overlap is not None and sentence_overlap not in (0, 1):
                errors.add(f"[chunking_settings] Invalid value [{sentence_overlap}]. [{SENTENCE_OVERLAP}] must be 0 or 1")
            settings = cls.sentence(size or 0, 1 if sentence_overlap is None else sentence_overlap)

        if raw:
            errors.add(
                f"[chunking_settings] {strategy.value} chunking settings can not have "
                f"the following settings: {sorted(raw)}"
            )
        errors.raise_if_any()
        return settings

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {STRATEGY: self.strategy.value}
        if self.max_chunk_size is not None:
            out[MAX_CHUNK_SIZE] = self.max_chunk_size
        if self.overlap is not None:
            out[OVERLAP] = self.overlap
        if self.sentence_overlap is not None:
            out[SENTENCE_OVERLAP] = self.sentence_overlap
        return out

    def chunk(self, text: str) -> List[Offset]:
        """Return `(start, end)` character offsets of each chunk of `text`."""
        if self.strategy is ChunkingStrategy.NONE or not text:
            return [(0, len(text))]
        if self.strategy is ChunkingStrategy.WORD:
            return _word_chunks(text, int(self.max_chunk_size or 0), int(self.overlap or 0))
        return _sentence_chunks(text, int(self.max_chunk_size or 0), int(self.sentence_overlap or 0))


def _word_chunks(text: str, max_words: int, overlap: int) -> List[Offset]:
    words = [m.span() for m in _WORD_RE.finditer(text)]
    if not words:
        return [(0, len(text))]
    step = max(1, max_words - overlap)
    chunks: List[Offset] = []
    start = 0
    while True:
        window = words[start:start + max_words]
        chunks.append((window[0][0], window[-1][1]))
        if start + max_words >= len(words):
            break
        start += step
    return chunks


def _sentence_chunks(text: str, max_words: int, sentence_overlap: int) -> List[Offset]:
    sentences: List[Tuple[Offset, int]] = []
    for m in _SENTENCE_RE.finditer(text):
        words = _WORD_RE.findall(m.group())
        if not words:
            continue
        if len(words) > max_words:
            # Oversized sentence: fall back to word windows inside it.
            for s, e in _word_chunks(m.group(), max_words, 0):
                start, end = m.start() + s, m.start() + e
                sentences.append(((start, end), len(_WORD_RE.findall(text[start:end]))))
        else:
            sentences.append((m.span(), len(words)))
    if not sentences:
        return [(0, len(text))]

    chunks: List[Offset] = []
    current: List[Tuple[Offset, int]] = []
    count = 0
    for span, n in sentences:
        if current and count + n > max_words:
            chunks.append((current[0][0][0], current[-1][0][1]))
            carried = current[-1:] if sentence_overlap else []
            if carried and carried[0][1] + n > max_words:
                carried = []
            current = list(carried)
            count = sum(c[1] for c in current)
        current.append((span, n))
        count += n
    chunks.append((current[0][0][0], current[-1][0][1]))
    return chunks


# =============================================================================
# Batched fan-out
# =============================================================================


@dataclass(frozen=True)
class BatchRequestAndListener:
    """One provider-sized batch of chunk strings and the listener for its results."""

    inputs: List[str]
    listener: ActionListener


class _BatchListener:
    def __init__(self, chunker: "EmbeddingRequestChunker", batch_index: int, positions: List[int]) -> None:
        self._chunker = chunker
        self._batch_index = batch_index
        self._positions = positions

    def on_response(self, result: Any) -> None:
        self._chunker._on_batch_response(self._batch_index, self._positions, result)

    def on_failure(self, exc: Exception) -> None:
        self._chunker._on_batch_failure(self._batch_index, exc)


class EmbeddingRequestChunker:
    """
    Splits chunked-inference inputs into batches and reassembles their results.

    Usage:
        chunker = EmbeddingRequestChunker(inputs, 2048, model_chunking_settings)
        for batch in chunker.batch_requests_with_listeners(listener):
            action.execute(EmbeddingsInput(batch.inputs), timeout, batch.listener)
    """

    def __init__(
        self,
        inputs: Sequence[ChunkInferenceInput],
        max_batch_size: int,
        default_chunking_settings: Optional[ChunkingSettings] = None,
    ) -> None:
        if max_batch_size <= 0:
            raise ValueError("max_batch_size must be positive")
        self._inputs = list(inputs)
        self._max_batch_size = max_batch_size
        self._default = default_chunking_settings or ChunkingSettings.default()

        # (input index, offset) for every chunk, flattened in input order
        self._chunk_refs: List[Tuple[int, Offset]] = []
        self._chunk_texts: List[str] = []
        for i, item in enumerate(self._inputs):
            settings = item.chunking_settings or self._default
            for start, end in settings.chunk(item.text):
                self._chunk_refs.append((i, (start, end)))
                self._chunk_texts.append(item.text[start:end])

        self._results: List[Optional[List[float]]] = [None] * len(self._chunk_texts)
        self._lock = threading.Lock()
        self._completed = 0
        self._num_batches = 0
        self._failure: Optional[Exception] = None
        self._listener: Optional[ActionListener] = None

    @property
    def chunk_count(self) -> int:
        return len(self._chunk_texts)

    def batch_requests_with_listeners(self, listener: ActionListener) -> List[BatchRequestAndListener]:
        self._listener = listener
        if not self._inputs:
            listener.on_response([])
            return []

        batches: List[BatchRequestAndListener] = []
        for batch_index, start in enumerate(range(0, len(self._chunk_texts), self._max_batch_size)):
            positions = list(range(start, min(start + self._max_batch_size, len(self._chunk_texts))))
            batches.append(
                BatchRequestAndListener(
                    inputs=[self._chunk_texts[p] for p in positions],
                    listener=_BatchListener(self, batch_index, positions),
                )
            )
        self._num_batches = len(batches)
        LOG.debug(
            "split %d inputs into %d chunks across %d batches",
            len(self._inputs),
            len(self._chunk_texts),
            self._num_batches,
        )
        return batches

    def _on_batch_response(self, batch_index: int, positions: List[int], result: Any) -> None:
        if not isinstance(result, TextEmbeddingFloatResults):
            self._on_batch_failure(
                batch_index,
                ParseError(f"Unexpected result type [{type(result).__name__}] for embeddings batch"),
            )
            return
        if len(result.embeddings) != len(positions):
            self._on_batch_failure(
                batch_index,
                ParseError(
                    f"Batch [{batch_index}] returned [{len(result.embeddings)}] embeddings "
                    f"for [{len(positions)}] inputs"
                ),
            )
            return
        for position, embedding in zip(positions, result.embeddings):
            self._results[position] = embedding.values
        self._complete_one()

    def _on_batch_failure(self, batch_index: int, exc: Exception) -> None:
        LOG.debug("embeddings batch %d failed: %s", batch_index, exc)
        with self._lock:
            if self._failure is None:
                self._failure = exc
        self._complete_one()

    def _complete_one(self) -> None:
        with self._lock:
            self._completed += 1
            done = self._completed == self._num_batches
        if done:
            self._emit()

    def _emit(self) -> None:
        listener = self._listener
        if listener is None:
            raise RuntimeError("batch results arrived before batch_requests_with_listeners was called")
        if self._failure is not None:
            listener.on_failure(self._failure)
            return
        per_input: List[List[EmbeddingChunk]] = [[] for _ in self._inputs]
        for (input_index, offset), values in zip(self._chunk_refs, self._results):
            per_input[input_index].append(EmbeddingChunk(values=list(values or []), offset=offset))
        listener.on_response([ChunkedInferenceEmbedding(chunks=c) for c in per_input])


__all__ = [
    "ChunkingStrategy",
    "ChunkingSettings",
    "BatchRequestAndListener",
    "EmbeddingRequestChunker",
]
