# docchat/memory/chunker.py

import re
from typing import List

from docchat.config import (
    CHUNK_SIZE,
    CHUNK_OVERLAP,
)
from docchat.errors import ValidationError


_WHITESPACE_RUN = re.compile(r"\s+")

# Whitespace that follows sentence-terminal punctuation
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


def normalize_text(text: str) -> str:
    """Collapse every whitespace run to a single space and trim."""

    if not text:
        return ""

    return _WHITESPACE_RUN.sub(" ", text).strip()


def split_sentences(text: str) -> List[str]:
    """
    Split normalized text into sentence-like units.

    A unit may be longer than any chunk size; the chunker truncates it.
    """

    if not text:
        return []

    return [unit for unit in _SENTENCE_BOUNDARY.split(text) if unit]


def chunk_text(
    text: str,
    max_size: int = CHUNK_SIZE,
    overlap: int = CHUNK_OVERLAP,
) -> List[str]:
    """
    Sentence-aware, overlap-preserving chunker.

    Architecture contract:
    loader → chunker → embedder → vector_store

    Sentences are packed greedily into a buffer of at most `max_size`
    characters. When a sentence does not fit, the buffer is emitted and
    a new one is seeded with the last `overlap` characters of the
    emitted chunk followed by the sentence, cut to `max_size`.

    Guarantees:
    • no chunk is longer than max_size characters
    • document order is preserved
    • no empty chunks
    • pure and deterministic (no logging, no I/O)

    Raises:
        ValidationError: max_size <= 0 or overlap < 0
    """

    # ============================================================
    # SAFETY CHECKS
    # ============================================================

    if max_size <= 0:
        raise ValidationError(
            f"Invalid chunk size: {max_size}",
            field="max_size",
        )

    if overlap < 0:
        raise ValidationError(
            f"Invalid chunk overlap: {overlap}",
            field="overlap",
        )

    normalized = normalize_text(text)

    if not normalized:
        return []

    # ============================================================
    # GREEDY ACCUMULATION
    # ============================================================

    chunks: List[str] = []

    current = ""

    for sentence in split_sentences(normalized):

        candidate = f"{current} {sentence}" if current else sentence

        if len(candidate) <= max_size:
            current = candidate
            continue

        if current:
            chunks.append(current)

        if overlap > 0 and chunks:
            tail = chunks[-1][-overlap:]
            current = f"{tail} {sentence}"[:max_size]
        else:
            current = sentence[:max_size]

    if current:
        chunks.append(current)

    return chunks
