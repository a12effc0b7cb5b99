# docchat/memory/ingestion.py

"""
Ingestion pipeline: raw text → chunks → embeddings → vector store.

All-or-nothing: every chunk is embedded before anything is written,
and a failed batch write is rolled back by document id.
"""

import logging
import time

from docchat.config import (
    CHUNK_SIZE,
    CHUNK_OVERLAP,
    MAX_CHUNKS_PER_DOCUMENT,
)
from docchat.errors import StoreError, ValidationError
from docchat.memory.chunker import chunk_text
from docchat.memory.schemas import ChunkRecord

logger = logging.getLogger(__name__)


def ingest(
    owner_id: str,
    raw_text: str,
    document_id: str,
    embedder,
    store,
    max_size: int = CHUNK_SIZE,
    overlap: int = CHUNK_OVERLAP,
) -> int:
    """
    Chunk, embed and persist one document's text.

    Returns:
        Number of chunks created (0 for empty text)

    Raises:
        ValidationError: bad chunk parameters or too many chunks
        ConfigError / ProviderError: embedding failed; nothing was written
        StoreError: batch write failed; partial writes were removed
    """

    start = time.time()

    texts = chunk_text(raw_text, max_size=max_size, overlap=overlap)

    logger.info(
        "Chunking completed",
        extra={
            "document_id": document_id,
            "characters": len(raw_text or ""),
            "chunk_size": max_size,
            "overlap": overlap,
            "chunks_created": len(texts),
        },
    )

    if not texts:
        return 0

    if len(texts) > MAX_CHUNKS_PER_DOCUMENT:
        raise ValidationError(
            f"Document produces too many chunks ({len(texts)})",
            details={"max_chunks": MAX_CHUNKS_PER_DOCUMENT},
        )

    # Ordinals are fixed here, before any embedding call is dispatched
    staged = [
        ChunkRecord(ordinal=i, text=text)
        for i, text in enumerate(texts)
    ]

    vectors = embedder.embed_many([chunk.text for chunk in staged])

    if len(vectors) != len(staged):
        raise StoreError(
            "Embedding count does not match chunk count",
            operation="ingest",
            details={"chunks": len(staged), "vectors": len(vectors)},
        )

    embedded = [
        ChunkRecord(ordinal=chunk.ordinal, text=chunk.text, vector=vector)
        for chunk, vector in zip(staged, vectors)
    ]

    try:

        store.upsert_chunks(owner_id, document_id, embedded)

    except StoreError:

        logger.error(
            "Chunk persist failed, rolling back document",
            extra={"document_id": document_id},
        )

        try:
            store.delete_document(owner_id, document_id)
        except StoreError as rollback_error:
            logger.error(
                "Rollback failed",
                extra={
                    "document_id": document_id,
                    "error": str(rollback_error),
                },
            )

        raise

    logger.info(
        "Document ingestion complete",
        extra={
            "document_id": document_id,
            "chunks": len(embedded),
            "latency_seconds": round(time.time() - start, 3),
        },
    )

    return len(embedded)
