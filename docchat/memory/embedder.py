# docchat/memory/embedder.py

"""
Embedding gateway bound to one owner's OpenAI credential.

Architecture contract:
chunker → embedder → vector_store

Guarantees:
• One provider call per text
• Always returns normalized float vectors (cosine-ready)
• Bounded concurrent fan-out for batches
• Output order equals input order
• A single failure fails the whole batch
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List

import numpy as np
from openai import OpenAI

from docchat.config import (
    EMBEDDING_MODEL,
    EMBEDDING_DIMENSIONS,
    EMBED_MAX_CONCURRENCY,
    PROVIDER_TIMEOUT_SECONDS,
)
from docchat.errors import ConfigError, ProviderError, ValidationError
from docchat.llm.retry import call_openai

logger = logging.getLogger(__name__)


class Embedder:
    """
    Per-credential embedding generator.

    Responsibilities:
    • Call the OpenAI embedding API
    • Normalize embeddings
    • Fan out batch requests on a bounded worker pool
    """

    # ============================================================
    # INITIALIZATION
    # ============================================================

    def __init__(
        self,
        credential: str,
        model: str = EMBEDDING_MODEL,
        max_concurrency: int = EMBED_MAX_CONCURRENCY,
    ):

        if not credential:
            raise ConfigError("OpenAI API key not configured")

        if model not in EMBEDDING_DIMENSIONS:
            raise ConfigError(f"Unsupported embedding model: {model}")

        self._model = model
        self._dimension = EMBEDDING_DIMENSIONS[model]
        self._max_concurrency = max(1, max_concurrency)

        # SDK retries disabled; call_openai owns the retry policy
        self._client = OpenAI(
            api_key=credential,
            timeout=PROVIDER_TIMEOUT_SECONDS,
            max_retries=0,
        )

    # ============================================================
    # PUBLIC API
    # ============================================================

    def embed(self, text: str) -> List[float]:
        """
        Embed a single text with one provider call.
        """

        if not text or not text.strip():
            raise ValidationError("Cannot embed empty text", field="text")

        response = call_openai(
            lambda: self._client.embeddings.create(
                model=self._model,
                input=text,
            ),
            operation="embedding",
        )

        if not response.data:
            raise ProviderError(
                "Embedding response contained no data",
                provider="openai",
            )

        vector = np.asarray(response.data[0].embedding, dtype="float32")

        if vector.shape != (self._dimension,):
            raise ProviderError(
                "Embedding has unexpected dimension",
                provider="openai",
                details={
                    "expected": self._dimension,
                    "received": int(vector.size),
                },
            )

        return self._normalize(vector).tolist()

    def embed_many(self, texts: List[str]) -> List[List[float]]:
        """
        Embed many texts, one call each, with bounded concurrency.

        executor.map yields results in submission order, so the i-th
        vector always belongs to the i-th text.
        """

        if not texts:
            return []

        logger.info(
            "Embedding started",
            extra={
                "chunks": len(texts),
                "max_concurrency": self._max_concurrency,
            },
        )

        workers = min(self._max_concurrency, len(texts))

        with ThreadPoolExecutor(max_workers=workers) as executor:
            vectors = list(executor.map(self.embed, texts))

        logger.info(
            "Embedding completed",
            extra={
                "chunks": len(vectors),
                "dimension": self._dimension,
            },
        )

        return vectors

    # ============================================================
    # ACCESSORS
    # ============================================================

    def get_dimension(self) -> int:
        return self._dimension

    @staticmethod
    def _normalize(vector: np.ndarray) -> np.ndarray:

        norm = np.linalg.norm(vector)

        return vector / max(float(norm), 1e-10)
