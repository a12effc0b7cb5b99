# tests/fakes.py
"""
Offline stand-ins for the provider gateways.

Importing this module pulls in docchat.config, so conftest sets the
test environment before importing it.
"""

import zlib

import numpy as np
from qdrant_client import QdrantClient

from docchat.errors import ProviderError
from docchat.memory.qdrant_client import QdrantVectorDB
from docchat.memory.store import VectorStore


TEST_DIM = 64

DEFAULT_REPLY = "Ada Lovelace works as an engineer. [CHUNK 1]"


def fake_vector(text: str, dim: int = TEST_DIM):
    """
    Deterministic bag-of-words embedding: texts sharing words point
    in similar directions.
    """

    vector = np.full(dim, 0.01, dtype="float32")

    for word in text.lower().split():
        word = word.strip(".,!?;:()[]\"'")
        if word:
            vector[zlib.crc32(word.encode()) % dim] += 1.0

    return (vector / np.linalg.norm(vector)).tolist()


class FakeEmbedder:
    """Drop-in for Embedder; records every text it embeds."""

    calls = []
    fail_on = None

    def __init__(self, credential=None, **kwargs):
        self.credential = credential

    def embed(self, text):
        if FakeEmbedder.fail_on and FakeEmbedder.fail_on in text:
            raise ProviderError("Embedding failed", provider="fake", transient=True)
        FakeEmbedder.calls.append(text)
        return fake_vector(text)

    def embed_many(self, texts):
        return [self.embed(t) for t in texts]


class FakeCompletionClient:
    """Drop-in for CompletionClient; replies with `reply`."""

    reply = DEFAULT_REPLY
    prompts = []

    def __init__(self, model=None, credential=None):
        self.model = model
        self.credential = credential

    def complete(self, system_prompt, user_prompt):
        FakeCompletionClient.prompts.append((system_prompt, user_prompt))
        return FakeCompletionClient.reply


def make_vector_store(dim: int = TEST_DIM) -> VectorStore:

    db = QdrantVectorDB(dim, client=QdrantClient(location=":memory:"))

    return VectorStore(dim=dim, db=db)
