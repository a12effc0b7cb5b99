import logging
import threading
import uuid

from typing import List, Optional

import numpy as np

from qdrant_client.http.models import (
    PointStruct,
    Filter,
    FieldCondition,
    MatchValue,
    FilterSelector,
)

from docchat.config import (
    MAX_TOP_K,
)
from docchat.errors import StoreError, ValidationError
from docchat.memory.qdrant_client import QdrantVectorDB
from docchat.memory.schemas import ChunkRecord, Match


logger = logging.getLogger(__name__)


def _owner_filter(owner_id: str, document_id: Optional[str] = None) -> Filter:

    conditions = [
        FieldCondition(key="owner_id", match=MatchValue(value=owner_id)),
    ]

    if document_id:
        conditions.append(
            FieldCondition(key="document_id", match=MatchValue(value=document_id))
        )

    return Filter(must=conditions)


class VectorStore:
    """
    Owner-scoped chunk store on top of Qdrant.

    Every write carries owner_id in the payload; every read and delete
    filters on it. Qdrant failures surface as StoreError.
    """

    def __init__(self, dim: int, db: QdrantVectorDB = None):

        if dim <= 0:
            raise ValueError("Embedding dimension must be positive")

        self._dim = dim

        self._db = db or QdrantVectorDB(dim)

        # Serializes writes; the embedded local mode is not thread-safe
        self._write_lock = threading.Lock()

        logger.info(
            "VectorStore initialized",
            extra={"dimension": dim, "collection": self._db.collection},
        )

    # ============================================================
    # HELPERS
    # ============================================================

    def _check_vector(self, vector) -> List[float]:

        vector = np.asarray(vector, dtype="float32")

        if vector.shape != (self._dim,):
            raise ValidationError(
                f"Vector must have {self._dim} dimensions",
                field="vector",
            )

        return vector.tolist()

    # ============================================================
    # WRITES
    # ============================================================

    def upsert(
        self,
        owner_id: str,
        document_id: str,
        ordinal: int,
        text: str,
        vector,
    ) -> str:

        ids = self.upsert_chunks(
            owner_id,
            document_id,
            [ChunkRecord(ordinal=ordinal, text=text, vector=vector)],
        )

        return ids[0]

    def upsert_chunks(
        self,
        owner_id: str,
        document_id: str,
        chunks: List[ChunkRecord],
    ) -> List[str]:
        """
        Write a document's chunks in one batch. Returns the chunk ids.
        """

        if not chunks:
            return []

        points = []

        for chunk in chunks:

            if chunk.vector is None:
                raise ValidationError(
                    f"Chunk {chunk.ordinal} has no vector",
                    field="vector",
                )

            points.append(
                PointStruct(
                    id=str(uuid.uuid4()),
                    vector=self._check_vector(chunk.vector),
                    payload={
                        "owner_id": owner_id,
                        "document_id": document_id,
                        "chunk_index": chunk.ordinal,
                        "text": chunk.text,
                    },
                )
            )

        try:

            with self._write_lock:
                self._db.client.upsert(
                    collection_name=self._db.collection,
                    points=points,
                    wait=True,
                )

        except Exception as e:

            raise StoreError(
                "Failed to upsert chunks",
                operation="upsert",
                details={"document_id": document_id, "error": str(e)},
            ) from e

        logger.info(
            "Chunks persisted",
            extra={
                "document_id": document_id,
                "chunks": len(points),
            },
        )

        return [str(point.id) for point in points]

    # ============================================================
    # READS
    # ============================================================

    def top_k(self, owner_id: str, query_vector, k: int) -> List[Match]:
        """
        Highest-similarity chunks for one owner, best first.

        Zero rows is a normal result.
        """

        if not owner_id:
            raise ValidationError("owner_id is required", field="owner_id")

        if k < 1:
            raise ValidationError("k must be at least 1", field="k")

        query = self._check_vector(query_vector)

        try:

            response = self._db.client.query_points(
                collection_name=self._db.collection,
                query=query,
                query_filter=_owner_filter(owner_id),
                limit=min(k, MAX_TOP_K),
                with_payload=True,
            )

        except Exception as e:

            raise StoreError(
                "Vector search failed",
                operation="top_k",
                details={"error": str(e)},
            ) from e

        results = []

        for point in response.points:

            payload = point.payload or {}

            if payload.get("owner_id") != owner_id:
                continue

            results.append(
                Match(
                    chunk_id=str(point.id),
                    document_id=payload.get("document_id"),
                    owner_id=owner_id,
                    chunk_index=payload.get("chunk_index", 0),
                    text=payload.get("text", ""),
                    score=float(point.score),
                )
            )

        results.sort(key=lambda m: m.score, reverse=True)

        return results

    def count(self, owner_id: Optional[str] = None) -> int:

        try:

            result = self._db.client.count(
                collection_name=self._db.collection,
                count_filter=_owner_filter(owner_id) if owner_id else None,
                exact=True,
            )

        except Exception as e:

            raise StoreError(
                "Vector count failed",
                operation="count",
                details={"error": str(e)},
            ) from e

        return result.count

    # ============================================================
    # DELETES
    # ============================================================

    def _delete(self, selector_filter: Filter, operation: str):

        try:

            with self._write_lock:
                self._db.client.delete(
                    collection_name=self._db.collection,
                    points_selector=FilterSelector(filter=selector_filter),
                    wait=True,
                )

        except Exception as e:

            raise StoreError(
                "Vector delete failed",
                operation=operation,
                details={"error": str(e)},
            ) from e

    def delete_document(self, owner_id: str, document_id: str):

        self._delete(
            _owner_filter(owner_id, document_id),
            operation="delete_document",
        )

        logger.info(
            "Deleted document vectors",
            extra={"document_id": document_id},
        )

    def delete_owner(self, owner_id: str):

        self._delete(
            _owner_filter(owner_id),
            operation="delete_owner",
        )

        logger.info("Deleted all owner vectors")
