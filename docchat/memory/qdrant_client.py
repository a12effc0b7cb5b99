import logging

from qdrant_client import QdrantClient

from qdrant_client.http.models import (
    Distance,
    VectorParams,
    PayloadSchemaType,
)

from docchat.config import (
    QDRANT_URL,
    QDRANT_API_KEY,
    QDRANT_COLLECTION,
)

logger = logging.getLogger(__name__)


# Payload fields every filter/delete relies on
INDEXED_PAYLOAD_FIELDS = ("owner_id", "document_id")


def build_qdrant_client(url: str = QDRANT_URL, api_key: str = QDRANT_API_KEY) -> QdrantClient:

    if url == ":memory:":
        return QdrantClient(location=":memory:")

    return QdrantClient(
        url=url,
        api_key=api_key,
        timeout=60,
    )


class QdrantVectorDB:
    """
    Qdrant connection wrapper.

    Owns collection bootstrap only; reads and writes live in VectorStore.
    """

    def __init__(
        self,
        dim: int,
        collection: str = QDRANT_COLLECTION,
        client: QdrantClient = None,
    ):

        self._dim = dim

        self._client = client or build_qdrant_client()

        self._collection = collection

        self._ensure_collection()

        logger.info(
            "Qdrant client initialized",
            extra={
                "collection": self._collection,
                "dimension": dim,
            },
        )

    @property
    def client(self) -> QdrantClient:
        return self._client

    @property
    def collection(self) -> str:
        return self._collection

    def _ensure_collection(self):
        """
        Ensures collection exists AND owner/document payload indexes exist.
        """

        collections = self._client.get_collections().collections

        exists = any(
            c.name == self._collection
            for c in collections
        )

        if not exists:

            self._client.create_collection(
                collection_name=self._collection,
                vectors_config=VectorParams(
                    size=self._dim,
                    distance=Distance.COSINE,
                ),
            )

            logger.info(
                "Qdrant collection created",
                extra={"collection": self._collection},
            )

        for field_name in INDEXED_PAYLOAD_FIELDS:

            try:

                self._client.create_payload_index(
                    collection_name=self._collection,
                    field_name=field_name,
                    field_schema=PayloadSchemaType.KEYWORD,
                )

            except Exception as e:
                # Index already exists, or local mode without index support
                logger.debug(
                    "Payload index already exists or skipped",
                    extra={"field": field_name, "error": str(e)},
                )
