# docchat/memory/schemas.py
"""
Record types shared by the ingestion, storage and retrieval layers.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import List, Optional


@dataclass(frozen=True)
class ChunkRecord:
    """A chunk staged for embedding. Ordinal is fixed before dispatch."""

    ordinal: int
    text: str
    vector: Optional[List[float]] = None


@dataclass(frozen=True)
class Match:
    """A single ranked top-k hit, scoped to one owner."""

    chunk_id: str
    document_id: str
    owner_id: str
    chunk_index: int
    text: str
    score: float


@dataclass
class DocumentRecord:

    id: str
    owner_id: str
    title: str
    source_path: str
    mime_type: str
    chunk_count: int = 0
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "DocumentRecord":
        created_at = data.get("created_at")
        return cls(
            id=data["id"],
            owner_id=data["owner_id"],
            title=data.get("title", ""),
            source_path=data.get("source_path", ""),
            mime_type=data.get("mime_type", ""),
            chunk_count=data.get("chunk_count", 0),
            created_at=(
                datetime.fromisoformat(created_at)
                if created_at
                else datetime.now(timezone.utc)
            ),
        )


@dataclass
class Profile:
    """Per-owner preferences and provider credential."""

    owner_id: str
    openai_api_key: Optional[str] = None
    preferred_model: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def masked_key(self) -> Optional[str]:
        if not self.openai_api_key:
            return None
        return f"{self.openai_api_key[:3]}...{self.openai_api_key[-4:]}"
