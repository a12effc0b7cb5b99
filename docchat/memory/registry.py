# docchat/memory/registry.py

"""
JSON-file persistence for document metadata and owner profiles.
"""

import json
import logging
import os
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

from docchat.errors import ConfigError, StoreError
from docchat.memory.schemas import DocumentRecord, Profile

logger = logging.getLogger(__name__)


def _read_json(path: str) -> dict:

    if not os.path.exists(path):
        logger.info("Registry file not found. Starting fresh.", extra={"path": path})
        return {}

    try:

        with open(path, "r") as f:
            return json.load(f)

    except (OSError, ValueError) as e:

        logger.error(
            "Registry load failed",
            extra={"path": path, "error": str(e)},
        )

        return {}


def _write_json(path: str, data: dict):

    try:

        directory = os.path.dirname(path)

        if directory:
            os.makedirs(directory, exist_ok=True)

        tmp_path = f"{path}.tmp"

        with open(tmp_path, "w") as f:
            json.dump(data, f)

        os.replace(tmp_path, path)

    except OSError as e:

        raise StoreError(
            "Registry save failed",
            operation="save",
            details={"path": path, "error": str(e)},
        ) from e


# ============================================================
# DOCUMENT REGISTRY
# ============================================================

class DocumentRegistry:
    """Document metadata, keyed by document id, always read per owner."""

    def __init__(self, path: str):

        self._path = path
        self._lock = threading.Lock()
        self._documents: Dict[str, DocumentRecord] = {}

        self.load()

    def load(self):

        data = _read_json(self._path)

        if not isinstance(data, dict):
            logger.error(
                "Registry file is not a mapping. Starting empty.",
                extra={"path": self._path},
            )
            data = {}

        restored = {}

        for doc_id, meta in data.items():

            try:
                restored[doc_id] = DocumentRecord.from_dict(meta)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(
                    "Skipping unreadable document record",
                    extra={"document_id": doc_id, "error": str(e)},
                )

        with self._lock:
            self._documents = restored

        logger.info(
            "Document registry loaded",
            extra={"documents": len(restored)},
        )

    def _commit(self, documents: Dict[str, DocumentRecord]):
        # Persist first; memory only changes once the file is written.
        _write_json(
            self._path,
            {doc_id: doc.to_dict() for doc_id, doc in documents.items()},
        )

        self._documents = documents

    def add(self, document: DocumentRecord):

        with self._lock:
            documents = dict(self._documents)
            documents[document.id] = document
            self._commit(documents)

    def get(self, owner_id: str, document_id: str) -> Optional[DocumentRecord]:

        document = self._documents.get(document_id)

        if document is None or document.owner_id != owner_id:
            return None

        return document

    def list_for_owner(self, owner_id: str) -> List[DocumentRecord]:

        # Published mappings are never mutated, so iteration needs no lock.
        documents = [
            doc for doc in self._documents.values()
            if doc.owner_id == owner_id
        ]

        return sorted(documents, key=lambda d: d.created_at, reverse=True)

    def delete(self, owner_id: str, document_id: str) -> bool:

        with self._lock:

            document = self._documents.get(document_id)

            if document is None or document.owner_id != owner_id:
                return False

            documents = dict(self._documents)
            del documents[document_id]
            self._commit(documents)

        return True

    def delete_owner(self, owner_id: str) -> int:

        with self._lock:

            documents = {
                doc_id: doc for doc_id, doc in self._documents.items()
                if doc.owner_id != owner_id
            }

            removed = len(self._documents) - len(documents)

            if removed:
                self._commit(documents)

        return removed

    def count(self) -> int:
        return len(self._documents)


# ============================================================
# PROFILES
# ============================================================

class ProfileStore:
    """Owner profiles: provider credential and preferred chat model."""

    def __init__(self, path: str):

        self._path = path
        self._lock = threading.Lock()
        self._profiles: Dict[str, Profile] = {}

        self.load()

    def load(self):

        data = _read_json(self._path)

        if not isinstance(data, dict):
            logger.error(
                "Profile file is not a mapping. Starting empty.",
                extra={"path": self._path},
            )
            data = {}

        restored = {}

        for owner_id, meta in data.items():

            try:
                restored[owner_id] = Profile(owner_id=owner_id, **meta)
            except TypeError as e:
                logger.warning(
                    "Skipping unreadable profile record",
                    extra={"owner_id": owner_id, "error": str(e)},
                )

        with self._lock:
            self._profiles = restored

        logger.info(
            "Profile store loaded",
            extra={"profiles": len(restored)},
        )

    def _commit(self, profiles: Dict[str, Profile]):

        _write_json(
            self._path,
            {
                owner_id: {
                    "openai_api_key": p.openai_api_key,
                    "preferred_model": p.preferred_model,
                    "created_at": p.created_at,
                    "updated_at": p.updated_at,
                }
                for owner_id, p in profiles.items()
            },
        )

        self._profiles = profiles

    def get(self, owner_id: str) -> Optional[Profile]:
        return self._profiles.get(owner_id)

    def upsert(
        self,
        owner_id: str,
        openai_api_key: str,
        preferred_model: Optional[str] = None,
    ) -> Profile:

        now = datetime.now(timezone.utc).isoformat()

        with self._lock:

            existing = self._profiles.get(owner_id)

            profile = Profile(
                owner_id=owner_id,
                openai_api_key=openai_api_key,
                preferred_model=(
                    preferred_model
                    if preferred_model is not None
                    else existing.preferred_model if existing else None
                ),
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )

            profiles = dict(self._profiles)
            profiles[owner_id] = profile
            self._commit(profiles)

        return profile

    def get_embedding_credential(self, owner_id: str) -> str:
        """
        The owner's OpenAI key.

        Raises:
            ConfigError: no key on file
        """

        profile = self._profiles.get(owner_id)

        if profile is None or not profile.openai_api_key:
            raise ConfigError("OpenAI API key not configured")

        return profile.openai_api_key
