# docchat/memory/object_store.py

import logging
import shutil
from pathlib import Path

from docchat.errors import StoreError, ValidationError

logger = logging.getLogger(__name__)


class LocalObjectStore:
    """
    Filesystem-backed store for uploaded files.

    Paths are relative, slash separated ("docs/{owner}/{name}") and
    always resolve inside the root directory.
    """

    def __init__(self, root: str):

        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:

        target = (self._root / path).resolve()

        if target == self._root or self._root not in target.parents:
            raise ValidationError(f"Invalid storage path: {path}", field="path")

        return target

    def put(self, path: str, data: bytes):

        target = self._resolve(path)

        if target.exists():
            raise StoreError(
                "Object already exists",
                operation="put",
                details={"path": path},
            )

        try:

            target.parent.mkdir(parents=True, exist_ok=True)

            with target.open("wb") as buffer:
                buffer.write(data)

        except OSError as e:

            raise StoreError(
                "Failed to store file",
                operation="put",
                details={"path": path, "error": str(e)},
            ) from e

        logger.info(
            "Object stored",
            extra={"path": path, "bytes": len(data)},
        )

    def exists(self, path: str) -> bool:

        return self._resolve(path).is_file()

    def delete(self, path: str):

        target = self._resolve(path)

        try:
            target.unlink(missing_ok=True)
        except OSError as e:
            raise StoreError(
                "Failed to delete file",
                operation="delete",
                details={"path": path, "error": str(e)},
            ) from e

    def list_and_delete(self, prefix: str) -> int:
        """
        Delete every object under `prefix`. Returns the number removed.
        """

        target = self._resolve(prefix)

        if not target.exists():
            return 0

        try:

            removed = sum(1 for p in target.rglob("*") if p.is_file())

            shutil.rmtree(target)

        except OSError as e:

            raise StoreError(
                "Failed to delete files",
                operation="list_and_delete",
                details={"prefix": prefix, "error": str(e)},
            ) from e

        logger.info(
            "Objects deleted",
            extra={"prefix": prefix, "files": removed},
        )

        return removed
