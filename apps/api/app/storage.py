"""Local object storage for workspace uploads, encrypted at rest."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from uuid import UUID

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: str, default: str = "upload.bin") -> str:
    name = os.path.basename(filename.strip().replace("\\", "/"))
    name = _UNSAFE_CHARS.sub("-", name).strip(".-")
    return name[:200] or default


class ObjectStorage:
    """Stores each upload under ``<root>/<user_id>/<file_id>-<name>``."""

    def __init__(self, root: str | Path, fernet: Fernet) -> None:
        self.root = Path(root)
        self._fernet = fernet

    def save(self, user_id: UUID, file_id: UUID, filename: str, content: bytes) -> str:
        directory = self.root / str(user_id)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{file_id}-{safe_filename(filename)}"
        path.write_bytes(self._fernet.encrypt(content))
        return str(path)

    def read(self, storage_path: str) -> bytes:
        path = self._resolve(storage_path)
        try:
            return self._fernet.decrypt(path.read_bytes())
        except InvalidToken as exc:
            raise ValueError(f"Stored object could not be decrypted: {path.name}") from exc

    def delete(self, storage_path: str) -> bool:
        """Remove an object; a missing file or I/O error is logged, not raised."""

        try:
            self._resolve(storage_path).unlink()
        except FileNotFoundError:
            logger.warning("Stored object already missing", extra={"storage_path": storage_path})
            return False
        except OSError:
            logger.warning("Could not delete stored object", extra={"storage_path": storage_path}, exc_info=True)
            return False
        return True

    def _resolve(self, storage_path: str) -> Path:
        path = Path(storage_path).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError("Storage path escapes the storage root")
        return path
