"""File storage collaborator for deposit payment screenshots."""

import asyncio
import logging
import secrets
from pathlib import Path

from app.config import get_settings

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}
MAX_UPLOAD_BYTES = 5 * 1024 * 1024


class StorageError(Exception):
    """Upload rejected or not writable."""


class LocalFileStorage:
    """Stores uploads on local disk and returns a relative reference path."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    async def save(self, filename: str, content: bytes, prefix: str = "payment") -> str:
        suffix = Path(filename).suffix.lower()
        if suffix not in ALLOWED_EXTENSIONS:
            raise StorageError(f"Unsupported file type: {suffix or 'none'}")
        if len(content) > MAX_UPLOAD_BYTES:
            raise StorageError("File too large")

        name = f"{prefix}-{secrets.token_hex(8)}{suffix}"
        await asyncio.to_thread(self._write, name, content)
        return name

    async def delete(self, reference: str) -> bool:
        """Delete a stored file. Missing files are not an error."""
        path = self._resolve(reference)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        logger.info(f"Deleted upload: {reference}")
        return True

    def _write(self, name: str, content: bytes) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / name).write_bytes(content)

    def _resolve(self, reference: str) -> Path:
        path = (self.root / reference).resolve()
        if self.root.resolve() not in path.parents:
            raise StorageError(f"Reference escapes storage root: {reference}")
        return path


def get_storage() -> LocalFileStorage:
    return LocalFileStorage(get_settings().upload_dir)
