"""Local filesystem storage for uploaded statement documents."""

import asyncio
import logging
from pathlib import Path
from uuid import UUID, uuid4

from statement_import.config import settings

logger = logging.getLogger(__name__)


class LocalFileStorage:
    """Stores documents under ``<base>/<user_id>/<uuid><ext>``.

    The locator returned by save() is the path relative to the base
    directory; the original file name is never used on disk.
    """

    def __init__(self, base_path: str | Path | None = None):
        self.base_path = Path(base_path or settings.storage_base_path).resolve()

    def _resolve(self, locator: str) -> Path:
        path = (self.base_path / locator).resolve()
        if not path.is_relative_to(self.base_path):
            raise ValueError("Locator points outside the storage directory")
        return path

    async def save(self, content: bytes, file_name: str, user_id: UUID) -> str:
        extension = Path(file_name).suffix.lower() or settings.accepted_extension
        locator = f"{user_id}/{uuid4()}{extension}"
        path = self._resolve(locator)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)

        await asyncio.to_thread(_write)
        logger.info("Stored statement file", extra={"user_id": str(user_id), "size_bytes": len(content)})
        return locator

    async def read(self, locator: str) -> bytes:
        return await asyncio.to_thread(self._resolve(locator).read_bytes)

    async def delete(self, locator: str) -> None:
        await asyncio.to_thread(self._resolve(locator).unlink, missing_ok=True)
