"""Local temp storage for uploaded images.

Files are written under ``temp_upload_dir`` with a sanitised, collision-free
name.  Size and MIME type are checked before anything touches the disk.
"""

from __future__ import annotations

import asyncio
import re
import time
from pathlib import Path
from uuid import uuid4

import structlog

from src.interfaces.temp_file_store import ITempFileStore
from src.models.requests import TempFileHandle
from src.utils.errors import UploadRejectedError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_ALLOWED_TYPES = frozenset({"image/jpeg", "image/png", "image/jpg"})
_UNSAFE_CHARS_RE = re.compile(r"[^a-zA-Z0-9]+")


def _unique_filename(original_name: str) -> str:
    path = Path(original_name or "upload")
    stem = _UNSAFE_CHARS_RE.sub("-", path.stem).strip("-").lower() or "upload"
    return f"{stem}-{int(time.time() * 1000)}-{uuid4().hex}{path.suffix.lower()}"


class LocalTempFileStore(ITempFileStore):
    """Stores uploads in a local directory until the owning run deletes them.

    Parameters
    ----------
    upload_dir:
        Directory for temp files; created if missing.
    max_size_mb:
        Maximum accepted upload size in megabytes.
    allowed_types:
        Accepted MIME types.
    """

    def __init__(
        self,
        upload_dir: str | Path = "temp-uploads",
        max_size_mb: float = 5,
        allowed_types: frozenset[str] | list[str] = _DEFAULT_ALLOWED_TYPES,
    ) -> None:
        self._dir = Path(upload_dir)
        self._max_bytes = int(max_size_mb * 1024 * 1024)
        self._allowed_types = frozenset(allowed_types)

    async def store(self, data: bytes, filename: str, content_type: str) -> TempFileHandle:
        if content_type not in self._allowed_types:
            raise UploadRejectedError(
                message=(
                    f"Unsupported file type: {content_type}. "
                    f"Allowed: {', '.join(sorted(self._allowed_types))}"
                ),
                status_code=415,
            )
        if len(data) > self._max_bytes:
            raise UploadRejectedError(
                message=f"File exceeds the {self._max_bytes // (1024 * 1024)} MB limit",
                status_code=413,
            )
        if not data:
            raise UploadRejectedError(message="Uploaded file is empty")

        self._dir.mkdir(parents=True, exist_ok=True)
        target = self._dir / _unique_filename(filename)
        await asyncio.to_thread(target.write_bytes, data)
        logger.debug("temp_file_stored", path=str(target), size=len(data))
        return TempFileHandle(path=str(target), mime_type=content_type, original_name=filename)

    async def read_bytes(self, handle: TempFileHandle) -> bytes:
        return await asyncio.to_thread(Path(handle.path).read_bytes)

    async def delete(self, handle: TempFileHandle) -> bool:
        path = Path(handle.path)
        if not path.exists():
            return False
        await asyncio.to_thread(path.unlink, True)
        logger.debug("temp_file_deleted", path=handle.path)
        return True

    def max_bytes(self) -> int:
        return self._max_bytes

    def allowed_types(self) -> frozenset[str]:
        return self._allowed_types
