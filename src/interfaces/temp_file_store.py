"""Abstract base class for temporary upload storage.

Uploaded images are written to local temp storage by the HTTP boundary and
handed to a pipeline run by handle.  The run reads them for vision calls
and image hosting, then deletes them when it finishes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.requests import TempFileHandle


# Concrete implementation: LocalTempFileStore (src/providers/temp_files/)
class ITempFileStore(ABC):
    """Contract for short-lived upload storage."""

    @abstractmethod
    async def store(self, data: bytes, filename: str, content_type: str) -> TempFileHandle:
        """Persist *data* and return a handle to it.

        Raises
        ------
        src.utils.errors.UploadRejectedError
            If the file is too large (status 413) or of an unsupported
            type (status 415).
        """

    @abstractmethod
    async def read_bytes(self, handle: TempFileHandle) -> bytes:
        """Return the stored file's content."""

    @abstractmethod
    async def delete(self, handle: TempFileHandle) -> bool:
        """Delete the stored file; return ``False`` if it was already gone."""

    @abstractmethod
    def max_bytes(self) -> int:
        """Return the maximum accepted upload size in bytes."""

    @abstractmethod
    def allowed_types(self) -> frozenset[str]:
        """Return the accepted MIME types."""
