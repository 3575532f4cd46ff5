"""Abstract base class for external image hosting.

Uploaded user photos are copied to a permanent host so history records can
reference them by URL.  An upload is a side effect outside the knowledge
store transaction, so pipelines register a compensating :meth:`delete`
for every successful :meth:`upload`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.history import HostedImage


# Concrete implementations: ImageKitImageHost, LocalImageHost
# Located in: src/providers/image_host/
class IImageHost(ABC):
    """Contract for image hosting services."""

    @abstractmethod
    async def upload(self, local_path: str, name: str, folder: str) -> HostedImage:
        """Upload the file at *local_path* under *folder*.

        Returns
        -------
        HostedImage
            The host's file id and public URL.

        Raises
        ------
        src.utils.errors.ImageHostError
            If the upload fails.
        """

    @abstractmethod
    async def delete(self, image_id: str) -> None:
        """Delete a previously uploaded image.

        Raises
        ------
        src.utils.errors.ImageHostError
            If the host rejects the deletion.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this host."""
