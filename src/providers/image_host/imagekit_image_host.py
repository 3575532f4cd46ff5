"""ImageKit image host.

Uploads user photos through ImageKit's upload API and deletes them through
the media API, both authenticated with HTTP basic auth using the private
key as username and an empty password.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import structlog

from src.config.settings import Settings
from src.interfaces.image_host import IImageHost
from src.models.history import HostedImage
from src.utils.errors import ImageHostError

logger = structlog.get_logger(logger_name=__name__)


class ImageKitImageHost(IImageHost):
    """Image host backed by ImageKit.

    The ``httpx.AsyncClient`` is injected for connection pooling and
    testability.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient) -> None:
        self._http = http_client
        self._auth = httpx.BasicAuth(settings.imagekit_private_key, "")
        self._upload_url = settings.imagekit_upload_url
        self._api_url = settings.imagekit_api_url.rstrip("/")

    async def upload(self, local_path: str, name: str, folder: str) -> HostedImage:
        path = Path(local_path)
        try:
            content = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise ImageHostError(
                message=f"Cannot read upload {path.name}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        try:
            response = await self._http.post(
                self._upload_url,
                auth=self._auth,
                files={"file": (name, content)},
                data={"fileName": name, "folder": folder},
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ImageHostError(
                message=f"ImageKit upload failed for {name}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not payload.get("fileId") or not payload.get("url"):
            raise ImageHostError(
                message="ImageKit upload response is missing fileId or url",
                provider_name=self.get_provider_name(),
            )
        logger.info("image_uploaded", file_id=payload["fileId"], folder=folder)
        return HostedImage(id=payload["fileId"], url=payload["url"])

    async def delete(self, image_id: str) -> None:
        try:
            response = await self._http.delete(f"{self._api_url}/files/{image_id}", auth=self._auth)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ImageHostError(
                message=f"ImageKit delete failed for {image_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("image_deleted", file_id=image_id)

    def get_provider_name(self) -> str:
        return "imagekit"
