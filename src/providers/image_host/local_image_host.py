"""Filesystem image host used when ImageKit is not configured.

Copies uploads under ``local_media_dir``; the app serves that directory at
``local_media_base_url``.
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path
from uuid import uuid4

import structlog

from src.interfaces.image_host import IImageHost
from src.models.history import HostedImage
from src.utils.errors import ImageHostError
from src.utils.text_normalizer import slugify

logger = structlog.get_logger(logger_name=__name__)


class LocalImageHost(IImageHost):
    """Stores hosted images on local disk.

    The returned image id is the path relative to the media root.
    """

    def __init__(self, media_dir: str | Path, base_url: str = "/media") -> None:
        self._root = Path(media_dir)
        self._base_url = base_url.rstrip("/")

    async def upload(self, local_path: str, name: str, folder: str) -> HostedImage:
        source = Path(local_path)
        relative = Path(slugify(folder)) / f"{uuid4().hex}{source.suffix.lower()}"
        target = self._root / relative
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(shutil.copyfile, source, target)
        except OSError as exc:
            raise ImageHostError(
                message=f"Cannot store {name}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        image_id = relative.as_posix()
        logger.info("image_uploaded", file_id=image_id, folder=folder)
        return HostedImage(id=image_id, url=f"{self._base_url}/{image_id}")

    async def delete(self, image_id: str) -> None:
        target = (self._root / image_id).resolve()
        if self._root.resolve() not in target.parents:
            raise ImageHostError(
                message=f"Refusing to delete outside the media root: {image_id}",
                provider_name=self.get_provider_name(),
            )
        target.unlink(missing_ok=True)
        logger.info("image_deleted", file_id=image_id)

    def get_provider_name(self) -> str:
        return "local"
