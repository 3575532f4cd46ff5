"""Image host adapters: ImageKit, or local disk when no key is configured."""

from src.providers.image_host.imagekit_image_host import ImageKitImageHost
from src.providers.image_host.local_image_host import LocalImageHost

__all__ = ["ImageKitImageHost", "LocalImageHost"]
