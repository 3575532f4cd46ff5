"""Abstract base class for stock photo lookup.

Used to give newly generated crop records a representative picture.  The
lookup is cosmetic, so implementations return ``None`` instead of raising.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: PexelsStockImageProvider (src/providers/stock_image/)
class IStockImageProvider(ABC):
    """Contract for stock image search."""

    @abstractmethod
    async def find_image(self, query: str) -> str | None:
        """Return the URL of the best photo for *query*, or ``None``."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
