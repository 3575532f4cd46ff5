"""Pexels stock photo lookup for newly generated crops."""

from __future__ import annotations

import httpx
import structlog

from src.interfaces.stock_image_provider import IStockImageProvider

logger = structlog.get_logger(logger_name=__name__)

_SEARCH_URL = "https://api.pexels.com/v1/search"


class PexelsStockImageProvider(IStockImageProvider):
    """Returns the original-size URL of the top Pexels hit.

    Any failure (no key, HTTP error, no results) yields ``None``; a crop
    without a picture is still a valid crop.
    """

    def __init__(self, api_key: str, http_client: httpx.AsyncClient) -> None:
        self._api_key = api_key
        self._http = http_client

    async def find_image(self, query: str) -> str | None:
        if not self._api_key or not query.strip():
            return None
        try:
            response = await self._http.get(
                _SEARCH_URL,
                params={"query": query, "per_page": 1},
                headers={"Authorization": self._api_key},
            )
            response.raise_for_status()
            photos = response.json().get("photos") or []
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("stock_image_lookup_failed", query=query, error=str(exc))
            return None

        if not photos:
            logger.debug("stock_image_not_found", query=query)
            return None
        photo = photos[0]
        return photo.get("original") or (photo.get("src") or {}).get("original")

    def get_provider_name(self) -> str:
        return "pexels"
