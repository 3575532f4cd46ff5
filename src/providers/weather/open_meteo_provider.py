"""Open-Meteo weather and geocoding provider.

Fetches the daily forecast and reduces it to averages over the requested
window.  Wind direction is averaged on the unit circle.  Results are
cached because one location is typically requested several times in an
hour.
"""

from __future__ import annotations

import math
from typing import Any

import httpx
import structlog

from src.config.settings import Settings
from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.weather_provider import MAX_FORECAST_DAYS, IWeatherProvider
from src.models.weather import Coordinates, WeatherAverages
from src.utils.errors import WeatherError
from src.utils.text_normalizer import normalize_identity

logger = structlog.get_logger(logger_name=__name__)

_DAILY_FIELDS = (
    "temperature_2m_max",
    "temperature_2m_min",
    "precipitation_sum",
    "wind_speed_10m_max",
    "wind_direction_10m_dominant",
    "relative_humidity_2m_mean",
)


def _mean(values: list[float]) -> float:
    return round(sum(values) / len(values), 2)


def circular_mean_degrees(directions: list[float]) -> float:
    """Mean of compass bearings in degrees, normalised to [0, 360)."""
    radians = [math.radians(d) for d in directions]
    x = sum(math.cos(r) for r in radians)
    y = sum(math.sin(r) for r in radians)
    return round(math.degrees(math.atan2(y, x)) % 360, 2)


class OpenMeteoWeatherProvider(IWeatherProvider):
    """Weather provider backed by the free Open-Meteo APIs (no key required).

    Parameters
    ----------
    settings:
        Supplies the forecast and geocoding endpoints.
    http_client:
        Shared ``httpx.AsyncClient``.
    cache:
        Optional cache for averages and geocoding results.
    cache_ttl:
        Seconds a cached result stays valid.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        cache: ICacheProvider | None = None,
        cache_ttl: int = 3600,
    ) -> None:
        self._forecast_url = settings.open_meteo_forecast_url
        self._geocoding_url = settings.open_meteo_geocoding_url
        self._http = http_client
        self._cache = cache
        self._cache_ttl = cache_ttl

    async def _get_json(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._http.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise WeatherError(
                message=f"Open-Meteo request failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    # ------------------------------------------------------------------
    # IWeatherProvider implementation
    # ------------------------------------------------------------------

    async def resolve_coordinates(
        self,
        city: str,
        state: str | None,
        country: str,
    ) -> Coordinates | None:
        place = "|".join(normalize_identity(p) for p in (city, state or "", country))
        cache_key = f"geocode:{place}"
        if self._cache is not None:
            cached = await self._cache.get(cache_key)
            if cached is not None:
                return cached

        payload = await self._get_json(
            self._geocoding_url,
            {"name": city, "count": 10, "language": "en", "format": "json"},
        )
        results = payload.get("results") or []
        wanted_country = normalize_identity(country)
        wanted_state = normalize_identity(state or "")

        candidates = [r for r in results if normalize_identity(r.get("country", "")) == wanted_country]
        if wanted_state:
            in_state = [r for r in candidates if normalize_identity(r.get("admin1", "")) == wanted_state]
            candidates = in_state or candidates
        if not candidates:
            logger.info("geocode_no_match", city=city, country=country)
            return None

        best = candidates[0]
        coordinates = Coordinates(latitude=best["latitude"], longitude=best["longitude"])
        if self._cache is not None:
            await self._cache.set(cache_key, coordinates, ttl=self._cache_ttl * 24)
        logger.info("geocode_resolved", city=city, latitude=coordinates.latitude, longitude=coordinates.longitude)
        return coordinates

    async def averages_over_days(
        self,
        latitude: float,
        longitude: float,
        days: int = MAX_FORECAST_DAYS,
    ) -> WeatherAverages:
        if days < 1 or days > MAX_FORECAST_DAYS:
            raise WeatherError(
                message=f"Forecast data is only available for 1 to {MAX_FORECAST_DAYS} days",
                provider_name=self.get_provider_name(),
            )

        cache_key = f"weather:{latitude:.3f},{longitude:.3f}:{days}"
        if self._cache is not None:
            cached = await self._cache.get(cache_key)
            if cached is not None:
                return cached

        payload = await self._get_json(
            self._forecast_url,
            {
                "latitude": latitude,
                "longitude": longitude,
                "daily": ",".join(_DAILY_FIELDS),
                "timezone": "auto",
                "forecast_days": days,
            },
        )
        daily = payload.get("daily") or {}
        series: dict[str, list[float]] = {}
        for field in _DAILY_FIELDS:
            values = [v for v in (daily.get(field) or [])[:days] if v is not None]
            if not values:
                raise WeatherError(
                    message=f"Forecast is missing {field}",
                    provider_name=self.get_provider_name(),
                )
            series[field] = values

        averages = WeatherAverages(
            avg_max_temp=_mean(series["temperature_2m_max"]),
            avg_min_temp=_mean(series["temperature_2m_min"]),
            avg_humidity=_mean(series["relative_humidity_2m_mean"]),
            avg_rainfall=_mean(series["precipitation_sum"]),
            avg_wind_speed=_mean(series["wind_speed_10m_max"]),
            dominant_wind_direction=circular_mean_degrees(series["wind_direction_10m_dominant"]),
        )
        if self._cache is not None:
            await self._cache.set(cache_key, averages, ttl=self._cache_ttl)
        logger.info("weather_averages_fetched", latitude=latitude, longitude=longitude, days=days)
        return averages

    def get_provider_name(self) -> str:
        return "open-meteo"
