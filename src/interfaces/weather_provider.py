"""Abstract base class for weather and geocoding services."""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.weather import Coordinates, WeatherAverages

MAX_FORECAST_DAYS = 16


# Concrete implementation: OpenMeteoWeatherProvider (src/providers/weather/)
class IWeatherProvider(ABC):
    """Contract for forecast averages and place-name geocoding."""

    @abstractmethod
    async def resolve_coordinates(
        self,
        city: str,
        state: str | None,
        country: str,
    ) -> Coordinates | None:
        """Geocode a place name; ``None`` when nothing matches.

        Raises
        ------
        src.utils.errors.WeatherError
            If the geocoding service itself fails.
        """

    @abstractmethod
    async def averages_over_days(
        self,
        latitude: float,
        longitude: float,
        days: int = MAX_FORECAST_DAYS,
    ) -> WeatherAverages:
        """Average the daily forecast over the next *days* days.

        Raises
        ------
        src.utils.errors.WeatherError
            If ``days`` exceeds :data:`MAX_FORECAST_DAYS` or the forecast
            cannot be fetched.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
