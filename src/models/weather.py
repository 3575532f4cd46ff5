"""Weather and location models shared by the weather provider and pipelines."""

from __future__ import annotations

from pydantic import Field

from src.models.knowledge import CamelModel


class Coordinates(CamelModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class WeatherAverages(CamelModel):
    """Forecast averages over a window of days, each rounded to 2 decimals.

    ``dominant_wind_direction`` is a circular mean in degrees, [0, 360).
    """

    avg_max_temp: float
    avg_min_temp: float
    avg_humidity: float
    avg_rainfall: float
    avg_wind_speed: float
    dominant_wind_direction: float
