from src.providers.weather.open_meteo_provider import OpenMeteoWeatherProvider

__all__ = ["OpenMeteoWeatherProvider"]
