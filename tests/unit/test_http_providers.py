"""Unit tests for the HTTP-backed providers (Open-Meteo, ImageKit, Pexels).

All requests go through ``httpx.MockTransport``; no network access.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from src.config.settings import Settings
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.providers.image_host.imagekit_image_host import ImageKitImageHost
from src.providers.stock_image.pexels_provider import PexelsStockImageProvider
from src.providers.weather.open_meteo_provider import (
    OpenMeteoWeatherProvider,
    circular_mean_degrees,
)
from src.utils.errors import ImageHostError, WeatherError

Handler = Callable[[httpx.Request], httpx.Response]


def _client(handler: Handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


# ======================================================================
# Open-Meteo
# ======================================================================

FORECAST = {
    "daily": {
        "temperature_2m_max": [30.0, 32.0, 31.0],
        "temperature_2m_min": [24.0, 25.0, None],
        "precipitation_sum": [0.0, 3.0, 6.0],
        "wind_speed_10m_max": [10.0, 12.0, 14.0],
        "wind_direction_10m_dominant": [350.0, 10.0, 0.0],
        "relative_humidity_2m_mean": [70.0, 80.0, 90.0],
    }
}

GEOCODING = {
    "results": [
        {"name": "Dhaka", "country": "Bangladesh", "admin1": "Dhaka Division", "latitude": 23.81, "longitude": 90.41},
        {"name": "Dhaka", "country": "India", "admin1": "Bihar", "latitude": 26.67, "longitude": 85.17},
    ]
}


class TestCircularMean:
    def test_wraps_around_north(self) -> None:
        assert circular_mean_degrees([350.0, 10.0]) in (0.0, 360.0)

    def test_plain_average(self) -> None:
        assert circular_mean_degrees([80.0, 100.0]) == pytest.approx(90.0)


class TestOpenMeteoWeatherProvider:
    @pytest.mark.asyncio
    async def test_averages_over_days(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=FORECAST)

        async with _client(handler) as http:
            provider = OpenMeteoWeatherProvider(_settings(), http)
            averages = await provider.averages_over_days(23.81, 90.41, 3)

        assert averages.avg_max_temp == 31.0
        assert averages.avg_min_temp == 24.5
        assert averages.avg_rainfall == 3.0
        assert averages.avg_humidity == 80.0
        assert averages.dominant_wind_direction in (0.0, 360.0)
        assert seen[0].url.params["forecast_days"] == "3"
        assert "relative_humidity_2m_mean" in seen[0].url.params["daily"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("days", [0, 17])
    async def test_days_out_of_range(self, days: int) -> None:
        async with _client(lambda r: httpx.Response(200, json=FORECAST)) as http:
            provider = OpenMeteoWeatherProvider(_settings(), http)
            with pytest.raises(WeatherError, match="1 to 16 days"):
                await provider.averages_over_days(23.81, 90.41, days)

    @pytest.mark.asyncio
    async def test_averages_are_cached(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(200, json=FORECAST)

        async with _client(handler) as http:
            provider = OpenMeteoWeatherProvider(_settings(), http, cache=MemoryCacheProvider())
            first = await provider.averages_over_days(23.81, 90.41, 3)
            second = await provider.averages_over_days(23.81, 90.41, 3)

        assert calls == 1
        assert first == second

    @pytest.mark.asyncio
    async def test_missing_series_is_error(self) -> None:
        broken = {"daily": {**FORECAST["daily"], "precipitation_sum": [None, None]}}
        async with _client(lambda r: httpx.Response(200, json=broken)) as http:
            provider = OpenMeteoWeatherProvider(_settings(), http)
            with pytest.raises(WeatherError, match="precipitation_sum"):
                await provider.averages_over_days(23.81, 90.41, 3)

    @pytest.mark.asyncio
    async def test_http_error_is_weather_error(self) -> None:
        async with _client(lambda r: httpx.Response(502)) as http:
            provider = OpenMeteoWeatherProvider(_settings(), http)
            with pytest.raises(WeatherError) as excinfo:
                await provider.averages_over_days(23.81, 90.41, 3)
        assert excinfo.value.provider_name == "open-meteo"

    @pytest.mark.asyncio
    async def test_resolve_coordinates_filters_by_country(self) -> None:
        async with _client(lambda r: httpx.Response(200, json=GEOCODING)) as http:
            provider = OpenMeteoWeatherProvider(_settings(), http)
            india = await provider.resolve_coordinates("Dhaka", None, "india")
            bangladesh = await provider.resolve_coordinates("Dhaka", "Dhaka Division", "Bangladesh")
            nowhere = await provider.resolve_coordinates("Dhaka", None, "Peru")

        assert (india.latitude, india.longitude) == (26.67, 85.17)
        assert (bangladesh.latitude, bangladesh.longitude) == (23.81, 90.41)
        assert nowhere is None

    @pytest.mark.asyncio
    async def test_resolve_coordinates_without_results(self) -> None:
        async with _client(lambda r: httpx.Response(200, json={})) as http:
            provider = OpenMeteoWeatherProvider(_settings(), http)
            assert await provider.resolve_coordinates("Atlantis", None, "Sea") is None


# ======================================================================
# ImageKit
# ======================================================================


class TestImageKitImageHost:
    @pytest.mark.asyncio
    async def test_upload(self, tmp_path: Path) -> None:
        photo = tmp_path / "leaf.png"
        photo.write_bytes(b"\x89PNG")
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"fileId": "file-1", "url": "https://ik.test/leaf.png"})

        async with _client(handler) as http:
            host = ImageKitImageHost(_settings(imagekit_private_key="private_key"), http)
            hosted = await host.upload(str(photo), "leaf.png", "disease-detection")

        assert hosted.id == "file-1"
        assert hosted.url == "https://ik.test/leaf.png"
        assert seen[0].method == "POST"
        assert seen[0].headers["authorization"].startswith("Basic ")
        assert b"disease-detection" in seen[0].content

    @pytest.mark.asyncio
    async def test_upload_reads_file_off_the_event_loop(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        photo = tmp_path / "leaf.png"
        photo.write_bytes(b"\x89PNG")
        offloaded: list[Callable] = []
        to_thread = asyncio.to_thread

        async def recording_to_thread(func, /, *args, **kwargs):
            offloaded.append(func)
            return await to_thread(func, *args, **kwargs)

        monkeypatch.setattr(asyncio, "to_thread", recording_to_thread)
        ok = httpx.Response(200, json={"fileId": "file-1", "url": "https://ik.test/leaf.png"})
        async with _client(lambda r: ok) as http:
            host = ImageKitImageHost(_settings(imagekit_private_key="k"), http)
            await host.upload(str(photo), "leaf.png", "crop-suggestion")

        assert offloaded == [photo.read_bytes]

    @pytest.mark.asyncio
    async def test_upload_rejects_incomplete_response(self, tmp_path: Path) -> None:
        photo = tmp_path / "leaf.png"
        photo.write_bytes(b"\x89PNG")
        async with _client(lambda r: httpx.Response(200, json={"url": "x"})) as http:
            host = ImageKitImageHost(_settings(imagekit_private_key="k"), http)
            with pytest.raises(ImageHostError, match="fileId"):
                await host.upload(str(photo), "leaf.png", "crop-suggestion")

    @pytest.mark.asyncio
    async def test_upload_missing_file(self, tmp_path: Path) -> None:
        async with _client(lambda r: httpx.Response(200)) as http:
            host = ImageKitImageHost(_settings(imagekit_private_key="k"), http)
            with pytest.raises(ImageHostError, match="Cannot read"):
                await host.upload(str(tmp_path / "gone.png"), "gone.png", "crop-suggestion")

    @pytest.mark.asyncio
    async def test_delete(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        async with _client(handler) as http:
            host = ImageKitImageHost(_settings(imagekit_private_key="k"), http)
            await host.delete("file-1")

        assert seen[0].method == "DELETE"
        assert seen[0].url.path.endswith("/files/file-1")

    @pytest.mark.asyncio
    async def test_delete_failure(self) -> None:
        async with _client(lambda r: httpx.Response(404)) as http:
            host = ImageKitImageHost(_settings(imagekit_private_key="k"), http)
            with pytest.raises(ImageHostError):
                await host.delete("file-1")


# ======================================================================
# Pexels
# ======================================================================


class TestPexelsStockImageProvider:
    @pytest.mark.asyncio
    async def test_returns_original_of_first_photo(self) -> None:
        body = {"photos": [{"src": {"original": "https://images.pexels.test/1.jpeg"}}]}
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=json.dumps(body))

        async with _client(handler) as http:
            provider = PexelsStockImageProvider("pexels-key", http)
            url = await provider.find_image("Tomato")

        assert url == "https://images.pexels.test/1.jpeg"
        assert seen[0].headers["authorization"] == "pexels-key"
        assert seen[0].url.params["query"] == "Tomato"

    @pytest.mark.asyncio
    async def test_failures_yield_none(self) -> None:
        async with _client(lambda r: httpx.Response(500)) as http:
            assert await PexelsStockImageProvider("k", http).find_image("Tomato") is None
        async with _client(lambda r: httpx.Response(200, json={"photos": []})) as http:
            assert await PexelsStockImageProvider("k", http).find_image("Tomato") is None

    @pytest.mark.asyncio
    async def test_without_key_no_request(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with _client(handler) as http:
            assert await PexelsStockImageProvider("", http).find_image("Tomato") is None
