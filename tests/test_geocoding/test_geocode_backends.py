"""Tests for the geopy-backed geocoding backends."""

from unittest.mock import MagicMock

import pytest
from geopy.exc import (
    GeocoderQuotaExceeded,
    GeocoderRateLimited,
    GeocoderServiceError,
    GeocoderTimedOut,
    GeocoderUnavailable,
)

from place_importer.core.geocoding.backends import (
    ArcGISBackend,
    NominatimBackend,
    default_is_throttled,
)
from place_importer.core.geocoding.constants import US_REGION, Region
from place_importer.core.geocoding.exceptions import (
    GeocodeError,
    GeocodeNotFoundError,
    GeocodeThrottledError,
)
from place_importer.models.address import Coordinate


def location(lat: float, lon: float) -> MagicMock:
    return MagicMock(latitude=lat, longitude=lon)


@pytest.fixture
def geocoder() -> MagicMock:
    mock = MagicMock()
    mock.geocode.return_value = location(33.517, -86.808)
    return mock


@pytest.fixture
def cache() -> MagicMock:
    mock = MagicMock()
    mock.get.return_value = None
    return mock


@pytest.mark.parametrize(
    "error,expected",
    [
        (GeocoderRateLimited("slow down"), True),
        (GeocoderQuotaExceeded("quota"), True),
        (GeocoderServiceError("HTTP Error 429: Too Many Requests"), True),
        (Exception("too many requests"), True),
        (GeocoderTimedOut("timed out"), True),
        (GeocoderUnavailable("connection refused"), True),
        (GeocoderServiceError("HTTP Error 500"), False),
    ],
)
def test_default_is_throttled(error, expected):
    assert default_is_throttled(error) is expected


class TestNominatimBackend:
    @pytest.mark.asyncio
    async def test_query_uses_region_viewbox(self, geocoder):
        backend = NominatimBackend(geocoder=geocoder, country_codes=["us"])

        coordinate = await backend.geocode_query("1 Main St, Austin, TX", US_REGION)

        assert coordinate == Coordinate(latitude=33.517, longitude=-86.808)
        args, kwargs = geocoder.geocode.call_args
        assert args == ("1 Main St, Austin, TX",)
        assert kwargs["viewbox"] == list(US_REGION.viewbox)
        assert kwargs["bounded"] is False
        assert kwargs["country_codes"] == ["us"]
        assert kwargs["exactly_one"] is True

    @pytest.mark.asyncio
    async def test_query_without_region(self, geocoder):
        backend = NominatimBackend(geocoder=geocoder)

        await backend.geocode_query("1 Main St")

        assert "viewbox" not in geocoder.geocode.call_args.kwargs

    @pytest.mark.asyncio
    async def test_structured_query_passes_components(self, geocoder):
        backend = NominatimBackend(geocoder=geocoder)
        components = {
            "street": "420 North 20th Street",
            "city": "Birmingham",
            "state": "AL",
            "postalcode": "35203",
            "country": "United States",
        }

        await backend.geocode_structured(components)

        assert geocoder.geocode.call_args.args == (components,)

    @pytest.mark.asyncio
    async def test_no_result_raises_not_found(self, geocoder):
        geocoder.geocode.return_value = None
        backend = NominatimBackend(geocoder=geocoder)

        with pytest.raises(GeocodeNotFoundError):
            await backend.geocode_query("nowhere")

    @pytest.mark.asyncio
    async def test_rate_limit_is_translated(self, geocoder):
        geocoder.geocode.side_effect = GeocoderRateLimited("slow down")
        backend = NominatimBackend(geocoder=geocoder)

        with pytest.raises(GeocodeThrottledError):
            await backend.geocode_query("1 Main St")

    @pytest.mark.asyncio
    async def test_network_errors_are_throttles(self, geocoder):
        geocoder.geocode.side_effect = GeocoderUnavailable("connection refused")
        backend = NominatimBackend(geocoder=geocoder)

        with pytest.raises(GeocodeThrottledError):
            await backend.geocode_structured({"street": "1 Main St", "city": "Austin"})

        geocoder.geocode.side_effect = GeocoderTimedOut("timed out")
        with pytest.raises(GeocodeThrottledError):
            await backend.geocode_query("1 Main St")

    @pytest.mark.asyncio
    async def test_other_errors_are_generic(self, geocoder):
        geocoder.geocode.side_effect = GeocoderServiceError("HTTP Error 500")
        backend = NominatimBackend(geocoder=geocoder)

        with pytest.raises(GeocodeError) as exc_info:
            await backend.geocode_query("1 Main St")

        assert not isinstance(exc_info.value, GeocodeThrottledError)

    @pytest.mark.asyncio
    async def test_custom_throttle_classifier(self, geocoder):
        geocoder.geocode.side_effect = GeocoderServiceError("503 busy")
        backend = NominatimBackend(
            geocoder=geocoder, is_throttled=lambda e: "503" in str(e)
        )

        with pytest.raises(GeocodeThrottledError):
            await backend.geocode_query("1 Main St")

    @pytest.mark.asyncio
    async def test_cache_hit_skips_geocoder(self, geocoder, cache):
        cache.get.return_value = Coordinate(latitude=1.0, longitude=2.0)
        backend = NominatimBackend(geocoder=geocoder, cache=cache)

        coordinate = await backend.geocode_query("1 Main St")

        assert coordinate == Coordinate(latitude=1.0, longitude=2.0)
        geocoder.geocode.assert_not_called()
        cache.get.assert_called_once_with("1 Main St", "nominatim")

    @pytest.mark.asyncio
    async def test_success_is_cached(self, geocoder, cache):
        backend = NominatimBackend(geocoder=geocoder, cache=cache)

        await backend.geocode_query("1 Main St")

        cache.set.assert_called_once_with(
            "1 Main St", "nominatim", Coordinate(latitude=33.517, longitude=-86.808)
        )

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, geocoder, cache):
        geocoder.geocode.return_value = None
        backend = NominatimBackend(geocoder=geocoder, cache=cache)

        with pytest.raises(GeocodeNotFoundError):
            await backend.geocode_query("1 Main St")

        cache.set.assert_not_called()


class TestArcGISBackend:
    @pytest.mark.asyncio
    async def test_structured_is_joined_into_one_query(self, geocoder):
        backend = ArcGISBackend(geocoder=geocoder)

        await backend.geocode_structured(
            {
                "street": "1100 Congress Avenue",
                "city": "Austin",
                "state": "TX",
                "postalcode": "78701",
                "country": "United States",
            }
        )

        assert geocoder.geocode.call_args.args == (
            "1100 Congress Avenue, Austin, TX 78701, United States",
        )

    @pytest.mark.asyncio
    async def test_query_ignores_region(self, geocoder):
        backend = ArcGISBackend(geocoder=geocoder)

        await backend.geocode_query("1 Main St", US_REGION)

        assert geocoder.geocode.call_args.kwargs == {"exactly_one": True}

    @pytest.mark.asyncio
    async def test_http_429_is_throttled(self, geocoder):
        geocoder.geocode.side_effect = GeocoderServiceError("Non-successful status code 429")
        backend = ArcGISBackend(geocoder=geocoder)

        with pytest.raises(GeocodeThrottledError):
            await backend.geocode_query("1 Main St")


def test_region_viewbox_corners():
    region = Region(latitude=40.0, longitude=-100.0, latitude_span=10.0, longitude_span=20.0)

    assert region.viewbox == ((35.0, -110.0), (45.0, -90.0))
