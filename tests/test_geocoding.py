import asyncio

import httpx
import pytest

from migralert.services.geocoding_service import (
    GeocodingError,
    MapboxGeocoder,
    parse_mapbox_response,
)


def test_parse_place_features():
    result = parse_mapbox_response({"features": [
        {"place_type": ["place"], "text": "El Paso"},
        {"place_type": ["region"], "text": "Texas"},
        {"place_type": ["country"], "text": "United States"},
    ]})
    assert (result.city, result.region, result.country) == ("El Paso", "Texas", "United States")


def test_parse_falls_back_to_context():
    result = parse_mapbox_response({"features": [{
        "place_type": ["region"],
        "text": "Texas",
        "context": [
            {"id": "place.123", "text": "Laredo"},
            {"id": "country.9", "text": "United States"},
        ],
    }]})
    assert result.city == "Laredo"
    assert result.region == "Texas"


def test_parse_empty_response():
    result = parse_mapbox_response({})
    assert (result.city, result.region) == ("Unknown", "Unknown")


def test_missing_token_yields_placeholder():
    geocoder = MapboxGeocoder(token="")
    with pytest.raises(GeocodingError):
        asyncio.run(geocoder.resolve(30.0, -97.0))

    result = asyncio.run(geocoder.resolve_or_placeholder(30.0, -97.0))
    assert result.city == "Unknown"


def test_network_failure_yields_placeholder(monkeypatch):
    async def failing_get(self, url, params=None):
        raise httpx.ConnectError("unreachable")

    monkeypatch.setattr(httpx.AsyncClient, "get", failing_get)
    geocoder = MapboxGeocoder(token="pk.test")
    result = asyncio.run(geocoder.resolve_or_placeholder(30.0, -97.0))
    assert result.region == "Unknown"
