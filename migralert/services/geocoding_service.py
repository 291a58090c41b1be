"""
Reverse geocoding via the Mapbox Geocoding API
"""
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

import httpx

from migralert.core.config import settings

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"


@dataclass
class GeocodingResult:
    city: str = UNKNOWN
    region: str = UNKNOWN
    country: str = UNKNOWN


class GeocodingError(Exception):
    pass


class MapboxGeocoder:
    """Mapbox reverse geocoding client"""

    def __init__(self, token: Optional[str] = None, timeout: Optional[float] = None):
        self._api_token = token.strip() if token else None
        self._api_url = "https://api.mapbox.com/geocoding/v5/mapbox.places"
        self._timeout = timeout if timeout is not None else settings.GEOCODE_TIMEOUT_SECONDS

        if not self._api_token:
            logger.warning("[Geocoding] Mapbox client configured WITHOUT token; places will be 'Unknown'")

    async def resolve(self, latitude: float, longitude: float) -> GeocodingResult:
        """Raises GeocodingError on any failure."""
        if not self._api_token:
            raise GeocodingError("Mapbox access token not configured")

        url = f"{self._api_url}/{longitude},{latitude}.json"
        params = {"types": "place,region,country", "access_token": self._api_token}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(url, params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            raise GeocodingError(f"Timeout after {self._timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise GeocodingError(f"HTTP {e.response.status_code} from Mapbox") from e
        except (httpx.RequestError, ValueError) as e:
            raise GeocodingError(str(e)) from e

        return parse_mapbox_response(data)

    async def resolve_or_placeholder(self, latitude: float, longitude: float) -> GeocodingResult:
        """
        Never raises: place names are cosmetic, the coordinates are what matter.
        """
        try:
            return await self.resolve(latitude, longitude)
        except GeocodingError as e:
            logger.warning(f"[Geocoding] ({latitude:.4f}, {longitude:.4f}) unresolved: {e}")
            return GeocodingResult()


def parse_mapbox_response(data: dict) -> GeocodingResult:
    result = GeocodingResult()
    features = data.get("features") or []

    for feature in features:
        place_type = feature.get("place_type") or []
        text = feature.get("text")
        if "place" in place_type:
            result.city = text or result.city
        if "region" in place_type:
            result.region = text or result.region
        if "country" in place_type:
            result.country = text or result.country

    # No place feature: fall back to the first feature's context
    if result.city == UNKNOWN and features and features[0].get("context"):
        for ctx in features[0]["context"]:
            ctx_id = ctx.get("id") or ""
            if ctx_id.startswith("place."):
                result.city = ctx.get("text") or result.city
            elif ctx_id.startswith("region."):
                result.region = ctx.get("text") or result.region
            elif ctx_id.startswith("country."):
                result.country = ctx.get("text") or result.country

    return result


@lru_cache()
def get_geocoder() -> MapboxGeocoder:
    return MapboxGeocoder(token=settings.MAPBOX_ACCESS_TOKEN)
