"""
Great-circle helpers for radius queries
"""
import math
from typing import NamedTuple, Optional

EARTH_RADIUS_MILES = 3958.8
MILES_PER_DEGREE_LAT = 69.0
# Widen the SQL prefilter so float error never excludes a border point;
# haversine_miles decides membership afterwards.
BOX_PADDING = 1.01


class BoundingBox(NamedTuple):
    min_lat: float
    max_lat: float
    # None when the box wraps the antimeridian or reaches a pole
    min_lng: Optional[float]
    max_lng: Optional[float]


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_MILES * math.asin(min(1.0, math.sqrt(a)))


def bounding_box(lat: float, lng: float, radius_miles: float) -> BoundingBox:
    """
    Rectangle in degrees enclosing the circle of radius_miles around (lat, lng).

    1 degree of latitude is ~69 miles. The longitude half-width is the exact
    spherical one, asin(sin(d) / cos(lat)): the circle bulges east and west
    at a latitude nearer the pole than the center.
    """
    lat_range = radius_miles * BOX_PADDING / MILES_PER_DEGREE_LAT
    min_lat = max(-90.0, lat - lat_range)
    max_lat = min(90.0, lat + lat_range)

    if min_lat <= -90.0 or max_lat >= 90.0:
        return BoundingBox(min_lat, max_lat, None, None)

    d = radius_miles * BOX_PADDING / EARTH_RADIUS_MILES
    ratio = math.sin(min(d, math.pi / 2)) / math.cos(math.radians(lat))
    if ratio >= 1.0:
        return BoundingBox(min_lat, max_lat, None, None)

    lng_range = math.degrees(math.asin(ratio))
    min_lng, max_lng = lng - lng_range, lng + lng_range
    if min_lng < -180.0 or max_lng > 180.0:
        return BoundingBox(min_lat, max_lat, None, None)

    return BoundingBox(min_lat, max_lat, min_lng, max_lng)


def validate_coordinates(lat: float, lng: float) -> bool:
    return (
        not math.isnan(lat) and not math.isnan(lng)
        and -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0
    )


def maps_url(lat: float, lng: float) -> str:
    return f"https://maps.google.com/maps?q={lat},{lng}"
