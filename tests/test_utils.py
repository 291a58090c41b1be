import math

import pytest

from migralert.core.logging_config import mask_phone
from migralert.utils.geo import (
    EARTH_RADIUS_MILES,
    bounding_box,
    haversine_miles,
    maps_url,
    validate_coordinates,
)
from migralert.utils.phone import to_e164


# ============================================
# GEO
# ============================================

def test_haversine_zero_at_same_point():
    assert haversine_miles(30.2672, -97.7431, 30.2672, -97.7431) == 0


def test_haversine_known_distance():
    # Austin -> San Antonio is roughly 74 miles as the crow flies
    distance = haversine_miles(30.2672, -97.7431, 29.4241, -98.4936)
    assert 70 < distance < 80


def test_bounding_box_contains_circle():
    box = bounding_box(30.0, -97.0, 10)
    assert box.min_lat < 30.0 < box.max_lat
    assert box.min_lng < -97.0 < box.max_lng
    # 10 miles north is inside the latitude band
    assert box.max_lat - 30.0 > 10 / 69.0


def test_bounding_box_zero_radius_is_a_point():
    box = bounding_box(30.0, -97.0, 0)
    assert box.min_lat == box.max_lat == 30.0
    assert box.min_lng == box.max_lng == -97.0


def test_bounding_box_drops_longitude_filter_across_antimeridian():
    box = bounding_box(0.0, 179.9, 50)
    assert box.min_lng is None and box.max_lng is None


def easternmost_point(lat, lng, miles):
    """Point of the circle around (lat, lng) with the largest longitude"""
    d = miles / EARTH_RADIUS_MILES
    phi = math.radians(lat)
    return (
        math.degrees(math.asin(math.sin(phi) / math.cos(d))),
        lng + math.degrees(math.asin(math.sin(d) / math.cos(phi))),
    )


@pytest.mark.parametrize("lat,radius", [(30.0, 10), (70.0, 500), (75.0, 300), (80.0, 300), (84.0, 300)])
def test_bounding_box_reaches_widest_point_of_circle(lat, radius):
    point_lat, point_lng = easternmost_point(lat, 0.0, radius - 1)
    assert haversine_miles(lat, 0.0, point_lat, point_lng) < radius

    box = bounding_box(lat, 0.0, radius)
    assert box.min_lat <= point_lat <= box.max_lat
    if box.max_lng is not None:
        assert box.min_lng <= -point_lng
        assert point_lng <= box.max_lng


def test_validate_coordinates():
    assert validate_coordinates(0, 0)
    assert validate_coordinates(-90, 180)
    assert not validate_coordinates(91, 0)
    assert not validate_coordinates(0, -181)
    assert not validate_coordinates(float("nan"), 0)


def test_maps_url():
    assert maps_url(30.5, -97.25) == "https://maps.google.com/maps?q=30.5,-97.25"


# ============================================
# PHONE
# ============================================

@pytest.mark.parametrize("raw,expected", [
    ("(555) 123-4567", "+15551234567"),
    ("555.123.4567", "+15551234567"),
    ("1 555 123 4567", "+15551234567"),
    ("+52 55 1234 5678", "+525512345678"),
])
def test_to_e164(raw, expected):
    assert to_e164(raw) == expected


@pytest.mark.parametrize("raw", ["", "12345", "+0123456789", "abc"])
def test_to_e164_rejects_invalid(raw):
    with pytest.raises(ValueError):
        to_e164(raw)


def test_mask_phone_keeps_last_four_digits():
    assert mask_phone("+15551234567") == "***4567"
    assert mask_phone(None) == "<none>"
