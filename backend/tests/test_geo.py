"""Tests for geodesic distance, bearing and position validity helpers."""
from __future__ import annotations

import math

import pytest

from fleetwatch.utils.geo import (
    haversine_km,
    haversine_meters,
    haversine_nm,
    initial_bearing,
    is_valid_position,
    to_radians,
)

DUBAI = (25.2048, 55.2708)
JEBEL_ALI = (24.9964, 55.0136)


def test_distance_to_self_is_zero():
    assert haversine_meters(*DUBAI, *DUBAI) == 0.0
    assert haversine_km(*DUBAI, *DUBAI) == 0.0


def test_distance_is_symmetric():
    assert haversine_km(*DUBAI, *JEBEL_ALI) == pytest.approx(haversine_km(*JEBEL_ALI, *DUBAI))


def test_dubai_to_jebel_ali_distance():
    d = haversine_km(*DUBAI, *JEBEL_ALI)
    assert 30 < d < 40


def test_units_agree():
    km = haversine_km(*DUBAI, *JEBEL_ALI)
    assert haversine_meters(*DUBAI, *JEBEL_ALI) == pytest.approx(km * 1000)
    assert haversine_nm(*DUBAI, *JEBEL_ALI) == pytest.approx(km / 1.852, rel=1e-3)


def test_one_degree_of_latitude():
    assert haversine_km(0, 10, 1, 10) == pytest.approx(111.19, abs=0.01)


def test_antipodal_points_do_not_produce_nan():
    d = haversine_km(0, 0, 0, 180)
    assert not math.isnan(d)
    assert d == pytest.approx(math.pi * 6371, rel=1e-9)


def test_to_radians():
    assert to_radians(180) == pytest.approx(math.pi)


class TestInitialBearing:
    def test_due_north(self):
        assert initial_bearing(0, 0, 1, 0) == pytest.approx(0.0)

    def test_due_east(self):
        assert initial_bearing(0, 0, 0, 1) == pytest.approx(90.0)

    def test_due_west_is_normalized(self):
        assert initial_bearing(0, 0, 0, -1) == pytest.approx(270.0)

    def test_range(self):
        b = initial_bearing(*DUBAI, *JEBEL_ALI)
        assert 0 <= b < 360
        # Jebel Ali lies south-west of Dubai
        assert 180 < b < 270


@pytest.mark.parametrize("lat,lon,expected", [
    (25.2, 55.3, True),
    (0.0, 0.0, False),
    (None, 55.3, False),
    (25.2, None, False),
    (91.0, 55.3, False),
    (25.2, -181.0, False),
    (-90.0, 180.0, True),
    (0.0, 1.0, True),
])
def test_is_valid_position(lat, lon, expected):
    assert is_valid_position(lat, lon) is expected
