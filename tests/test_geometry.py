"""Tests for great-circle helpers and the nearest-step search."""

import math

import pytest

from navtracker.core.geometry import (
    EARTH_RADIUS_M,
    bearing_deg,
    haversine_m,
    nearest_point_on_segment,
    nearest_step,
)
from navtracker.schemas.route import LatLng, Step

M_PER_DEG = EARTH_RADIUS_M * math.pi / 180


def east(m: float) -> float:
    """Longitude offset on the equator for m metres."""
    return m / M_PER_DEG


def make_step(start_m: float, end_m: float) -> Step:
    return Step(
        start_location=LatLng(lat=0, lng=east(start_m)),
        end_location=LatLng(lat=0, lng=east(end_m)),
        distance_meters=abs(end_m - start_m),
    )


def test_haversine_along_equator():
    assert haversine_m(0, 0, 0, east(1000)) == pytest.approx(1000, abs=1e-6)


def test_haversine_zero():
    assert haversine_m(56.84, 60.6, 56.84, 60.6) == 0


def test_bearing_cardinal_directions():
    assert bearing_deg(0, 0, 1, 0) == pytest.approx(0, abs=1e-9)
    assert bearing_deg(0, 0, 0, 1) == pytest.approx(90)
    assert bearing_deg(0, 0, -1, 0) == pytest.approx(180)
    assert bearing_deg(0, 0, 0, -1) == pytest.approx(270)


def test_bearing_is_normalised():
    for lat2, lng2 in [(0.5, -0.5), (-0.5, -0.5), (0.5, 0.5)]:
        b = bearing_deg(0, 0, lat2, lng2)
        assert 0 <= b < 360


def test_nearest_point_projects_onto_segment():
    start = LatLng(lat=0, lng=0)
    end = LatLng(lat=0, lng=east(1000))
    # 40m north of the 500m mark
    snapped, d = nearest_point_on_segment(40 / M_PER_DEG, east(500), start, end)
    assert d == pytest.approx(40, rel=1e-3)
    assert snapped.lat == pytest.approx(0, abs=1e-9)
    assert snapped.lng == pytest.approx(east(500), rel=1e-6)


def test_nearest_point_clamps_to_endpoint():
    start = LatLng(lat=0, lng=0)
    end = LatLng(lat=0, lng=east(100))
    snapped, d = nearest_point_on_segment(0, east(-30), start, end)
    assert d == pytest.approx(30, rel=1e-3)
    assert snapped.lng == pytest.approx(0, abs=1e-9)


def test_nearest_point_degenerate_segment():
    p = LatLng(lat=0, lng=0)
    snapped, d = nearest_point_on_segment(0, east(10), p, p)
    assert snapped == p
    assert d == pytest.approx(10, abs=1e-6)


def test_nearest_step_by_start_location():
    steps = [make_step(0, 200), make_step(200, 600), make_step(600, 1000)]
    # Starts are 350m, 150m and 250m away
    match = nearest_step(steps, 0, east(350))
    assert match.index == 1
    assert match.distance_m == pytest.approx(150, abs=1e-6)


def test_nearest_step_tie_prefers_first():
    steps = [make_step(0, 200), make_step(200, 400)]
    assert nearest_step(steps, 0, east(100)).index == 0


def test_nearest_step_empty():
    assert nearest_step([], 0, 0) is None
