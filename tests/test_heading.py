"""Tests for the route-derived heading."""

import math

import pytest

from navtracker.core.geometry import EARTH_RADIUS_M
from navtracker.core.heading import HeadingEstimator
from navtracker.schemas.navigation import PositionFix
from navtracker.schemas.route import LatLng, Leg, Step

M_PER_DEG = EARTH_RADIUS_M * math.pi / 180


def make_leg(points: list[tuple[float, float]]) -> Leg:
    """Leg through points (lat, lng), one step per consecutive pair."""
    steps = tuple(
        Step(start_location=LatLng(lat=a[0], lng=a[1]), end_location=LatLng(lat=b[0], lng=b[1]))
        for a, b in zip(points, points[1:])
    )
    return Leg(
        start_location=steps[0].start_location,
        end_location=steps[-1].end_location,
        distance_meters=1000,
        steps=steps,
    )


def test_single_step_heading_ignores_device():
    leg = make_leg([(0, 0), (0, 1)])
    estimator = HeadingEstimator()
    for lng in (0.0001, 0.25, 0.5, 0.75, 0.9999):
        fix = PositionFix(lat=0, lng=lng, heading=200)
        assert estimator.estimate(leg, fix) == pytest.approx(90)


def test_follows_nearest_step():
    # East, then north
    leg = make_leg([(0, 0), (0, 0.01), (0.01, 0.01)])
    estimator = HeadingEstimator()
    assert estimator.estimate(leg, PositionFix(lat=0, lng=0.003)) == pytest.approx(90)
    assert estimator.estimate(leg, PositionFix(lat=0.004, lng=0.01)) == pytest.approx(0, abs=1e-6)


def test_start_anchor_uses_leg_start():
    # Leg start sits 20m south of the first step's start
    start = LatLng(lat=-20 / M_PER_DEG, lng=0)
    first = Step(start_location=LatLng(lat=0, lng=0), end_location=LatLng(lat=0, lng=0.01))
    leg = Leg(start_location=start, end_location=first.end_location, distance_meters=1100, steps=(first,))

    heading = HeadingEstimator().estimate(leg, PositionFix(lat=-10 / M_PER_DEG, lng=0))
    # Bearing from leg start to the step end, slightly north of east
    assert 88 < heading < 90


def test_end_anchor_uses_leg_end():
    # Leg ends 20m north of the last step's end
    first = Step(start_location=LatLng(lat=0, lng=0), end_location=LatLng(lat=0, lng=0.01))
    last = Step(start_location=LatLng(lat=0, lng=0.01), end_location=LatLng(lat=0, lng=0.0102))
    end = LatLng(lat=20 / M_PER_DEG, lng=0.0102)
    leg = Leg(start_location=first.start_location, end_location=end, distance_meters=1150, steps=(first, last))

    heading = HeadingEstimator().estimate(leg, PositionFix(lat=0, lng=0.0101))
    expected = math.degrees(math.atan2(0.0002, 20 / M_PER_DEG))
    assert heading == pytest.approx(expected, rel=1e-3)


def test_no_steps_falls_back_to_device_heading():
    leg = Leg(start_location=LatLng(lat=0, lng=0), end_location=LatLng(lat=0, lng=1), distance_meters=1000)
    estimator = HeadingEstimator()
    assert estimator.estimate(leg, PositionFix(lat=0, lng=0.5, heading=123)) == 123
    assert estimator.estimate(leg, PositionFix(lat=0, lng=0.5)) == 0
