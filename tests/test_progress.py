"""Tests for ProgressCalculator and the display formatters."""

import datetime
import math

import pytest

from navtracker.core.geometry import EARTH_RADIUS_M
from navtracker.core.progress import (
    ProgressCalculator,
    format_distance,
    format_duration,
    format_eta,
    round_half_up,
)
from navtracker.schemas.navigation import PositionFix
from navtracker.schemas.route import LatLng, Leg, Route, TravelMode

M_PER_DEG = EARTH_RADIUS_M * math.pi / 180
NOW = datetime.datetime(2026, 3, 1, 12, 0, tzinfo=datetime.timezone.utc)


def east(m: float) -> float:
    return m / M_PER_DEG


def make_leg(start_m: float, end_m: float) -> Leg:
    return Leg(
        start_location=LatLng(lat=0, lng=east(start_m)),
        end_location=LatLng(lat=0, lng=east(end_m)),
        distance_meters=abs(end_m - start_m),
    )


def fix_at(m: float) -> PositionFix:
    return PositionFix(lat=0, lng=east(m))


def test_start_noise_suppressed():
    route = Route(legs=(make_leg(0, 1000),))
    result = ProgressCalculator().calculate(route, 0, fix_at(30), TravelMode.DRIVING, NOW)
    assert result.progress_percent == 0
    assert result.remaining_distance_m == pytest.approx(970)


def test_departure_buffer():
    # 60m out of 2000m is 3%: past the noise radius but under the buffer
    route = Route(legs=(make_leg(0, 2000),))
    result = ProgressCalculator().calculate(route, 0, fix_at(60), TravelMode.DRIVING, NOW)
    assert result.progress_percent == 0


def test_progress_is_monotonic_along_leg():
    route = Route(legs=(make_leg(0, 1000),))
    calc = ProgressCalculator()
    values = [
        calc.calculate(route, 0, fix_at(m), TravelMode.WALKING, NOW).progress_percent
        for m in (100, 300, 600, 900)
    ]
    assert values == sorted(values)
    assert values[0] == pytest.approx(10)
    assert values[-1] == pytest.approx(90)


def test_progress_clamped_beyond_destination():
    route = Route(legs=(make_leg(0, 1000),))
    # Behind the start, further from the destination than the leg is long
    result = ProgressCalculator().calculate(route, 0, fix_at(-500), TravelMode.DRIVING, NOW)
    assert result.progress_percent == 0
    assert result.distance_traveled_m < 0


def test_remaining_time_driving():
    calc = ProgressCalculator()
    seconds = calc.remaining_time_seconds(15000, TravelMode.DRIVING)
    assert seconds == pytest.approx(1800)
    assert format_duration(seconds) == "30 min"


def test_remaining_time_by_mode():
    calc = ProgressCalculator()
    assert calc.remaining_time_seconds(5000, TravelMode.WALKING) == pytest.approx(3600)
    assert calc.remaining_time_seconds(15000, TravelMode.BICYCLING) == pytest.approx(3600)


def test_custom_speeds():
    calc = ProgressCalculator(speeds_kmh={TravelMode.DRIVING: 60})
    assert calc.remaining_time_seconds(15000, TravelMode.DRIVING) == pytest.approx(900)
    assert calc.remaining_time_seconds(5000, TravelMode.WALKING) == pytest.approx(3600)


def test_eta_from_clock():
    route = Route(legs=(make_leg(0, 1000),))
    result = ProgressCalculator().calculate(route, 0, fix_at(500), TravelMode.WALKING, NOW)
    # 500m at 5 km/h is 6 minutes
    assert (result.eta - NOW).total_seconds() == pytest.approx(360)
    assert result.remaining_minutes == 6


def test_degenerate_route():
    route = Route(legs=(make_leg(0, 0),))
    result = ProgressCalculator().calculate(route, 0, fix_at(500), TravelMode.DRIVING, NOW)
    assert result.progress_percent == 100
    assert result.remaining_distance_m == 0
    assert result.distance_to_destination_m == 0


def test_second_leg_counts_completed_legs():
    route = Route(legs=(make_leg(0, 1000), make_leg(1000, 2000)))
    result = ProgressCalculator().calculate(route, 1, fix_at(1020), TravelMode.DRIVING, NOW)
    # No start-noise zeroing past the first leg
    assert result.progress_percent == pytest.approx(51)
    assert result.remaining_distance_m == pytest.approx(980)
    assert result.distance_to_destination_m == pytest.approx(980)


def test_first_leg_remaining_includes_later_legs():
    route = Route(legs=(make_leg(0, 1000), make_leg(1000, 2000)))
    result = ProgressCalculator().calculate(route, 0, fix_at(400), TravelMode.DRIVING, NOW)
    assert result.distance_to_destination_m == pytest.approx(600)
    assert result.remaining_distance_m == pytest.approx(1600)
    assert result.progress_percent == pytest.approx(20)


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.49) == 2


def test_format_distance():
    assert format_distance(1234) == "1.2 km"
    assert format_distance(1250) == "1.3 km"
    assert format_distance(0) == "0.0 km"


def test_format_eta():
    assert format_eta(datetime.datetime(2026, 3, 1, 9, 5)) == "09:05"
