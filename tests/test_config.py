"""Tests for environment-driven settings."""

from navtracker.config import Settings
from navtracker.schemas.route import TravelMode


def test_defaults():
    s = Settings()
    assert s.arrival_radius_m == 50
    assert s.upcoming_instruction_radius_m == 300
    assert s.voice_trigger_radius_m == 200
    assert s.arrival_grace_seconds == 3


def test_env_override(monkeypatch):
    monkeypatch.setenv("NAV_ARRIVAL_RADIUS_M", "25")
    monkeypatch.setenv("nav_walking_speed_kmh", "4")
    s = Settings()
    assert s.arrival_radius_m == 25
    assert s.speed_kmh(TravelMode.WALKING) == 4


def test_speed_per_mode():
    s = Settings()
    assert s.speed_kmh(TravelMode.DRIVING) == 30
    assert s.speed_kmh(TravelMode.BICYCLING) == 15
    assert s.speed_kmh(TravelMode.WALKING) == 5
