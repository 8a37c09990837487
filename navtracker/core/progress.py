"""Remaining distance, remaining time, ETA and percent complete for the active leg."""

import datetime
import logging
import math
from dataclasses import dataclass

from navtracker.core.geometry import haversine_m
from navtracker.schemas.navigation import PositionFix
from navtracker.schemas.route import Route, TravelMode

logger = logging.getLogger(__name__)

# Fixes closer than this to the route origin never count as progress (GPS jitter)
START_NOISE_RADIUS_M = 50.0
# Raw progress under this share of the route still reads as "not departed"
DEPARTURE_BUFFER_PERCENT = 5.0

# Policy speeds (km/h) per travel mode, tunable rather than measured
DEFAULT_SPEEDS_KMH = {
    TravelMode.DRIVING: 30.0,
    TravelMode.BICYCLING: 15.0,
    TravelMode.WALKING: 5.0,
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_distance(meters: float) -> str:
    """'1.2 km' style, one decimal, as on the navigation panel."""
    return f"{round_half_up(meters / 100) / 10:.1f} km"


def format_duration(seconds: float) -> str:
    return f"{round_half_up(seconds / 60)} min"


def format_eta(eta: datetime.datetime) -> str:
    return eta.strftime("%H:%M")


@dataclass(frozen=True)
class ProgressResult:
    distance_to_destination_m: float  # to the end of the active leg
    distance_from_start_m: float
    remaining_distance_m: float  # to the route destination
    distance_traveled_m: float
    progress_percent: float
    remaining_time_seconds: float
    eta: datetime.datetime

    @property
    def remaining_minutes(self) -> int:
        return round_half_up(self.remaining_time_seconds / 60)


class ProgressCalculator:
    """Straight-line progress against leg endpoints, using policy travel speeds."""

    def __init__(
        self,
        start_noise_radius_m: float = START_NOISE_RADIUS_M,
        departure_buffer_percent: float = DEPARTURE_BUFFER_PERCENT,
        speeds_kmh: dict[TravelMode, float] | None = None,
    ) -> None:
        self.start_noise_radius_m = start_noise_radius_m
        self.departure_buffer_percent = departure_buffer_percent
        self.speeds_kmh = dict(DEFAULT_SPEEDS_KMH)
        if speeds_kmh:
            self.speeds_kmh.update(speeds_kmh)

    def remaining_time_seconds(self, remaining_m: float, mode: TravelMode) -> float:
        speed = self.speeds_kmh[mode]
        return (remaining_m / 1000.0) / speed * 3600.0

    def calculate(
        self,
        route: Route,
        leg_index: int,
        fix: PositionFix,
        mode: TravelMode,
        now: datetime.datetime,
    ) -> ProgressResult:
        leg = route.legs[leg_index]
        total_m = route.total_distance_meters
        completed_m = sum(other.distance_meters for other in route.legs[:leg_index])
        later_m = sum(other.distance_meters for other in route.legs[leg_index + 1:])

        to_leg_end = haversine_m(fix.lat, fix.lng, leg.end_location.lat, leg.end_location.lng)
        from_leg_start = haversine_m(fix.lat, fix.lng, leg.start_location.lat, leg.start_location.lng)

        if leg.distance_meters == 0:
            # Degenerate leg: already at its end
            to_leg_end = 0.0

        remaining_m = to_leg_end + later_m
        traveled_m = completed_m + leg.distance_meters - to_leg_end

        if total_m == 0:
            progress = 100.0
            remaining_m = 0.0
        else:
            progress = max(0.0, min(100.0, traveled_m / total_m * 100.0))
            if leg_index == 0:
                if progress < self.departure_buffer_percent:
                    progress = 0.0
                if from_leg_start < self.start_noise_radius_m:
                    progress = 0.0

        remaining_s = self.remaining_time_seconds(remaining_m, mode)
        eta = now + datetime.timedelta(seconds=remaining_s)

        logger.debug(
            "Progress %.1f%%: %.0fm remaining, %.0fm from start, eta %s",
            progress, remaining_m, from_leg_start, eta.isoformat(),
        )
        return ProgressResult(
            distance_to_destination_m=to_leg_end,
            distance_from_start_m=from_leg_start,
            remaining_distance_m=remaining_m,
            distance_traveled_m=traveled_m,
            progress_percent=progress,
            remaining_time_seconds=remaining_s,
            eta=eta,
        )
