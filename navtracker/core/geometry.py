"""Great-circle helpers and the nearest-step search shared by the tracker pipeline."""

import math
from collections.abc import Sequence
from dataclasses import dataclass

from shapely.geometry import LineString, Point

from navtracker.schemas.route import LatLng, Step

EARTH_RADIUS_M = 6_371_000.0

# Metres per degree of latitude on the mean sphere
_M_PER_DEG = EARTH_RADIUS_M * math.pi / 180.0


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in metres between two lat/lng points."""
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlng / 2) ** 2)
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bearing_deg(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Initial great-circle bearing from point 1 to point 2, in [0, 360)."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dlng = math.radians(lng2 - lng1)
    y = math.sin(dlng) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dlng)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def distance_between(a: LatLng, b: LatLng) -> float:
    return haversine_m(a.lat, a.lng, b.lat, b.lng)


def bearing_between(a: LatLng, b: LatLng) -> float:
    return bearing_deg(a.lat, a.lng, b.lat, b.lng)


def nearest_point_on_segment(
    lat: float, lng: float, start: LatLng, end: LatLng,
) -> tuple[LatLng, float]:
    """Project a point onto the segment start→end.

    Returns the closest point on the segment and its distance in metres.
    Works in a local equirectangular frame centred on the query point, which is
    accurate for step-sized segments.
    """
    lng_scale = _M_PER_DEG * math.cos(math.radians(lat))

    def to_xy(p_lat: float, p_lng: float) -> tuple[float, float]:
        # Shapely uses (x, y) = (east, north)
        return ((p_lng - lng) * lng_scale, (p_lat - lat) * _M_PER_DEG)

    origin = Point(0.0, 0.0)
    a = to_xy(start.lat, start.lng)
    b = to_xy(end.lat, end.lng)
    if a == b:
        return start, haversine_m(lat, lng, start.lat, start.lng)

    segment = LineString([a, b])
    closest = segment.interpolate(segment.project(origin))
    snapped = LatLng(
        lat=lat + closest.y / _M_PER_DEG,
        lng=lng + (closest.x / lng_scale if lng_scale else 0.0),
    )
    return snapped, haversine_m(lat, lng, snapped.lat, snapped.lng)


@dataclass(frozen=True)
class StepMatch:
    index: int
    distance_m: float  # from the fix to the step's start location


def nearest_step(steps: Sequence[Step], lat: float, lng: float) -> StepMatch | None:
    """Step whose start location is closest to the point; first one wins ties."""
    best: StepMatch | None = None
    for i, step in enumerate(steps):
        d = haversine_m(lat, lng, step.start_location.lat, step.start_location.lng)
        if best is None or d < best.distance_m:
            best = StepMatch(index=i, distance_m=d)
    return best
