"""Destination geofence."""

ARRIVAL_RADIUS_M = 50.0

# Haversine round-off on a point placed exactly on the fence
_TOLERANCE_M = 1e-6


class ArrivalDetector:
    def __init__(self, radius_m: float = ARRIVAL_RADIUS_M) -> None:
        self.radius_m = radius_m

    def is_arrived(self, distance_to_destination_m: float) -> bool:
        return distance_to_destination_m <= self.radius_m + _TOLERANCE_M
