"""Direction of travel inferred from route geometry near the traveler.

Device headings are unreliable at walking and crawling speeds, so the arrow is
aligned with the step the traveler is closest to. Near the two ends of a leg the
bearing is anchored to the leg boundary instead of a possibly very short
terminal step.
"""

import logging

from navtracker.core.geometry import StepMatch, bearing_between, distance_between, nearest_step
from navtracker.schemas.navigation import PositionFix
from navtracker.schemas.route import LatLng, Leg

logger = logging.getLogger(__name__)

ANCHOR_RADIUS_M = 50.0


class HeadingEstimator:
    """Route-derived heading in degrees [0, 360)."""

    def __init__(self, anchor_radius_m: float = ANCHOR_RADIUS_M) -> None:
        self.anchor_radius_m = anchor_radius_m

    def estimate(self, leg: Leg, fix: PositionFix, match: StepMatch | None = None) -> float:
        steps = leg.steps
        if match is None:
            match = nearest_step(steps, fix.lat, fix.lng)
        if match is None:
            return (fix.heading or 0.0) % 360.0

        here = LatLng(lat=fix.lat, lng=fix.lng)
        step = steps[match.index]
        heading = bearing_between(step.start_location, step.end_location)

        if match.index == 0 and distance_between(here, leg.start_location) < self.anchor_radius_m:
            heading = bearing_between(leg.start_location, steps[0].end_location)

        last = len(steps) - 1
        if match.index == last and distance_between(here, leg.end_location) < self.anchor_radius_m:
            heading = bearing_between(steps[last].start_location, leg.end_location)

        logger.debug(
            "Heading %.1f° from step %d (%.1fm from its start)",
            heading, match.index, match.distance_m,
        )
        return heading
