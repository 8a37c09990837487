"""Navigation session state machine.

Owns the active route, the position subscription, the arrival timer and the
latest NavigationState. Every processed fix runs the whole pipeline
(heading → progress → instruction → arrival) against one nearest-step search
and replaces the state with a fresh snapshot that is handed to subscribers.

Phases only move forward within a session: idle → active → arrived | stopped.
"""

import datetime
import logging
from collections.abc import Callable

from navtracker.config import Settings
from navtracker.config import settings as default_settings
from navtracker.core.arrival import ArrivalDetector
from navtracker.core.geometry import (
    StepMatch,
    bearing_between,
    distance_between,
    nearest_point_on_segment,
    nearest_step,
)
from navtracker.core.heading import HeadingEstimator
from navtracker.core.instructions import InstructionSelector, announcement_text, clean_instruction
from navtracker.core.position_source import (
    PositionSource,
    PositionSourceError,
    Subscription,
    acquire_initial_fix,
)
from navtracker.core.progress import (
    ProgressCalculator,
    format_distance,
    format_duration,
    format_eta,
)
from navtracker.core.scheduler import cancel_job, schedule_once
from navtracker.core.voice import VoiceAnnouncer
from navtracker.schemas.navigation import (
    Instruction,
    NavigationPhase,
    NavigationState,
    PositionError,
    PositionFix,
)
from navtracker.schemas.route import LatLng, Leg, Route, TravelMode

logger = logging.getLogger(__name__)

START_MESSAGE = "Navigation started. Follow the route ahead."
ARRIVAL_MESSAGE = "You have arrived at your destination"
VOICE_ENABLED_MESSAGE = "Voice navigation enabled"

StateCallback = Callable[[NavigationState], object]


class RouteInvalid(ValueError):
    """start() was given a route the tracker cannot follow."""


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def validate_route(route: Route, tolerance_m: float) -> None:
    """Check that every leg is a contiguous chain of steps.

    Legs without steps are accepted; heading then falls back to the device.
    """
    if not route.legs:
        raise RouteInvalid("Route has no legs")

    for li, leg in enumerate(route.legs):
        steps = leg.steps
        if not steps:
            continue
        gap = distance_between(leg.start_location, steps[0].start_location)
        if gap > tolerance_m:
            raise RouteInvalid(f"Leg {li}: first step starts {gap:.0f}m from the leg start")
        gap = distance_between(steps[-1].end_location, leg.end_location)
        if gap > tolerance_m:
            raise RouteInvalid(f"Leg {li}: last step ends {gap:.0f}m from the leg end")
        for si in range(len(steps) - 1):
            gap = distance_between(steps[si].end_location, steps[si + 1].start_location)
            if gap > tolerance_m:
                raise RouteInvalid(f"Leg {li}: {gap:.0f}m gap between steps {si} and {si + 1}")


class NavigationTracker:
    """Consumes position fixes for one route and emits NavigationState snapshots."""

    def __init__(
        self,
        config: Settings | None = None,
        voice: VoiceAnnouncer | None = None,
        scheduler=None,
        clock: Callable[[], datetime.datetime] | None = None,
        voice_enabled: bool | None = None,
    ) -> None:
        self.config = config or default_settings
        self.voice = voice
        self.voice_enabled = self.config.voice_enabled if voice_enabled is None else voice_enabled
        self.scheduler = scheduler
        self._clock = clock or _utcnow

        cfg = self.config
        self.heading_estimator = HeadingEstimator(cfg.anchor_radius_m)
        self.progress_calculator = ProgressCalculator(
            start_noise_radius_m=cfg.start_noise_radius_m,
            departure_buffer_percent=cfg.departure_buffer_percent,
            speeds_kmh={mode: cfg.speed_kmh(mode) for mode in TravelMode},
        )
        self.instruction_selector = InstructionSelector(
            upcoming_radius_m=cfg.upcoming_instruction_radius_m,
            voice_trigger_radius_m=cfg.voice_trigger_radius_m,
        )
        self.arrival_detector = ArrivalDetector(cfg.arrival_radius_m)

        self._callbacks: list[StateCallback] = []
        self._state = NavigationState()
        self._route: Route | None = None
        self._travel_mode = TravelMode.DRIVING
        self._leg_index = 0
        self._start_time: datetime.datetime | None = None
        self._start_location: LatLng | None = None
        self._subscription: Subscription | None = None
        self._auto_stop_job = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> NavigationState:
        return self._state

    @property
    def phase(self) -> NavigationPhase:
        return self._state.phase

    @property
    def route(self) -> Route | None:
        return self._route

    @property
    def start_time(self) -> datetime.datetime | None:
        return self._start_time

    @property
    def start_location(self) -> LatLng | None:
        return self._start_location

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None and self._subscription.active

    # ------------------------------------------------------------------
    # Consumers
    # ------------------------------------------------------------------

    def subscribe(self, callback: StateCallback) -> Callable[[], None]:
        """Register a state consumer; returns a function that removes it."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def set_voice_enabled(self, enabled: bool) -> None:
        was_enabled = self.voice_enabled
        self.voice_enabled = enabled
        if enabled and not was_enabled:
            self._announce(VOICE_ENABLED_MESSAGE)
        elif not enabled and self.voice is not None:
            self.voice.cancel()

    # ------------------------------------------------------------------
    # Session control
    # ------------------------------------------------------------------

    def start(self, route: Route, travel_mode: TravelMode = TravelMode.DRIVING) -> NavigationState:
        """Begin a new session on route. Raises RouteInvalid without touching state."""
        validate_route(route, self.config.step_join_tolerance_m)
        self._release()

        now = self._clock()
        mode = TravelMode(travel_mode)
        self._route = route
        self._travel_mode = mode
        self._leg_index = 0
        self._start_time = now
        self._start_location = route.origin
        self.instruction_selector.reset()

        first_leg = route.legs[0]
        remaining_m = route.total_distance_meters
        remaining_s = self.progress_calculator.remaining_time_seconds(remaining_m, mode)
        eta = now + datetime.timedelta(seconds=remaining_s)

        heading = 0.0
        instruction = None
        if first_leg.steps:
            first = first_leg.steps[0]
            heading = bearing_between(first.start_location, first.end_location)
            instruction = Instruction(
                text=clean_instruction(first.instruction_text),
                distance_meters=0.0,
                maneuver_kind=first.maneuver_kind,
            )

        state = NavigationState(
            phase=NavigationPhase.ACTIVE,
            travel_mode=mode,
            current_heading_degrees=heading,
            remaining_distance_meters=remaining_m,
            remaining_time_seconds=remaining_s,
            progress_percent=100.0 if remaining_m == 0 else 0.0,
            current_instruction=instruction,
            eta_timestamp=eta,
            remaining_distance_text=format_distance(remaining_m),
            remaining_time_text=format_duration(remaining_s),
            eta_text=format_eta(eta.astimezone()),
            updated_at=now,
        )
        logger.info(
            "Navigation started: %d leg(s), %.0fm, %s",
            len(route.legs), remaining_m, mode.value,
        )
        self._announce(START_MESSAGE)
        return self._emit(state)

    def attach_source(self, source: PositionSource) -> Subscription:
        """Route fixes and errors from source into this tracker."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
        self._subscription = source.subscribe(self.on_position_update, self.on_position_error)
        return self._subscription

    async def navigate(
        self,
        route: Route,
        travel_mode: TravelMode,
        source: PositionSource,
    ) -> NavigationState:
        """Acquire an initial fix, start the session and subscribe to source."""
        validate_route(route, self.config.step_join_tolerance_m)

        initial: PositionFix | None = None
        try:
            initial = await acquire_initial_fix(
                source,
                timeout=self.config.initial_fix_timeout_seconds,
                low_accuracy_timeout=self.config.low_accuracy_timeout_seconds,
            )
        except PositionSourceError as e:
            if not e.error.is_transient:
                return self._fail(e.error)
            logger.warning("Initial position failed (%s), continuing with subscription", e)

        self.start(route, travel_mode)
        if initial is not None:
            self.on_position_update(initial)
        if self._state.phase == NavigationPhase.ACTIVE:
            self.attach_source(source)
        return self._state

    def stop(self) -> NavigationState:
        """End the session. Safe to call in any phase, any number of times."""
        self._release()
        if self._state.phase == NavigationPhase.STOPPED:
            return self._state

        logger.info("Navigation stopped (was %s)", self._state.phase.value)
        return self._emit(NavigationState(
            phase=NavigationPhase.STOPPED,
            travel_mode=self._state.travel_mode,
            updated_at=self._clock(),
        ))

    # ------------------------------------------------------------------
    # Position stream
    # ------------------------------------------------------------------

    def on_position_update(self, fix: PositionFix) -> NavigationState:
        if self._state.phase != NavigationPhase.ACTIVE or self._route is None:
            logger.debug("Fix ignored in phase %s", self._state.phase.value)
            return self._state

        route = self._route
        leg = route.legs[self._leg_index]
        last_leg = self._leg_index == len(route.legs) - 1
        now = self._clock()

        match = nearest_step(leg.steps, fix.lat, fix.lng)
        heading = self.heading_estimator.estimate(leg, fix, match)
        progress = self.progress_calculator.calculate(
            route, self._leg_index, fix, self._travel_mode, now,
        )
        selection = self.instruction_selector.select(leg, fix, match, self._leg_index)
        at_leg_end = self.arrival_detector.is_arrived(progress.distance_to_destination_m)
        arrived = last_leg and at_leg_end

        instruction = selection.instruction if selection else None
        phase = NavigationPhase.ACTIVE
        if arrived:
            phase = NavigationPhase.ARRIVED
            instruction = Instruction(text=ARRIVAL_MESSAGE, distance_meters=0.0, maneuver_kind="arrive")

        state = NavigationState(
            phase=phase,
            travel_mode=self._travel_mode,
            current_position=LatLng(lat=fix.lat, lng=fix.lng),
            current_heading_degrees=heading,
            remaining_distance_meters=progress.remaining_distance_m,
            remaining_time_seconds=progress.remaining_time_seconds,
            progress_percent=progress.progress_percent,
            current_instruction=instruction,
            eta_timestamp=progress.eta,
            leg_index=self._leg_index,
            distance_from_route_meters=self._distance_from_route(leg, fix, match),
            remaining_distance_text=format_distance(progress.remaining_distance_m),
            remaining_time_text=format_duration(progress.remaining_time_seconds),
            eta_text=format_eta(progress.eta.astimezone()),
            updated_at=now,
        )

        if arrived:
            logger.info(
                "Arrived %.1fm from destination after %s",
                progress.distance_to_destination_m, now - (self._start_time or now),
            )
            self._announce(ARRIVAL_MESSAGE)
            self._schedule_auto_stop()
        elif selection is not None and selection.voice_eligible:
            if self._announce(announcement_text(selection.instruction)):
                self.instruction_selector.mark_announced(self._leg_index, selection.target_index)
        if at_leg_end and not last_leg:
            self._leg_index += 1
            logger.info("Waypoint reached, continuing on leg %d", self._leg_index)

        return self._emit(state)

    def on_position_error(self, error: PositionError) -> NavigationState:
        if self._state.phase != NavigationPhase.ACTIVE:
            return self._state
        if error.is_transient:
            logger.warning(
                "Position %s (%s), continuing with last known state",
                error.kind.value, error.message,
            )
            return self._state
        return self._fail(error)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _fail(self, error: PositionError) -> NavigationState:
        logger.error("Navigation stopped: position %s (%s)", error.kind.value, error.message)
        self._release()
        return self._emit(NavigationState(
            phase=NavigationPhase.STOPPED,
            travel_mode=self._state.travel_mode,
            error=error,
            updated_at=self._clock(),
        ))

    def _emit(self, state: NavigationState) -> NavigationState:
        self._state = state
        for callback in list(self._callbacks):
            try:
                callback(state)
            except Exception:
                logger.exception("State consumer %r failed", callback)
        return state

    def _announce(self, text: str) -> bool:
        """Speak text, interrupting anything in flight. Returns whether it was spoken."""
        if not self.voice_enabled or self.voice is None:
            return False
        try:
            self.voice.cancel()
            self.voice.speak(text)
        except Exception:
            logger.exception("Voice announcement failed")
            return False
        return True

    def _schedule_auto_stop(self) -> None:
        if self.scheduler is None:
            logger.debug("No scheduler attached, arrival auto-stop skipped")
            return
        self._auto_stop_job = schedule_once(
            self.scheduler,
            self._auto_stop,
            self.config.arrival_grace_seconds,
            job_id=f"nav-auto-stop-{id(self)}",
            name="Stop navigation after arrival",
        )

    async def _auto_stop(self) -> None:
        self._auto_stop_job = None
        if self._state.phase == NavigationPhase.ARRIVED:
            logger.info("Arrival grace period over")
            self.stop()

    def _release(self) -> None:
        """Drop the subscription, the pending auto-stop and any speech in flight."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        cancel_job(self._auto_stop_job)
        self._auto_stop_job = None
        if self.voice is not None:
            try:
                self.voice.cancel()
            except Exception:
                logger.exception("Voice cancel failed")

    @staticmethod
    def _distance_from_route(leg: Leg, fix: PositionFix, match: StepMatch | None) -> float | None:
        """Distance to the nearest step segment or the one leading into it."""
        if match is None:
            return None
        best = None
        for i in (match.index - 1, match.index):
            if i < 0:
                continue
            step = leg.steps[i]
            _, d = nearest_point_on_segment(fix.lat, fix.lng, step.start_location, step.end_location)
            best = d if best is None else min(best, d)
        return best
