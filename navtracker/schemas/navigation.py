import datetime
from enum import Enum

from pydantic import BaseModel, Field

from navtracker.schemas.route import LatLng, Route, TravelMode


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class PositionFix(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    heading: float | None = None  # device-reported, degrees
    timestamp: datetime.datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}


class PositionErrorKind(str, Enum):
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    PERMISSION_DENIED = "permission_denied"


class PositionError(BaseModel):
    kind: PositionErrorKind
    message: str = ""

    model_config = {"frozen": True}

    @property
    def is_transient(self) -> bool:
        return self.kind in (PositionErrorKind.UNAVAILABLE, PositionErrorKind.TIMEOUT)


class Instruction(BaseModel):
    text: str
    distance_meters: float = 0.0
    maneuver_kind: str = "straight"

    model_config = {"frozen": True}


class NavigationPhase(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    ARRIVED = "arrived"
    STOPPED = "stopped"


class NavigationState(BaseModel):
    """Snapshot emitted to consumers. Built fresh on every update, never patched."""

    phase: NavigationPhase = NavigationPhase.IDLE
    travel_mode: TravelMode | None = None
    current_position: LatLng | None = None
    current_heading_degrees: float = 0.0
    remaining_distance_meters: float = 0.0
    remaining_time_seconds: float = 0.0
    progress_percent: float = Field(default=0.0, ge=0, le=100)
    current_instruction: Instruction | None = None
    eta_timestamp: datetime.datetime | None = None
    leg_index: int = 0
    distance_from_route_meters: float | None = None

    # Display strings, as shown on the navigation panel
    remaining_distance_text: str = ""
    remaining_time_text: str = ""
    eta_text: str = ""

    error: PositionError | None = None
    updated_at: datetime.datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}


class StartRequest(BaseModel):
    route: Route | None = None
    origin: str | None = None
    destination: str | None = None
    travel_mode: TravelMode = TravelMode.DRIVING


class VoiceToggle(BaseModel):
    enabled: bool

