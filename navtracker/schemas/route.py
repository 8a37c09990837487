from enum import Enum

from pydantic import BaseModel, Field


class TravelMode(str, Enum):
    DRIVING = "driving"
    WALKING = "walking"
    BICYCLING = "bicycling"


class LatLng(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)

    model_config = {"frozen": True}


class Step(BaseModel):
    start_location: LatLng
    end_location: LatLng
    instruction_text: str = ""
    maneuver_kind: str = "straight"
    distance_meters: float = Field(default=0.0, ge=0)
    duration_seconds: float = Field(default=0.0, ge=0)

    model_config = {"frozen": True}


class Leg(BaseModel):
    start_location: LatLng
    end_location: LatLng
    distance_meters: float = Field(ge=0)
    duration_seconds: float = Field(default=0.0, ge=0)
    steps: tuple[Step, ...] = ()

    model_config = {"frozen": True}


class Route(BaseModel):
    """Precomputed route handed over by the route provider; read-only."""

    legs: tuple[Leg, ...] = ()
    summary: str = ""

    model_config = {"frozen": True}

    @property
    def origin(self) -> LatLng | None:
        return self.legs[0].start_location if self.legs else None

    @property
    def destination(self) -> LatLng | None:
        return self.legs[-1].end_location if self.legs else None

    @property
    def total_distance_meters(self) -> float:
        return sum(leg.distance_meters for leg in self.legs)
