"""Navigation REST API endpoints."""

import datetime
import logging

from fastapi import APIRouter, HTTPException

from navtracker.core.directions_client import DirectionsError
from navtracker.core.tracker import RouteInvalid
from navtracker.schemas.navigation import (
    NavigationState,
    PositionError,
    PositionFix,
    StartRequest,
    VoiceToggle,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/navigation", tags=["navigation"])

# Will be set by main.py
tracker = None
source = None
directions = None


def _is_recent(fix: PositionFix, now: datetime.datetime, max_age_seconds: float) -> bool:
    """Whether fix is young enough to stand in for the initial position."""
    ts = fix.timestamp
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=datetime.timezone.utc)
    return (now - ts).total_seconds() <= max_age_seconds


def _require_tracker():
    if tracker is None or source is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return tracker


@router.post("/start", response_model=NavigationState)
async def start_navigation(req: StartRequest):
    """Start guidance on a supplied route, or on one fetched for origin/destination."""
    nav = _require_tracker()

    route = req.route
    if route is None:
        if not (req.origin and req.destination):
            raise HTTPException(status_code=422, detail="Provide a route or origin and destination")
        if directions is None:
            raise HTTPException(status_code=503, detail="Route provider not configured")
        try:
            route = await directions.fetch_route(req.origin, req.destination, req.travel_mode)
        except DirectionsError as e:
            logger.warning("Route lookup failed: %s", e)
            raise HTTPException(status_code=502, detail=str(e)) from e

    try:
        nav.start(route, req.travel_mode)
    except RouteInvalid as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    nav.attach_source(source)
    last_fix = source.last_fix
    if last_fix is not None:
        if _is_recent(last_fix, nav.start_time, nav.config.initial_fix_timeout_seconds):
            nav.on_position_update(last_fix)
        else:
            logger.info("Ignoring stale fix from %s", last_fix.timestamp.isoformat())
    return nav.state


@router.post("/position", response_model=NavigationState)
async def push_position(fix: PositionFix):
    nav = _require_tracker()
    source.push_fix(fix)
    return nav.state


@router.post("/position-error", response_model=NavigationState)
async def push_position_error(error: PositionError):
    nav = _require_tracker()
    source.push_error(error)
    return nav.state


@router.post("/stop", response_model=NavigationState)
async def stop_navigation():
    return _require_tracker().stop()


@router.get("/state", response_model=NavigationState)
async def get_state():
    return _require_tracker().state


@router.put("/voice", response_model=VoiceToggle)
async def set_voice(toggle: VoiceToggle):
    nav = _require_tracker()
    nav.set_voice_enabled(toggle.enabled)
    return VoiceToggle(enabled=nav.voice_enabled)
