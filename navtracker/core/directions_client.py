"""Async client for the Google Directions web service."""

import asyncio
import logging

import httpx

from navtracker.config import settings
from navtracker.schemas.route import LatLng, Leg, Route, Step, TravelMode

logger = logging.getLogger(__name__)

DIRECTIONS_PATH = "/maps/api/directions/json"

# Retry configuration
MAX_RETRIES = 3
RETRY_BACKOFF = [2, 4, 8]  # seconds between retries


class DirectionsError(Exception):
    """The provider returned no usable route."""


def _latlng(raw: dict) -> LatLng:
    return LatLng(lat=float(raw["lat"]), lng=float(raw["lng"]))


def _value(raw: dict | None) -> float:
    """Numeric part of a {'value': ..., 'text': ...} pair."""
    if not raw:
        return 0.0
    return float(raw.get("value", 0) or 0)


def route_from_directions(payload: dict, route_index: int = 0) -> Route:
    """Convert a Directions JSON response into a Route.

    Raises DirectionsError when the status is not OK or the route is malformed.
    """
    status = payload.get("status", "OK")
    if status != "OK":
        detail = payload.get("error_message") or ""
        raise DirectionsError(f"Directions status {status} {detail}".strip())

    routes = payload.get("routes") or []
    if len(routes) <= route_index:
        raise DirectionsError("Directions response contains no routes")
    raw_route = routes[route_index]

    try:
        legs = []
        for raw_leg in raw_route.get("legs", []):
            steps = tuple(
                Step(
                    start_location=_latlng(s["start_location"]),
                    end_location=_latlng(s["end_location"]),
                    instruction_text=s.get("html_instructions", ""),
                    maneuver_kind=s.get("maneuver") or "straight",
                    distance_meters=_value(s.get("distance")),
                    duration_seconds=_value(s.get("duration")),
                )
                for s in raw_leg.get("steps", [])
            )
            legs.append(Leg(
                start_location=_latlng(raw_leg["start_location"]),
                end_location=_latlng(raw_leg["end_location"]),
                distance_meters=_value(raw_leg.get("distance")),
                duration_seconds=_value(raw_leg.get("duration")),
                steps=steps,
            ))
    except (KeyError, TypeError, ValueError) as e:
        raise DirectionsError(f"Malformed directions response: {e}") from e

    if not legs:
        raise DirectionsError("Directions route has no legs")
    return Route(legs=tuple(legs), summary=raw_route.get("summary", ""))


class DirectionsClient:
    """Fetches routes between two places."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_backoff: list[float] | None = None,
    ) -> None:
        self.api_key = settings.directions_api_key if api_key is None else api_key
        self.retry_backoff = RETRY_BACKOFF if retry_backoff is None else retry_backoff
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.directions_base_url,
            timeout=timeout or settings.directions_timeout_seconds,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _get_with_retry(self, params: dict) -> httpx.Response:
        """GET with retry and exponential backoff on timeouts and 5xx."""
        retries = min(MAX_RETRIES, len(self.retry_backoff))
        for attempt in range(retries + 1):
            try:
                resp = await self._client.get(DIRECTIONS_PATH, params=params)
                resp.raise_for_status()
                return resp
            except (httpx.ReadTimeout, httpx.ConnectTimeout, httpx.ConnectError) as e:
                if attempt >= retries:
                    raise DirectionsError(f"Directions unreachable after {retries + 1} attempts: {e}") from e
                wait = self.retry_backoff[attempt]
                logger.warning(
                    "Directions attempt %d/%d failed (%s), retrying in %ss",
                    attempt + 1, retries + 1, type(e).__name__, wait,
                )
            except httpx.HTTPStatusError as e:
                code = e.response.status_code
                if code < 500 or attempt >= retries:
                    raise DirectionsError(f"Directions request failed with HTTP {code}") from e
                wait = self.retry_backoff[attempt]
                logger.warning(
                    "Directions attempt %d/%d got HTTP %d, retrying in %ss",
                    attempt + 1, retries + 1, code, wait,
                )
            await asyncio.sleep(wait)
        raise DirectionsError("Directions request failed")

    async def fetch_route(
        self,
        origin: str,
        destination: str,
        travel_mode: TravelMode = TravelMode.DRIVING,
    ) -> Route:
        params = {
            "origin": origin,
            "destination": destination,
            "mode": TravelMode(travel_mode).value,
        }
        if self.api_key:
            params["key"] = self.api_key

        resp = await self._get_with_retry(params)
        try:
            payload = resp.json()
        except ValueError as e:
            raise DirectionsError("Directions response is not JSON") from e

        route = route_from_directions(payload)
        logger.info(
            "Fetched %s route %r -> %r: %d leg(s), %.0fm",
            TravelMode(travel_mode).value, origin, destination,
            len(route.legs), route.total_distance_meters,
        )
        return route
