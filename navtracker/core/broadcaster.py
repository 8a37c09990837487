"""Fan-out of navigation state to WebSocket subscribers, optionally via Redis."""

import asyncio
import logging

import orjson
import redis.asyncio as aioredis

from navtracker.schemas.navigation import NavigationState

logger = logging.getLogger(__name__)

CHANNEL = "navigation:state"
STATE_KEY = "navigation:latest"


def encode_state(state: NavigationState, kind: str = "update") -> bytes:
    return orjson.dumps({"type": kind, "state": state.model_dump(mode="json")})


class Broadcaster:
    """Tracker consumer: keeps the latest snapshot and pushes each state to subscribers."""

    def __init__(self, redis_url: str = "") -> None:
        self.redis_url = redis_url
        self._redis: aioredis.Redis | None = None
        self._subscribers: set[asyncio.Queue] = set()
        self._latest: bytes | None = None
        self._pending: set[asyncio.Task] = set()

    async def connect(self) -> None:
        if not self.redis_url:
            logger.info("Redis disabled, broadcasting in-process only")
            return
        self._redis = aioredis.from_url(self.redis_url, decode_responses=False)

    async def close(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def on_state_change(self, state: NavigationState) -> None:
        """Tracker callback. Runs synchronously inside the tracker update."""
        payload = encode_state(state)
        self._latest = payload

        if self._redis:
            try:
                task = asyncio.get_running_loop().create_task(self.publish(payload))
            except RuntimeError:
                logger.warning("No running loop, state not published to Redis")
            else:
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

        # Slow consumers are dropped rather than blocking the tracker
        dead = set()
        for q in self._subscribers:
            try:
                q.put_nowait(payload)
            except asyncio.QueueFull:
                dead.add(q)
        if dead:
            logger.warning("Dropping %d slow subscriber(s)", len(dead))
        self._subscribers -= dead

    async def publish(self, payload: bytes) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(STATE_KEY, payload)
            await self._redis.publish(CHANNEL, payload)
        except Exception:
            logger.exception("Failed to publish to Redis")

    async def get_current_state(self) -> bytes | None:
        """Latest snapshot, from memory first and Redis as fallback."""
        if self._latest is not None:
            return self._latest
        if self._redis:
            try:
                return await self._redis.get(STATE_KEY)
            except Exception:
                logger.exception("Failed to get state from Redis")
        return None

    def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=10)
        self._subscribers.add(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        self._subscribers.discard(q)
