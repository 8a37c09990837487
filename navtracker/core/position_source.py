"""Position sources: push subscriptions of fixes and errors, plus one-shot reads."""

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

from navtracker.schemas.navigation import PositionError, PositionErrorKind, PositionFix

logger = logging.getLogger(__name__)

FixCallback = Callable[[PositionFix], object]
ErrorCallback = Callable[[PositionError], object]


class PositionSourceError(Exception):
    """A one-shot position read failed."""

    def __init__(self, error: PositionError) -> None:
        super().__init__(f"{error.kind.value}: {error.message}")
        self.error = error


class Subscription:
    """Handle returned by subscribe(); unsubscribe() is idempotent."""

    def __init__(self, on_cancel: Callable[[], None] | None = None) -> None:
        self._on_cancel = on_cancel
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        if self._on_cancel:
            self._on_cancel()


class PositionSource(Protocol):
    def subscribe(self, on_fix: FixCallback, on_error: ErrorCallback) -> Subscription: ...

    async def current_position(
        self, high_accuracy: bool = True, timeout: float | None = None,
    ) -> PositionFix: ...


class PushPositionSource:
    """In-process hub: producers push fixes and errors, subscribers receive them.

    Fed by the HTTP position endpoint; current_position() waits for the next
    pushed fix.
    """

    def __init__(self) -> None:
        self._subscribers: dict[Subscription, tuple[FixCallback, ErrorCallback]] = {}
        self._waiters: set[asyncio.Future] = set()
        self.last_fix: PositionFix | None = None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, on_fix: FixCallback, on_error: ErrorCallback) -> Subscription:
        sub = Subscription(lambda: self._subscribers.pop(sub, None))
        self._subscribers[sub] = (on_fix, on_error)
        return sub

    def push_fix(self, fix: PositionFix) -> None:
        self.last_fix = fix
        for waiter in list(self._waiters):
            if not waiter.done():
                waiter.set_result(fix)
        for sub, (on_fix, _) in list(self._subscribers.items()):
            if sub.active:
                on_fix(fix)

    def push_error(self, error: PositionError) -> None:
        for waiter in list(self._waiters):
            if not waiter.done():
                waiter.set_exception(PositionSourceError(error))
        for sub, (_, on_error) in list(self._subscribers.items()):
            if sub.active:
                on_error(error)

    async def current_position(
        self, high_accuracy: bool = True, timeout: float | None = None,
    ) -> PositionFix:
        waiter: asyncio.Future = asyncio.get_running_loop().create_future()
        self._waiters.add(waiter)
        try:
            return await asyncio.wait_for(waiter, timeout)
        except asyncio.TimeoutError:
            raise PositionSourceError(PositionError(
                kind=PositionErrorKind.TIMEOUT,
                message=f"No position within {timeout}s",
            )) from None
        finally:
            self._waiters.discard(waiter)


async def acquire_initial_fix(
    source: PositionSource,
    timeout: float,
    low_accuracy_timeout: float,
) -> PositionFix:
    """High-accuracy read, retried once at low accuracy on transient failures.

    Raises PositionSourceError when both attempts fail or permission is denied.
    """
    try:
        return await source.current_position(high_accuracy=True, timeout=timeout)
    except PositionSourceError as e:
        if not e.error.is_transient:
            raise
        logger.warning("Initial fix failed (%s), retrying at low accuracy", e.error.kind.value)
    return await source.current_position(high_accuracy=False, timeout=low_accuracy_timeout)
