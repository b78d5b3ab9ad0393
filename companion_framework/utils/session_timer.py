"""
Session duration limiter.

The clock state is a pure function of (started_at, now, max_duration,
warn_at_seconds); the limiter only adds a periodic task that publishes it.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from .logging_config import get_logger

logger = get_logger("session_timer")


@dataclass(frozen=True)
class SessionClockState:
    elapsed: float
    remaining: float
    has_warned: bool
    is_over_limit: bool


def compute_clock_state(started_at: float, now: float,
                        max_duration: float, warn_at_seconds: float) -> SessionClockState:
    """
    Derive the clock state for `now`.

    `has_warned` is true once remaining <= warn_at_seconds and
    `is_over_limit` once elapsed >= max_duration (remaining reaches zero).
    """
    max_duration = max(0.0, max_duration)
    warn_at_seconds = max(0.0, warn_at_seconds)
    elapsed = max(0.0, now - started_at)
    remaining = max(0.0, max_duration - elapsed)
    return SessionClockState(
        elapsed=elapsed,
        remaining=remaining,
        has_warned=remaining <= warn_at_seconds,
        is_over_limit=remaining <= 0.0,
    )


ClockSubscriber = Callable[[SessionClockState], None]


class SessionTimeLimiter:
    """
    Publishes the session clock state on every tick (default 60 Hz).

    Subscribers run on the event loop, in the same task as the tick, so the
    coordinator receives warn/hard-stop edges serialized with its other
    events.
    """

    def __init__(self,
                 started_at: float,
                 max_duration: float = 20 * 60,
                 warn_at_seconds: float = 15 * 60,
                 tick_hz: float = 60.0,
                 clock: Callable[[], float] = time.time):
        self.started_at = started_at
        self.max_duration = max(0.0, max_duration)
        self.warn_at_seconds = max(0.0, warn_at_seconds)
        self.tick_interval = 1.0 / tick_hz if tick_hz > 0 else 1.0
        self._clock = clock
        self._subscribers: List[ClockSubscriber] = []
        self._task: Optional[asyncio.Task] = None
        self._last_state: Optional[SessionClockState] = None

    def subscribe(self, callback: ClockSubscriber) -> None:
        self._subscribers.append(callback)

    @property
    def state(self) -> SessionClockState:
        return self._last_state or self.compute()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def compute(self, now: Optional[float] = None) -> SessionClockState:
        return compute_clock_state(
            self.started_at,
            self._clock() if now is None else now,
            self.max_duration,
            self.warn_at_seconds,
        )

    def tick(self, now: Optional[float] = None) -> SessionClockState:
        """Recompute and publish the state once."""
        state = self.compute(now)
        self._last_state = state
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception as e:
                logger.error(f"Clock subscriber failed: {e}")
        return state

    def start(self) -> None:
        if self.is_running:
            return
        self.tick()
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(
            f"⏱️  Session limit armed: max={self.max_duration:.0f}s, warn at {self.warn_at_seconds:.0f}s remaining"
        )

    def stop(self) -> None:
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            state = self.tick()
            if state.is_over_limit:
                # Nothing more to publish once the hard stop has been delivered
                self._task = None
                return
