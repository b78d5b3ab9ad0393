"""
Utterance accumulation and silence-based auto-commit.
"""

import asyncio
import time
from typing import Callable, Optional

from .logging_config import get_logger

logger = get_logger("utterance")


class UtteranceAccumulator:
    """
    Holds the in-progress utterance.

    The recognizer always reports its best hypothesis for the whole
    utterance, so `update_text` replaces rather than appends.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.text = ""
        self.last_voice_at = clock()

    def update_text(self, text: str) -> None:
        self.text = text

    def mark_voice(self, now: Optional[float] = None) -> None:
        self.last_voice_at = self._clock() if now is None else now

    def has_speech(self, min_chars: int) -> bool:
        return len(self.text.strip()) >= min_chars

    def silence_duration(self, now: Optional[float] = None) -> float:
        return (self._clock() if now is None else now) - self.last_voice_at

    def take(self) -> str:
        """Return the trimmed text and reset the accumulator."""
        text = self.text.strip()
        self.reset()
        return text

    def reset(self) -> None:
        self.text = ""
        self.last_voice_at = self._clock()


class SilenceCommitTimer:
    """
    Periodic check that commits the utterance after enough trailing silence.

    Each tick: defer while assistant playback is active; otherwise commit
    when the text has at least `min_chars` non-blank characters and more
    than `silence_hold` seconds passed since the last voiced frame.

    Args:
        accumulator: The utterance being built
        on_commit: Called with the committed text
        is_playback_active: Returns True while the assistant is speaking
        silence_hold: Seconds of silence required before commit
        min_chars: Minimum stripped text length (rejects noise blips)
        tick_interval: Seconds between checks
    """

    def __init__(self,
                 accumulator: UtteranceAccumulator,
                 on_commit: Callable[[str], None],
                 is_playback_active: Callable[[], bool] = lambda: False,
                 silence_hold: float = 0.9,
                 min_chars: int = 2,
                 tick_interval: float = 0.1,
                 clock: Callable[[], float] = time.monotonic):
        self.accumulator = accumulator
        self.on_commit = on_commit
        self.is_playback_active = is_playback_active
        self.silence_hold = silence_hold
        self.min_chars = min_chars
        self.tick_interval = tick_interval
        self._clock = clock
        self._task: Optional[asyncio.Task] = None

    def should_commit(self, now: Optional[float] = None) -> bool:
        if self.is_playback_active():
            return False
        if not self.accumulator.has_speech(self.min_chars):
            return False
        return self.accumulator.silence_duration(now) > self.silence_hold

    def check(self, now: Optional[float] = None) -> bool:
        """
        Run one evaluation.

        Returns:
            True if an utterance was committed
        """
        now = self._clock() if now is None else now
        if not self.should_commit(now):
            return False
        text = self.accumulator.take()
        logger.debug(f"Silence hold met, committing {len(text)} chars")
        self.on_commit(text)
        return True

    @property
    def is_armed(self) -> bool:
        return self._task is not None and not self._task.done()

    def arm(self) -> None:
        """Start ticking on the running event loop (re-arming replaces the old task)."""
        self.disarm()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def disarm(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            try:
                self.check()
            except Exception as e:
                logger.error(f"Silence check failed: {e}")
