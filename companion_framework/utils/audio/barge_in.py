"""
Barge-in detection for voice interruption during assistant playback.

The monitor is installed when a reply starts playing and torn down when
playback ends or a barge-in fires. It looks at the same captured frames as
normal VAD but with a higher gate, because echo from the speaker raises the
noise floor while the assistant talks.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Callable

from ...models.data_models import AudioFrame
from ..logging_config import get_logger
from .vad import frame_rms

logger = get_logger("barge_in")


class BargeInMode(Enum):
    """Barge-in detection modes."""
    ENERGY = "energy"      # Sustained energy above the gate
    DISABLED = "disabled"  # Never interrupt playback


@dataclass
class BargeInConfig:
    """Configuration for barge-in detection."""
    mode: BargeInMode = BargeInMode.ENERGY
    vad_gate: float = 0.013           # normal VAD gate the barge gate is derived from
    min_gate: float = 0.015           # floor for the barge gate
    gate_multiplier: float = 1.2
    hold_seconds: float = 0.12        # continuous voiced audio required to trigger
    cooldown_after_start: float = 0.0  # ignore the first N seconds of playback audio

    @property
    def gate(self) -> float:
        return max(self.min_gate, self.vad_gate * self.gate_multiplier)


class BargeInMonitor:
    """
    Detects sustained user speech while the assistant is speaking.

    Hold time is measured in captured audio, not wall-clock time: the voiced
    duration of consecutive above-gate frames is accumulated and any frame at
    or below the gate resets it. A confirmed barge-in fires the callback once
    and tears the monitor down; it is reinstalled on the next playback.
    """

    def __init__(self, config: Optional[BargeInConfig] = None):
        self.config = config or BargeInConfig()

        self._installed = False
        self._fired = False
        self._voiced_seconds = 0.0
        self._audio_seen = 0.0
        self._on_barge_in: Optional[Callable[[], None]] = None

    @property
    def gate(self) -> float:
        return self.config.gate

    @property
    def is_installed(self) -> bool:
        return self._installed

    @property
    def detected(self) -> bool:
        return self._fired

    def install(self, on_barge_in: Optional[Callable[[], None]] = None) -> None:
        """Arm the monitor for a new playback."""
        if self.config.mode == BargeInMode.DISABLED:
            return
        self._on_barge_in = on_barge_in
        self._installed = True
        self._fired = False
        self._voiced_seconds = 0.0
        self._audio_seen = 0.0
        logger.debug(f"👂 Barge-in monitor armed (gate={self.gate:.4f}, hold={self.config.hold_seconds}s)")

    def teardown(self) -> None:
        """Disarm. Safe to call repeatedly."""
        if not self._installed:
            return
        self._installed = False
        self._voiced_seconds = 0.0
        self._on_barge_in = None

    def process(self, frame: AudioFrame) -> bool:
        """
        Feed one captured frame.

        Returns:
            True exactly once per sustained burst, on the frame that
            confirms the barge-in
        """
        if not self._installed or self._fired:
            return False
        if frame.samples.size == 0:
            return False

        duration = frame.duration
        self._audio_seen += duration
        if self._audio_seen <= self.config.cooldown_after_start:
            return False

        rms = frame_rms(frame.samples)
        if rms > self.gate:
            if self._voiced_seconds == 0.0:
                logger.debug(f"[barge] rms={rms:.4f} > gate={self.gate:.4f}, start hold")
            self._voiced_seconds += duration
            if self._voiced_seconds >= self.config.hold_seconds:
                return self._confirm(rms)
        elif self._voiced_seconds > 0.0:
            logger.debug("[barge] rms fell below gate, reset")
            self._voiced_seconds = 0.0
        return False

    def _confirm(self, rms: float) -> bool:
        self._fired = True
        callback = self._on_barge_in
        logger.info(f"🎤 Barge-in detected (rms={rms:.4f}, held {self._voiced_seconds:.3f}s)")
        self.teardown()
        if callback:
            try:
                callback()
            except Exception as e:
                logger.error(f"Barge-in callback error: {e}")
        return True
