"""
Energy-based voice activity detection.

Frames are classified by RMS energy against a fixed gate. The detector also
keeps an exponentially smoothed, normalised level (0..1) for UI amplitude.
"""

from dataclasses import dataclass
from typing import Union

import numpy as np

from ...models.data_models import AudioFrame

INT16_SCALE = 32768.0

# Reused for integer frames; grown to the largest frame seen. Loop thread only.
_scratch = np.empty(0, dtype=np.float64)


def _scratch_view(flat: np.ndarray) -> np.ndarray:
    global _scratch
    if _scratch.size < flat.size:
        _scratch = np.empty(flat.size, dtype=np.float64)
    view = _scratch[:flat.size]
    np.copyto(view, flat, casting='unsafe')
    return view


def frame_rms(samples: np.ndarray) -> float:
    """
    Root-mean-square energy of a mono buffer, on a 0..1 scale.

    float buffers are used as-is; integer (int16) buffers are normalised.
    Returns 0.0 for empty buffers.
    """
    n = samples.size
    if n == 0:
        return 0.0
    if samples.dtype.kind == 'f':
        flat = samples.reshape(-1)
        return float(np.sqrt(np.dot(flat, flat) / n))
    view = _scratch_view(samples.reshape(-1))
    return float(np.sqrt(np.dot(view, view) / n) / INT16_SCALE)


@dataclass
class EnergyLevel:
    """Exponentially smoothed scalar in [0, 1]: `level += alpha * (raw - level)`."""
    alpha: float = 0.25
    value: float = 0.0

    def update(self, raw: float) -> float:
        raw = min(1.0, max(0.0, raw))
        self.value = self.value + self.alpha * (raw - self.value)
        return self.value

    def reset(self) -> None:
        self.value = 0.0


class VoiceActivityDetector:
    """
    Classifies frames as voiced/silent and tracks the smoothed mic level.

    Args:
        gate: RMS at or below which a frame is silence
        smoothing: alpha of the smoothed level
        noise_floor: RMS subtracted before normalising the level
        gain: multiplier applied after the noise floor
    """

    def __init__(self, gate: float = 0.013, smoothing: float = 0.25,
                 noise_floor: float = 0.005, gain: float = 18.0):
        self.gate = gate
        self.noise_floor = noise_floor
        self.gain = gain
        self.level = EnergyLevel(alpha=smoothing)
        self.last_rms = 0.0

    def process(self, frame: Union[AudioFrame, np.ndarray]) -> bool:
        """
        Classify one frame.

        Returns:
            True if the frame is voiced (RMS above the gate)
        """
        samples = frame.samples if isinstance(frame, AudioFrame) else frame
        if samples is None or samples.size == 0:
            return False

        rms = frame_rms(samples)
        self.last_rms = rms
        self.level.update((rms - self.noise_floor) * self.gain)
        return rms > self.gate

    @property
    def smoothed_level(self) -> float:
        return self.level.value

    def reset(self) -> None:
        self.level.reset()
        self.last_rms = 0.0
