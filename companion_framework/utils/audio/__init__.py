# Audio utilities package
# Energy VAD and barge-in detection

from .vad import VoiceActivityDetector, EnergyLevel, frame_rms
from .barge_in import BargeInMonitor, BargeInConfig, BargeInMode

__all__ = [
    # vad
    "VoiceActivityDetector",
    "EnergyLevel",
    "frame_rms",
    # barge_in
    "BargeInMonitor",
    "BargeInConfig",
    "BargeInMode",
]
