"""
Abstract interfaces for the collaborators the framework calls through.
"""

from .transcription import SpeechRecognizerInterface, AudioCaptureInterface, FrameCallback
from .text_to_speech import (
    PlaybackInterface,
    PlaybackEvent,
    PlaybackEventKind,
    PlaybackEventChannel,
)
from .response import TextGenerationInterface
from .persistence import PersistenceInterface

__all__ = [
    'SpeechRecognizerInterface',
    'AudioCaptureInterface',
    'FrameCallback',
    'PlaybackInterface',
    'PlaybackEvent',
    'PlaybackEventKind',
    'PlaybackEventChannel',
    'TextGenerationInterface',
    'PersistenceInterface',
]
