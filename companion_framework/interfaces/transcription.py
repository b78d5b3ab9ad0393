"""
Abstract interfaces for speech recognition and raw audio capture.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Callable

from ..models.data_models import AudioFrame, TranscriptionResult


FrameCallback = Callable[[AudioFrame], None]


class SpeechRecognizerInterface(ABC):
    """Abstract base class for streaming speech-to-text providers."""

    @abstractmethod
    async def request_authorization(self) -> bool:
        """
        Ask for speech-recognition permission.

        Returns:
            bool: True if recognition is authorized
        """
        pass

    @abstractmethod
    def start_streaming(self) -> AsyncIterator[TranscriptionResult]:
        """
        Begin a new recognition stream.

        Yields:
            TranscriptionResult: the best hypothesis for the whole current
            utterance (not incremental deltas). Raises on recognizer errors.
        """
        pass

    @abstractmethod
    def feed_audio(self, frame: AudioFrame) -> None:
        """Append one captured frame to the active recognition request."""
        pass

    @abstractmethod
    async def stop_streaming(self) -> None:
        """End the active stream. Must be safe to call when nothing is running."""
        pass


class AudioCaptureInterface(ABC):
    """
    Abstract microphone tap.

    Implementations must deliver frames on the event loop that installed the
    tap, never on their own audio thread.
    """

    @abstractmethod
    async def request_permission(self) -> bool:
        """
        Ask for microphone permission.

        Returns:
            bool: True if the microphone may be used
        """
        pass

    @abstractmethod
    def install_tap(self, callback: FrameCallback) -> None:
        """Start capturing and route every frame to `callback` (replaces any previous tap)."""
        pass

    @abstractmethod
    def remove_tap(self) -> None:
        """Stop capturing. Must be safe to call when no tap is installed."""
        pass

    @property
    @abstractmethod
    def is_capturing(self) -> bool:
        pass
