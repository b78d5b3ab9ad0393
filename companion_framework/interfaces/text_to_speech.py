"""
Abstract interface for assistant speech playback and its event channel.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from ..utils.logging_config import get_logger

logger = get_logger("playback")


class PlaybackEventKind(Enum):
    STARTED = "started"
    FINISHED = "finished"
    LEVEL = "level"


@dataclass
class PlaybackEvent:
    """Notification emitted by a playback provider."""
    kind: PlaybackEventKind
    level: Optional[float] = None  # 0..1 output loudness, LEVEL events only
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())


PlaybackSubscriber = Callable[[PlaybackEvent], None]


class PlaybackEventChannel:
    """
    Explicit fan-out of playback events to named subscribers.

    Subscribers are called synchronously, in subscription order, on the
    thread that publishes (the event loop). A failing subscriber is logged
    and does not stop delivery to the others.
    """

    def __init__(self):
        self._subscribers: List[tuple] = []

    def subscribe(self, name: str, callback: PlaybackSubscriber) -> None:
        self.unsubscribe(name)
        self._subscribers.append((name, callback))

    def unsubscribe(self, name: str) -> None:
        self._subscribers = [(n, cb) for n, cb in self._subscribers if n != name]

    @property
    def subscriber_names(self) -> List[str]:
        return [n for n, _ in self._subscribers]

    def publish(self, event: PlaybackEvent) -> None:
        for name, callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Playback subscriber '{name}' failed on {event.kind.value}: {e}")


class PlaybackInterface(ABC):
    """Abstract base class for text-to-speech playback providers."""

    def __init__(self, events: Optional[PlaybackEventChannel] = None):
        self.events = events or PlaybackEventChannel()

    @abstractmethod
    async def speak(self, text: str) -> None:
        """
        Start speaking `text`.

        Implementations publish STARTED when audio begins, LEVEL events while
        speaking and exactly one FINISHED when playback ends or is stopped.
        """
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop playback immediately (publishes FINISHED if something was playing)."""
        pass

    @property
    @abstractmethod
    def is_speaking(self) -> bool:
        pass
