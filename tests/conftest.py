"""
Pytest configuration and shared fakes for companion framework tests.
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from companion_framework.config_models import TurnTakingConfig, SessionLimitConfig, SummarizationConfig
from companion_framework.conversation import ChatSession
from companion_framework.coordinator import TurnCoordinator
from companion_framework.interfaces import (
    AudioCaptureInterface,
    PlaybackEvent,
    PlaybackEventKind,
    PlaybackInterface,
    SpeechRecognizerInterface,
    TextGenerationInterface,
)
from companion_framework.models import AudioFrame, TranscriptionResult
from companion_framework.providers.persistence import InMemorySessionStore


async def settle(rounds: int = 25) -> None:
    """Let pending callbacks and freshly created tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def wait_until(predicate: Callable[[], bool], rounds: int = 200) -> bool:
    """Yield to the loop until `predicate()` holds (or give up)."""
    for _ in range(rounds):
        if predicate():
            return True
        await asyncio.sleep(0)
    return predicate()


def make_frame(amplitude: float, frame_count: int = 1600, sample_rate: int = 16000) -> AudioFrame:
    """Constant float32 frame whose RMS equals `amplitude`."""
    samples = np.full(frame_count, amplitude, dtype=np.float32)
    return AudioFrame(samples=samples, frame_count=frame_count, sample_rate=sample_rate)


class ManualClock:
    """Clock that only moves when the test says so."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRecognizer(SpeechRecognizerInterface):
    """Streams whatever the test pushes with `emit()` / `fail()`."""

    def __init__(self, authorized: bool = True):
        self.authorized = authorized
        self.fed: List[AudioFrame] = []
        self.start_calls = 0
        self.stop_calls = 0
        self._queue: Optional[asyncio.Queue] = None

    async def request_authorization(self) -> bool:
        return self.authorized

    def start_streaming(self):
        self.start_calls += 1
        self._queue = asyncio.Queue()
        return self._stream(self._queue)

    async def _stream(self, queue: asyncio.Queue):
        while True:
            item = await queue.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    @property
    def is_streaming(self) -> bool:
        return self._queue is not None

    def emit(self, text: str, is_final: bool = False) -> None:
        self._queue.put_nowait(TranscriptionResult(text=text, is_final=is_final))

    def fail(self, exc: Exception) -> None:
        self._queue.put_nowait(exc)

    def end_stream(self) -> None:
        self._queue.put_nowait(None)

    def feed_audio(self, frame: AudioFrame) -> None:
        self.fed.append(frame)

    async def stop_streaming(self) -> None:
        self.stop_calls += 1
        if self._queue is not None:
            self._queue.put_nowait(None)
            self._queue = None


class FakeCapture(AudioCaptureInterface):
    """Microphone tap the test drives with `push()`."""

    def __init__(self, permitted: bool = True):
        self.permitted = permitted
        self.callback = None
        self.install_count = 0
        self.remove_count = 0

    async def request_permission(self) -> bool:
        return self.permitted

    def install_tap(self, callback) -> None:
        self.callback = callback
        self.install_count += 1

    def remove_tap(self) -> None:
        self.callback = None
        self.remove_count += 1

    @property
    def is_capturing(self) -> bool:
        return self.callback is not None

    def push(self, frame: AudioFrame) -> None:
        if self.callback is not None:
            self.callback(frame)


class FakePlayback(PlaybackInterface):
    """Publishes STARTED on speak; FINISHED on `finish()` or `stop()`."""

    def __init__(self, auto_finish: bool = False, fail: bool = False):
        super().__init__()
        self.auto_finish = auto_finish
        self.fail = fail
        self.spoken: List[str] = []
        self.stop_calls = 0
        self._speaking = False

    async def speak(self, text: str) -> None:
        if self.fail:
            raise RuntimeError("audio output unavailable")
        self.spoken.append(text)
        self._speaking = True
        self.events.publish(PlaybackEvent(PlaybackEventKind.STARTED))
        if self.auto_finish:
            self.finish()

    def level(self, value: float) -> None:
        self.events.publish(PlaybackEvent(PlaybackEventKind.LEVEL, level=value))

    def finish(self) -> None:
        if self._speaking:
            self._speaking = False
            self.events.publish(PlaybackEvent(PlaybackEventKind.FINISHED))

    async def stop(self) -> None:
        self.stop_calls += 1
        self.finish()

    @property
    def is_speaking(self) -> bool:
        return self._speaking


class FakeTextGenerator(TextGenerationInterface):
    """
    Scripted text generation.

    Answers come from `responder(user_prompt, json_mode)` when given, else
    from the `responses` queue (an Exception item is raised). Setting
    `release` to an asyncio.Event blocks every call until it is set.
    """

    def __init__(self,
                 responses: Optional[List[Any]] = None,
                 responder: Optional[Callable[[str, bool], Any]] = None,
                 delay: float = 0.0):
        self.responses = list(responses or [])
        self.responder = responder
        self.delay = delay
        self.release: Optional[asyncio.Event] = None
        self.calls: List[Dict[str, Any]] = []

    async def complete(self, system_prompt, user_prompt, temperature=0.7, history=None, json_mode=False):
        self.calls.append({
            'system_prompt': system_prompt,
            'user_prompt': user_prompt,
            'temperature': temperature,
            'history': list(history or []),
            'json_mode': json_mode,
        })
        if self.release is not None:
            await self.release.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.responder is not None:
            item = self.responder(user_prompt, json_mode)
        elif self.responses:
            item = self.responses.pop(0)
        else:
            item = ""
        if isinstance(item, BaseException):
            raise item
        return item


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def wall_clock():
    return ManualClock(start=1_700_000_000.0)


@pytest.fixture
def recognizer():
    return FakeRecognizer()


@pytest.fixture
def capture():
    return FakeCapture()


@pytest.fixture
def playback():
    return FakePlayback()


@pytest.fixture
def generator():
    return FakeTextGenerator(responses=["That sounds like a lot. What helped today?"] * 5)


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def fast_turn_config():
    return TurnTakingConfig(
        resume_delay_seconds=0.02,
        fast_resume_delay_seconds=0.005,
        recognition_restart_backoff=0.01,
    )


@pytest.fixture
def fast_summary_config():
    return SummarizationConfig(retry_delay_seconds=0.0, request_timeout_seconds=2.0)


@pytest.fixture
def make_coordinator(recognizer, capture, playback, generator, store, clock, wall_clock, fast_turn_config):
    """Build a TurnCoordinator wired to the shared fakes."""

    def _make(**overrides) -> TurnCoordinator:
        chat_generator = overrides.pop('chat_generator', generator)
        chat = overrides.pop('chat', None) or ChatSession(
            chat_generator, max_attempts=1, retry_delay=0.0, timeout=2.0
        )
        kwargs = dict(
            recognizer=recognizer,
            capture=capture,
            playback=playback,
            chat=chat,
            store=store,
            config=fast_turn_config,
            limits=SessionLimitConfig(),
            clock=clock,
            wall_clock=wall_clock,
        )
        kwargs.update(overrides)
        return TurnCoordinator(**kwargs)

    return _make
