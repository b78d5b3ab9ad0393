"""
Recognition lifecycle: start/stop/restart of the speech-to-text stream.
"""

import asyncio
from enum import Enum
from typing import Callable, Optional

from ..interfaces.transcription import SpeechRecognizerInterface, AudioCaptureInterface, FrameCallback
from ..models.data_models import AudioFrame, TranscriptionResult
from .error_handling import ErrorHandler, ComponentError, ErrorSeverity
from .logging_config import get_logger

logger = get_logger("recognition")


class StopReason(Enum):
    """Why recognition was stopped; decides whether auto-restart is allowed."""
    FOR_ASSISTANT_SPEECH = "for_assistant_speech"  # suppresses auto-restart
    USER_STOP = "user_stop"                        # terminal for the session
    TRANSIENT = "transient"                        # auto-restart allowed


class RecognitionState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class RecognitionLifecycleManager:
    """
    Owns the recognition stream and the audio tap that feeds it.

    `start()` always tears down any previous stream first. A recognizer
    error, or a stream that ends on its own, schedules a restart after
    `restart_backoff` seconds unless the latest stop was for assistant
    speech or a user stop, or the session is no longer active.

    Args:
        recognizer: Speech-to-text provider
        capture: Microphone tap provider
        on_result: Called with every recognition result (on the event loop)
        on_frame: Called with every captured frame, after it is fed to the recognizer
        is_session_active: Returns False once the session has ended
        restart_backoff: Seconds to wait before restarting after an error
        error_handler: Receives recognition failures; a restart recovery
            strategy is registered on it
    """

    COMPONENT = "recognition"

    def __init__(self,
                 recognizer: SpeechRecognizerInterface,
                 capture: AudioCaptureInterface,
                 on_result: Callable[[TranscriptionResult], None],
                 on_frame: Optional[FrameCallback] = None,
                 is_session_active: Callable[[], bool] = lambda: True,
                 restart_backoff: float = 0.3,
                 error_handler: Optional[ErrorHandler] = None):
        self._recognizer = recognizer
        self._capture = capture
        self._on_result = on_result
        self._on_frame = on_frame
        self._is_session_active = is_session_active
        self.restart_backoff = restart_backoff
        self.error_handler = error_handler or ErrorHandler()
        self.error_handler.register_recovery(self.COMPONENT, self._recover)

        self._state = RecognitionState.STOPPED
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._restart_task: Optional[asyncio.Task] = None
        self._stream_generation = 0
        self._suspend_auto_restart = False
        self.last_stop_reason: Optional[StopReason] = None
        self.restart_count = 0

    @property
    def state(self) -> RecognitionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == RecognitionState.RUNNING

    @property
    def restart_pending(self) -> bool:
        return self._restart_task is not None and not self._restart_task.done()

    async def start(self) -> None:
        """Stop any prior stream, install the tap and open a new stream."""
        async with self._lock:
            await self._stop_locked(StopReason.TRANSIENT)
            self._cancel_restart()

            self._stream_generation += 1
            generation = self._stream_generation
            self._capture.install_tap(self._tap)
            self._task = asyncio.get_running_loop().create_task(self._consume(generation))
            self._state = RecognitionState.RUNNING
            logger.info("🎙️  Recognition started")

    async def stop(self, reason: StopReason = StopReason.TRANSIENT) -> None:
        """Stop the stream and remove the tap. Safe when already stopped."""
        async with self._lock:
            await self._stop_locked(reason)

    async def _stop_locked(self, reason: StopReason) -> None:
        self.last_stop_reason = reason
        self._suspend_auto_restart = reason == StopReason.FOR_ASSISTANT_SPEECH
        if reason != StopReason.TRANSIENT:
            self._cancel_restart()

        # Invalidate results from the stream being torn down
        self._stream_generation += 1
        was_running = self._state == RecognitionState.RUNNING
        self._state = RecognitionState.STOPPED

        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        self._capture.remove_tap()
        try:
            await self._recognizer.stop_streaming()
        except Exception as e:
            logger.warning(f"Recognizer stop error: {e}")

        if was_running:
            logger.info(f"🛑 Recognition stopped ({reason.value})")

    def _tap(self, frame: AudioFrame) -> None:
        self._recognizer.feed_audio(frame)
        if self._on_frame is not None:
            self._on_frame(frame)

    async def _consume(self, generation: int) -> None:
        try:
            async for result in self._recognizer.start_streaming():
                if generation != self._stream_generation:
                    return
                self._on_result(result)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if generation == self._stream_generation:
                await self._handle_stream_failure(e)
            return

        if generation == self._stream_generation:
            await self._handle_stream_failure(None)

    async def _handle_stream_failure(self, exc: Optional[Exception]) -> None:
        self._state = RecognitionState.STOPPED
        self._task = None
        message = f"Recognizer error: {exc}" if exc else "Recognition stream ended unexpectedly"
        await self.error_handler.handle_error(ComponentError(
            component=self.COMPONENT,
            severity=ErrorSeverity.RECOVERABLE,
            message=message,
            exception=exc,
        ))

    async def _recover(self, error: ComponentError) -> None:
        self.schedule_restart()

    def can_auto_restart(self) -> bool:
        if self._suspend_auto_restart:
            return False
        if self.last_stop_reason == StopReason.USER_STOP:
            return False
        return self._is_session_active()

    def schedule_restart(self) -> bool:
        """
        Restart after the backoff if allowed.

        Returns:
            True if a restart was scheduled
        """
        if not self.can_auto_restart():
            logger.debug("Auto-restart suppressed")
            return False
        self._cancel_restart()
        self._restart_task = asyncio.get_running_loop().create_task(self._restart_after_backoff())
        return True

    async def _restart_after_backoff(self) -> None:
        await asyncio.sleep(self.restart_backoff)
        if not self.can_auto_restart():
            return
        self.restart_count += 1
        logger.info(f"🔄 Restarting recognition (attempt {self.restart_count})")
        await self.start()

    def _cancel_restart(self) -> None:
        task = self._restart_task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        self._restart_task = None
