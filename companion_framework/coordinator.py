"""
Turn coordinator: the top-level turn-taking state machine.

Everything that mutates turn state (audio frames, recognition results, the
silence timer, reply completion, playback events, session clock ticks) runs
on the asyncio event loop that started the session. Asynchronous work
captures the session generation when it starts and re-checks it, together
with the ended flag and the current state, before applying its result.
"""

import asyncio
import math
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from .config_models import FrameworkConfig, TurnTakingConfig, SessionLimitConfig, SummarizationConfig
from .conversation import ChatSession
from .interfaces.persistence import PersistenceInterface
from .interfaces.response import TextGenerationInterface
from .interfaces.text_to_speech import PlaybackInterface, PlaybackEvent, PlaybackEventKind
from .interfaces.transcription import SpeechRecognizerInterface, AudioCaptureInterface
from .models.data_models import AudioFrame, SessionSummary, Speaker, Transcript, TranscriptionResult
from .summarization.pipeline import SummarizationPipeline
from .utils.audio import VoiceActivityDetector, EnergyLevel, BargeInMonitor, BargeInConfig, BargeInMode
from .utils.background import fire_and_forget
from .utils.error_handling import (
    ErrorHandler,
    ComponentError,
    ErrorSeverity,
    FrameworkError,
    ResourceDeniedError,
    SummarizationError,
    safe_cleanup,
)
from .utils.logging_config import get_logger
from .utils.recognition import RecognitionLifecycleManager, StopReason
from .utils.session_timer import SessionTimeLimiter, SessionClockState
from .utils.state_machine import TurnStateMachine, TurnState
from .utils.utterance import UtteranceAccumulator, SilenceCommitTimer

logger = get_logger("coordinator")


class TurnCoordinator:
    """
    Ties VAD, utterance commit, recognition, replies, playback, barge-in and
    the session limiter together.

    Collaborators are injected; nothing here reaches for global services.

    Args:
        recognizer: Streaming speech-to-text provider
        capture: Microphone tap
        playback: Text-to-speech playback (its event channel is subscribed)
        chat: Conversational reply generator
        store: Best-effort persistence store
        summarizer: Object with `async generate_summary(session_id, transcript)`;
            summarization is skipped when None
        user_id: Owner of the sessions opened in the store
        config: Turn-taking tuning
        limits: Session duration cap
        summarization: Summarization settings; `auto_summarize` decides whether
            the time limit triggers a summary
        auto_summarize: Explicit override of `summarization.auto_summarize`
        clock: Monotonic clock for silence and resume timing
        wall_clock: Wall clock for the session limit and duration
        error_handler: Shared error handler
    """

    PLAYBACK_SUBSCRIBER = "coordinator"

    def __init__(self,
                 recognizer: SpeechRecognizerInterface,
                 capture: AudioCaptureInterface,
                 playback: PlaybackInterface,
                 chat: ChatSession,
                 store: PersistenceInterface,
                 summarizer: Optional[Any] = None,
                 user_id: str = "local-user",
                 config: Optional[TurnTakingConfig] = None,
                 limits: Optional[SessionLimitConfig] = None,
                 summarization: Optional[SummarizationConfig] = None,
                 auto_summarize: Optional[bool] = None,
                 clock: Callable[[], float] = time.monotonic,
                 wall_clock: Callable[[], float] = time.time,
                 error_handler: Optional[ErrorHandler] = None):
        self.config = config or TurnTakingConfig()
        self.limits = limits or SessionLimitConfig()
        self.recognizer = recognizer
        self.capture = capture
        self.playback = playback
        self.chat = chat
        self.store = store
        self.summarizer = summarizer
        self.user_id = user_id
        self.summarization = summarization or SummarizationConfig()
        self.auto_summarize = (self.summarization.auto_summarize
                               if auto_summarize is None else auto_summarize)
        self._clock = clock
        self._wall_clock = wall_clock
        self.error_handler = error_handler or ErrorHandler()
        self.log = logger

        cfg = self.config
        self.state_machine = TurnStateMachine()
        self.vad = VoiceActivityDetector(gate=cfg.vad_gate, smoothing=cfg.level_smoothing)
        self.assistant_level = EnergyLevel(alpha=cfg.level_smoothing)
        self.accumulator = UtteranceAccumulator(clock=clock)
        self.silence_timer = SilenceCommitTimer(
            self.accumulator,
            on_commit=self._commit_utterance,
            is_playback_active=lambda: self.playback_active,
            silence_hold=cfg.silence_hold_seconds,
            min_chars=cfg.min_commit_chars,
            tick_interval=cfg.silence_tick_seconds,
            clock=clock,
        )
        self.barge_monitor = BargeInMonitor(BargeInConfig(
            mode=BargeInMode.ENERGY if cfg.barge_in_enabled else BargeInMode.DISABLED,
            vad_gate=cfg.vad_gate,
            min_gate=cfg.barge_in_min_gate,
            gate_multiplier=cfg.barge_in_gate_multiplier,
            hold_seconds=cfg.barge_in_hold_seconds,
        ))
        self.recognition = RecognitionLifecycleManager(
            recognizer,
            capture,
            on_result=self.on_recognition_result,
            on_frame=self.on_frame,
            is_session_active=self._recognition_allowed,
            restart_backoff=cfg.recognition_restart_backoff,
            error_handler=self.error_handler,
        )
        self.transcript = Transcript(cfg.user_label, cfg.assistant_label)
        self.limiter: Optional[SessionTimeLimiter] = None

        self.playback.events.subscribe(self.PLAYBACK_SUBSCRIBER, self.on_playback_event)

        # Session bookkeeping
        self.session_id: Optional[str] = None
        self.generation = 0
        self.is_ended = False
        self.ended_by_limit = False
        self._store_session_open = False
        self._started_at: Optional[float] = None
        self._ended_at: Optional[float] = None

        # Turn flags
        self.partial_text = ""
        self.playback_active = False
        self.barge_requested = False
        self._barge_tap_installed = False
        self._resume_guard_until = 0.0

        # Time limit signals
        self.show_time_warning = False
        self.countdown_seconds: Optional[int] = None
        self.show_final_countdown = False
        self._warning_issued = False

        # Summary
        self.current_summary: Optional[SessionSummary] = None
        self.summary_error: Optional[str] = None
        self.is_summarizing = False

        self._reply_task: Optional[asyncio.Task] = None
        self._resume_task: Optional[asyncio.Task] = None
        self._end_task: Optional[asyncio.Task] = None
        self._pending_writes: List[asyncio.Task] = []

    @classmethod
    def from_config(cls,
                    config: FrameworkConfig,
                    recognizer: SpeechRecognizerInterface,
                    capture: AudioCaptureInterface,
                    playback: PlaybackInterface,
                    generator: TextGenerationInterface,
                    store: PersistenceInterface,
                    summarizer: Optional[Any] = None,
                    user_id: str = "local-user",
                    error_handler: Optional[ErrorHandler] = None) -> 'TurnCoordinator':
        """
        Wire a coordinator from a validated FrameworkConfig.

        Replies use `ChatSession.from_config`; without an explicit summarizer a
        SummarizationPipeline over the same generator is created.
        """
        error_handler = error_handler or ErrorHandler()
        turn_taking = config.turn_taking
        if summarizer is None:
            summarizer = SummarizationPipeline(
                generator,
                config.summarization,
                user_label=turn_taking.user_label,
                assistant_label=turn_taking.assistant_label,
                error_handler=error_handler,
            )
        return cls(
            recognizer=recognizer,
            capture=capture,
            playback=playback,
            chat=ChatSession.from_config(generator, turn_taking, config.openai, error_handler),
            store=store,
            summarizer=summarizer,
            user_id=user_id,
            config=turn_taking,
            limits=config.session_limit,
            summarization=config.summarization,
            error_handler=error_handler,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> TurnState:
        return self.state_machine.current_state

    @property
    def is_waiting_for_reply(self) -> bool:
        return self.state == TurnState.AWAITING_REPLY

    @property
    def mic_level(self) -> float:
        return self.vad.smoothed_level

    @property
    def output_level(self) -> float:
        return self.assistant_level.value

    def session_duration(self) -> int:
        """Whole seconds between session start and end (or now)."""
        if self._started_at is None:
            return 0
        end = self._ended_at if self._ended_at is not None else self._wall_clock()
        return max(0, int(round(end - self._started_at)))

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def start_session(self) -> str:
        """
        Start listening.

        Returns:
            The session id

        Raises:
            ResourceDeniedError: Microphone or recognition permission refused
                (no state change has happened)
            FrameworkError: A session is already running
        """
        state = self.state
        if state.is_active:
            raise FrameworkError("A session is already running")

        if not await self.capture.request_permission():
            raise ResourceDeniedError("microphone", "Microphone access denied.")
        if not await self.recognizer.request_authorization():
            raise ResourceDeniedError("speech_recognition", "Speech recognition not authorized.")

        if state.is_terminal:
            self.state_machine.reset()
        self._reset_session_state()
        self.generation += 1

        self.session_id = await self._open_session_record()
        self.log = logger.bind_session(self.session_id)
        self._started_at = self._wall_clock()

        self.state_machine.transition_to(TurnState.LISTENING, "session_start")
        self.accumulator.reset()
        await self._start_recognition()
        self.silence_timer.arm()

        self.limiter = SessionTimeLimiter(
            started_at=self._started_at,
            max_duration=self.limits.max_duration_seconds,
            warn_at_seconds=self.limits.warn_at_seconds,
            tick_hz=self.limits.tick_hz,
            clock=self._wall_clock,
        )
        self.limiter.subscribe(self.handle_clock_state)
        self.limiter.start()
        self._persist("set max duration", self.store.set_max_duration,
                      self.session_id, int(self.limits.max_duration_seconds))

        self.log.info("🟢 Session started")
        return self.session_id

    async def stop_session(self, summarize: bool = False) -> Optional[SessionSummary]:
        """
        End the session on explicit user request.

        Returns:
            The summary when `summarize` is True and it succeeded
        """
        if not self._mark_ended(TurnState.ENDED, "user_stop"):
            return None
        await self._release_audio()
        self.log.info(f"⏹️  Session stopped after {self.session_duration()}s")
        if summarize:
            return await self.end_session_and_summarize()
        return None

    async def end_due_to_time_limit(self) -> Optional[SessionSummary]:
        """Hard stop: end the session, persist the end state and summarize."""
        if not self._mark_ended(TurnState.TIME_LIMIT_ENDED, "time_limit"):
            return None
        return await self._finish_time_limit_end()

    async def _finish_time_limit_end(self) -> Optional[SessionSummary]:
        await self._release_audio()
        self.log.info(f"⌛ Session ended by time limit after {self.session_duration()}s")
        self._persist("end session by time limit", self.store.end_session_by_time_limit, self.session_id)
        if self.auto_summarize:
            return await self.end_session_and_summarize()
        return None

    async def end_session_and_summarize(self) -> Optional[SessionSummary]:
        """
        Summarize the in-memory transcript and persist the summary.

        Sets `current_summary`, or `summary_error` when summarization fails.
        """
        if self.summarizer is None:
            self.log.debug("No summarizer configured, skipping summary")
            return None
        if self.session_id is None:
            self.summary_error = "No session to summarize."
            return None

        session_id = self.session_id
        generation = self.generation
        transcript = Transcript(self.transcript.user_label, self.transcript.assistant_label,
                                turns=self.transcript.turns)
        self.is_summarizing = True
        self.summary_error = None
        try:
            summary = await self.summarizer.generate_summary(session_id, transcript)
        except SummarizationError as e:
            self.log.error(f"Summary failed: {e}")
            if generation == self.generation:
                self.summary_error = "Failed to generate summary."
            return None
        finally:
            self.is_summarizing = False

        self._persist("write summary", self.store.write_summary,
                      session_id, summary, self.session_duration())
        if generation != self.generation:
            self.log.debug("Summary finished after a new session started; not publishing it")
            return summary
        self.current_summary = summary
        return summary

    async def cleanup(self) -> None:
        """Stop everything and detach from the playback channel."""
        if self.state.is_active:
            await self.stop_session()
        self.playback.events.unsubscribe(self.PLAYBACK_SUBSCRIBER)
        await self.flush_persistence()

    async def flush_persistence(self) -> None:
        """Wait for outstanding best-effort writes."""
        pending, self._pending_writes = self._pending_writes, []
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Audio and recognition
    # ------------------------------------------------------------------

    def on_frame(self, frame: AudioFrame) -> None:
        """Recognition tap: run VAD and track the last voiced moment."""
        if self.is_ended or self.state != TurnState.LISTENING:
            return
        now = self._clock()
        if now < self._resume_guard_until:
            return
        if self.vad.process(frame):
            self.accumulator.mark_voice(now)

    def on_recognition_result(self, result: TranscriptionResult) -> None:
        if self.is_ended or self.state != TurnState.LISTENING:
            return
        self.accumulator.update_text(result.text)
        self.partial_text = result.text
        if result.is_final:
            self._commit_utterance(self.accumulator.take())

    def _recognition_allowed(self) -> bool:
        return not self.is_ended and self.state == TurnState.LISTENING

    async def _start_recognition(self) -> None:
        try:
            await self.recognition.start()
        except Exception as e:
            await self.error_handler.handle_error(ComponentError(
                component=RecognitionLifecycleManager.COMPONENT,
                severity=ErrorSeverity.RECOVERABLE,
                message="Failed to start recognition",
                exception=e,
            ))

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    def _commit_utterance(self, text: str) -> None:
        text = (text or "").strip()
        if not text:
            return
        if self.is_ended or self.state != TurnState.LISTENING:
            self.log.debug("Commit ignored outside LISTENING")
            return
        self._begin_reply(text, "utterance_commit")

    def seed_and_query(self, text: str) -> bool:
        """
        Inject a user turn as if it had been spoken.

        Returns:
            True if the turn was accepted (session listening, text non-blank)
        """
        text = (text or "").strip()
        if not text or self.is_ended or self.state != TurnState.LISTENING:
            return False
        self.accumulator.reset()
        self._begin_reply(text, "seeded_turn")
        return True

    def _begin_reply(self, text: str, reason: str) -> None:
        self.state_machine.transition_to(TurnState.AWAITING_REPLY, reason)
        self.partial_text = ""
        self.accumulator.reset()
        self._append_turn(Speaker.USER, text)
        self.log.info(f"👤 {text}")
        self._reply_task = asyncio.get_running_loop().create_task(
            self._request_reply(text, self.generation)
        )

    async def _request_reply(self, text: str, generation: int) -> None:
        await self.recognition.stop(StopReason.FOR_ASSISTANT_SPEECH)
        reply = await self.chat.reply(text)

        if not self._is_current(generation) or self.state != TurnState.AWAITING_REPLY:
            self.log.debug("Discarding reply that arrived after the turn was abandoned")
            return

        self._append_turn(Speaker.ASSISTANT, reply)
        self.state_machine.transition_to(TurnState.SPEAKING, "reply_received")
        self.log.info(f"🤖 {reply}")
        try:
            await self.playback.speak(reply)
        except Exception as e:
            await self.error_handler.handle_error(ComponentError(
                component="playback",
                severity=ErrorSeverity.WARNING,
                message="Playback failed",
                exception=e,
            ))
            if self._is_current(generation) and self.state == TurnState.SPEAKING:
                self._on_playback_finished()

    def _append_turn(self, speaker: Speaker, text: str) -> None:
        self.transcript.append(speaker, text)
        self._persist("append transcript", self.store.append_transcript,
                      self.session_id, self.transcript.render())

    def _is_current(self, generation: int) -> bool:
        return not self.is_ended and generation == self.generation

    # ------------------------------------------------------------------
    # Playback and barge-in
    # ------------------------------------------------------------------

    def on_playback_event(self, event: PlaybackEvent) -> None:
        if event.kind == PlaybackEventKind.STARTED:
            self._on_playback_started()
        elif event.kind == PlaybackEventKind.LEVEL:
            self.assistant_level.update(event.level or 0.0)
        elif event.kind == PlaybackEventKind.FINISHED:
            self._on_playback_finished()

    def _on_playback_started(self) -> None:
        self.playback_active = True
        if self.is_ended or self.state != TurnState.SPEAKING:
            return
        self.barge_monitor.install(self._on_barge_in)
        if self.barge_monitor.is_installed and not self._barge_tap_installed:
            self.capture.install_tap(self._on_barge_frame)
            self._barge_tap_installed = True

    def _on_barge_frame(self, frame: AudioFrame) -> None:
        if self.state == TurnState.SPEAKING:
            self.barge_monitor.process(frame)

    def _on_barge_in(self) -> None:
        if self.is_ended or self.state != TurnState.SPEAKING:
            return
        self.barge_requested = True
        self._teardown_barge_in()
        fire_and_forget(self.playback.stop(), "playback", "stop playback after barge-in",
                        self.error_handler)

    def _teardown_barge_in(self) -> None:
        self.barge_monitor.teardown()
        if self._barge_tap_installed:
            self._barge_tap_installed = False
            self.capture.remove_tap()

    def _on_playback_finished(self) -> None:
        self.playback_active = False
        self.assistant_level.reset()
        self._teardown_barge_in()
        if self.is_ended or self.state != TurnState.SPEAKING:
            return

        fast = self.barge_requested
        delay = self.config.fast_resume_delay_seconds if fast else self.config.resume_delay_seconds
        self.state_machine.transition_to(TurnState.LISTENING, "barge_in" if fast else "playback_finished")
        self.barge_requested = False
        self.accumulator.reset()
        self.partial_text = ""
        self._resume_guard_until = self._clock() + delay
        self._resume_task = asyncio.get_running_loop().create_task(
            self._resume_listening(delay, self.generation)
        )

    async def _resume_listening(self, delay: float, generation: int) -> None:
        await asyncio.sleep(delay)
        if not self._is_current(generation) or self.state != TurnState.LISTENING:
            return
        await self._start_recognition()
        self.accumulator.mark_voice()

    # ------------------------------------------------------------------
    # Session limit
    # ------------------------------------------------------------------

    def handle_clock_state(self, state: SessionClockState) -> None:
        """Limiter subscriber: one-time warning, countdown and hard stop."""
        if self.is_ended or not self.state.is_active:
            return

        if state.has_warned and not self._warning_issued:
            self._warning_issued = True
            self.show_time_warning = True
            self.log.info(f"⏰ Session time warning ({state.remaining:.0f}s remaining)")
            self._persist("mark session warning", self.store.mark_session_warning, self.session_id)

        remaining = int(math.ceil(state.remaining))
        self.countdown_seconds = max(0, remaining)
        self.show_final_countdown = remaining <= self.limits.final_countdown_seconds

        if state.is_over_limit and self._mark_ended(TurnState.TIME_LIMIT_ENDED, "time_limit"):
            self._end_task = asyncio.get_running_loop().create_task(self._finish_time_limit_end())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _mark_ended(self, target: TurnState, reason: str) -> bool:
        """Synchronously enter a terminal state; False if there is nothing to end."""
        if not self.state.is_active:
            return False
        self.is_ended = True
        self.ended_by_limit = target == TurnState.TIME_LIMIT_ENDED
        self.generation += 1
        self._ended_at = self._wall_clock()
        self.state_machine.transition_to(target, reason)

        self.silence_timer.disarm()
        if self.limiter is not None:
            self.limiter.stop()
        self._cancel(self._reply_task)
        self._cancel(self._resume_task)
        self._reply_task = None
        self._resume_task = None

        self.show_time_warning = False
        self.show_final_countdown = False
        self.countdown_seconds = 0
        return True

    async def _release_audio(self) -> None:
        self._teardown_barge_in()

        async def stop_recognition():
            await self.recognition.stop(StopReason.USER_STOP)

        async def stop_playback():
            await self.playback.stop()

        await safe_cleanup(stop_recognition, stop_playback)
        self.playback_active = False
        self.barge_requested = False
        self.accumulator.reset()
        self.partial_text = ""

    async def _open_session_record(self) -> str:
        try:
            session_id = await self.store.start_session(self.user_id)
            self._store_session_open = True
            return session_id
        except Exception as e:
            await self.error_handler.handle_error(ComponentError(
                component="persistence",
                severity=ErrorSeverity.WARNING,
                message="Could not open a session record; continuing without persistence",
                exception=e,
            ))
            self._store_session_open = False
            return f"local-{uuid.uuid4()}"

    def _persist(self, description: str, func: Callable, *args) -> Optional[asyncio.Task]:
        if not self._store_session_open or self.session_id is None:
            return None
        task = fire_and_forget(func(*args), "persistence", description, self.error_handler)
        self._pending_writes = [t for t in self._pending_writes if not t.done()]
        self._pending_writes.append(task)
        return task

    def _reset_session_state(self) -> None:
        self.is_ended = False
        self.ended_by_limit = False
        self.session_id = None
        self._store_session_open = False
        self._started_at = None
        self._ended_at = None
        self.transcript = Transcript(self.config.user_label, self.config.assistant_label)
        self.chat.reset()
        self.vad.reset()
        self.assistant_level.reset()
        self.partial_text = ""
        self.playback_active = False
        self.barge_requested = False
        self._resume_guard_until = 0.0
        self.show_time_warning = False
        self.countdown_seconds = None
        self.show_final_countdown = False
        self._warning_issued = False
        self.current_summary = None
        self.summary_error = None

    @staticmethod
    def _cancel(task: Optional[asyncio.Task]) -> None:
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def get_status(self) -> Dict[str, Any]:
        """Snapshot for logging and debugging."""
        return {
            'state': self.state.name,
            'session_id': self.session_id,
            'turns': len(self.transcript),
            'recognition': self.recognition.state.value,
            'playback_active': self.playback_active,
            'barge_in_armed': self.barge_monitor.is_installed,
            'ended_by_limit': self.ended_by_limit,
            'countdown_seconds': self.countdown_seconds,
            'errors': self.error_handler.get_error_summary(),
        }
