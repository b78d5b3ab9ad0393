"""
Tests for the recognition lifecycle: start/stop, tap ownership and restarts.
"""

import asyncio

import pytest

from companion_framework.utils.error_handling import ErrorHandler
from companion_framework.utils.recognition import RecognitionLifecycleManager, RecognitionState, StopReason

from conftest import FakeCapture, FakeRecognizer, make_frame, settle


def build_manager(active=lambda: True, backoff=0.01):
    recognizer = FakeRecognizer()
    capture = FakeCapture()
    results = []
    frames = []
    manager = RecognitionLifecycleManager(
        recognizer,
        capture,
        on_result=results.append,
        on_frame=frames.append,
        is_session_active=active,
        restart_backoff=backoff,
        error_handler=ErrorHandler(),
    )
    return manager, recognizer, capture, results, frames


class TestRecognitionLifecycle:

    @pytest.mark.asyncio
    async def test_start_installs_tap_and_streams_results(self):
        manager, recognizer, capture, results, frames = build_manager()
        await manager.start()
        await settle()

        assert manager.state == RecognitionState.RUNNING
        capture.push(make_frame(0.05))
        assert len(recognizer.fed) == 1
        assert len(frames) == 1

        recognizer.emit("hello")
        recognizer.emit("hello there", is_final=True)
        await settle()
        assert [r.text for r in results] == ["hello", "hello there"]

        await manager.stop(StopReason.USER_STOP)

    @pytest.mark.asyncio
    async def test_start_tears_down_previous_stream(self):
        manager, recognizer, capture, results, _ = build_manager()
        await manager.start()
        await settle()
        await manager.start()
        await settle()

        assert recognizer.start_calls == 2
        assert recognizer.stop_calls >= 1
        assert manager.is_running
        await manager.stop(StopReason.USER_STOP)

    @pytest.mark.asyncio
    async def test_stop_is_safe_when_stopped(self):
        manager, recognizer, capture, _, _ = build_manager()
        await manager.stop()
        await manager.stop(StopReason.USER_STOP)
        assert manager.state == RecognitionState.STOPPED
        assert capture.callback is None

    @pytest.mark.asyncio
    async def test_error_schedules_restart_after_backoff(self):
        manager, recognizer, capture, _, _ = build_manager()
        await manager.start()
        await settle()

        recognizer.fail(RuntimeError("network hiccup"))
        await settle()
        assert manager.restart_pending

        await asyncio.sleep(0.05)
        await settle()
        assert recognizer.start_calls == 2
        assert manager.restart_count == 1
        assert manager.is_running
        errors = manager.error_handler.get_error_history("recognition")
        assert len(errors) == 1
        await manager.stop(StopReason.USER_STOP)

    @pytest.mark.asyncio
    async def test_stream_ending_on_its_own_restarts(self):
        manager, recognizer, _, _, _ = build_manager()
        await manager.start()
        await settle()

        recognizer.end_stream()
        await asyncio.sleep(0.05)
        await settle()
        assert manager.restart_count == 1
        await manager.stop(StopReason.USER_STOP)

    @pytest.mark.asyncio
    async def test_no_restart_while_assistant_speaks(self):
        manager, recognizer, _, _, _ = build_manager()
        await manager.start()
        await settle()
        await manager.stop(StopReason.FOR_ASSISTANT_SPEECH)

        assert manager.can_auto_restart() is False
        assert manager.schedule_restart() is False

    @pytest.mark.asyncio
    async def test_no_restart_after_session_ended(self):
        active = {'value': True}
        manager, recognizer, _, _, _ = build_manager(active=lambda: active['value'])
        await manager.start()
        await settle()

        active['value'] = False
        recognizer.fail(RuntimeError("gone"))
        await asyncio.sleep(0.05)
        await settle()
        assert manager.restart_count == 0
        assert manager.state == RecognitionState.STOPPED
        await manager.stop(StopReason.USER_STOP)

    @pytest.mark.asyncio
    async def test_user_stop_cancels_pending_restart(self):
        manager, recognizer, _, _, _ = build_manager(backoff=0.05)
        await manager.start()
        await settle()
        recognizer.fail(RuntimeError("blip"))
        await settle()
        assert manager.restart_pending

        await manager.stop(StopReason.USER_STOP)
        await asyncio.sleep(0.1)
        assert manager.restart_count == 0
        assert recognizer.start_calls == 1
