"""
Tests for energy VAD and the smoothed level meters.
"""

import numpy as np
import pytest

from companion_framework.models import AudioFrame
from companion_framework.utils.audio import VoiceActivityDetector, EnergyLevel, frame_rms
from companion_framework.utils.audio import vad as vad_module

from conftest import make_frame


class TestFrameRms:

    def test_float_buffer(self):
        assert frame_rms(np.full(100, 0.5, dtype=np.float32)) == pytest.approx(0.5)

    def test_int16_buffer_is_normalised(self):
        samples = np.full(100, 16384, dtype=np.int16)
        assert frame_rms(samples) == pytest.approx(0.5)

    def test_empty_buffer(self):
        assert frame_rms(np.array([], dtype=np.float32)) == 0.0

    def test_int16_matches_float_rms(self):
        samples = np.array([-32768, 32767, 1200, -5, 0, 20000], dtype=np.int16)
        expected = np.sqrt(np.mean((samples.astype(np.float64) / 32768.0) ** 2))
        assert frame_rms(samples) == pytest.approx(expected)

    def test_int16_frames_reuse_scratch_buffer(self):
        frame_rms(np.ones(512, dtype=np.int16))
        buffer = vad_module._scratch

        frame_rms(np.full(256, 100, dtype=np.int16))
        assert frame_rms(np.full(512, 16384, dtype=np.int16)) == pytest.approx(0.5)

        assert vad_module._scratch is buffer


class TestVoiceActivityDetector:

    def test_frame_above_gate_is_voiced(self):
        vad = VoiceActivityDetector(gate=0.013)
        assert vad.process(make_frame(0.05)) is True

    def test_frame_below_gate_is_silence(self):
        """RMS not above the gate counts as silence."""
        vad = VoiceActivityDetector(gate=0.013)
        assert vad.process(make_frame(0.012)) is False
        assert vad.process(make_frame(0.001)) is False

    def test_accepts_raw_arrays(self):
        vad = VoiceActivityDetector()
        assert vad.process(np.full(160, 0.2, dtype=np.float32)) is True

    def test_empty_frame_is_silence(self):
        vad = VoiceActivityDetector()
        frame = AudioFrame(samples=np.array([], dtype=np.float32), frame_count=0)
        assert vad.process(frame) is False
        assert vad.smoothed_level == 0.0

    def test_smoothed_level_follows_noise_floor_and_gain(self):
        vad = VoiceActivityDetector(gate=0.013, smoothing=0.25)
        vad.process(make_frame(0.015))
        # (0.015 - 0.005) * 18 = 0.18, first step is 0.25 of that
        assert vad.smoothed_level == pytest.approx(0.045, abs=1e-4)

    def test_smoothed_level_is_clamped(self):
        vad = VoiceActivityDetector()
        for _ in range(50):
            vad.process(make_frame(0.9))
        assert 0.99 < vad.smoothed_level <= 1.0

    def test_reset(self):
        vad = VoiceActivityDetector()
        vad.process(make_frame(0.3))
        vad.reset()
        assert vad.smoothed_level == 0.0
        assert vad.last_rms == 0.0


class TestEnergyLevel:

    def test_exponential_smoothing(self):
        level = EnergyLevel(alpha=0.5)
        assert level.update(1.0) == pytest.approx(0.5)
        assert level.update(1.0) == pytest.approx(0.75)
        assert level.update(0.0) == pytest.approx(0.375)

    def test_out_of_range_input_is_clamped(self):
        level = EnergyLevel(alpha=1.0)
        assert level.update(3.0) == 1.0
        assert level.update(-2.0) == 0.0
