"""
Microphone tap backed by a sounddevice InputStream.

The stream is opened on the first `install_tap()` and kept running across
taps; swapping between the recognition tap and the barge-in tap only swaps
the callback. `close()` releases the device.
"""

import asyncio
from typing import Optional

import numpy as np

try:
    import sounddevice as sd
except ImportError:
    raise ImportError("sounddevice package is required. Install with: pip install sounddevice")

from ...interfaces.transcription import AudioCaptureInterface, FrameCallback
from ...models.data_models import AudioFrame
from ...utils.logging_config import get_logger

logger = get_logger("capture")


class SoundDeviceCapture(AudioCaptureInterface):
    """
    Mono int16 capture delivering `AudioFrame`s on the event loop.

    The PortAudio callback runs on its own thread; it only copies the block
    and hands it to the loop with `call_soon_threadsafe`.
    """

    def __init__(self, config: Optional[dict] = None):
        """
        Args:
            config: Optional configuration dictionary containing:
                - sample_rate: Capture rate in Hz (default: 16000)
                - block_size: Frames per callback (default: 1024)
                - device: Input device index or name (default: system default)
        """
        config = config or {}
        self.sample_rate = int(config.get('sample_rate', 16000))
        self.block_size = int(config.get('block_size', 1024))
        self.device = config.get('device')

        self._stream: Optional[sd.InputStream] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._callback: Optional[FrameCallback] = None
        self._overflows = 0

    async def request_permission(self) -> bool:
        try:
            sd.check_input_settings(device=self.device, channels=1, dtype='int16',
                                    samplerate=self.sample_rate)
            return True
        except Exception as e:
            logger.error(f"Microphone unavailable: {e}")
            return False

    @property
    def is_capturing(self) -> bool:
        return self._callback is not None and self._stream is not None and self._stream.active

    def install_tap(self, callback: FrameCallback) -> None:
        self._loop = asyncio.get_running_loop()
        self._callback = callback
        if self._stream is None:
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype='int16',
                blocksize=self.block_size,
                device=self.device,
                callback=self._audio_callback,
            )
            self._stream.start()
            logger.info(f"🎙️  Microphone stream open ({self.sample_rate} Hz, block {self.block_size})")

    def remove_tap(self) -> None:
        self._callback = None

    def _audio_callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
        """Runs on the PortAudio thread."""
        if status and status.input_overflow:
            self._overflows += 1
        loop = self._loop
        if self._callback is None or loop is None or loop.is_closed():
            return
        frame = AudioFrame(samples=indata[:, 0].copy(), frame_count=frames, sample_rate=self.sample_rate)
        loop.call_soon_threadsafe(self._deliver, frame)

    def _deliver(self, frame: AudioFrame) -> None:
        callback = self._callback
        if callback is None:
            return
        try:
            callback(frame)
        except Exception as e:
            logger.error(f"Frame callback failed: {e}")

    async def close(self) -> None:
        """Stop and release the input stream."""
        self._callback = None
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
            await asyncio.sleep(0.05)  # let the last callback finish
            stream.close()
        except Exception as e:
            logger.warning(f"Microphone stop error: {e}")
        if self._overflows:
            logger.debug(f"Input overflowed {self._overflows} time(s)")
