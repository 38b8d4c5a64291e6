"""Microphone capture that delivers float frames onto the asyncio event loop."""

import asyncio
import errno
import logging
from typing import Optional, Callable
from datetime import datetime

import numpy as np
import pyaudio

from ..models.audio import AudioStats
from ..errors import PermissionDenied, DeviceError
from .pcm import NoiseFilter, peak_level


logger = logging.getLogger(__name__)


FrameCallback = Callable[[np.ndarray], None]


class MicrophoneStream:
    """Mono microphone capture for a single backend instance.

    PortAudio invokes its callback on its own thread; every frame is handed
    to the owning event loop with ``call_soon_threadsafe`` so consumers only
    ever see frames on the loop, in capture order.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        chunk_size: int = 1024,
        channels: int = 1,
        noise_suppression: bool = True,
        echo_cancellation: bool = True,
    ):
        """Initialize microphone capture with specified parameters.

        Args:
            sample_rate: Audio sample rate in Hz
            chunk_size: Size of each audio frame in samples
            channels: Number of audio channels (1 for mono)
            noise_suppression: High-pass filter frames before delivery
            echo_cancellation: Request echo cancellation from the OS audio stack
        """
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.noise_suppression = noise_suppression
        self.echo_cancellation = echo_cancellation

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream = None
        self.is_open = False
        self.is_active = False

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._on_frame: Optional[FrameCallback] = None
        self._filter = NoiseFilter(sample_rate) if noise_suppression else None

        # Statistics tracking
        self.start_time: Optional[datetime] = None
        self.total_chunks = 0
        self.peak_level = 0.0

    async def open(self, on_frame: FrameCallback) -> None:
        """Acquire the microphone and start delivering frames to ``on_frame``.

        Raises:
            PermissionDenied: the OS refused microphone access
            DeviceError: no usable input device
        """
        if self.is_open:
            logger.warning("Microphone already open")
            return

        self._loop = asyncio.get_running_loop()
        self._on_frame = on_frame
        try:
            await self._loop.run_in_executor(None, self._open_stream)
        except OSError as e:
            self.close()
            if e.errno in (errno.EACCES, errno.EPERM):
                raise PermissionDenied(f"Microphone access denied: {e}") from e
            raise DeviceError(f"Could not open microphone: {e}") from e

        self.is_open = True
        self.is_active = True
        self.start_time = datetime.now()
        self.total_chunks = 0
        if self.echo_cancellation:
            logger.debug("Echo cancellation is left to the OS audio stack")
        logger.info(f"Microphone opened: {self.sample_rate}Hz, {self.chunk_size} samples/frame")

    def _open_stream(self) -> None:
        self.pyaudio_instance = pyaudio.PyAudio()
        self.stream = self.pyaudio_instance.open(
            format=pyaudio.paFloat32,
            channels=self.channels,
            rate=self.sample_rate,
            input=True,
            frames_per_buffer=self.chunk_size,
            stream_callback=self._stream_callback,
        )

    def _stream_callback(self, in_data, frame_count, time_info, status):
        # PortAudio thread: never touch consumer state here.
        frame = np.frombuffer(in_data, dtype=np.float32).copy()
        loop = self._loop
        if loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(self._deliver, frame)
        return (None, pyaudio.paContinue)

    def _deliver(self, frame: np.ndarray) -> None:
        if self._on_frame is None:
            return
        if self._filter is not None:
            frame = self._filter.process(frame)
        self.total_chunks += 1
        self.peak_level = peak_level(frame)
        self._on_frame(frame)

    def pause(self) -> None:
        """Halt capture without releasing the device."""
        if not self.is_active:
            return
        self.is_active = False
        if self.stream is not None:
            self.stream.stop_stream()
        logger.debug("Microphone paused")

    def resume(self) -> None:
        """Resume capture after ``pause``."""
        if not self.is_open or self.is_active:
            return
        if self.stream is not None:
            self.stream.start_stream()
        self.is_active = True
        logger.debug("Microphone resumed")

    def close(self) -> None:
        """Release the microphone. Safe to call multiple times."""
        self.is_active = False
        self._on_frame = None
        if self.stream is not None:
            try:
                self.stream.stop_stream()
                self.stream.close()
            except OSError as e:
                logger.warning(f"Error closing audio stream: {e}")
            self.stream = None
        if self.pyaudio_instance is not None:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None
        if self.is_open:
            logger.info(f"Microphone closed. Total frames: {self.total_chunks}")
        self.is_open = False

    def get_recording_stats(self) -> AudioStats:
        """Get current capture statistics."""
        duration = 0.0
        if self.start_time:
            duration = (datetime.now() - self.start_time).total_seconds()

        return AudioStats(
            is_recording=self.is_active,
            duration_seconds=duration,
            sample_rate=self.sample_rate,
            chunk_size=self.chunk_size,
            total_chunks=self.total_chunks,
            peak_level=self.peak_level,
        )
