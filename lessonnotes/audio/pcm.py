"""PCM conversion and light pre-processing of captured audio frames."""

import io
import wave
import logging
from typing import Optional

import numpy as np
from scipy import signal

logger = logging.getLogger(__name__)


def float_to_pcm16(frame: np.ndarray) -> bytes:
    """Convert float samples in [-1.0, 1.0] to little-endian signed 16-bit PCM.

    Samples outside the range are clamped. Negative samples scale by 0x8000 and
    positive ones by 0x7FFF so both ends of the int16 range are reachable.
    """
    samples = np.clip(np.asarray(frame, dtype=np.float32), -1.0, 1.0)
    scaled = np.where(samples < 0, samples * 0x8000, samples * 0x7FFF)
    return scaled.astype('<i2').tobytes()


def pcm16_to_wav(pcm: bytes, sample_rate: int, channels: int = 1) -> bytes:
    """Wrap raw PCM16 audio in a WAV container."""
    output = io.BytesIO()
    with wave.open(output, 'wb') as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return output.getvalue()


def peak_level(frame: np.ndarray) -> float:
    """Peak absolute amplitude of a float frame (0.0 for empty frames)."""
    if frame.size == 0:
        return 0.0
    return float(np.max(np.abs(frame)))


class NoiseFilter:
    """Streaming high-pass filter that removes low-frequency rumble and DC offset.

    Filter state is carried between frames so consecutive frames are filtered
    as one continuous signal.
    """

    def __init__(self, sample_rate: int, cutoff_hz: float = 80.0, order: int = 4):
        self.sample_rate = sample_rate
        self.cutoff_hz = cutoff_hz
        self._sos = signal.butter(order, cutoff_hz, btype='highpass', fs=sample_rate, output='sos')
        self._zi: Optional[np.ndarray] = None
        logger.debug(f"NoiseFilter initialized: {cutoff_hz}Hz high-pass at {sample_rate}Hz")

    def process(self, frame: np.ndarray) -> np.ndarray:
        if frame.size == 0:
            return frame
        if self._zi is None:
            self._zi = signal.sosfilt_zi(self._sos) * frame[0]
        filtered, self._zi = signal.sosfilt(self._sos, frame, zi=self._zi)
        return filtered.astype(np.float32)

    def reset(self) -> None:
        self._zi = None
