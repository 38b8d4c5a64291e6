"""Timesliced audio buffer used by the segment-based transcription backend."""

import time
import logging
from typing import List, Optional

from ..models.audio import AudioChunk
from .pcm import pcm16_to_wav

logger = logging.getLogger(__name__)


MIN_TIMESLICE_SECONDS = 1.0


class SegmentAudioBuffer:
    """Collects PCM16 frames and commits them as chunks once per timeslice.

    Frames accumulate in a pending area and are moved into the committed
    chunk list by ``commit()``, which the owner calls on a timer. A segment
    cut short therefore never loses more than the pending remainder, and
    that remainder is committed explicitly before packaging.
    """

    def __init__(self, sample_rate: int = 16000, channels: int = 1,
                 timeslice_seconds: float = MIN_TIMESLICE_SECONDS):
        """Initialize segment audio buffer.

        Args:
            sample_rate: Audio sample rate
            channels: Number of audio channels
            timeslice_seconds: Commit interval; values below one second are raised to one second
        """
        self.sample_rate = sample_rate
        self.channels = channels
        self.timeslice_seconds = max(MIN_TIMESLICE_SECONDS, timeslice_seconds)

        self.chunks: List[AudioChunk] = []
        self._pending = bytearray()
        self.sequence_number = 0

        logger.debug(f"SegmentAudioBuffer initialized: timeslice={self.timeslice_seconds}s")

    def add_frame(self, pcm: bytes) -> None:
        """Append a PCM16 frame to the pending area."""
        if pcm:
            self._pending.extend(pcm)

    def commit(self) -> Optional[AudioChunk]:
        """Move pending audio into a committed chunk. Returns None if nothing was pending."""
        if not self._pending:
            return None
        chunk = AudioChunk(
            data=bytes(self._pending),
            timestamp=time.time(),
            sequence_number=self.sequence_number,
        )
        self.sequence_number += 1
        self._pending.clear()
        self.chunks.append(chunk)
        logger.debug(f"Committed audio chunk #{chunk.sequence_number}: {len(chunk.data)} bytes")
        return chunk

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def is_empty(self) -> bool:
        """True when no committed or pending audio exists."""
        return not self.chunks and not self._pending

    @property
    def total_bytes(self) -> int:
        return sum(len(c.data) for c in self.chunks) + len(self._pending)

    def duration_seconds(self) -> float:
        return self.total_bytes / float(self.sample_rate * self.channels * 2)

    def package(self) -> Optional[bytes]:
        """Package all committed chunks into one WAV file. None if there is no audio."""
        if not self.chunks:
            return None
        pcm = b''.join(chunk.data for chunk in self.chunks)
        return pcm16_to_wav(pcm, self.sample_rate, self.channels)

    def clear(self) -> None:
        """Discard all buffered audio."""
        self.chunks.clear()
        self._pending.clear()
        logger.debug("Segment audio buffer cleared")
