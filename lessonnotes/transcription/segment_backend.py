"""Segment-based cloud transcription backend.

Audio is buffered continuously while a question is answered. When the
session controller flushes the segment, capture halts, the buffered audio
is uploaded in a single transcription request, and capture resumes under a
fresh buffer for the next segment.
"""

import asyncio
import random
import logging
from typing import Optional

import aiohttp

from .base import AbstractASRClient
from ..audio.buffer import SegmentAudioBuffer
from ..audio.capture import MicrophoneStream
from ..audio.pcm import float_to_pcm16
from ..errors import ASRError, BackendUnavailable, TranscriptionFailed
from ..models.session import BackendKind

logger = logging.getLogger(__name__)


DEFAULT_API_URL = "https://api.openai.com/v1/audio/transcriptions"

FUN_PROCESSING_MESSAGES = [
    "Tuning the transcription strings...",
    "Counting the rests in your answer...",
    "Transposing speech into text...",
    "Warming up the metronome...",
    "Polishing the high notes...",
    "Reading between the bar lines...",
    "Rosining the bow...",
    "Checking the key signature...",
]


class SegmentTranscriptionBackend(AbstractASRClient):
    """Record -> stop -> upload -> transcribe -> resume, once per segment."""

    kind = BackendKind.SEGMENT

    def __init__(self,
                 api_key: Optional[str],
                 microphone: MicrophoneStream,
                 api_url: str = DEFAULT_API_URL,
                 model: str = "whisper-1",
                 language: str = "en-US",
                 timeslice_seconds: float = 1.0,
                 flush_wait_seconds: float = 2.0,
                 request_timeout_seconds: float = 60.0):
        """Initialize segment transcription backend.

        Args:
            api_key: Bearer token for the transcription endpoint
            microphone: Microphone owned exclusively by this backend
            api_url: Multipart upload-and-transcribe endpoint
            model: Transcription model name sent with each upload
            language: Locale of the recording
            timeslice_seconds: Buffer commit interval (at least one second)
            flush_wait_seconds: Upper bound on waiting for the last in-flight audio
            request_timeout_seconds: Total timeout of one transcription request
        """
        super().__init__(language)
        self.api_key = api_key
        self.microphone = microphone
        self.api_url = api_url
        self.model = model
        self.flush_wait_seconds = flush_wait_seconds
        self.request_timeout_seconds = request_timeout_seconds

        self.buffer = SegmentAudioBuffer(
            sample_rate=microphone.sample_rate,
            channels=microphone.channels,
            timeslice_seconds=timeslice_seconds,
        )
        self._timeslice_task: Optional[asyncio.Task] = None
        self.requests_sent = 0

    @property
    def audio_ref(self) -> SegmentAudioBuffer:
        """Opaque handle to the audio buffered for the open segment."""
        return self.buffer

    async def start(self) -> None:
        """Arm the microphone and open the first buffering window. Nothing is transcribed here."""
        if self.is_active:
            logger.warning("Segment backend already started")
            return
        if not self.api_key:
            raise BackendUnavailable("Transcription API key not configured")

        self.buffer.clear()
        try:
            await self.microphone.open(self._on_frame)
        except ASRError:
            self.microphone.close()
            raise

        self.is_active = True
        self._timeslice_task = asyncio.create_task(self._timeslice_loop())
        logger.info(f"Segment backend armed (timeslice={self.buffer.timeslice_seconds}s)")

    def stop(self) -> None:
        if not self.is_active:
            return
        self.is_active = False
        if self._timeslice_task is not None:
            self._timeslice_task.cancel()
            self._timeslice_task = None
        self.microphone.close()
        self.buffer.clear()
        logger.info(f"Segment backend stopped after {self.requests_sent} transcription requests")

    def _on_frame(self, frame) -> None:
        self.buffer.add_frame(float_to_pcm16(frame))

    async def _timeslice_loop(self) -> None:
        while True:
            await asyncio.sleep(self.buffer.timeslice_seconds)
            self.buffer.commit()

    async def _halt_capture(self) -> None:
        """Pause the microphone and wait (bounded) for the last in-flight frames."""
        if not self.microphone.is_active:
            self.buffer.commit()
            return

        self.microphone.pause()
        committed = asyncio.Event()
        loop = asyncio.get_running_loop()

        def _commit_last_chunk() -> None:
            self.buffer.commit()
            committed.set()

        # Frames handed over before the pause are already queued ahead of this call.
        loop.call_soon(_commit_last_chunk)
        try:
            await asyncio.wait_for(committed.wait(), timeout=self.flush_wait_seconds)
        except asyncio.TimeoutError:
            logger.warning("Timed out waiting for the last audio chunk; flushing what is buffered")
            self.buffer.commit()

    def _resume_capture(self) -> None:
        self.buffer.clear()
        if self.is_active:
            self.microphone.resume()

    async def flush_segment(self) -> str:
        """Transcribe everything buffered since the last flush.

        Returns:
            The transcribed text, an empty string for an empty buffer, or an
            inline "Error: Transcription failed - <reason>" string when the
            request fails. Results that arrive after ``stop()`` are discarded.
        """
        if not self.is_active:
            return ""

        await self._halt_capture()
        audio = self.buffer.package()
        if audio is None:
            logger.debug("Flush with empty audio buffer, skipping transcription")
            self._resume_capture()
            return ""

        self.callbacks.emit_partial(random.choice(FUN_PROCESSING_MESSAGES))

        try:
            text = await self._transcribe(audio)
        except TranscriptionFailed as e:
            logger.error(f"Segment transcription failed: {e.reason}")
            text = f"Error: Transcription failed - {e.reason}"
        finally:
            self._resume_capture()

        if not self.is_active:
            logger.info("Backend stopped during flush, discarding transcription result")
            return ""
        return text

    async def _transcribe(self, audio: bytes) -> str:
        """Upload one packaged segment and return its transcript."""
        headers = {"Authorization": f"Bearer {self.api_key}"}
        form = aiohttp.FormData()
        form.add_field("file", audio, filename="segment.wav", content_type="audio/wav")
        form.add_field("model", self.model)
        form.add_field("language", self.language.split("-")[0])

        self.requests_sent += 1
        logger.info(f"Uploading segment #{self.requests_sent}: {len(audio)} bytes")
        timeout = aiohttp.ClientTimeout(total=self.request_timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.api_url, headers=headers, data=form) as response:
                    if not 200 <= response.status < 300:
                        error_text = await response.text()
                        raise TranscriptionFailed(f"{response.status} - {error_text}")
                    result = await response.json()
        except aiohttp.ClientError as e:
            raise TranscriptionFailed(str(e)) from e
        except asyncio.TimeoutError as e:
            raise TranscriptionFailed("request timed out") from e
        except ValueError as e:
            raise TranscriptionFailed("invalid response body") from e

        if not isinstance(result, dict):
            raise TranscriptionFailed("invalid response body")
        return (result.get("text") or "").strip()
