"""Builds ASR backends from configuration."""

import logging

from ..audio.capture import MicrophoneStream
from ..config import LessonNotesConfig
from ..models.session import BackendKind, RecordingMode
from ..transcription.base import AbstractASRClient
from ..transcription.continuous_backend import ContinuousRecognizerBackend
from ..transcription.google_engine import GoogleStreamingEngine
from ..transcription.relay_backend import DEFAULT_RELAY_URL, StreamingRelayBackend
from ..transcription.segment_backend import DEFAULT_API_URL, SegmentTranscriptionBackend

logger = logging.getLogger(__name__)


class BackendFactory:
    """Creates a fresh backend, with its own microphone, for every request."""

    def __init__(self, config: LessonNotesConfig):
        self.config = config
        self.language = config.get('recording.language', 'en-US')

    def __call__(self, kind: BackendKind, mode: RecordingMode) -> AbstractASRClient:
        logger.info(f"Creating {kind.value} backend for {mode.value} mode")
        if kind is BackendKind.ONDEVICE:
            return self._create_ondevice()
        if kind is BackendKind.SEGMENT:
            return self._create_segment()
        if kind is BackendKind.RELAY:
            return self._create_relay(mode)
        raise ValueError(f"Unknown backend kind: {kind}")

    def create_microphone(self) -> MicrophoneStream:
        return MicrophoneStream(
            sample_rate=self.config.get('audio.sample_rate', 16000),
            chunk_size=self.config.get('audio.chunk_size', 1024),
            channels=self.config.get('audio.channels', 1),
            noise_suppression=self.config.get('audio.noise_suppression', True),
            echo_cancellation=self.config.get('audio.echo_cancellation', True),
        )

    def _create_ondevice(self) -> ContinuousRecognizerBackend:
        credentials_path = self.config.get_google_credentials_path()
        language = self.config.get('google_cloud.language', self.language)
        logger.debug(f"Google engine: credentials={credentials_path}, language={language}")

        engine = GoogleStreamingEngine(
            credentials_path=credentials_path,
            microphone=self.create_microphone(),
            language=language,
            enable_automatic_punctuation=self.config.get('google_cloud.enable_automatic_punctuation', False),
            no_speech_timeout=self.config.get('google_cloud.no_speech_timeout_seconds', 8.0),
        )
        return ContinuousRecognizerBackend(engine, language=language)

    def _create_segment(self) -> SegmentTranscriptionBackend:
        return SegmentTranscriptionBackend(
            api_key=self.config.get_openai_api_key(),
            microphone=self.create_microphone(),
            api_url=self.config.get('segment.api_url', DEFAULT_API_URL),
            model=self.config.get('segment.model', 'whisper-1'),
            language=self.language,
            timeslice_seconds=self.config.get('audio.timeslice_seconds', 1.0),
            flush_wait_seconds=self.config.get('segment.flush_wait_seconds', 2.0),
            request_timeout_seconds=self.config.get('segment.request_timeout_seconds', 60.0),
        )

    def _create_relay(self, mode: RecordingMode) -> StreamingRelayBackend:
        # Question mode records the tutor asking; free-flow records the student.
        turn = "tutor" if mode is RecordingMode.QUESTION else "student"
        return StreamingRelayBackend(
            microphone=self.create_microphone(),
            relay_url=self.config.get('relay.url', DEFAULT_RELAY_URL),
            turn=turn,
            connect_timeout=self.config.get('relay.connect_timeout_seconds', 5.0),
            language=self.language,
        )
