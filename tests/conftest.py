"""Pytest configuration and fixtures for lesson notes tests."""

import pytest
import tempfile
import logging
from unittest.mock import Mock, patch
from typing import List, Optional

import numpy as np

from lessonnotes.config import LessonNotesConfig
from lessonnotes.errors import ASRError
from lessonnotes.models.session import BackendKind, RecordingMode
from lessonnotes.transcription.base import AbstractASRClient
from lessonnotes.transcription.continuous_backend import RecognitionSpan, RecognitionUpdate


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class FakeMicrophone:
    """Stands in for MicrophoneStream; frames are pushed by the test."""

    def __init__(self, sample_rate: int = 16000, channels: int = 1, open_error: Optional[ASRError] = None):
        self.sample_rate = sample_rate
        self.channels = channels
        self.open_error = open_error
        self.is_open = False
        self.is_active = False
        self.on_frame = None
        self.open_calls = 0
        self.close_calls = 0
        self.pause_calls = 0
        self.resume_calls = 0

    async def open(self, on_frame) -> None:
        self.open_calls += 1
        if self.open_error is not None:
            raise self.open_error
        self.on_frame = on_frame
        self.is_open = True
        self.is_active = True

    def pause(self) -> None:
        self.pause_calls += 1
        self.is_active = False

    def resume(self) -> None:
        self.resume_calls += 1
        if self.is_open:
            self.is_active = True

    def close(self) -> None:
        self.close_calls += 1
        self.is_open = False
        self.is_active = False
        self.on_frame = None

    def push(self, frame: np.ndarray) -> None:
        """Deliver one frame as the loop would."""
        if self.on_frame is not None:
            self.on_frame(frame)


class FakeEngine:
    """Recognition engine driven by the test."""

    def __init__(self, start_error: Optional[Exception] = None):
        self.start_error = start_error
        self.on_update = None
        self.on_error = None
        self.started = False
        self.stop_calls = 0

    async def start(self, on_update, on_error) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.on_update = on_update
        self.on_error = on_error
        self.started = True

    def stop(self) -> None:
        self.stop_calls += 1
        self.started = False

    def update(self, finals: List[str] = (), interim: List[str] = ()) -> None:
        spans = [RecognitionSpan(text, True) for text in finals]
        spans += [RecognitionSpan(text, False) for text in interim]
        self.on_update(RecognitionUpdate(spans))

    def fail(self, code: str, message: str = "") -> None:
        self.on_error(code, message)


class FakeBackend(AbstractASRClient):
    """Backend whose events and flush results are scripted by the test."""

    def __init__(self, kind: BackendKind, start_error: Optional[ASRError] = None):
        super().__init__()
        self.kind = kind
        self.start_error = start_error
        self.start_calls = 0
        self.stop_calls = 0
        self.flush_results: List[str] = []
        self.flush_calls = 0
        self.flush_placeholder: Optional[str] = None
        self.audio_ref = object() if kind is BackendKind.SEGMENT else None

    async def start(self) -> None:
        self.start_calls += 1
        if self.start_error is not None:
            raise self.start_error
        self.is_active = True

    def stop(self) -> None:
        self.stop_calls += 1
        self.is_active = False

    async def flush_segment(self) -> str:
        self.flush_calls += 1
        if not self.is_active:
            return ""
        if self.flush_placeholder is not None:
            self.callbacks.emit_partial(self.flush_placeholder)
        return self.flush_results.pop(0) if self.flush_results else ""

    # Raw emission bypasses is_active so tests can model late events.
    def partial(self, text: str) -> None:
        self.callbacks.emit_partial(text)

    def final(self, text: str) -> None:
        self.callbacks.emit_final(text)

    def error(self, error: ASRError) -> None:
        self.callbacks.emit_error(error)


class FakeBackendFactory:
    """Backend factory that hands out FakeBackends and records every one created."""

    def __init__(self, start_errors=None):
        self.start_errors = dict(start_errors or {})
        self.created: List[FakeBackend] = []

    def __call__(self, kind: BackendKind, mode: RecordingMode) -> FakeBackend:
        backend = FakeBackend(kind, start_error=self.start_errors.get(kind))
        self.created.append(backend)
        return backend

    def of_kind(self, kind: BackendKind) -> List[FakeBackend]:
        return [b for b in self.created if b.kind is kind]


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def fake_microphone():
    return FakeMicrophone()


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def make_engine():
    return FakeEngine


@pytest.fixture
def make_microphone():
    return FakeMicrophone


@pytest.fixture
def backend_factory():
    return FakeBackendFactory()


@pytest.fixture
def make_backend_factory():
    """Build a FakeBackendFactory whose backends of the given kinds fail to start."""
    return FakeBackendFactory


@pytest.fixture
def sine_frame():
    """One 1024-sample float frame of a 440 Hz tone."""
    t = np.linspace(0, 1024 / 16000, 1024, False)
    return (0.5 * np.sin(2 * np.pi * 440 * t)).astype(np.float32)


@pytest.fixture
def test_config(temp_data_dir):
    """In-memory configuration rooted in a temporary directory."""
    return LessonNotesConfig(
        config_path=f"{temp_data_dir}/lessonnotes.yaml",
        data={
            "recording": {"mode": "question", "backend": "segment", "language": "en-US"},
            "audio": {"sample_rate": 16000, "chunk_size": 1024, "timeslice_seconds": 1.0},
            "segment": {"api_key": "test-key", "api_url": "http://127.0.0.1:9/v1/audio/transcriptions"},
            "relay": {"url": "ws://127.0.0.1:9/realtime", "connect_timeout_seconds": 0.5},
            "storage": {"cache_file": "data/last_result.json", "max_age_hours": 24},
            "logging": {"file_path": "data/logs/test.log", "console_output": False},
        },
    )


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio so MicrophoneStream can open without audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }
