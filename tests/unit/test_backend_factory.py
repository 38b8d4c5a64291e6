"""Unit tests for BackendFactory."""

import pytest
from pathlib import Path

from lessonnotes.models.session import BackendKind, RecordingMode
from lessonnotes.services.backend_factory import BackendFactory
from lessonnotes.transcription.continuous_backend import ContinuousRecognizerBackend
from lessonnotes.transcription.relay_backend import StreamingRelayBackend
from lessonnotes.transcription.segment_backend import SegmentTranscriptionBackend


@pytest.mark.unit
class TestBackendFactory:
    """Test cases for building backends from configuration."""

    def test_segment_backend(self, test_config):
        """Test creating the segment backend from config."""
        backend = BackendFactory(test_config)(BackendKind.SEGMENT, RecordingMode.QUESTION)

        assert isinstance(backend, SegmentTranscriptionBackend)
        assert backend.api_key == "test-key"
        assert backend.api_url == "http://127.0.0.1:9/v1/audio/transcriptions"
        assert backend.buffer.timeslice_seconds == 1.0
        assert backend.is_active is False

    @pytest.mark.parametrize("mode,turn", [
        (RecordingMode.QUESTION, "tutor"),
        (RecordingMode.FREEFLOW, "student"),
    ])
    def test_relay_turn_follows_mode(self, test_config, mode, turn):
        """Test relay turn label per recording mode."""
        backend = BackendFactory(test_config)(BackendKind.RELAY, mode)

        assert isinstance(backend, StreamingRelayBackend)
        assert backend.turn == turn
        assert backend.relay_url == "ws://127.0.0.1:9/realtime"
        assert backend.connect_timeout == 0.5

    def test_ondevice_requires_credentials(self, test_config):
        """Test on-device backend without Google credentials."""
        with pytest.raises(ValueError):
            BackendFactory(test_config)(BackendKind.ONDEVICE, RecordingMode.FREEFLOW)

    def test_ondevice_backend(self, test_config, temp_data_dir):
        """Test creating the on-device backend."""
        creds = Path(temp_data_dir) / "service.json"
        creds.write_text("{}")
        test_config.set('google_cloud.credentials_path', str(creds))

        backend = BackendFactory(test_config)(BackendKind.ONDEVICE, RecordingMode.FREEFLOW)

        assert isinstance(backend, ContinuousRecognizerBackend)
        assert backend.language == "en-US"

    def test_every_backend_gets_its_own_microphone(self, test_config):
        """Test that backends never share a microphone."""
        factory = BackendFactory(test_config)

        first = factory(BackendKind.SEGMENT, RecordingMode.QUESTION)
        second = factory(BackendKind.RELAY, RecordingMode.QUESTION)

        assert first.microphone is not second.microphone
        assert first.microphone.sample_rate == 16000
