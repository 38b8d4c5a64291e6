"""Unit tests for SegmentTranscriptionBackend against a local aiohttp server."""

import asyncio
import pytest
from typing import Optional
from unittest.mock import Mock

from aiohttp import web
from aiohttp import test_utils

from lessonnotes.errors import BackendUnavailable, PermissionDenied
from lessonnotes.transcription.segment_backend import FUN_PROCESSING_MESSAGES, SegmentTranscriptionBackend

TRANSCRIBE_PATH = "/v1/audio/transcriptions"


class TranscriptionService:
    """Records uploads and replies with a scripted response."""

    def __init__(self, status: int = 200, text: str = "", delay: float = 0.0, body: Optional[str] = None):
        self.status = status
        self.text = text
        self.delay = delay
        self.body = body
        self.uploads = []

    async def handle(self, request: web.Request) -> web.Response:
        form = await request.post()
        self.uploads.append({
            "authorization": request.headers.get("Authorization"),
            "model": form["model"],
            "language": form["language"],
            "filename": form["file"].filename,
            "audio": form["file"].file.read(),
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.status != 200:
            return web.Response(status=self.status, text="boom")
        if self.body is not None:
            return web.Response(text=self.body, content_type="application/json")
        return web.json_response({"text": self.text})


async def _start_server(service: TranscriptionService) -> test_utils.TestServer:
    app = web.Application()
    app.router.add_post(TRANSCRIBE_PATH, service.handle)
    server = test_utils.TestServer(app)
    await server.start_server()
    return server


def _backend(microphone, url, api_key="test-key"):
    return SegmentTranscriptionBackend(api_key=api_key, microphone=microphone, api_url=url)


@pytest.mark.unit
class TestSegmentBackendLifecycle:
    """Test cases for start/stop."""

    def test_timeslice_never_below_one_second(self, fake_microphone):
        """Test the timeslice floor."""
        backend = SegmentTranscriptionBackend("key", fake_microphone, timeslice_seconds=0.25)

        assert backend.buffer.timeslice_seconds == 1.0

    @pytest.mark.asyncio
    async def test_start_without_api_key(self, fake_microphone):
        """Test starting without an API key."""
        backend = _backend(fake_microphone, "http://127.0.0.1:9", api_key=None)

        with pytest.raises(BackendUnavailable):
            await backend.start()

        assert fake_microphone.open_calls == 0
        assert backend.is_active is False

    @pytest.mark.asyncio
    async def test_microphone_denied(self, make_microphone):
        """Test microphone permission failure on start."""
        microphone = make_microphone(open_error=PermissionDenied("Microphone access denied"))
        backend = _backend(microphone, "http://127.0.0.1:9")

        with pytest.raises(PermissionDenied):
            await backend.start()

        assert microphone.close_calls == 1
        assert backend.is_active is False

    @pytest.mark.asyncio
    async def test_start_does_not_transcribe(self, fake_microphone):
        """Test that start only arms capture."""
        backend = _backend(fake_microphone, "http://127.0.0.1:9")

        await backend.start()

        assert backend.is_active is True
        assert fake_microphone.is_active is True
        assert backend.requests_sent == 0
        backend.stop()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, fake_microphone, sine_frame):
        """Test stopping twice."""
        backend = _backend(fake_microphone, "http://127.0.0.1:9")
        await backend.start()
        fake_microphone.push(sine_frame)

        backend.stop()
        backend.stop()

        assert fake_microphone.is_open is False
        assert backend.buffer.is_empty()


@pytest.mark.unit
class TestSegmentFlush:
    """Test cases for flush_segment."""

    @pytest.mark.asyncio
    async def test_empty_buffer_makes_no_request(self, fake_microphone):
        """Test flushing an empty buffer."""
        service = TranscriptionService(text="never")
        server = await _start_server(service)
        try:
            backend = _backend(fake_microphone, str(server.make_url(TRANSCRIBE_PATH)))
            await backend.start()

            assert await backend.flush_segment() == ""
            assert service.uploads == []
            assert backend.requests_sent == 0
            assert fake_microphone.is_active is True
            backend.stop()
        finally:
            await server.close()

    @pytest.mark.asyncio
    async def test_flush_uploads_wav_and_returns_text(self, fake_microphone, sine_frame):
        """Test uploading a segment and resuming capture."""
        service = TranscriptionService(text="  we played scales ")
        server = await _start_server(service)
        try:
            backend = _backend(fake_microphone, str(server.make_url(TRANSCRIBE_PATH)))
            partial = Mock()
            backend.on_partial(partial)
            await backend.start()
            fake_microphone.push(sine_frame)
            fake_microphone.push(sine_frame)

            text = await backend.flush_segment()

            assert text == "we played scales"
            assert len(service.uploads) == 1
            upload = service.uploads[0]
            assert upload["authorization"] == "Bearer test-key"
            assert upload["model"] == "whisper-1"
            assert upload["language"] == "en"
            assert upload["filename"] == "segment.wav"
            assert upload["audio"][:4] == b"RIFF"
            partial.assert_called_once()
            assert partial.call_args.args[0] in FUN_PROCESSING_MESSAGES

            # Capture resumes under a fresh buffer
            assert fake_microphone.pause_calls == 1
            assert fake_microphone.is_active is True
            assert backend.buffer.is_empty()
            backend.stop()
        finally:
            await server.close()

    @pytest.mark.asyncio
    async def test_each_flush_uploads_only_its_segment(self, fake_microphone, sine_frame):
        """Test that each flush starts from a fresh buffer."""
        service = TranscriptionService(text="ok")
        server = await _start_server(service)
        try:
            backend = _backend(fake_microphone, str(server.make_url(TRANSCRIBE_PATH)))
            await backend.start()
            fake_microphone.push(sine_frame)
            await backend.flush_segment()
            fake_microphone.push(sine_frame)
            fake_microphone.push(sine_frame)
            await backend.flush_segment()

            sizes = [len(u["audio"]) for u in service.uploads]
            assert sizes[1] - 44 == 2 * (sizes[0] - 44)
            backend.stop()
        finally:
            await server.close()

    @pytest.mark.asyncio
    async def test_http_error_becomes_inline_text(self, fake_microphone, sine_frame):
        """Test inline error text for HTTP failures."""
        service = TranscriptionService(status=500)
        server = await _start_server(service)
        try:
            backend = _backend(fake_microphone, str(server.make_url(TRANSCRIBE_PATH)))
            await backend.start()
            fake_microphone.push(sine_frame)

            text = await backend.flush_segment()

            assert text == "Error: Transcription failed - 500 - boom"
            assert backend.is_active is True
            backend.stop()
        finally:
            await server.close()

    @pytest.mark.asyncio
    async def test_unreachable_endpoint_becomes_inline_text(self, fake_microphone, sine_frame):
        """Test inline error text for connection failures."""
        server = await _start_server(TranscriptionService())
        url = str(server.make_url(TRANSCRIBE_PATH))
        await server.close()

        backend = _backend(fake_microphone, url)
        await backend.start()
        fake_microphone.push(sine_frame)

        text = await backend.flush_segment()

        assert text.startswith("Error: Transcription failed - ")
        backend.stop()

    @pytest.mark.asyncio
    async def test_result_discarded_after_stop(self, fake_microphone, sine_frame):
        """Test that results arriving after stop are discarded."""
        service = TranscriptionService(text="too late", delay=0.2)
        server = await _start_server(service)
        try:
            backend = _backend(fake_microphone, str(server.make_url(TRANSCRIBE_PATH)))
            await backend.start()
            fake_microphone.push(sine_frame)

            flush = asyncio.create_task(backend.flush_segment())
            await asyncio.sleep(0.05)
            backend.stop()

            assert await flush == ""
            assert fake_microphone.is_active is False
        finally:
            await server.close()

    @pytest.mark.asyncio
    async def test_flush_when_inactive(self, fake_microphone):
        """Test flushing a backend that was never started."""
        backend = _backend(fake_microphone, "http://127.0.0.1:9")

        assert await backend.flush_segment() == ""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", ["not json", '["we played scales"]'])
    async def test_malformed_body_becomes_inline_text(self, fake_microphone, sine_frame, body):
        """Test that an unreadable 200 reply is reported inline and capture resumes."""
        service = TranscriptionService(body=body)
        server = await _start_server(service)
        try:
            backend = _backend(fake_microphone, str(server.make_url(TRANSCRIBE_PATH)))
            await backend.start()
            fake_microphone.push(sine_frame)

            text = await backend.flush_segment()

            assert text == "Error: Transcription failed - invalid response body"
            assert backend.is_active is True
            assert fake_microphone.is_active is True
            backend.stop()
        finally:
            await server.close()
