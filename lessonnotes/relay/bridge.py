"""Bridges one recorder WebSocket to the upstream realtime transcription API.

The recorder speaks the small relay protocol (``start`` control message,
binary PCM16 frames, ``partial``/``final``/``error`` replies). The upstream
API speaks JSON events with base64 audio. The bridge translates between
the two and keeps both sockets' lifetimes tied together.
"""

import asyncio
import base64
import json
import logging
from typing import Optional, Union

import aiohttp
from aiohttp import web
from pydantic import ValidationError

from ..models.relay import (
    AudioAppendEvent,
    RelayErrorMessage,
    RelayStartMessage,
    RelayTranscriptMessage,
    SessionUpdateEvent,
    UpstreamEvent,
)

logger = logging.getLogger(__name__)


DEFAULT_UPSTREAM_URL = "wss://api.openai.com/v1/realtime?model=gpt-4o-realtime-preview-2024-10-01"

RelayReply = Union[RelayTranscriptMessage, RelayErrorMessage]


def translate_upstream_event(event: UpstreamEvent) -> Optional[RelayReply]:
    """Map one upstream event to the reply sent to the recorder, if any."""
    if event.type == "input_audio_buffer.speech_started":
        return RelayTranscriptMessage(type="partial", text="...")

    if event.type == "conversation.item.input_audio_transcription.completed":
        if event.transcript:
            return RelayTranscriptMessage(type="final", text=event.transcript)
        return None

    if event.type == "conversation.item.input_audio_transcription.failed":
        return RelayErrorMessage(message=f"Transcription failed: {event.error_message or 'Unknown error'}")

    if event.type == "error":
        return RelayErrorMessage(message=event.error_message or "Upstream API error")

    logger.debug(f"Upstream event not forwarded: {event.type}")
    return None


class RelayBridge:
    """One recorder connection and its upstream counterpart."""

    def __init__(self,
                 client_ws: web.WebSocketResponse,
                 http: aiohttp.ClientSession,
                 api_key: str,
                 upstream_url: str = DEFAULT_UPSTREAM_URL):
        """Initialize relay bridge.

        Args:
            client_ws: Prepared WebSocket to the recorder
            http: Shared client session used to reach upstream
            api_key: Bearer token for the upstream API
            upstream_url: Upstream realtime WebSocket URL
        """
        self.client_ws = client_ws
        self.http = http
        self.api_key = api_key
        self.upstream_url = upstream_url

        self.upstream: Optional[aiohttp.ClientWebSocketResponse] = None
        self.session_active = False
        self._upstream_task: Optional[asyncio.Task] = None
        self.frames_forwarded = 0

    async def run(self) -> None:
        """Serve the recorder until either side closes."""
        try:
            async for msg in self.client_ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self._handle_control(msg.data)
                elif msg.type == aiohttp.WSMsgType.BINARY:
                    await self._forward_audio(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.error(f"Client WebSocket error: {self.client_ws.exception()}")
                    break
        finally:
            logger.info(f"Client disconnected after {self.frames_forwarded} audio frames")
            await self.close()

    async def _handle_control(self, raw: str) -> None:
        try:
            data = json.loads(raw)
            message_type = data.get("type")
            if message_type != "start":
                logger.debug(f"Ignoring client control message: {message_type!r}")
                return
            start = RelayStartMessage.model_validate(data)
        except (ValueError, AttributeError) as e:
            # ValidationError and JSONDecodeError are both ValueErrors
            logger.warning(f"Invalid client message: {e}")
            await self.send(RelayErrorMessage(message="Message processing error"))
            return

        logger.info(f"Starting relay session: sampleRate={start.sample_rate}, turn={start.turn}")
        await self._open_upstream()

    async def _open_upstream(self) -> None:
        if self.upstream is not None:
            logger.warning("Start received with an upstream session already open; replacing it")
            await self._close_upstream()

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "OpenAI-Beta": "realtime=v1",
        }
        try:
            upstream = await self.http.ws_connect(self.upstream_url, headers=headers)
            await upstream.send_str(SessionUpdateEvent().model_dump_json())
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Upstream connection failed: {e}")
            await self.send(RelayErrorMessage(message="Upstream connection error"))
            return

        logger.info("Connected to upstream realtime API")
        self.upstream = upstream
        self.session_active = True
        self._upstream_task = asyncio.create_task(self._pump_upstream(upstream))

    async def _forward_audio(self, data: bytes) -> None:
        upstream = self.upstream
        if upstream is None or not self.session_active or upstream.closed:
            return
        event = AudioAppendEvent(audio=base64.b64encode(data).decode("ascii"))
        await upstream.send_str(event.model_dump_json())
        self.frames_forwarded += 1

    async def _pump_upstream(self, upstream: aiohttp.ClientWebSocketResponse) -> None:
        async for msg in upstream:
            if msg.type == aiohttp.WSMsgType.TEXT:
                await self._handle_upstream(msg.data)
            elif msg.type == aiohttp.WSMsgType.ERROR:
                logger.error(f"Upstream WebSocket error: {upstream.exception()}")
                await self.send(RelayErrorMessage(message="Upstream connection error"))
                break

        logger.info("Upstream WebSocket closed")
        self.session_active = False
        if not self.client_ws.closed:
            await self.client_ws.close()

    async def _handle_upstream(self, raw: str) -> None:
        try:
            event = UpstreamEvent.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Error processing upstream message: {e}")
            await self.send(RelayErrorMessage(message="Message processing error"))
            return

        reply = translate_upstream_event(event)
        if reply is not None:
            await self.send(reply)

    async def send(self, message: RelayReply) -> None:
        if self.client_ws.closed:
            return
        await self.client_ws.send_str(message.model_dump_json())

    async def _close_upstream(self) -> None:
        self.session_active = False
        task, upstream = self._upstream_task, self.upstream
        self._upstream_task = None
        self.upstream = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        if upstream is not None and not upstream.closed:
            await upstream.close()

    async def close(self) -> None:
        """Close both sides. Safe to call more than once."""
        await self._close_upstream()
        if not self.client_ws.closed:
            await self.client_ws.close()
