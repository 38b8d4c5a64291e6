"""Streaming cloud backend that talks to the ASR relay over a WebSocket."""

import asyncio
import json
import logging
from typing import Optional

import aiohttp
from pydantic import ValidationError

from .base import AbstractASRClient
from ..audio.capture import MicrophoneStream
from ..audio.pcm import float_to_pcm16
from ..errors import ASRError, BackendUnavailable, ConnectionTimeout
from ..models.events import ASREvent
from ..models.relay import RelayStartMessage, RelayTranscriptMessage, RelayErrorMessage
from ..models.session import BackendKind

logger = logging.getLogger(__name__)


DEFAULT_RELAY_URL = "ws://localhost:3001/realtime"


class StreamingRelayBackend(AbstractASRClient):
    """Streams PCM16 audio to the relay and forwards its partial/final results.

    Protocol:
      1. Open the socket and send {"type": "start", "sampleRate": N, "turn": T}
      2. Send every captured frame as a binary PCM16 message
      3. Receive {"type": "partial"|"final", "text": ...} or {"type": "error", "message": ...}
    """

    kind = BackendKind.RELAY

    def __init__(self,
                 microphone: MicrophoneStream,
                 relay_url: str = DEFAULT_RELAY_URL,
                 turn: str = "student",
                 connect_timeout: float = 5.0,
                 language: str = "en-US"):
        """Initialize relay backend.

        Args:
            microphone: Microphone owned exclusively by this backend
            relay_url: WebSocket endpoint of the relay
            turn: "tutor" or "student", passed through to the relay for labeling
            connect_timeout: Seconds allowed for the socket to reach the open state
            language: Locale of the recording
        """
        super().__init__(language)
        self.microphone = microphone
        self.relay_url = relay_url
        self.turn = turn
        self.connect_timeout = connect_timeout

        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._outgoing: Optional[asyncio.Queue] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._send_task: Optional[asyncio.Task] = None
        self._release_task: Optional[asyncio.Task] = None
        self.frames_sent = 0

    async def start(self) -> None:
        if self.is_active:
            logger.warning("Relay backend already started")
            return

        self._session = aiohttp.ClientSession()
        try:
            await self.microphone.open(self._on_frame)
            self._ws = await self._connect()
            start_message = RelayStartMessage(sample_rate=self.microphone.sample_rate, turn=self.turn)
            await self._ws.send_str(start_message.to_wire())
        except ASRError:
            await self._release()
            raise
        except aiohttp.ClientError as e:
            await self._release()
            raise BackendUnavailable(f"Relay unavailable: {e}") from e

        logger.info(f"Connected to relay {self.relay_url} (turn={self.turn})")
        self.is_active = True
        self._outgoing = asyncio.Queue()
        self._send_task = asyncio.create_task(self._send_loop(self._ws, self._outgoing))
        self._receive_task = asyncio.create_task(self._receive_loop(self._ws))

    async def _connect(self) -> aiohttp.ClientWebSocketResponse:
        try:
            return await asyncio.wait_for(self._session.ws_connect(self.relay_url), timeout=self.connect_timeout)
        except asyncio.TimeoutError as e:
            raise ConnectionTimeout(
                f"Relay connection timed out after {self.connect_timeout:.1f}s") from e

    def stop(self) -> None:
        if not self.is_active and self._session is None:
            return
        self.is_active = False
        self.microphone.close()
        if self._send_task is not None:
            self._send_task.cancel()
            self._send_task = None
        if self._receive_task is not None and self._receive_task is not asyncio.current_task():
            self._receive_task.cancel()
        self._receive_task = None
        if self._release_task is None or self._release_task.done():
            self._release_task = asyncio.get_running_loop().create_task(self._release())
            self._release_task.add_done_callback(self._on_released)
        logger.info(f"Relay backend stopped after {self.frames_sent} frames")

    async def _release(self) -> None:
        """Close the socket and HTTP session and release the microphone."""
        self.microphone.close()
        ws, session = self._ws, self._session
        self._ws = None
        self._session = None
        if ws is not None and not ws.closed:
            await ws.close()
        if session is not None and not session.closed:
            await session.close()

    def _on_released(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Error releasing relay connection: {error}")

    def _on_frame(self, frame) -> None:
        if self.is_active and self._outgoing is not None:
            self._outgoing.put_nowait(float_to_pcm16(frame))

    async def _send_loop(self, ws: aiohttp.ClientWebSocketResponse, outgoing: asyncio.Queue) -> None:
        while True:
            pcm = await outgoing.get()
            if ws.closed:
                return
            await ws.send_bytes(pcm)
            self.frames_sent += 1

    async def _receive_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                self._handle_message(msg.data)
            elif msg.type == aiohttp.WSMsgType.ERROR:
                logger.error(f"Relay socket error: {ws.exception()}")
                break
            if not self.is_active:
                return

        if self.is_active:
            error = BackendUnavailable("Relay connection closed")
            self.stop()
            self.callbacks.emit_error(error)

    def _handle_message(self, raw: str) -> None:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring non-JSON relay message: {raw[:80]}")
            return

        message_type = data.get("type") if isinstance(data, dict) else None
        try:
            if message_type in ("partial", "final"):
                message = RelayTranscriptMessage.model_validate(data)
                event = ASREvent.partial(message.text) if message.type == "partial" else ASREvent.final(message.text)
                self.callbacks.dispatch(event)
            elif message_type == "error":
                message = RelayErrorMessage.model_validate(data)
                logger.error(f"Relay reported error: {message.message}")
                self.callbacks.emit_error(BackendUnavailable(message.message or "Relay error"))
            else:
                logger.debug(f"Ignoring relay message of type {message_type!r}")
        except ValidationError as e:
            logger.warning(f"Malformed relay message: {e}")
