"""Continuous recognizer backend: incremental interim/final results from a streaming engine."""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Protocol

from .base import AbstractASRClient
from ..errors import ASRError, DeviceError, NoSpeechDetected, PermissionDenied
from ..models.session import BackendKind

logger = logging.getLogger(__name__)


@dataclass
class RecognitionSpan:
    """One result span of an engine update."""
    text: str
    is_final: bool


@dataclass
class RecognitionUpdate:
    """An incremental engine update: finalized spans followed by interim ones."""
    spans: List[RecognitionSpan] = field(default_factory=list)


UpdateCallback = Callable[[RecognitionUpdate], None]
EngineErrorCallback = Callable[[str, str], None]


class RecognitionEngine(Protocol):
    """Protocol for continuous recognition engines."""

    async def start(self, on_update: UpdateCallback, on_error: EngineErrorCallback) -> None:
        """Begin recognition. Errors after start are reported as (code, message)."""
        ...

    def stop(self) -> None:
        """Stop recognition and release the engine's resources."""
        ...


def classify_engine_error(code: str, message: str = "") -> ASRError:
    """Map an engine error code onto the ASR error taxonomy."""
    if code == "not-allowed":
        return PermissionDenied("Microphone access denied. Please allow microphone access and try again.")
    if code == "no-speech":
        return NoSpeechDetected("No speech detected. Please speak more clearly and try again.")
    detail = f" ({message})" if message else ""
    return DeviceError(f"Speech recognition error: {code}{detail}")


class ContinuousRecognizerBackend(AbstractASRClient):
    """Adapter around a continuous, incremental recognition engine."""

    kind = BackendKind.ONDEVICE

    def __init__(self, engine: RecognitionEngine, language: str = "en-US"):
        """Initialize the backend.

        Args:
            engine: Recognition engine configured for continuous mode with interim results
            language: Locale the engine recognizes
        """
        super().__init__(language)
        self.engine = engine

    async def start(self) -> None:
        if self.is_active:
            logger.warning("Continuous recognizer already started")
            return

        logger.info(f"Starting continuous recognizer ({self.language})")
        try:
            await self.engine.start(self._on_update, self._on_engine_error)
        except ASRError:
            self.engine.stop()
            raise
        except Exception as e:
            self.engine.stop()
            raise DeviceError(f"Speech recognition failed to start: {e}") from e

        self.is_active = True

    def stop(self) -> None:
        if not self.is_active:
            return
        self.is_active = False
        self.engine.stop()
        logger.info("Continuous recognizer stopped")

    def _on_update(self, update: RecognitionUpdate) -> None:
        if not self.is_active:
            return

        interim = []
        for span in update.spans:
            if span.is_final:
                text = span.text.strip()
                if text:
                    self.callbacks.emit_final(text)
            else:
                interim.append(span.text)

        interim_text = "".join(interim).strip()
        if interim_text:
            self.callbacks.emit_partial(interim_text)

    def _on_engine_error(self, code: str, message: str = "") -> None:
        if not self.is_active:
            return
        error = classify_engine_error(code, message)
        logger.error(f"Recognition engine error '{code}': {error}")
        self.stop()
        self.callbacks.emit_error(error)
