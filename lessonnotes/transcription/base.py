"""Abstract base class and callback plumbing for ASR backends."""

from abc import ABC, abstractmethod
from typing import Callable, Optional
import logging

from ..errors import ASRError
from ..models.events import ASREvent, ASREventKind
from ..models.session import BackendKind

logger = logging.getLogger(__name__)


TextCallback = Callable[[str], None]
ErrorCallback = Callable[[ASRError], None]


class EventCallbacks:
    """Holds exactly one partial, final and error callback.

    Registering a callback replaces the previous one. ``clear()`` drops all
    of them, which is how a replaced backend instance is cut off from the
    session it used to feed.
    """

    def __init__(self):
        self.partial: Optional[TextCallback] = None
        self.final: Optional[TextCallback] = None
        self.error: Optional[ErrorCallback] = None

    def clear(self) -> None:
        self.partial = None
        self.final = None
        self.error = None

    def emit_partial(self, text: str) -> None:
        if self.partial is not None:
            self.partial(text)

    def emit_final(self, text: str) -> None:
        if self.final is not None:
            self.final(text)

    def emit_error(self, error: ASRError) -> None:
        if self.error is not None:
            self.error(error)
        else:
            logger.warning(f"Dropped backend error with no listener: {error}")

    def dispatch(self, event: ASREvent) -> None:
        """Route an ``ASREvent`` to the matching callback."""
        if event.kind is ASREventKind.PARTIAL:
            self.emit_partial(event.text)
        elif event.kind is ASREventKind.FINAL:
            self.emit_final(event.text)
        else:
            self.emit_error(ASRError(event.reason or "Unknown error"))


class AbstractASRClient(ABC):
    """Uniform contract every speech recognition backend satisfies."""

    kind: BackendKind

    def __init__(self, language: str = "en-US"):
        """Initialize backend with language preference."""
        self.language = language
        self.callbacks = EventCallbacks()
        self.is_active = False

    @abstractmethod
    async def start(self) -> None:
        """Acquire resources and begin producing events.

        Raises:
            PermissionDenied, ConnectionTimeout, BackendUnavailable or DeviceError.
            Resources are released before the error propagates and no event is
            emitted for a failed start.
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Cease producing events and release all resources. Idempotent."""
        pass

    def on_partial(self, callback: Optional[TextCallback]) -> None:
        self.callbacks.partial = callback

    def on_final(self, callback: Optional[TextCallback]) -> None:
        self.callbacks.final = callback

    def on_error(self, callback: Optional[ErrorCallback]) -> None:
        self.callbacks.error = callback

    def detach(self) -> None:
        """Invalidate every registered callback."""
        self.callbacks.clear()

    @property
    def name(self) -> str:
        return self.__class__.__name__
