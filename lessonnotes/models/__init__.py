"""Data models for the lesson notes recorder."""

from .events import ASREvent, ASREventKind
from .transcript import Segment, Transcript, SENTENCE_TERMINATORS, title_case
from .session import RecordingMode, BackendKind, SessionState, RecordingSession
from .ui import SessionStatus, SessionOutput
from .relay import RelayStartMessage, RelayTranscriptMessage, RelayErrorMessage

__all__ = [
    "ASREvent",
    "ASREventKind",
    "Segment",
    "Transcript",
    "SENTENCE_TERMINATORS",
    "title_case",
    "RecordingMode",
    "BackendKind",
    "SessionState",
    "RecordingSession",
    "SessionStatus",
    "SessionOutput",
    # Relay wire protocol
    "RelayStartMessage",
    "RelayTranscriptMessage",
    "RelayErrorMessage",
]
