"""Session-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from .transcript import Transcript


class RecordingMode(Enum):
    """Recording protocol: free-flow narration or sequential questions."""
    FREEFLOW = "freeflow"
    QUESTION = "question"


class BackendKind(Enum):
    """The closed set of ASR backend variants."""
    ONDEVICE = "ondevice"
    SEGMENT = "segment"
    RELAY = "relay"

    @property
    def is_cloud(self) -> bool:
        return self is not BackendKind.ONDEVICE


class SessionState(Enum):
    """Lifecycle states of the session controller."""
    IDLE = "idle"
    STARTING = "starting"
    RECORDING = "recording"
    FLUSHING = "flushing"
    STOPPING = "stopping"
    ERRORED = "errored"


@dataclass
class RecordingSession:
    """The single active recording session."""
    mode: RecordingMode
    active_backend: BackendKind
    questions: List[str] = field(default_factory=list)
    state: SessionState = SessionState.STARTING
    current_segment_index: int = 0
    started_at: datetime = field(default_factory=datetime.now)
    transcript: Transcript = field(default_factory=Transcript)
    used_fallback: bool = False

    @property
    def current_question(self) -> Optional[str]:
        if self.mode is not RecordingMode.QUESTION:
            return None
        if self.current_segment_index < len(self.questions):
            return self.questions[self.current_segment_index]
        return None

    @property
    def is_last_question(self) -> bool:
        return self.current_segment_index >= len(self.questions) - 1

    def advance(self) -> None:
        """Move to the next segment index. The index never decreases."""
        self.current_segment_index += 1
