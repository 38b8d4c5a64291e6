"""UI-facing status and output models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .session import SessionState, RecordingMode


@dataclass
class SessionStatus:
    """Short human readable status for the recorder UI."""
    state: SessionState
    message: str
    level: str = "info"  # info | success | warning | error
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class SessionOutput:
    """Final lesson notes surfaced when a session stops."""
    raw_text: str
    text: str
    mode: RecordingMode
    enhancements: str = ""
    template: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
