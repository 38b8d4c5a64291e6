"""ASR event models delivered from backends to the session controller."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class ASREventKind(Enum):
    """Kind of event emitted by a speech recognition backend."""
    PARTIAL = "partial"
    FINAL = "final"
    ERROR = "error"


@dataclass
class ASREvent:
    """A single partial, final or error event.

    Partial events are advisory and may be superseded. Final events are
    authoritative appends to the open segment.
    """
    kind: ASREventKind
    text: str = ""
    reason: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @classmethod
    def partial(cls, text: str) -> "ASREvent":
        return cls(kind=ASREventKind.PARTIAL, text=text)

    @classmethod
    def final(cls, text: str) -> "ASREvent":
        return cls(kind=ASREventKind.FINAL, text=text)

    @classmethod
    def error(cls, reason: str) -> "ASREvent":
        return cls(kind=ASREventKind.ERROR, reason=reason)
