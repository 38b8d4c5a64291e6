"""Transcript assembler: grows segment text, punctuates pauses, compiles the result."""

import time
import logging
from typing import Callable, List, Optional

from ..models.transcript import Segment, Transcript, SENTENCE_TERMINATORS

logger = logging.getLogger(__name__)


def capitalize_first(text: str) -> str:
    return text[:1].upper() + text[1:]


class TranscriptAssembler:
    """Accumulates finalized text into the open segment of a transcript.

    Final spans are appended in arrival order with a single trailing space.
    A span is capitalized when it starts the segment or follows a sentence
    terminator. Pause punctuation appends ". " once per silence episode and
    re-arms only when new speech activity is observed.
    """

    def __init__(self,
                 transcript: Optional[Transcript] = None,
                 pause_threshold_seconds: float = 1.5,
                 clock: Callable[[], float] = time.monotonic):
        """Initialize the assembler.

        Args:
            transcript: Transcript to assemble into (a new one when omitted)
            pause_threshold_seconds: Silence needed before a period is inserted
            clock: Monotonic time source in seconds
        """
        self.transcript = transcript or Transcript()
        self.pause_threshold_seconds = pause_threshold_seconds
        self._clock = clock

        self.interim_text = ""
        self.last_activity = self._clock()
        self._pause_armed = True

    @property
    def segment(self) -> Optional[Segment]:
        return self.transcript.open

    def open_segment(self, question_text: Optional[str] = None) -> Segment:
        """Close the open segment and start the next one."""
        segment = self.transcript.open_segment(question_text)
        self.interim_text = ""
        self.mark_activity()
        logger.debug(f"Opened segment {segment.index}: {question_text!r}")
        return segment

    def mark_activity(self) -> None:
        """Record speech activity; re-arms pause punctuation."""
        self.last_activity = self._clock()
        self._pause_armed = True

    def set_interim(self, text: str) -> None:
        """Track the latest advisory partial text."""
        grew = len(text) > len(self.interim_text)
        self.interim_text = text
        if grew:
            self.mark_activity()

    def append_final(self, text: str) -> str:
        """Append one finalized span to the open segment.

        Returns:
            The text actually appended (capitalization-adjusted, trailing space).
        """
        segment = self.segment
        if segment is None:
            logger.warning(f"Dropping final text with no open segment: {text!r}")
            return ""

        span = text.strip()
        if not span:
            return ""

        accumulated = segment.finalized_text.strip()
        if not accumulated or accumulated.endswith(SENTENCE_TERMINATORS):
            span = capitalize_first(span)

        appended = span + " "
        segment.append(appended)
        self.interim_text = ""
        self.mark_activity()
        return appended

    def set_segment_text(self, text: str) -> None:
        """Attach the result of a segment flush to the open segment."""
        segment = self.segment
        if segment is None:
            logger.warning("Dropping flushed text with no open segment")
            return
        text = text.strip()
        if text:
            segment.replace_text(capitalize_first(text))
        self.interim_text = ""

    def check_pause(self, now: Optional[float] = None) -> bool:
        """Insert a period if the speaker has paused long enough.

        Returns:
            True if a period was appended.
        """
        segment = self.segment
        if segment is None or not self._pause_armed:
            return False
        now = self._clock() if now is None else now
        if now - self.last_activity <= self.pause_threshold_seconds:
            return False

        self._pause_armed = False
        text = segment.finalized_text.strip()
        if not text or text.endswith(SENTENCE_TERMINATORS):
            return False

        segment.replace_text(text + ". ")
        logger.debug(f"Added period due to pause in segment {segment.index}")
        return True

    def finalize_segment(self) -> str:
        """Close the open segment and return its finalized text."""
        segment = self.segment
        if segment is None:
            return ""
        segment.close()
        self.interim_text = ""
        return segment.finalized_text.strip()

    def compile_questions(self) -> str:
        return self.transcript.compile_questions()

    def compile_freeflow(self) -> str:
        return self.transcript.compile_freeflow()

    def answered_segments(self) -> List[Segment]:
        return [s for s in self.transcript.segments if s.has_text]
