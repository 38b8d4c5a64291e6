"""Transcript and segment models."""

from dataclasses import dataclass, field
from typing import List, Optional, Any


SENTENCE_TERMINATORS = (".", "!", "?")


def title_case(text: str) -> str:
    """Title-case each space separated word, lowering the rest of the word."""
    return " ".join(word[:1].upper() + word[1:].lower() for word in text.split(" "))


@dataclass
class Segment:
    """Portion of the transcript belonging to one question (or the whole free-flow session)."""
    index: int
    question_text: Optional[str] = None
    finalized_text: str = ""
    raw_audio_ref: Optional[Any] = None
    closed: bool = False

    def append(self, text: str) -> None:
        if self.closed:
            raise RuntimeError(f"Segment {self.index} is closed")
        self.finalized_text += text

    def replace_text(self, text: str) -> None:
        if self.closed:
            raise RuntimeError(f"Segment {self.index} is closed")
        self.finalized_text = text

    def close(self) -> None:
        self.closed = True
        self.raw_audio_ref = None

    @property
    def has_text(self) -> bool:
        return bool(self.finalized_text.strip())


@dataclass
class Transcript:
    """Ordered sequence of segments. At most one segment is open at a time."""
    segments: List[Segment] = field(default_factory=list)

    def open_segment(self, question_text: Optional[str] = None) -> Segment:
        """Close the currently open segment (if any) and open the next one."""
        current = self.current
        if current is not None and not current.closed:
            current.close()
        segment = Segment(index=len(self.segments), question_text=question_text)
        self.segments.append(segment)
        return segment

    @property
    def current(self) -> Optional[Segment]:
        return self.segments[-1] if self.segments else None

    @property
    def open(self) -> Optional[Segment]:
        current = self.current
        if current is not None and not current.closed:
            return current
        return None

    def close_current(self) -> None:
        current = self.current
        if current is not None:
            current.close()

    def compile_questions(self) -> str:
        """Compile answered questions as bracketed, title-cased blocks.

        Segments whose trimmed text is empty are omitted.
        """
        blocks = []
        for segment in self.segments:
            if not segment.has_text:
                continue
            question = title_case(segment.question_text or f"Question {segment.index + 1}")
            blocks.append(f"[{question}]\n{segment.finalized_text.strip()}\n")
        return "\n".join(blocks).strip()

    def compile_freeflow(self) -> str:
        return " ".join(s.finalized_text.strip() for s in self.segments if s.has_text)

    def is_empty(self) -> bool:
        return not any(segment.has_text for segment in self.segments)
