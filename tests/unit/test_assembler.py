"""Unit tests for TranscriptAssembler."""

import pytest

from lessonnotes.transcription.assembler import TranscriptAssembler, capitalize_first


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def assembler(clock):
    assembler = TranscriptAssembler(pause_threshold_seconds=1.5, clock=clock)
    assembler.open_segment()
    return assembler


@pytest.mark.unit
class TestAppendFinal:
    """Test cases for final span accumulation."""

    def test_capitalize_first(self):
        """Test first-letter capitalization helper."""
        assert capitalize_first("scales") == "Scales"
        assert capitalize_first("") == ""

    def test_first_span_is_capitalized(self, assembler):
        """Test that the first final of a segment is capitalized."""
        appended = assembler.append_final("we played scales")

        assert appended == "We played scales "
        assert assembler.segment.finalized_text == "We played scales "

    def test_continuation_is_not_capitalized(self, assembler):
        """Test that a span continuing a sentence keeps its case."""
        assembler.append_final("we played scales")
        assembler.append_final("and some chords")

        assert assembler.segment.finalized_text == "We played scales and some chords "

    def test_span_after_terminator_is_capitalized(self, assembler):
        """Test capitalization after a sentence terminator."""
        assembler.append_final("we played scales.")
        assembler.append_final("then chords?")
        assembler.append_final("yes")

        assert assembler.segment.finalized_text == "We played scales. Then chords? Yes "

    def test_blank_span_is_ignored(self, assembler):
        """Test appending a blank final."""
        assert assembler.append_final("   ") == ""
        assert assembler.segment.finalized_text == ""

    def test_final_without_open_segment_is_dropped(self, clock):
        """Test appending a final with no open segment."""
        assembler = TranscriptAssembler(clock=clock)

        assert assembler.append_final("hello") == ""
        assert assembler.transcript.segments == []

    def test_final_clears_interim(self, assembler):
        """Test that a final replaces the interim text."""
        assembler.set_interim("we pla")
        assembler.append_final("we played")

        assert assembler.interim_text == ""

    def test_set_segment_text_replaces(self, assembler):
        """Test setting flushed text on the open segment."""
        assembler.set_segment_text("  practice arpeggios ")

        assert assembler.segment.finalized_text == "Practice arpeggios"

    def test_set_segment_text_empty_keeps_segment_empty(self, assembler):
        """Test setting empty flushed text."""
        assembler.set_segment_text("")

        assert assembler.segment.finalized_text == ""


@pytest.mark.unit
class TestPausePunctuation:
    """Test cases for silence-based period insertion."""

    def test_period_after_threshold(self, assembler, clock):
        """Test period insertion after the pause threshold."""
        assembler.append_final("we played scales")
        clock.advance(1.6)

        assert assembler.check_pause() is True
        assert assembler.segment.finalized_text == "We played scales. "

    def test_no_period_before_threshold(self, assembler, clock):
        """Test that short pauses add nothing."""
        assembler.append_final("we played scales")
        clock.advance(1.4)

        assert assembler.check_pause() is False
        assert assembler.segment.finalized_text == "We played scales "

    def test_period_inserted_once_per_silence(self, assembler, clock):
        """Test one period per silence episode."""
        assembler.append_final("we played scales")
        clock.advance(2.0)
        assembler.check_pause()
        clock.advance(5.0)

        assert assembler.check_pause() is False
        assert assembler.segment.finalized_text == "We played scales. "

    def test_new_activity_rearms(self, assembler, clock):
        """Test that new speech re-arms pause punctuation."""
        assembler.append_final("we played scales")
        clock.advance(2.0)
        assembler.check_pause()

        assembler.append_final("then chords")
        clock.advance(2.0)

        assert assembler.check_pause() is True
        assert assembler.segment.finalized_text == "We played scales. Then chords. "

    def test_no_period_on_blank_segment(self, assembler, clock):
        """Test pause check on an empty segment."""
        clock.advance(3.0)

        assert assembler.check_pause() is False
        assert assembler.segment.finalized_text == ""

    def test_no_double_terminator(self, assembler, clock):
        """Test that an existing terminator is not doubled."""
        assembler.append_final("is that right?")
        clock.advance(2.0)

        assert assembler.check_pause() is False
        assert assembler.segment.finalized_text == "Is that right? "

    def test_growing_interim_counts_as_activity(self, assembler, clock):
        """Test that growing interim text delays the pause period."""
        assembler.append_final("we played")
        clock.advance(1.0)
        assembler.set_interim("some")
        clock.advance(1.0)

        assert assembler.check_pause() is False


@pytest.mark.unit
class TestSegments:
    """Test cases for segment lifecycle and compilation."""

    def test_finalize_closes_segment(self, assembler):
        """Test finalizing the open segment."""
        assembler.append_final("scales")

        text = assembler.finalize_segment()

        assert text == "Scales"
        assert assembler.segment is None
        assert assembler.transcript.segments[0].closed is True

    def test_closed_segment_rejects_appends(self, assembler):
        """Test that a closed segment ignores late finals."""
        segment = assembler.segment
        assembler.finalize_segment()

        with pytest.raises(RuntimeError):
            segment.append("more")

    def test_answered_segments(self, clock):
        """Test listing segments with text."""
        assembler = TranscriptAssembler(clock=clock)
        assembler.open_segment("Q1")
        assembler.append_final("one")
        assembler.open_segment("Q2")
        assembler.open_segment("Q3")
        assembler.append_final("three")

        answered = assembler.answered_segments()

        assert [s.question_text for s in answered] == ["Q1", "Q3"]
        assert [s.index for s in assembler.transcript.segments] == [0, 1, 2]
