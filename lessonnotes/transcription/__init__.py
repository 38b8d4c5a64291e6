"""Transcription backends and transcript assembly."""

from .base import AbstractASRClient, EventCallbacks
from .continuous_backend import ContinuousRecognizerBackend, RecognitionEngine, classify_engine_error
from .google_engine import GoogleStreamingEngine
from .segment_backend import SegmentTranscriptionBackend
from .relay_backend import StreamingRelayBackend
from .assembler import TranscriptAssembler
from .publisher import SessionPublisher
from .text_cleanup import CleanupResult, enhanced_cleanup, cleanup_text

__all__ = [
    "AbstractASRClient",
    "EventCallbacks",
    "ContinuousRecognizerBackend",
    "RecognitionEngine",
    "classify_engine_error",
    "GoogleStreamingEngine",
    "SegmentTranscriptionBackend",
    "StreamingRelayBackend",
    "TranscriptAssembler",
    "SessionPublisher",
    "CleanupResult",
    "enhanced_cleanup",
    "cleanup_text",
]
