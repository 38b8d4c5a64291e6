"""Lesson notes recorder: speech recognition orchestration for music lesson notes."""

__version__ = "0.1.0"
