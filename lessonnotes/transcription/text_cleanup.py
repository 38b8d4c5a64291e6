"""Lightweight, dictionary-based cleanup of raw lesson transcripts."""

import re
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


MUSIC_TERMINOLOGY_FIXES = {
    # Grammar fixes
    "I'd to": "I'd like to",
    "I'd you to": "I'd like you to",
    "what I'd you": "what I'd like you",
    "going to to": "going to",
    "need to to": "need to",

    # Scales
    "f minuscale": "F minor scale",
    "minor scale scale": "minor scale",
    "major scale scale": "major scale",
    "f minus": "F minor",
    "not your minor": "natural minor",
    "hole tone scale": "whole tone scale",

    # Note values
    "sixty note": "sixteenth note",
    "six teeth note": "sixteenth note",
    "ate notes": "eighth notes",
    "ate note": "eighth note",

    # Musical terms
    "DS alcohol da": "D.S. al coda",
    "DS al coda": "D.S. al coda",
    "into fall": "interval",
    "in to veil": "interval",
    "door in mode": "Dorian mode",
    "door in": "Dorian",
    "mix a Lydian": "Mixolydian",
    "mic soul idiom": "Mixolydian",
    "cave dance": "cadence",

    # Guitar
    "fret board": "fretboard",
    "bar chord": "barre chord",
    "bar code": "barre chord",
    "pics": "picks",
    "plec": "pick",
    "finger picking": "fingerpicking",
    "down stroke": "downstroke",
    "up stroke": "upstroke",
}

FILLER_WORDS = [
    'um', 'uh', 'uhm', 'er', 'ah', 'like like', 'you know', 'sort of',
    'kind of', 'i mean', 'basically', 'actually', 'so yeah', 'anyway',
]

CONTRACTIONS = {
    "gonna": "going to",
    "wanna": "want to",
    "gotta": "need to",
}


@dataclass
class CleanupResult:
    """Cleaned text plus a human readable summary of what changed."""
    text: str
    enhancements: str = ""


def enhanced_cleanup(raw_text: str, template: str = "general") -> CleanupResult:
    """Clean up raw speech text for lesson notes.

    Args:
        raw_text: Raw transcript
        template: Notes template name (recorded for the caller; the rules are shared)

    Returns:
        CleanupResult with the cleaned text and an enhancement summary
    """
    if not raw_text or not raw_text.strip():
        return CleanupResult(text=raw_text or "")

    enhancements = []
    cleaned = raw_text.strip()

    for filler in FILLER_WORDS:
        cleaned = re.sub(r'\b' + re.escape(filler) + r'\b', ' ', cleaned, flags=re.IGNORECASE)

    # Repeated words ("the the")
    cleaned = re.sub(r'\b(\w+)\s+\1\b', r'\1', cleaned, flags=re.IGNORECASE)

    if len(cleaned) < len(raw_text) * 0.9:
        enhancements.append("Removed filler words")

    for error, fix in MUSIC_TERMINOLOGY_FIXES.items():
        cleaned = re.sub(r'\b' + re.escape(error) + r'\b', fix, cleaned, flags=re.IGNORECASE)

    for short, full in CONTRACTIONS.items():
        cleaned = re.sub(r'\b' + short + r'\b', full, cleaned, flags=re.IGNORECASE)

    # Collapse spaces and tabs, keep newlines
    cleaned = re.sub(r'[ \t]+', ' ', cleaned).strip()
    cleaned = re.sub(r' *\n *', '\n', cleaned)

    if not cleaned.endswith(('.', '!', '?')):
        cleaned += '.'

    # Double periods left behind by pause punctuation
    cleaned = re.sub(r'\.\.+', '.', cleaned)
    cleaned = re.sub(r'\s*\.[ \t]*(\n?)\s*', lambda m: '.\n' if m.group(1) else '. ', cleaned).strip()

    cleaned = re.sub(r'^\s*([a-z])', lambda m: m.group(0).upper(), cleaned)
    cleaned = re.sub(r'([.!?]\s+)([a-z])', lambda m: m.group(1) + m.group(2).upper(), cleaned)

    if cleaned != raw_text:
        enhancements.append("Grammar and clarity improved")

    logger.debug(f"Cleanup ({template}): {len(raw_text)} -> {len(cleaned)} chars")
    return CleanupResult(text=cleaned, enhancements=", ".join(enhancements))


def cleanup_text(raw_text: str) -> str:
    """Basic cleanup returning only the text."""
    return enhanced_cleanup(raw_text).text
