"""Audio capture and processing module."""

from .capture import MicrophoneStream
from .buffer import SegmentAudioBuffer
from .pcm import float_to_pcm16, pcm16_to_wav, NoiseFilter

__all__ = [
    'MicrophoneStream',
    'SegmentAudioBuffer',
    'float_to_pcm16',
    'pcm16_to_wav',
    'NoiseFilter',
]
