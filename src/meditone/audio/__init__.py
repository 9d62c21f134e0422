"""Audio processing package for meditone.

Wraps ffmpeg for silence generation, chunk concatenation and background
music mixing.
"""

from .assembler import AudioAssembler
from .ffmpeg import AudioInfo, FFmpegEngine
from .mixer import BackgroundMixer
from .silence import SilenceSynthesizer

__all__ = [
    "AudioAssembler",
    "AudioInfo",
    "BackgroundMixer",
    "FFmpegEngine",
    "SilenceSynthesizer",
]
