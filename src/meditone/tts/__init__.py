"""Speech side of the meditone pipeline.

Script segmentation, cached per-chunk synthesis and batched coordination.
"""

from .errors import (
    AssemblyError,
    MeditoneError,
    MixError,
    NotFoundError,
    SegmentationError,
    SilenceGenerationError,
    SynthesisError,
    TranscodeError,
    TTSAPIError,
    TTSAuthError,
)
from .models import AudioArtifact, GenerationResult, MixResult, ScriptUnit, UnitKind

__all__ = [
    "AssemblyError",
    "AudioArtifact",
    "GenerationResult",
    "MeditoneError",
    "MixError",
    "MixResult",
    "NotFoundError",
    "ScriptUnit",
    "SegmentationError",
    "SilenceGenerationError",
    "SynthesisError",
    "TTSAPIError",
    "TTSAuthError",
    "TranscodeError",
    "UnitKind",
]
