"""Pipeline data models with validation."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class UnitKind(str, Enum):
    """Kind of a segmented script unit."""

    SPEECH = "speech"
    SILENCE = "silence"


@dataclass(frozen=True)
class ScriptUnit:
    """One atomic piece of a segmented script.

    Args:
        kind: Whether this unit is spoken text or a timed pause
        text: Text to speak (speech units only)
        pause_seconds: Length of the pause in seconds (silence units only)
        space_before: Whether whitespace separated this unit from the previous
            one in the script; not part of equality
    """

    kind: UnitKind
    text: str = ""
    pause_seconds: int = 0
    space_before: bool = field(default=True, compare=False)

    def __post_init__(self) -> None:
        """Validate that exactly one payload is active for the kind."""
        if self.kind is UnitKind.SPEECH:
            if not self.text or not self.text.strip():
                raise ValueError("speech unit text cannot be empty")
            if self.pause_seconds != 0:
                raise ValueError("speech unit cannot carry a pause")
        else:
            if self.text:
                raise ValueError("silence unit cannot carry text")
            if self.pause_seconds <= 0:
                raise ValueError("silence unit pause must be positive")

    @classmethod
    def speech(cls, text: str, space_before: bool = True) -> "ScriptUnit":
        return cls(kind=UnitKind.SPEECH, text=text, space_before=space_before)

    @classmethod
    def silence(cls, seconds: int, space_before: bool = True) -> "ScriptUnit":
        return cls(kind=UnitKind.SILENCE, pause_seconds=seconds, space_before=space_before)

    @property
    def is_silence(self) -> bool:
        return self.kind is UnitKind.SILENCE


@dataclass(frozen=True)
class AudioArtifact:
    """An encoded audio file on disk.

    Args:
        path: Location of the file
        cached: True if the file was served from a cache instead of produced
    """

    path: Path
    cached: bool = False


@dataclass
class VoiceSettings:
    """Voice generation settings.

    Args:
        stability: Voice stability (0.0-1.0)
        similarity_boost: Voice similarity boost (0.0-1.0)
        style: Voice style exaggeration (0.0-1.0)
        use_speaker_boost: Whether to use speaker boost
        speaking_rate: Speaking rate (0.25-4.0)
    """

    stability: float = 0.79
    similarity_boost: float = 0.85
    style: float = 0.25
    use_speaker_boost: bool = True
    speaking_rate: float = 0.79

    def __post_init__(self) -> None:
        """Validate voice settings."""
        if not 0.0 <= self.stability <= 1.0:
            raise ValueError("stability must be between 0.0 and 1.0")
        if not 0.0 <= self.similarity_boost <= 1.0:
            raise ValueError("similarity_boost must be between 0.0 and 1.0")
        if not 0.0 <= self.style <= 1.0:
            raise ValueError("style must be between 0.0 and 1.0")
        if not 0.25 <= self.speaking_rate <= 4.0:
            raise ValueError("speaking_rate must be between 0.25 and 4.0")


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of turning a script into a speech track.

    Counts are reported per unit so callers can tell a partial result apart
    from a complete one.
    """

    audio_url: str
    audio_path: Path
    chunks_processed: int
    generation_time_seconds: float
    cached_chunks: int = 0
    synthesized_chunks: int = 0
    silence_chunks: int = 0
    dropped_chunks: int = 0

    def to_dict(self) -> dict:
        return {
            "audioUrl": self.audio_url,
            "chunksProcessed": self.chunks_processed,
            "generationTimeSeconds": round(self.generation_time_seconds, 3),
            "cachedChunks": self.cached_chunks,
            "synthesizedChunks": self.synthesized_chunks,
            "silenceChunks": self.silence_chunks,
            "droppedChunks": self.dropped_chunks,
        }


@dataclass(frozen=True)
class MixResult:
    """Outcome of mixing a speech track with background music."""

    mixed_audio_url: str
    mixed_audio_path: Path
    merge_time_seconds: float
    cached: bool

    def to_dict(self) -> dict:
        return {
            "mixedAudioUrl": self.mixed_audio_url,
            "mergeTimeSeconds": round(self.merge_time_seconds, 3),
            "cached": self.cached,
        }
