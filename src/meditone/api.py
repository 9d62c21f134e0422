"""High-level API for meditone library usage."""

from .config import load_config
from .core import MeditationPipeline
from .tts.models import GenerationResult, MixResult
from .tts.pipeline import ProgressCallback

_pipeline: MeditationPipeline | None = None


def get_pipeline() -> MeditationPipeline:
    """Return the process-wide pipeline, building it from config on first use.

    Sharing one pipeline keeps the caches and the generation limit process-wide.
    """
    global _pipeline
    if _pipeline is None:
        _pipeline = MeditationPipeline.from_config(load_config())
    return _pipeline


def set_pipeline(pipeline: MeditationPipeline | None) -> None:
    """Replace the process-wide pipeline (None rebuilds it from config)."""
    global _pipeline
    _pipeline = pipeline


async def generate_audio(
    script: str,
    voice: str | None = None,
    model: str | None = None,
    on_progress: ProgressCallback | None = None,
) -> GenerationResult:
    """Turn a meditation script into one speech track.

    Args:
        script: Text with optional {{PAUSE_Ns}} markers
        voice: Voice ID/name (provider-specific, from config if omitted)
        model: Model ID (from config if omitted)
        on_progress: Called with (completed, total) units after each batch

    Returns:
        GenerationResult with the track URL and per-unit counts

    Raises:
        SegmentationError: If the script is malformed or empty
        ValueError: If voice or model is not supported
        AssemblyError: If no audio could be produced
    """
    return await get_pipeline().generate_audio(script, voice, model, on_progress)


async def mix_with_music(
    speech_url: str,
    music_url: str,
    speech_volume: float = 1.0,
    music_volume: float = 0.3,
) -> MixResult:
    """Mix background music under a speech track.

    Raises:
        ValueError: If a volume is negative or not finite
        NotFoundError: If either file is missing
        MixError: If mixing fails
    """
    return await get_pipeline().mix_with_music(
        speech_url, music_url, speech_volume, music_volume
    )


async def close() -> None:
    """Stop the process-wide pipeline's background janitor, if it was built."""
    if _pipeline is not None:
        await _pipeline.aclose()
