"""meditone - turn meditation scripts into narrated audio tracks."""

__version__ = "0.1.0"
__all__ = ["generate_audio", "mix_with_music"]


def __getattr__(name: str):  # type: ignore[no-untyped-def]
    if name == "generate_audio":
        from .api import generate_audio

        return generate_audio
    if name == "mix_with_music":
        from .api import mix_with_music

        return mix_with_music
    raise AttributeError(f"module 'meditone' has no attribute {name!r}")
