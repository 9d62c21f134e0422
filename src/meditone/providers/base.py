"""Abstract base class for text-to-speech providers.

This module defines the interface that all TTS providers must implement,
ensuring consistent behavior across different TTS backends.
"""

from abc import ABC, abstractmethod
from typing import ClassVar


class TTSProvider(ABC):
    """Abstract base class for text-to-speech providers.

    All TTS providers must inherit from this class and implement
    the required methods for synthesizing speech and listing voices.

    Providers with a fixed voice catalogue list it in ``voices``; providers
    whose voices are account-specific leave it as None and accept any
    non-empty voice id.

    Voice Dictionary Structure:
        Each voice returned by list_voices() should follow this structure:
        {
            "id": str,       # Unique identifier for the voice
            "name": str,     # Human-readable name for the voice
            "provider": str  # Name of the provider (e.g., "openai")
        }
    """

    name: ClassVar[str] = ""
    default_voice: ClassVar[str] = ""
    default_model: ClassVar[str] = ""
    models: ClassVar[tuple[str, ...]] = ()
    voices: ClassVar[tuple[str, ...] | None] = None

    @abstractmethod
    async def synthesize(self, text: str, voice: str, model: str) -> bytes:
        """Convert text to audio bytes.

        Args:
            text: The text to convert to speech
            voice: Voice ID or name to use for synthesis
            model: Synthesis model identifier

        Returns:
            Encoded audio data (MP3)

        Raises:
            SynthesisError: If synthesis fails
        """
        pass

    @abstractmethod
    async def list_voices(self) -> list[dict]:
        """Return available voices for this provider.

        Returns:
            List of voice dictionaries, each containing:
            - id: Unique voice identifier
            - name: Human-readable voice name
            - provider: Provider name

        Raises:
            Exception: If voice listing fails
        """
        pass

    def validate(self, voice: str, model: str) -> None:
        """Check voice and model against the provider's enumerated sets.

        Raises:
            ValueError: If the voice or model is not supported
        """
        if not voice:
            raise ValueError("Voice cannot be empty")
        if self.voices is not None and voice not in self.voices:
            raise ValueError(
                f"Unknown {self.name} voice '{voice}'. "
                f"Available: {', '.join(self.voices)}"
            )
        if self.models and model not in self.models:
            raise ValueError(
                f"Unknown {self.name} model '{model}'. "
                f"Available: {', '.join(self.models)}"
            )
