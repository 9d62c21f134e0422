"""ElevenLabs text-to-speech provider implementation."""

import asyncio
import os

from elevenlabs.client import ElevenLabs

from ..tts.errors import SynthesisError, TTSAPIError, TTSAuthError
from ..tts.models import VoiceSettings
from .base import TTSProvider

# Slow, even delivery suits guided meditation
MEDITATION_SETTINGS = VoiceSettings(
    stability=0.75,
    similarity_boost=0.75,
    style=0.2,
    use_speaker_boost=True,
    speaking_rate=0.85,
)

# v3 requires stability of exactly 0.0, 0.5 or 1.0
V3_SETTINGS = VoiceSettings(
    stability=0.5,
    similarity_boost=0.75,
    style=0.2,
    use_speaker_boost=True,
    speaking_rate=0.85,
)


def _map_error(e: Exception, action: str) -> Exception:
    if "unauthorized" in str(e).lower() or "401" in str(e):
        return TTSAuthError(f"Authentication failed: {e}", e)
    if "429" in str(e):
        return TTSAPIError(f"Rate limit exceeded: {e}", 429, e)
    if "5" in str(e)[:1]:  # 5xx server errors
        return TTSAPIError(f"Server error: {e}", None, e)
    return TTSAPIError(f"{action} failed: {e}", None, e)


class ElevenLabsProvider(TTSProvider):
    """ElevenLabs TTS provider implementation.

    Voice ids are account-specific, so any non-empty id is accepted; use
    ``list_voices`` to discover them.
    """

    name = "elevenlabs"
    default_voice = "21m00Tcm4TlvDq8ikWAM"
    default_model = "eleven_turbo_v2_5"
    models = (
        "eleven_turbo_v2_5",
        "eleven_flash_v2_5",
        "eleven_multilingual_v2",
        "eleven_v3",
    )

    def __init__(self, api_key: str | None = None) -> None:
        """Initialize ElevenLabs provider.

        Args:
            api_key: ElevenLabs API key. If not provided, reads from
                    ELEVENLABS_API_KEY environment variable.

        Raises:
            TTSAuthError: If API key is not provided or invalid.
        """
        self._api_key = api_key or os.getenv("ELEVENLABS_API_KEY")
        if not self._api_key:
            raise TTSAuthError(
                "ElevenLabs API key not found. Set ELEVENLABS_API_KEY environment "
                "variable or provide api_key parameter."
            )

        try:
            self._client = ElevenLabs(api_key=self._api_key)
        except Exception as e:
            raise TTSAuthError(f"Failed to initialize ElevenLabs client: {e}") from e

        # Cache for voices to avoid repeated API calls
        self._voices_cache: list[dict] | None = None

    async def synthesize(self, text: str, voice: str, model: str) -> bytes:
        """Convert text to speech audio bytes.

        Args:
            text: Text to convert to speech
            voice: Voice ID to use for synthesis
            model: ElevenLabs model ID to use

        Returns:
            Audio data as bytes (MP3 format)

        Raises:
            TTSAPIError: If API call fails
            TTSAuthError: If authentication fails
            SynthesisError: If the API returns no audio
            ValueError: If text is empty
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")

        settings = V3_SETTINGS if model.startswith("eleven_v3") else MEDITATION_SETTINGS

        # Run synchronous ElevenLabs client in thread to avoid blocking event loop
        def _sync_convert() -> bytes:
            audio_generator = self._client.text_to_speech.convert(
                text=text,
                voice_id=voice,
                model_id=model,
                output_format="mp3_44100_128",
                voice_settings={
                    "stability": settings.stability,
                    "similarity_boost": settings.similarity_boost,
                    "style": settings.style,
                    "use_speaker_boost": settings.use_speaker_boost,
                    "speed": settings.speaking_rate,
                },
            )
            # Collect all audio chunks
            return b"".join(audio_generator)

        try:
            audio_bytes = await asyncio.to_thread(_sync_convert)
        except Exception as e:
            raise _map_error(e, "API call") from e

        if not audio_bytes:
            raise SynthesisError("No audio data received from ElevenLabs API")

        return audio_bytes

    async def list_voices(self) -> list[dict]:
        """Get list of available voices.

        Results are cached after first call to avoid repeated API requests.

        Returns:
            List of voice dictionaries with id, name, and provider fields

        Raises:
            TTSAPIError: If API call fails
            TTSAuthError: If authentication fails
        """
        if self._voices_cache is not None:
            return self._voices_cache

        def _sync_get_voices() -> list[dict]:
            response = self._client.voices.get_all()
            return [
                {"id": voice.voice_id, "name": voice.name, "provider": self.name}
                for voice in response.voices
            ]

        try:
            voices = await asyncio.to_thread(_sync_get_voices)
        except Exception as e:
            raise _map_error(e, "Listing voices") from e

        self._voices_cache = voices
        return voices
