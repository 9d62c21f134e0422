"""OpenAI text-to-speech provider implementation."""

import os

import openai
from openai import AsyncOpenAI

from ..tts.errors import SynthesisError, TTSAPIError, TTSAuthError
from .base import TTSProvider

VOICES = ("alloy", "echo", "fable", "onyx", "nova", "shimmer")
MODELS = ("tts-1", "tts-1-hd")


class OpenAIProvider(TTSProvider):
    """OpenAI speech API provider.

    Uses the async OpenAI client, so synthesis calls are awaited directly on
    the event loop.
    """

    name = "openai"
    default_voice = "alloy"
    default_model = "tts-1"
    models = MODELS
    voices = VOICES

    def __init__(self, api_key: str | None = None) -> None:
        """Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key. If not provided, reads from
                    OPENAI_API_KEY environment variable.

        Raises:
            TTSAuthError: If API key is not provided or invalid.
        """
        self._api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not self._api_key:
            raise TTSAuthError(
                "OpenAI API key not found. Set OPENAI_API_KEY environment "
                "variable or provide api_key parameter."
            )

        try:
            self._client = AsyncOpenAI(api_key=self._api_key)
        except Exception as e:
            raise TTSAuthError(f"Failed to initialize OpenAI client: {e}") from e

    async def synthesize(self, text: str, voice: str, model: str) -> bytes:
        """Convert text to speech audio bytes.

        Args:
            text: Text to convert to speech
            voice: One of the OpenAI voices
            model: tts-1 or tts-1-hd

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

        try:
            response = await self._client.audio.speech.create(
                model=model,
                voice=voice,
                input=text,
                response_format="mp3",
            )
        except openai.AuthenticationError as e:
            raise TTSAuthError(f"Authentication failed: {e}", e) from e
        except openai.RateLimitError as e:
            raise TTSAPIError(f"Rate limit exceeded: {e}", 429, e) from e
        except openai.APIStatusError as e:
            raise TTSAPIError(f"API call failed: {e}", e.status_code, e) from e
        except openai.APIError as e:
            raise TTSAPIError(f"API call failed: {e}", None, e) from e

        if response is None:
            raise SynthesisError("No response from OpenAI TTS API")

        audio_bytes = response.content
        if not audio_bytes:
            raise SynthesisError("No audio data received from OpenAI TTS API")

        return audio_bytes

    async def list_voices(self) -> list[dict]:
        """List the fixed OpenAI voice catalogue."""
        return [
            {"id": voice, "name": voice.capitalize(), "provider": self.name}
            for voice in VOICES
        ]
