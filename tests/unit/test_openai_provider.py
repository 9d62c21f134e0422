"""Unit tests for OpenAIProvider error handling and logic."""

import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from meditone.providers.openai import OpenAIProvider
from meditone.tts.errors import SynthesisError, TTSAPIError, TTSAuthError


def status_error(cls: type, status: int) -> Exception:
    request = httpx.Request("POST", "https://api.openai.com/v1/audio/speech")
    response = httpx.Response(status, request=request)
    return cls("boom", response=response, body=None)


class TestOpenAIProviderInitialization:
    """Test OpenAIProvider initialization and authentication error handling."""

    def test_initialization_with_provided_api_key(self) -> None:
        """Test that an explicit key builds the async client."""
        with patch("meditone.providers.openai.AsyncOpenAI") as mock_client_cls:
            provider = OpenAIProvider(api_key="sk-test")

            assert provider._api_key == "sk-test"
            mock_client_cls.assert_called_once_with(api_key="sk-test")

    def test_initialization_with_env_var_api_key(self) -> None:
        """Test OpenAIProvider reads API key from environment variable."""
        with patch.dict(os.environ, {"OPENAI_API_KEY": "sk-env"}):
            with patch("meditone.providers.openai.AsyncOpenAI"):
                assert OpenAIProvider()._api_key == "sk-env"

    def test_initialization_no_api_key_raises_auth_error(self) -> None:
        """Test OpenAIProvider raises TTSAuthError when no API key provided."""
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(TTSAuthError, match="OpenAI API key not found"):
                OpenAIProvider()


class TestOpenAIProviderSynthesize:
    """Test OpenAIProvider synthesize behaviour with a mocked client."""

    def setup_method(self) -> None:
        """Set up test provider with mocked OpenAI client."""
        with patch("meditone.providers.openai.AsyncOpenAI") as mock_client_cls:
            self.mock_client = MagicMock()
            self.mock_client.audio.speech.create = AsyncMock()
            mock_client_cls.return_value = self.mock_client
            self.provider = OpenAIProvider(api_key="sk-test")

    @pytest.mark.asyncio
    async def test_returns_audio_bytes(self) -> None:
        """Test that the response content is returned as MP3 bytes."""
        self.mock_client.audio.speech.create.return_value = MagicMock(content=b"ID3mp3")

        audio = await self.provider.synthesize("Breathe.", "alloy", "tts-1")

        assert audio == b"ID3mp3"
        self.mock_client.audio.speech.create.assert_awaited_once_with(
            model="tts-1", voice="alloy", input="Breathe.", response_format="mp3"
        )

    @pytest.mark.asyncio
    async def test_empty_text_raises_value_error(self) -> None:
        """Test synthesize raises ValueError for empty text."""
        with pytest.raises(ValueError, match="Text cannot be empty"):
            await self.provider.synthesize("  ", "alloy", "tts-1")

    @pytest.mark.asyncio
    async def test_empty_content_raises_synthesis_error(self) -> None:
        """Test that an empty audio body raises SynthesisError."""
        self.mock_client.audio.speech.create.return_value = MagicMock(content=b"")

        with pytest.raises(SynthesisError, match="No audio data"):
            await self.provider.synthesize("Breathe.", "alloy", "tts-1")

    @pytest.mark.asyncio
    async def test_authentication_error_mapped(self) -> None:
        """Test that 401 responses become TTSAuthError."""
        self.mock_client.audio.speech.create.side_effect = status_error(
            openai.AuthenticationError, 401
        )

        with pytest.raises(TTSAuthError, match="Authentication failed"):
            await self.provider.synthesize("Breathe.", "alloy", "tts-1")

    @pytest.mark.asyncio
    async def test_rate_limit_mapped(self) -> None:
        """Test that 429 responses become TTSAPIError with status 429."""
        self.mock_client.audio.speech.create.side_effect = status_error(
            openai.RateLimitError, 429
        )

        with pytest.raises(TTSAPIError) as exc_info:
            await self.provider.synthesize("Breathe.", "alloy", "tts-1")
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_server_error_mapped(self) -> None:
        """Test that 5xx responses become TTSAPIError carrying the status."""
        self.mock_client.audio.speech.create.side_effect = status_error(
            openai.InternalServerError, 503
        )

        with pytest.raises(TTSAPIError) as exc_info:
            await self.provider.synthesize("Breathe.", "alloy", "tts-1")
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_list_voices(self) -> None:
        """Test that the fixed voice catalogue is listed."""
        voices = await self.provider.list_voices()

        assert [voice["id"] for voice in voices] == [
            "alloy",
            "echo",
            "fable",
            "onyx",
            "nova",
            "shimmer",
        ]
        assert all(voice["provider"] == "openai" for voice in voices)
