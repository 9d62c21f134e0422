"""Cached speech synthesis for a single script unit."""

import asyncio
import logging
import uuid
from datetime import datetime
from pathlib import Path

from ..cache.keys import speech_cache_key
from ..cache.locks import KeyedLocks
from ..cache.manager import ArtifactCache, MemoryArtifactCache, remove_file
from ..providers.base import TTSProvider
from .errors import SynthesisError
from .models import AudioArtifact

logger = logging.getLogger(__name__)


class SpeechSynthesizer:
    """Synthesizes one speech chunk, reusing earlier results by content key.

    The cache is the main cost control for a paid, rate-limited synthesis
    service: a hit returns the stored file without any external call.
    Concurrent requests for the same key inside this process wait on one
    per-key lock, so the provider is called once and the others see a hit.

    Example:
        synthesizer = SpeechSynthesizer(provider, chunk_dir=Path("/tmp/chunks"))
        artifact = await synthesizer.synthesize("Breathe in.", "alloy", "tts-1")
        again = await synthesizer.synthesize("Breathe in.", "alloy", "tts-1")
        assert again.path == artifact.path and again.cached
    """

    def __init__(
        self,
        provider: TTSProvider,
        chunk_dir: Path,
        cache: ArtifactCache | None = None,
    ) -> None:
        self.provider = provider
        self.chunk_dir = chunk_dir
        self.cache = cache if cache is not None else MemoryArtifactCache("speech")
        self._locks = KeyedLocks()

    def chunk_path(self, key: str) -> Path:
        """Deterministic file location for a chunk key."""
        return self.chunk_dir / f"chunk-{key}.mp3"

    async def synthesize(self, text: str, voice: str, model: str) -> AudioArtifact:
        """Return the audio for ``text`` spoken with ``voice`` and ``model``.

        Raises:
            SynthesisError: If the provider fails or returns no audio
            ValueError: If text is empty or voice/model are not supported
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")
        self.provider.validate(voice, model)

        key = speech_cache_key(text, voice, model)
        async with self._locks.hold(key):
            cached_path = self.cache.get(key) or self._adopt_chunk(key)
            if cached_path is not None:
                logger.debug(f"Speech cache hit for {key[:12]}: '{text[:40]}'")
                return AudioArtifact(cached_path, cached=True)

            logger.debug(f"Speech cache miss for {key[:12]}, calling {self.provider.name}")
            try:
                audio_bytes = await self.provider.synthesize(text.strip(), voice, model)
            except SynthesisError:
                raise
            except Exception as e:
                raise SynthesisError(
                    f"{self.provider.name} synthesis failed: {e}", e
                ) from e
            if not audio_bytes:
                raise SynthesisError("Synthesis returned no audio")

            path = await asyncio.to_thread(self._write_chunk, key, audio_bytes)
            self.cache.put(key, path)
            return AudioArtifact(path, cached=False)

    def _adopt_chunk(self, key: str) -> Path | None:
        # A chunk file from an earlier process is reused while still inside the TTL
        path = self.chunk_path(key)
        try:
            created_at = datetime.fromtimestamp(path.stat().st_mtime)
        except FileNotFoundError:
            return None
        if self.cache.ttl is not None and datetime.now() - created_at > self.cache.ttl:
            return None
        self.cache.put(key, path, created_at=created_at)
        logger.debug(f"Adopted existing chunk file {path.name}")
        return path

    def _write_chunk(self, key: str, audio_bytes: bytes) -> Path:
        # Write under a unique name and rename so readers never see a partial file
        self.chunk_dir.mkdir(parents=True, exist_ok=True)
        path = self.chunk_path(key)
        partial = path.with_name(f"{path.stem}-{uuid.uuid4().hex[:8]}.partial")
        try:
            partial.write_bytes(audio_bytes)
            partial.replace(path)
        finally:
            remove_file(partial)
        return path
