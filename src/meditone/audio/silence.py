"""Silent clip generation with a process-lifetime cache."""

import asyncio
import logging
import uuid
from pathlib import Path

import numpy as np
import soundfile as sf

from ..cache.keys import silence_cache_key
from ..cache.locks import KeyedLocks
from ..cache.manager import ArtifactCache, MemoryArtifactCache, remove_file
from ..tts.errors import SilenceGenerationError, TranscodeError
from ..tts.models import AudioArtifact
from .ffmpeg import FFmpegEngine

logger = logging.getLogger(__name__)

SAMPLE_RATE = 44100
CHANNELS = 2
BITRATE = "128k"


class SilenceSynthesizer:
    """Produces encoded silent clips of arbitrary length.

    Requests are keyed by their duration rounded to 0.1 s, so 2.00 s and
    2.04 s share one file. The silence cache has no TTL: it is bounded by
    the set of distinct rounded durations ever requested.
    """

    def __init__(
        self,
        engine: FFmpegEngine,
        output_dir: Path,
        cache: ArtifactCache | None = None,
        sample_rate: int = SAMPLE_RATE,
        channels: int = CHANNELS,
    ) -> None:
        self.engine = engine
        self.output_dir = output_dir
        self.cache = cache if cache is not None else MemoryArtifactCache("silence", ttl=None)
        self.sample_rate = sample_rate
        self.channels = channels
        self._locks = KeyedLocks()

    def _write_waveform(self, path: Path, seconds: float) -> None:
        frames = int(round(seconds * self.sample_rate))
        samples = np.zeros((frames, self.channels), dtype=np.float32)
        sf.write(str(path), samples, self.sample_rate, subtype="PCM_16", format="WAV")

    async def silence(self, seconds: float) -> AudioArtifact:
        """Return a silent MP3 clip of ``seconds`` length.

        Args:
            seconds: Requested duration, must be positive

        Returns:
            AudioArtifact; ``cached`` is True when an existing clip was reused

        Raises:
            SilenceGenerationError: If the waveform cannot be built or encoded
        """
        if seconds <= 0:
            raise SilenceGenerationError(
                f"Silence duration must be positive, got {seconds}"
            )

        key = f"{silence_cache_key(seconds):.1f}"
        async with self._locks.hold(key):
            cached_path = self.cache.get(key)
            if cached_path is not None:
                logger.debug(f"Silence cache hit for {key}s")
                return AudioArtifact(cached_path, cached=True)

            output_path = self.output_dir / f"silence-{key}s.mp3"
            if output_path.exists():
                self.cache.put(key, output_path)
                return AudioArtifact(output_path, cached=True)

            await self._generate(seconds, output_path)
            self.cache.put(key, output_path)
            logger.debug(f"Generated {seconds}s of silence as {output_path.name}")
            return AudioArtifact(output_path, cached=False)

    async def _generate(self, seconds: float, output_path: Path) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        token = uuid.uuid4().hex[:8]
        wav_path = self.output_dir / f"{output_path.stem}-{token}.wav"
        partial_path = self.output_dir / f"{output_path.stem}-{token}.partial.mp3"

        try:
            await asyncio.to_thread(self._write_waveform, wav_path, seconds)
            await self.engine.run(
                [
                    "-i",
                    str(wav_path),
                    "-ar",
                    str(self.sample_rate),
                    "-ac",
                    str(self.channels),
                    "-c:a",
                    "libmp3lame",
                    "-b:a",
                    BITRATE,
                    str(partial_path),
                ]
            )
            partial_path.replace(output_path)
        except TranscodeError as e:
            raise SilenceGenerationError(
                f"Failed to encode {seconds}s of silence: {e}", e
            ) from e
        except (OSError, RuntimeError, ValueError) as e:
            raise SilenceGenerationError(
                f"Failed to build {seconds}s silent waveform: {e}", e
            ) from e
        finally:
            remove_file(wav_path)
            remove_file(partial_path)
