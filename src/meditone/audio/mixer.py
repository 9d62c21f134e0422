"""Mixing of a speech track with looped background music."""

import asyncio
import logging
import math
import shutil
import uuid
from pathlib import Path

from ..cache.keys import merge_cache_key
from ..cache.locks import KeyedLocks
from ..cache.manager import ArtifactCache, MemoryArtifactCache, remove_file
from ..paths import ArtifactPaths
from ..tts.errors import MixError, NotFoundError, TranscodeError
from ..tts.models import AudioArtifact
from .ffmpeg import FFmpegEngine

logger = logging.getLogger(__name__)

DEFAULT_SPEECH_VOLUME = 1.0
DEFAULT_MUSIC_VOLUME = 0.3
SAMPLE_RATE = 44100


def _volume(value: float) -> str:
    return f"{float(value):g}"


def _valid_volume(value: float) -> bool:
    return math.isfinite(value) and value >= 0


def build_mix_filter(duration: float, speech_volume: float, music_volume: float) -> str:
    """Filter graph: gain both inputs, trim the looped music to the speech length, mix.

    ``normalize=0`` keeps amix from halving the speech level.
    """
    return (
        f"[0:a]volume={_volume(speech_volume)}[speech];"
        f"[1:a]atrim=duration={duration:.3f},asetpts=N/SR/TB,"
        f"volume={_volume(music_volume)}[music];"
        "[speech][music]amix=inputs=2:duration=first:dropout_transition=0:normalize=0,"
        f"aresample={SAMPLE_RATE}[out]"
    )


class BackgroundMixer:
    """Lays background music under a speech track.

    The music is looped or cut so the result always matches the speech
    length. Results are cached by (speech URL, music URL, music volume), with
    URLs normalized first so absolute and relative spellings share a key; the
    speech volume is not part of the key, so two requests that differ only in
    speech volume return the same file.
    """

    def __init__(
        self,
        engine: FFmpegEngine,
        paths: ArtifactPaths,
        cache: ArtifactCache | None = None,
    ) -> None:
        self.engine = engine
        self.paths = paths
        self.cache = cache if cache is not None else MemoryArtifactCache("merge")
        self._locks = KeyedLocks()

    def _resolve(self, url: str, what: str) -> Path:
        path = self.paths.resolve_url(url)
        if path is None or not path.is_file():
            raise NotFoundError(f"{what} file not found: {url}")
        return path

    async def mix(
        self,
        speech_url: str,
        music_url: str,
        speech_volume: float = DEFAULT_SPEECH_VOLUME,
        music_volume: float = DEFAULT_MUSIC_VOLUME,
    ) -> AudioArtifact:
        """Mix ``music_url`` under ``speech_url``.

        Args:
            speech_url: /audio/ URL of a speech track
            music_url: /music/ URL of a background track
            speech_volume: Linear gain for speech, >= 0
            music_volume: Linear gain for music, >= 0

        Returns:
            AudioArtifact in the audio directory; ``cached`` marks a reused mix

        Raises:
            ValueError: If a volume is negative or not finite
            NotFoundError: If either input does not exist
            MixError: If ffmpeg fails
        """
        if not _valid_volume(speech_volume) or not _valid_volume(music_volume):
            raise ValueError(
                f"Volumes must be >= 0 and finite, got speech={speech_volume} music={music_volume}"
            )

        speech_path = self._resolve(speech_url, "Speech")
        music_path = self._resolve(music_url, "Music")

        key = merge_cache_key(
            self.paths.normalize_url(speech_url),
            self.paths.normalize_url(music_url),
            music_volume,
        )
        async with self._locks.hold(key):
            cached_path = self.cache.get(key)
            if cached_path is not None:
                logger.debug(f"Merge cache hit for {key[:12]}")
                return AudioArtifact(cached_path, cached=True)

            output_path = self.paths.audio_dir / f"merged-{key}.mp3"
            await self._render(
                speech_path, music_path, output_path, speech_volume, music_volume
            )
            self.cache.put(key, output_path)
            logger.info(f"Mixed {speech_path.name} with {music_path.name}")
            return AudioArtifact(output_path, cached=False)

    async def _render(
        self,
        speech_path: Path,
        music_path: Path,
        output_path: Path,
        speech_volume: float,
        music_volume: float,
    ) -> None:
        self.paths.temp_dir.mkdir(parents=True, exist_ok=True)
        self.paths.audio_dir.mkdir(parents=True, exist_ok=True)
        token = uuid.uuid4().hex[:8]
        partial_path = self.paths.temp_dir / f"{output_path.stem}-{token}.partial.mp3"

        try:
            duration = await self.engine.duration(speech_path)
            await self.engine.run(
                [
                    "-i",
                    str(speech_path),
                    "-stream_loop",
                    "-1",
                    "-i",
                    str(music_path),
                    "-filter_complex",
                    build_mix_filter(duration, speech_volume, music_volume),
                    "-map",
                    "[out]",
                    "-ac",
                    "2",
                    "-ar",
                    str(SAMPLE_RATE),
                    "-c:a",
                    "libmp3lame",
                    "-q:a",
                    "2",
                    str(partial_path),
                ]
            )
            await asyncio.to_thread(shutil.move, str(partial_path), str(output_path))
        except TranscodeError as e:
            raise MixError(f"Failed to mix audio: {e}", e) from e
        except OSError as e:
            raise MixError(f"Failed to write mixed track: {e.strerror or e}", e) from e
        finally:
            remove_file(partial_path)
