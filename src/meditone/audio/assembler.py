"""Ordered concatenation of chunk files into one speech track."""

import asyncio
import logging
import shutil
import time
import uuid
from collections.abc import Sequence
from pathlib import Path

from ..cache.manager import remove_file
from ..paths import ArtifactPaths
from ..tts.errors import AssemblyError, TranscodeError
from ..tts.models import AudioArtifact
from .ffmpeg import AudioInfo, FFmpegEngine

logger = logging.getLogger(__name__)

SAMPLE_RATE = 44100
BITRATE = "128k"
MAX_CONCURRENT_INSPECTIONS = 25


def _manifest_line(path: Path) -> str:
    """One concat-demuxer line; single quotes are escaped the ffconcat way."""
    escaped = str(path.resolve()).replace("'", "'\\''")
    return f"file '{escaped}'\n"


def new_track_name(prefix: str = "meditation") -> str:
    """Collision-resistant file name for a finished track."""
    return f"{prefix}-{time.time_ns()}-{uuid.uuid4().hex[:8]}.mp3"


class AudioAssembler:
    """Concatenates chunk files, in the order given, into one MP3.

    A single input is copied byte for byte. Several inputs that share codec,
    sample rate and channel count are joined by stream copy; anything else
    (chunks cached by older code paths, silence at a different rate) is
    decoded into one intermediate WAV and re-encoded. The finished file is
    written in the temp directory and moved into the audio directory only
    once complete. At most ``max_concurrent_inspections`` ffprobe processes
    run at once across all assemblies sharing this instance.
    """

    def __init__(
        self,
        engine: FFmpegEngine,
        paths: ArtifactPaths,
        sample_rate: int = SAMPLE_RATE,
        bitrate: str = BITRATE,
        max_concurrent_inspections: int = MAX_CONCURRENT_INSPECTIONS,
    ) -> None:
        if max_concurrent_inspections <= 0:
            raise ValueError(
                f"max_concurrent_inspections must be positive, got {max_concurrent_inspections}"
            )
        self.engine = engine
        self.paths = paths
        self.sample_rate = sample_rate
        self.bitrate = bitrate
        self.max_concurrent_inspections = max_concurrent_inspections
        self._inspection_slots = asyncio.Semaphore(max_concurrent_inspections)

    async def assemble(self, files: Sequence[Path]) -> AudioArtifact:
        """Join ``files`` into one track.

        Args:
            files: Chunk paths in playback order

        Returns:
            AudioArtifact for the new track in the audio directory

        Raises:
            AssemblyError: If there are no files or ffmpeg fails
        """
        if not files:
            raise AssemblyError("No audio produced: every chunk failed")

        self.paths.temp_dir.mkdir(parents=True, exist_ok=True)
        self.paths.audio_dir.mkdir(parents=True, exist_ok=True)

        output_path = self.paths.audio_dir / new_track_name()
        partial_path = self.paths.temp_dir / f"{output_path.stem}.partial.mp3"

        try:
            if len(files) == 1:
                await asyncio.to_thread(shutil.copyfile, files[0], partial_path)
            else:
                await self._concatenate(list(files), partial_path)
            await asyncio.to_thread(shutil.move, str(partial_path), str(output_path))
        except TranscodeError as e:
            raise AssemblyError(
                f"Failed to concatenate {len(files)} chunks: {e}", e
            ) from e
        except OSError as e:
            raise AssemblyError(
                f"Failed to write assembled track: {e.strerror or e}", e
            ) from e
        finally:
            remove_file(partial_path)

        logger.info(f"Assembled {len(files)} chunks into {output_path.name}")
        return AudioArtifact(output_path)

    async def _stream_formats(self, files: list[Path]) -> list:
        async def inspect(path: Path) -> AudioInfo:
            async with self._inspection_slots:
                return await self.engine.probe(path)

        return await asyncio.gather(
            *(inspect(path) for path in files), return_exceptions=True
        )

    async def _concatenate(self, files: list[Path], output_path: Path) -> None:
        formats = await self._stream_formats(files)
        if self._uniform(formats):
            try:
                await self._concat_copy(files, output_path)
                return
            except TranscodeError as e:
                logger.warning(f"Stream-copy concat failed, re-encoding: {e}")
                remove_file(output_path)
        else:
            logger.debug("Chunk formats differ, concatenating through WAV")

        await self._concat_reencode(files, output_path)

    @staticmethod
    def _uniform(formats: list) -> bool:
        if not all(isinstance(info, AudioInfo) for info in formats):
            return False
        first = formats[0]
        return all(first.same_stream_format(info) for info in formats[1:])

    async def _concat_copy(self, files: list[Path], output_path: Path) -> None:
        manifest = self.paths.temp_dir / f"concat-{uuid.uuid4().hex}.txt"
        try:
            manifest.write_text("".join(_manifest_line(path) for path in files))
            await self.engine.run(
                [
                    "-f",
                    "concat",
                    "-safe",
                    "0",
                    "-i",
                    str(manifest),
                    "-c",
                    "copy",
                    str(output_path),
                ]
            )
        finally:
            remove_file(manifest)

    async def _concat_reencode(self, files: list[Path], output_path: Path) -> None:
        wav_path = self.paths.temp_dir / f"concat-{uuid.uuid4().hex}.wav"

        inputs: list[str] = []
        normalize = []
        for index, path in enumerate(files):
            inputs += ["-i", str(path)]
            normalize.append(
                f"[{index}:a]aresample={self.sample_rate},"
                f"aformat=sample_fmts=s16:channel_layouts=stereo[a{index}]"
            )
        labels = "".join(f"[a{index}]" for index in range(len(files)))
        graph = ";".join(normalize) + f";{labels}concat=n={len(files)}:v=0:a=1[out]"

        try:
            await self.engine.run(
                [
                    *inputs,
                    "-filter_complex",
                    graph,
                    "-map",
                    "[out]",
                    "-c:a",
                    "pcm_s16le",
                    str(wav_path),
                ]
            )
            await self.engine.run(
                [
                    "-i",
                    str(wav_path),
                    "-c:a",
                    "libmp3lame",
                    "-b:a",
                    self.bitrate,
                    str(output_path),
                ]
            )
        finally:
            remove_file(wav_path)
