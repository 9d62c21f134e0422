"""Async wrapper around the ffmpeg and ffprobe command-line tools.

Every transcoding task is a single awaitable that either completes or raises
``TranscodeError`` carrying the exit code and the tail of stderr.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path

from ..tts.errors import TranscodeError

logger = logging.getLogger(__name__)

STDERR_TAIL = 2000


@dataclass(frozen=True)
class AudioInfo:
    """Result of probing an audio file.

    Attributes:
        duration: Length in seconds
        codec: Codec name of the first audio stream (e.g. "mp3")
        sample_rate: Sample rate in Hz
        channels: Channel count
    """

    duration: float
    codec: str | None = None
    sample_rate: int | None = None
    channels: int | None = None

    def same_stream_format(self, other: "AudioInfo") -> bool:
        """True if stream copy between the two files is safe."""
        return (
            self.codec is not None
            and self.codec == other.codec
            and self.sample_rate == other.sample_rate
            and self.channels == other.channels
        )


class FFmpegEngine:
    """Runs ffmpeg/ffprobe as subprocesses without blocking the event loop."""

    def __init__(self, ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe") -> None:
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe

    async def _exec(self, cmd: list[str]) -> tuple[bytes, bytes]:
        tool = Path(cmd[0]).name
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
            )
        except FileNotFoundError as e:
            raise TranscodeError(
                f"{tool} not found. Install ffmpeg or set its path in the config"
            ) from e

        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            message = stderr.decode(errors="replace").strip()[-STDERR_TAIL:]
            raise TranscodeError(
                f"{tool} failed with code {proc.returncode}",
                returncode=proc.returncode,
                stderr=message,
            )
        return stdout, stderr

    async def run(self, args: list[str]) -> None:
        """Run ffmpeg with ``args`` (inputs, filters, output options, output path).

        Raises:
            TranscodeError: If ffmpeg is missing or exits non-zero
        """
        cmd = [self.ffmpeg, "-y", "-hide_banner", "-loglevel", "error", *args]
        logger.debug(f"Running {' '.join(cmd)}")
        await self._exec(cmd)

    async def probe(self, path: Path) -> AudioInfo:
        """Read duration and stream format of ``path``.

        Raises:
            TranscodeError: If ffprobe fails or reports no duration
        """
        cmd = [
            self.ffprobe,
            "-v",
            "error",
            "-select_streams",
            "a:0",
            "-show_entries",
            "format=duration:stream=codec_name,sample_rate,channels",
            "-of",
            "json",
            str(path),
        ]
        stdout, _ = await self._exec(cmd)

        try:
            data = json.loads(stdout.decode() or "{}")
            duration = float(data["format"]["duration"])
        except (KeyError, TypeError, ValueError) as e:
            raise TranscodeError("ffprobe reported no duration") from e

        streams = data.get("streams") or [{}]
        stream = streams[0]
        sample_rate = stream.get("sample_rate")
        return AudioInfo(
            duration=duration,
            codec=stream.get("codec_name"),
            sample_rate=int(sample_rate) if sample_rate else None,
            channels=stream.get("channels"),
        )

    async def duration(self, path: Path) -> float:
        return (await self.probe(path)).duration
