"""Periodic eviction of expired cache entries and stale artifact files."""

import asyncio
import contextlib
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import NamedTuple

from ..paths import ArtifactPaths
from .manager import ArtifactCache

logger = logging.getLogger(__name__)

DEFAULT_TEMP_MAX_AGE = timedelta(hours=24)


class FileSweep(NamedTuple):
    """Files matching ``pattern`` in ``directory`` expire after ``max_age``."""

    directory: Path
    pattern: str
    max_age: timedelta


def sweep_stale_files(
    directory: Path,
    max_age: timedelta,
    now: datetime | None = None,
    pattern: str = "*",
) -> int:
    """Delete regular files matching ``pattern`` whose mtime is older than ``max_age``.

    Files that vanish or cannot be removed mid-sweep are skipped.

    Returns:
        Number of files deleted
    """
    if not directory.is_dir():
        return 0

    cutoff = (now or datetime.now()) - max_age
    deleted = 0
    for path in directory.glob(pattern):
        try:
            if not path.is_file():
                continue
            if datetime.fromtimestamp(path.stat().st_mtime) >= cutoff:
                continue
            path.unlink()
            deleted += 1
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning(f"Failed to delete stale file {path.name}: {e}")

    if deleted:
        logger.info(f"Deleted {deleted} stale files from {directory}")
    return deleted


class CacheJanitor:
    """Sweeps each TTL-bound cache on a period equal to its retention window.

    Caches without a TTL are ignored. The temp directory and any extra
    ``file_sweeps`` are handled by one task on the shortest cache period.
    File sweeps catch artifacts no live cache entry points at, such as
    chunks and mixes written by an earlier process.
    """

    def __init__(
        self,
        caches: list[ArtifactCache],
        temp_dir: Path | None = None,
        temp_max_age: timedelta = DEFAULT_TEMP_MAX_AGE,
        file_sweeps: list[FileSweep] | None = None,
    ) -> None:
        self.caches = [cache for cache in caches if cache.ttl is not None]
        self.temp_dir = temp_dir
        self.temp_max_age = temp_max_age
        self.file_sweeps = list(file_sweeps or [])
        if temp_dir is not None:
            self.file_sweeps.insert(0, FileSweep(temp_dir, "*", temp_max_age))
        self._tasks: list[asyncio.Task[None]] = []

    @classmethod
    def for_artifacts(
        cls,
        paths: ArtifactPaths,
        speech_cache: ArtifactCache,
        merge_cache: ArtifactCache,
        temp_max_age: timedelta = DEFAULT_TEMP_MAX_AGE,
    ) -> "CacheJanitor":
        """Janitor for the speech and merge caches and the files they write.

        Speech chunks and merged mixes on disk expire on their cache's TTL
        whether or not this process ever indexed them.
        """
        file_sweeps = []
        if speech_cache.ttl is not None:
            file_sweeps.append(FileSweep(paths.chunk_dir, "chunk-*.mp3", speech_cache.ttl))
        if merge_cache.ttl is not None:
            file_sweeps.append(FileSweep(paths.audio_dir, "merged-*.mp3", merge_cache.ttl))
        return cls(
            [speech_cache, merge_cache],
            temp_dir=paths.temp_dir,
            temp_max_age=temp_max_age,
            file_sweeps=file_sweeps,
        )

    def _sweep_files(self, now: datetime) -> int:
        return sum(
            sweep_stale_files(sweep.directory, sweep.max_age, now, sweep.pattern)
            for sweep in self.file_sweeps
        )

    def run_once(self, now: datetime | None = None) -> int:
        """Run one sweep over every cache and file location.

        Returns:
            Total number of cache entries and files removed
        """
        now = now or datetime.now()
        removed = 0
        for cache in self.caches:
            try:
                removed += cache.sweep(now)
            except Exception as e:
                logger.error(f"Sweep of {cache.name} cache failed: {e}")
        return removed + self._sweep_files(now)

    async def _sweep_periodically(self, cache: ArtifactCache) -> None:
        period = cache.ttl.total_seconds()
        while True:
            await asyncio.sleep(period)
            try:
                cache.sweep(datetime.now())
            except Exception as e:
                logger.error(f"Sweep of {cache.name} cache failed: {e}")

    async def _sweep_files_periodically(self, period: float) -> None:
        while True:
            await asyncio.sleep(period)
            self._sweep_files(datetime.now())

    def start(self) -> None:
        """Start one background sweep task per cache (requires a running loop).

        Does nothing while tasks are running. Tasks that already finished,
        for instance because their event loop closed, are replaced.
        """
        if self.running:
            return
        self._tasks.clear()
        for cache in self.caches:
            self._tasks.append(asyncio.create_task(self._sweep_periodically(cache)))
        if self.file_sweeps:
            period = min(
                [cache.ttl.total_seconds() for cache in self.caches]
                or [sweep.max_age.total_seconds() for sweep in self.file_sweeps]
            )
            self._tasks.append(
                asyncio.create_task(self._sweep_files_periodically(period))
            )
        logger.debug(f"Janitor started with {len(self._tasks)} sweep tasks")

    async def stop(self) -> None:
        """Cancel the background sweep tasks and wait for them to finish."""
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)
