"""Time-bounded artifact caches.

An artifact cache maps a content fingerprint to an audio file on disk. Entries
are evicted purely by age: once an entry is older than the cache's retention
window, a sweep deletes the file and then the entry, whether or not it was
read in the meantime.

Example:
    cache = MemoryArtifactCache("speech", ttl=timedelta(hours=24))

    path = cache.get(key)
    if path is None:
        path = write_audio(key)
        cache.put(key, path)

    # Later, from the janitor
    evicted = cache.sweep(datetime.now())
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from pathlib import Path

from .models import CacheEntry
from .storage import CacheStorage

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=24)


def remove_file(path: Path) -> bool:
    """Delete ``path`` if present; absence is not an error.

    Returns:
        True if a file was deleted
    """
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False


class ArtifactCache(ABC):
    """Abstract key -> path cache with TTL sweeping.

    Two concurrent writers for the same key both succeed; the later ``put``
    replaces the earlier entry. Callers that want to avoid the duplicate work
    serialize per key before calling ``get``.
    """

    def __init__(self, name: str, ttl: timedelta | None = DEFAULT_TTL) -> None:
        """Initialize the cache.

        Args:
            name: Cache name used in logs and as storage namespace
            ttl: Retention window; None keeps entries for the process lifetime
        """
        if ttl is not None and ttl <= timedelta(0):
            raise ValueError(f"ttl must be positive, got {ttl}")
        self.name = name
        self.ttl = ttl

    @abstractmethod
    def _load(self, key: str) -> CacheEntry | None:
        pass

    @abstractmethod
    def _store(self, entry: CacheEntry) -> None:
        pass

    @abstractmethod
    def _delete(self, key: str) -> None:
        pass

    @abstractmethod
    def entries(self) -> list[CacheEntry]:
        """Return a snapshot of all entries."""
        pass

    def get(self, key: str) -> Path | None:
        """Return the cached path for ``key`` if the file still exists.

        An entry whose file has disappeared is dropped and reported as a miss.
        """
        entry = self._load(key)
        if entry is None:
            return None
        if not entry.path.exists():
            logger.warning(
                f"{self.name} cache entry {key[:12]} lost its file; treating as miss"
            )
            self._delete(key)
            return None
        return entry.path

    def put(self, key: str, path: Path, created_at: datetime | None = None) -> None:
        """Register ``path`` under ``key`` with the current timestamp."""
        self._store(CacheEntry(key=key, path=path, created_at=created_at or datetime.now()))
        logger.debug(f"{self.name} cache stored {key[:12]}")

    def remove(self, key: str) -> None:
        """Drop an entry without touching its file."""
        self._delete(key)

    def sweep(self, now: datetime | None = None) -> int:
        """Evict every entry older than the retention window.

        The file is deleted before the entry. A failure on one entry is logged
        and the sweep moves on to the next.

        Returns:
            Number of entries evicted
        """
        if self.ttl is None:
            return 0

        now = now or datetime.now()
        evicted = 0
        for entry in self.entries():
            if not entry.is_expired(now, self.ttl):
                continue
            try:
                remove_file(entry.path)
                self._delete(entry.key)
                evicted += 1
            except Exception as e:
                logger.warning(
                    f"Failed to evict {self.name} cache entry {entry.key[:12]}: {e}"
                )

        if evicted:
            logger.info(f"Swept {evicted} expired entries from {self.name} cache")
        return evicted

    def __len__(self) -> int:
        return len(self.entries())

    def __contains__(self, key: str) -> bool:
        return self._load(key) is not None


class MemoryArtifactCache(ArtifactCache):
    """Process-local cache backed by a dict."""

    def __init__(self, name: str, ttl: timedelta | None = DEFAULT_TTL) -> None:
        super().__init__(name, ttl)
        self._entries: dict[str, CacheEntry] = {}

    def _load(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def _store(self, entry: CacheEntry) -> None:
        self._entries[entry.key] = entry

    def _delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def entries(self) -> list[CacheEntry]:
        return list(self._entries.values())


class SqliteArtifactCache(ArtifactCache):
    """Cache whose index lives in SQLite so it survives restarts."""

    def __init__(
        self,
        name: str,
        storage: CacheStorage,
        ttl: timedelta | None = DEFAULT_TTL,
    ) -> None:
        super().__init__(name, ttl)
        self.storage = storage

    def _load(self, key: str) -> CacheEntry | None:
        return self.storage.get(self.name, key)

    def _store(self, entry: CacheEntry) -> None:
        self.storage.save(self.name, entry)

    def _delete(self, key: str) -> None:
        self.storage.delete(self.name, key)

    def entries(self) -> list[CacheEntry]:
        return self.storage.entries(self.name)

    def __len__(self) -> int:
        return self.storage.count(self.name)


def create_cache(
    name: str,
    backend: str = "memory",
    ttl: timedelta | None = DEFAULT_TTL,
    cache_dir: Path | None = None,
) -> ArtifactCache:
    """Build an artifact cache for the configured backend.

    Raises:
        ValueError: If backend is unknown or sqlite is requested without cache_dir
    """
    if backend == "memory":
        return MemoryArtifactCache(name, ttl)
    if backend == "sqlite":
        if cache_dir is None:
            raise ValueError("sqlite cache backend requires cache_dir")
        return SqliteArtifactCache(name, CacheStorage(cache_dir), ttl)
    raise ValueError(f"Unknown cache backend '{backend}'. Available: memory, sqlite")
