"""Data models for artifact caches."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path


@dataclass
class CacheEntry:
    """Cache entry mapping a content fingerprint to an audio file.

    Attributes:
        key: Content fingerprint the artifact was produced from
        path: Path to the cached audio file
        created_at: When this entry was registered
    """

    key: str
    path: Path
    created_at: datetime

    def is_expired(self, now: datetime, ttl: timedelta | None) -> bool:
        """Return True if the entry is older than ``ttl`` at ``now``."""
        if ttl is None:
            return False
        return now - self.created_at > ttl
