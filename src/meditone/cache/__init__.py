"""Artifact caching for the meditone audio pipeline."""

from .janitor import CacheJanitor, sweep_stale_files
from .keys import merge_cache_key, silence_cache_key, speech_cache_key
from .locks import KeyedLocks
from .manager import (
    ArtifactCache,
    MemoryArtifactCache,
    SqliteArtifactCache,
    create_cache,
    remove_file,
)

__all__ = [
    "ArtifactCache",
    "CacheJanitor",
    "KeyedLocks",
    "MemoryArtifactCache",
    "SqliteArtifactCache",
    "create_cache",
    "merge_cache_key",
    "remove_file",
    "silence_cache_key",
    "speech_cache_key",
    "sweep_stale_files",
]
