"""XDG-compliant directories and artifact URL mapping."""

import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

AUDIO_URL_PREFIX = "/audio/"
MUSIC_URL_PREFIX = "/music/"


def get_cache_dir() -> Path:
    """Get XDG-compliant cache directory for synthesized chunks.

    Priority:
    1. $XDG_CACHE_HOME/meditone/
    2. ~/.cache/meditone/

    Returns:
        Path to cache directory
    """
    cache_home = os.environ.get("XDG_CACHE_HOME")
    if cache_home:
        path = Path(cache_home) / "meditone"
    else:
        path = Path.home() / ".cache" / "meditone"

    path.mkdir(parents=True, exist_ok=True, mode=0o700)
    return path


def get_data_dir() -> Path:
    """Get XDG-compliant data directory for finished audio.

    Priority:
    1. $XDG_DATA_HOME/meditone/
    2. ~/.local/share/meditone/

    Returns:
        Path to data directory
    """
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        path = Path(data_home) / "meditone"
    else:
        path = Path.home() / ".local" / "share" / "meditone"

    path.mkdir(parents=True, exist_ok=True, mode=0o700)
    return path


def get_config_dir() -> Path:
    """Get XDG-compliant configuration directory.

    Priority:
    1. $XDG_CONFIG_HOME/meditone/
    2. ~/.config/meditone/

    Returns:
        Path to configuration directory (not created)
    """
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "meditone"
    return Path.home() / ".config" / "meditone"


@dataclass(frozen=True)
class ArtifactPaths:
    """Directory layout used by the pipeline.

    Attributes:
        audio_dir: Finished speech tracks and mixes, served under /audio/
        music_dir: Background music library, served under /music/
        chunk_dir: Synthesized speech chunks and silent clips
        temp_dir: Intermediates (concat manifests, WAVs, partial tracks)
        base_url: Optional prefix for externally visible URLs
    """

    audio_dir: Path
    music_dir: Path
    chunk_dir: Path
    temp_dir: Path
    base_url: str = ""

    @classmethod
    def default(cls) -> "ArtifactPaths":
        data_dir = get_data_dir()
        cache_dir = get_cache_dir()
        return cls(
            audio_dir=data_dir / "audio",
            music_dir=data_dir / "music",
            chunk_dir=cache_dir / "chunks",
            temp_dir=cache_dir / "temp",
        )

    def ensure(self) -> "ArtifactPaths":
        """Create every directory in the layout."""
        for directory in (self.audio_dir, self.music_dir, self.chunk_dir, self.temp_dir):
            directory.mkdir(parents=True, exist_ok=True)
        return self

    def url_for(self, path: Path) -> str:
        """Return the stable URL of a file in the audio or music directory.

        Raises:
            ValueError: If the file lives outside both served directories
        """
        if path.parent.resolve() == self.audio_dir.resolve():
            prefix = AUDIO_URL_PREFIX
        elif path.parent.resolve() == self.music_dir.resolve():
            prefix = MUSIC_URL_PREFIX
        else:
            raise ValueError(f"{path.name} is not in a served directory")
        return f"{self.base_url.rstrip('/')}{prefix}{path.name}"

    def _split_url(self, url: str) -> tuple[str, str] | None:
        url_path = urlparse(url).path if "://" in url else url
        if self.base_url:
            base_path = urlparse(self.base_url).path.rstrip("/")
            if base_path and url_path.startswith(base_path + "/"):
                url_path = url_path[len(base_path):]

        for prefix in (AUDIO_URL_PREFIX, MUSIC_URL_PREFIX):
            if not url_path.startswith(prefix):
                continue
            name = url_path[len(prefix):]
            if not name or "/" in name or "\\" in name or name in (".", ".."):
                return None
            return prefix, name
        return None

    def normalize_url(self, url: str) -> str | None:
        """Reduce an artifact URL to its ``/audio/<name>`` or ``/music/<name>`` form.

        Absolute URLs and the ``base_url`` prefix are stripped, so every
        spelling of one file yields the same string.

        Returns:
            Normalized URL, or None if ``url`` does not name a served file
        """
        parts = self._split_url(url)
        if parts is None:
            return None
        prefix, name = parts
        return f"{prefix}{name}"

    def resolve_url(self, url: str) -> Path | None:
        """Map an /audio/ or /music/ URL back to a path inside its directory.

        Returns:
            Path for the URL, or None if the URL does not name a file in a
            served directory (unknown prefix, nested path, traversal)
        """
        parts = self._split_url(url)
        if parts is None:
            return None
        prefix, name = parts
        directory = self.audio_dir if prefix == AUDIO_URL_PREFIX else self.music_dir
        return directory / name
