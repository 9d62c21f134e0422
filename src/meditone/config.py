"""Configuration management for meditone.

Loads configuration from ~/.config/meditone/config.toml.
Priority chain: CLI flags > env vars > config file.
"""

import os
import sys
import tomllib
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

from .paths import ArtifactPaths, get_cache_dir, get_config_dir, get_data_dir

CONFIG_DIR = get_config_dir()
CONFIG_PATH = CONFIG_DIR / "config.toml"

DEFAULT_CONFIG = """\
# meditone configuration

[tts]
# Provider: "openai" or "elevenlabs"
provider = "openai"

# Voice for speech synthesis
# OpenAI: alloy, echo, fable, onyx, nova, shimmer
# ElevenLabs: use `meditone voices --provider elevenlabs`
voice = "alloy"

# Model: "tts-1", "tts-1-hd" (OpenAI) or e.g. "eleven_turbo_v2_5" (ElevenLabs)
model = "tts-1"

[pipeline]
# Longest speech chunk sent to the provider, in characters
max_chunk_length = 4000

# Units per batch; 0 picks a size from the script length (5-25)
batch_size = 0

# How units inside a batch run: "gather" (concurrent) or "sequential"
executor = "gather"

# Generation requests allowed to run at once in one process
max_concurrent_generations = 3

[cache]
# Index backend: "memory" (per process) or "sqlite" (survives restarts)
backend = "memory"

# Retention window for speech chunks and mixes, in hours
ttl_hours = 24

[paths]
# Leave empty to use XDG defaults (~/.local/share/meditone, ~/.cache/meditone)
audio_dir = ""
music_dir = ""
cache_dir = ""
temp_dir = ""

# Prefix for returned URLs, e.g. "https://example.com"
base_url = ""

[ffmpeg]
ffmpeg = "ffmpeg"
ffprobe = "ffprobe"

# API keys are read from environment variables, not this file:
#   OPENAI_API_KEY      - OpenAI provider
#   ELEVENLABS_API_KEY  - ElevenLabs provider
"""

EXECUTOR_NAMES = ("gather", "sequential")
CACHE_BACKENDS = ("memory", "sqlite")


@dataclass(frozen=True)
class TTSConfig:
    """TTS provider configuration."""

    provider: str
    voice: str
    model: str


@dataclass(frozen=True)
class PipelineConfig:
    """Segmentation and batching configuration."""

    max_chunk_length: int
    batch_size: int | None
    executor: str
    max_concurrent_generations: int


@dataclass(frozen=True)
class CacheConfig:
    """Artifact cache configuration."""

    backend: str
    ttl_hours: float


@dataclass(frozen=True)
class PathsConfig:
    """Artifact directories and URL prefix."""

    audio_dir: Path
    music_dir: Path
    cache_dir: Path
    temp_dir: Path
    base_url: str

    def artifact_paths(self) -> ArtifactPaths:
        return ArtifactPaths(
            audio_dir=self.audio_dir,
            music_dir=self.music_dir,
            chunk_dir=self.cache_dir / "chunks",
            temp_dir=self.temp_dir,
            base_url=self.base_url,
        )


@dataclass(frozen=True)
class FFmpegConfig:
    """Locations of the ffmpeg and ffprobe binaries."""

    ffmpeg: str
    ffprobe: str


@dataclass(frozen=True)
class MeditoneConfig:
    """Top-level meditone configuration."""

    tts: TTSConfig
    pipeline: PipelineConfig
    cache: CacheConfig
    paths: PathsConfig
    ffmpeg: FFmpegConfig


_cached_config: MeditoneConfig | None = None


def generate_config() -> Path:
    """Generate default config file at ~/.config/meditone/config.toml."""
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_PATH.write_text(DEFAULT_CONFIG)
    return CONFIG_PATH


def _path_setting(env_var: str, value: str, default: Callable[[], Path]) -> Path:
    raw = os.getenv(env_var, value)
    return Path(raw).expanduser() if raw else default()


def _fail(messages: list[str]) -> NoReturn:
    for message in messages:
        print(message, file=sys.stderr)
    print(f"Edit {CONFIG_PATH} or delete it to regenerate.", file=sys.stderr)
    raise SystemExit(1)


def parse_config(data: dict) -> MeditoneConfig:
    """Validate parsed TOML data and apply env var overrides.

    Raises:
        SystemExit: If required values are missing or invalid
    """
    tts = data.get("tts", {})
    pipeline = data.get("pipeline", {})
    cache = data.get("cache", {})
    paths = data.get("paths", {})
    ffmpeg = data.get("ffmpeg", {})

    # Validate required fields
    missing = [
        f"tts.{name}" for name in ("provider", "voice", "model") if name not in tts
    ]
    if missing:
        _fail([f"Missing required config values: {', '.join(missing)}"])

    errors = []
    max_chunk_length = pipeline.get("max_chunk_length", 4000)
    if not isinstance(max_chunk_length, int) or max_chunk_length <= 0:
        errors.append("pipeline.max_chunk_length must be a positive integer")
    batch_size = pipeline.get("batch_size", 0)
    if not isinstance(batch_size, int) or batch_size < 0:
        errors.append("pipeline.batch_size must be 0 or a positive integer")
    executor = pipeline.get("executor", "gather")
    if executor not in EXECUTOR_NAMES:
        errors.append(f"pipeline.executor must be one of: {', '.join(EXECUTOR_NAMES)}")
    max_concurrent = pipeline.get("max_concurrent_generations", 3)
    if not isinstance(max_concurrent, int) or max_concurrent <= 0:
        errors.append("pipeline.max_concurrent_generations must be a positive integer")
    backend = cache.get("backend", "memory")
    if backend not in CACHE_BACKENDS:
        errors.append(f"cache.backend must be one of: {', '.join(CACHE_BACKENDS)}")
    ttl_hours = cache.get("ttl_hours", 24)
    if not isinstance(ttl_hours, (int, float)) or ttl_hours <= 0:
        errors.append("cache.ttl_hours must be a positive number")
    if errors:
        _fail(errors)

    # Env vars override config file values; empty directories fall back to XDG
    cache_dir = _path_setting(
        "MEDITONE_CACHE_DIR", paths.get("cache_dir", ""), get_cache_dir
    )

    return MeditoneConfig(
        tts=TTSConfig(
            provider=os.getenv("MEDITONE_PROVIDER", tts["provider"]),
            voice=os.getenv("MEDITONE_VOICE", tts["voice"]),
            model=os.getenv("MEDITONE_MODEL", tts["model"]),
        ),
        pipeline=PipelineConfig(
            max_chunk_length=max_chunk_length,
            batch_size=batch_size or None,
            executor=executor,
            max_concurrent_generations=max_concurrent,
        ),
        cache=CacheConfig(backend=backend, ttl_hours=float(ttl_hours)),
        paths=PathsConfig(
            audio_dir=_path_setting(
                "MEDITONE_AUDIO_DIR",
                paths.get("audio_dir", ""),
                lambda: get_data_dir() / "audio",
            ),
            music_dir=_path_setting(
                "MEDITONE_MUSIC_DIR",
                paths.get("music_dir", ""),
                lambda: get_data_dir() / "music",
            ),
            cache_dir=cache_dir,
            temp_dir=_path_setting(
                "MEDITONE_TEMP_DIR",
                paths.get("temp_dir", ""),
                lambda: cache_dir / "temp",
            ),
            base_url=os.getenv("MEDITONE_BASE_URL", paths.get("base_url", "")),
        ),
        ffmpeg=FFmpegConfig(
            ffmpeg=os.getenv("MEDITONE_FFMPEG", ffmpeg.get("ffmpeg", "ffmpeg")),
            ffprobe=os.getenv("MEDITONE_FFPROBE", ffmpeg.get("ffprobe", "ffprobe")),
        ),
    )


def load_config() -> MeditoneConfig:
    """Load configuration from config file with env var overrides.

    On first run, generates the config file and exits so the user
    can review it before proceeding.

    Returns:
        Loaded and validated MeditoneConfig.

    Raises:
        SystemExit: If config is missing (after generating) or invalid.
    """
    global _cached_config
    if _cached_config is not None:
        return _cached_config

    if not CONFIG_PATH.exists():
        path = generate_config()
        print(
            f"No config found. Generated {path}. Review it and run again.",
            file=sys.stderr,
        )
        raise SystemExit(1)

    try:
        with open(CONFIG_PATH, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        _fail([f"Invalid config file: {e}"])

    _cached_config = parse_config(data)
    return _cached_config
