"""Pytest configuration and fixtures for meditone tests."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from test_helpers import FakeEngine, FakeProvider

from meditone.paths import ArtifactPaths


@pytest.fixture(autouse=True)
def isolate_user_dirs(tmp_path, monkeypatch) -> None:
    """Point XDG directories and the config file at per-test locations."""
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg-cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg-data"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    for var in (
        "MEDITONE_PROVIDER",
        "MEDITONE_VOICE",
        "MEDITONE_MODEL",
        "MEDITONE_AUDIO_DIR",
        "MEDITONE_MUSIC_DIR",
        "MEDITONE_CACHE_DIR",
        "MEDITONE_TEMP_DIR",
        "MEDITONE_BASE_URL",
        "MEDITONE_FFMPEG",
        "MEDITONE_FFPROBE",
    ):
        monkeypatch.delenv(var, raising=False)

    import meditone.api
    import meditone.config

    monkeypatch.setattr(
        meditone.config, "CONFIG_PATH", tmp_path / "xdg-config" / "meditone" / "config.toml"
    )
    monkeypatch.setattr(meditone.config, "_cached_config", None)
    monkeypatch.setattr(meditone.api, "_pipeline", None)


@pytest.fixture
def artifact_paths(tmp_path) -> ArtifactPaths:
    """Artifact directory layout under the test's temp directory."""
    return ArtifactPaths(
        audio_dir=tmp_path / "audio",
        music_dir=tmp_path / "music",
        chunk_dir=tmp_path / "chunks",
        temp_dir=tmp_path / "temp",
    ).ensure()


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()
