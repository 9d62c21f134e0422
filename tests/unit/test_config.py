"""Unit tests for configuration loading and validation."""

import sys
import tomllib
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

import meditone.config as config_module
from meditone.config import DEFAULT_CONFIG, load_config, parse_config


def default_data() -> dict:
    return tomllib.loads(DEFAULT_CONFIG)


class TestFirstRun:
    """Test behaviour when no config file exists yet."""

    def test_generates_file_and_exits(self, capsys) -> None:
        """Test that the first run writes the default config and stops."""
        with pytest.raises(SystemExit) as exc_info:
            load_config()

        assert exc_info.value.code == 1
        assert config_module.CONFIG_PATH.read_text() == DEFAULT_CONFIG
        assert "Review it and run again" in capsys.readouterr().err

    def test_second_run_loads_generated_file(self) -> None:
        """Test that the generated file is valid and cached after loading."""
        with pytest.raises(SystemExit):
            load_config()

        config = load_config()

        assert config.tts.provider == "openai"
        assert load_config() is config

    def test_invalid_toml_exits(self, capsys) -> None:
        """Test that a syntax error is reported instead of a traceback."""
        config_module.CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        config_module.CONFIG_PATH.write_text("[tts\nprovider = ")

        with pytest.raises(SystemExit):
            load_config()

        assert "Invalid config file" in capsys.readouterr().err


class TestParseConfig:
    """Test validation and defaults of parsed config data."""

    def test_defaults(self, tmp_path) -> None:
        """Test values produced by the default config."""
        config = parse_config(default_data())

        assert config.tts.voice == "alloy"
        assert config.tts.model == "tts-1"
        assert config.pipeline.max_chunk_length == 4000
        assert config.pipeline.batch_size is None
        assert config.pipeline.executor == "gather"
        assert config.pipeline.max_concurrent_generations == 3
        assert config.cache.backend == "memory"
        assert config.cache.ttl_hours == 24.0
        assert config.paths.cache_dir == tmp_path / "xdg-cache" / "meditone"
        assert config.paths.temp_dir == config.paths.cache_dir / "temp"
        assert config.paths.audio_dir == tmp_path / "xdg-data" / "meditone" / "audio"
        assert config.paths.base_url == ""

    def test_artifact_paths_layout(self) -> None:
        """Test that chunks live under the cache directory."""
        config = parse_config(default_data())
        paths = config.paths.artifact_paths()

        assert paths.chunk_dir == config.paths.cache_dir / "chunks"
        assert paths.temp_dir == config.paths.temp_dir

    def test_explicit_batch_size_kept(self) -> None:
        """Test that a positive batch size is used as given."""
        data = default_data()
        data["pipeline"]["batch_size"] = 8

        assert parse_config(data).pipeline.batch_size == 8

    def test_env_overrides(self, monkeypatch, tmp_path) -> None:
        """Test that MEDITONE_* variables beat file values."""
        monkeypatch.setenv("MEDITONE_VOICE", "nova")
        monkeypatch.setenv("MEDITONE_CACHE_DIR", str(tmp_path / "elsewhere"))
        monkeypatch.setenv("MEDITONE_BASE_URL", "https://calm.example")

        config = parse_config(default_data())

        assert config.tts.voice == "nova"
        assert config.paths.cache_dir == tmp_path / "elsewhere"
        assert config.paths.temp_dir == tmp_path / "elsewhere" / "temp"
        assert config.paths.base_url == "https://calm.example"

    def test_missing_tts_values_exit(self, capsys) -> None:
        """Test that missing tts settings are listed."""
        with pytest.raises(SystemExit):
            parse_config({"tts": {"provider": "openai"}})

        err = capsys.readouterr().err
        assert "tts.voice" in err
        assert "tts.model" in err

    @pytest.mark.parametrize(
        ("section", "key", "value", "message"),
        [
            ("pipeline", "executor", "threads", "pipeline.executor must be one of"),
            ("pipeline", "batch_size", -1, "pipeline.batch_size"),
            ("pipeline", "max_chunk_length", 0, "pipeline.max_chunk_length"),
            ("pipeline", "max_concurrent_generations", 0, "max_concurrent_generations"),
            ("cache", "backend", "redis", "cache.backend must be one of"),
            ("cache", "ttl_hours", 0, "cache.ttl_hours"),
        ],
    )
    def test_invalid_values_exit(
        self, capsys, section: str, key: str, value: object, message: str
    ) -> None:
        """Test that each invalid setting is reported and exits."""
        data = default_data()
        data[section][key] = value

        with pytest.raises(SystemExit):
            parse_config(data)

        assert message in capsys.readouterr().err
