"""Unit tests for background music mixing."""

import asyncio
import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from test_helpers import FakeEngine

from meditone.audio.mixer import BackgroundMixer, build_mix_filter
from meditone.cache.keys import merge_cache_key
from meditone.paths import ArtifactPaths
from meditone.tts.errors import MixError, NotFoundError


@pytest.fixture
def tracks(artifact_paths: ArtifactPaths) -> tuple[str, str]:
    (artifact_paths.audio_dir / "meditation-1.mp3").write_bytes(b"speech")
    (artifact_paths.music_dir / "rain.mp3").write_bytes(b"rain")
    return "/audio/meditation-1.mp3", "/music/rain.mp3"


class TestMixFilter:
    """Test the ffmpeg filter graph for mixing."""

    def test_trims_music_to_speech_length(self) -> None:
        """Test that the looped music is cut at the speech duration."""
        graph = build_mix_filter(60.0, 1.0, 0.3)

        assert "[1:a]atrim=duration=60.000" in graph
        assert "volume=0.3[music]" in graph
        assert "[0:a]volume=1[speech]" in graph
        assert "amix=inputs=2:duration=first" in graph
        assert graph.endswith("[out]")


class TestBackgroundMixer:
    """Test BackgroundMixer with a fake ffmpeg engine."""

    @pytest.mark.asyncio
    async def test_mix_writes_merged_file(
        self, artifact_paths: ArtifactPaths, tracks: tuple[str, str]
    ) -> None:
        """Test that a mix lands in the audio directory under its merge key."""
        speech_url, music_url = tracks
        engine = FakeEngine(durations={"meditation-1.mp3": 60.0})

        artifact = await BackgroundMixer(engine, artifact_paths).mix(speech_url, music_url)

        key = merge_cache_key(speech_url, music_url, 0.3)
        assert artifact.path == artifact_paths.audio_dir / f"merged-{key}.mp3"
        assert artifact.cached is False
        args = engine.runs[0]
        assert args[args.index("-stream_loop") + 1] == "-1"
        assert "atrim=duration=60.000" in args[args.index("-filter_complex") + 1]
        assert list(artifact_paths.temp_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_second_mix_is_cached(
        self, artifact_paths: ArtifactPaths, tracks: tuple[str, str]
    ) -> None:
        """Test that repeating a mix returns the cached file without ffmpeg."""
        engine = FakeEngine()
        mixer = BackgroundMixer(engine, artifact_paths)

        first = await mixer.mix(*tracks)
        second = await mixer.mix(*tracks)

        assert second.cached is True
        assert second.path == first.path
        assert len(engine.runs) == 1

    @pytest.mark.asyncio
    async def test_speech_volume_not_in_cache_key(
        self, artifact_paths: ArtifactPaths, tracks: tuple[str, str]
    ) -> None:
        """
        INVARIANT: Mixes differing only in speech volume share one cached file
        BREAKS: Documented behaviour silently changes
        """
        engine = FakeEngine()
        mixer = BackgroundMixer(engine, artifact_paths)

        loud = await mixer.mix(*tracks, speech_volume=1.0)
        quiet = await mixer.mix(*tracks, speech_volume=0.2)

        assert quiet.path == loud.path
        assert quiet.cached is True
        assert len(engine.runs) == 1

    @pytest.mark.asyncio
    async def test_music_volume_in_cache_key(
        self, artifact_paths: ArtifactPaths, tracks: tuple[str, str]
    ) -> None:
        """Test that a different music volume produces a new mix."""
        engine = FakeEngine()
        mixer = BackgroundMixer(engine, artifact_paths)

        a = await mixer.mix(*tracks, music_volume=0.3)
        b = await mixer.mix(*tracks, music_volume=0.6)

        assert a.path != b.path
        assert len(engine.runs) == 2

    @pytest.mark.asyncio
    async def test_concurrent_identical_mixes_run_once(
        self, artifact_paths: ArtifactPaths, tracks: tuple[str, str]
    ) -> None:
        """Test that concurrent identical requests share one ffmpeg run."""
        engine = FakeEngine()
        mixer = BackgroundMixer(engine, artifact_paths)

        await asyncio.gather(*(mixer.mix(*tracks) for _ in range(3)))

        assert len(engine.runs) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("speech_url", "music_url"),
        [
            ("/audio/missing.mp3", "/music/rain.mp3"),
            ("/audio/meditation-1.mp3", "/music/missing.mp3"),
            ("/audio/../music/rain.mp3", "/music/rain.mp3"),
            ("/etc/passwd", "/music/rain.mp3"),
        ],
    )
    async def test_missing_input_raises_not_found(
        self,
        artifact_paths: ArtifactPaths,
        tracks: tuple[str, str],
        speech_url: str,
        music_url: str,
    ) -> None:
        """Test that absent or out-of-tree inputs raise NotFoundError."""
        engine = FakeEngine()

        with pytest.raises(NotFoundError):
            await BackgroundMixer(engine, artifact_paths).mix(speech_url, music_url)
        assert engine.runs == []

    @pytest.mark.asyncio
    async def test_negative_volume_rejected(
        self, artifact_paths: ArtifactPaths, tracks: tuple[str, str]
    ) -> None:
        """Test that negative gains raise ValueError."""
        with pytest.raises(ValueError, match="Volumes must be >= 0"):
            await BackgroundMixer(FakeEngine(), artifact_paths).mix(
                *tracks, music_volume=-0.1
            )

    @pytest.mark.asyncio
    async def test_ffmpeg_failure_raises_mix_error(
        self, artifact_paths: ArtifactPaths, tracks: tuple[str, str]
    ) -> None:
        """Test that an ffmpeg failure raises MixError and leaves no partial output."""
        engine = FakeEngine(fail_when=lambda args: True)
        mixer = BackgroundMixer(engine, artifact_paths)

        with pytest.raises(MixError) as exc_info:
            await mixer.mix(*tracks)

        assert exc_info.value.stage == "mix"
        assert list(artifact_paths.temp_dir.iterdir()) == []
        assert [p.name for p in artifact_paths.audio_dir.iterdir()] == ["meditation-1.mp3"]
        assert len(mixer.cache) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("speech_volume", "music_volume"),
        [
            (float("nan"), 0.3),
            (1.0, float("nan")),
            (float("inf"), 0.3),
            (1.0, float("inf")),
        ],
    )
    async def test_non_finite_volume_rejected(
        self,
        artifact_paths: ArtifactPaths,
        tracks: tuple[str, str],
        speech_volume: float,
        music_volume: float,
    ) -> None:
        """Test that NaN and infinite gains raise ValueError before ffmpeg runs."""
        engine = FakeEngine()

        with pytest.raises(ValueError, match="Volumes must be >= 0 and finite"):
            await BackgroundMixer(engine, artifact_paths).mix(
                *tracks, speech_volume=speech_volume, music_volume=music_volume
            )
        assert engine.runs == []

    @pytest.mark.asyncio
    async def test_absolute_and_relative_urls_share_cache_entry(
        self, artifact_paths: ArtifactPaths, tracks: tuple[str, str]
    ) -> None:
        """
        INVARIANT: Every spelling of the same input files maps to one merged file
        BREAKS: Duplicate ffmpeg runs and duplicate merged files for the same mix
        """
        speech_url, music_url = tracks
        engine = FakeEngine()
        mixer = BackgroundMixer(engine, artifact_paths)

        relative = await mixer.mix(speech_url, music_url)
        absolute = await mixer.mix(
            f"https://example.com{speech_url}", f"http://localhost:8000{music_url}"
        )

        assert absolute.cached is True
        assert absolute.path == relative.path
        assert relative.path.name == f"merged-{merge_cache_key(speech_url, music_url, 0.3)}.mp3"
        assert len(engine.runs) == 1

    @pytest.mark.asyncio
    async def test_lock_table_empties_after_mixes(
        self, artifact_paths: ArtifactPaths, tracks: tuple[str, str]
    ) -> None:
        """Test that per-key locks are dropped once their mixes finish."""
        mixer = BackgroundMixer(FakeEngine(), artifact_paths)

        await asyncio.gather(
            *(mixer.mix(*tracks, music_volume=v) for v in (0.1, 0.2, 0.2, 0.3))
        )

        assert len(mixer._locks) == 0
