"""Unit tests for batched synthesis coordination."""

import asyncio
import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from test_helpers import FakeEngine, FakeProvider

from meditone.audio.silence import SilenceSynthesizer
from meditone.tts.executors import (
    GatherExecutor,
    SequentialExecutor,
    get_executor,
)
from meditone.tts.models import ScriptUnit
from meditone.tts.pipeline import SynthesisCoordinator, determine_batch_size, partition
from meditone.tts.synthesizer import SpeechSynthesizer


class RecordingExecutor(GatherExecutor):
    """Gather executor that records batch sizes and detects overlapping batches."""

    def __init__(self) -> None:
        self.batches: list[int] = []
        self.active = False

    async def run(self, calls):  # type: ignore[no-untyped-def]
        assert not self.active, "batch started before the previous one resolved"
        self.active = True
        try:
            self.batches.append(len(calls))
            await asyncio.sleep(0)
            return await super().run(calls)
        finally:
            self.active = False


def make_coordinator(
    tmp_path: Path,
    provider: FakeProvider | None = None,
    executor=None,  # type: ignore[no-untyped-def]
    batch_size: int | None = None,
) -> SynthesisCoordinator:
    provider = provider or FakeProvider()
    speech = SpeechSynthesizer(provider, tmp_path / "chunks")
    silence = SilenceSynthesizer(FakeEngine(), tmp_path / "chunks")
    return SynthesisCoordinator(speech, silence, executor, batch_size)


class TestBatchSizing:
    """Test batch size selection and partitioning."""

    @pytest.mark.parametrize(
        ("total", "expected"),
        [(0, 5), (1, 5), (20, 5), (21, 6), (40, 10), (100, 25), (1000, 25)],
    )
    def test_determine_batch_size(self, total: int, expected: int) -> None:
        """Test that batch size is a quarter of the units clamped to 5..25."""
        assert determine_batch_size(total) == expected

    def test_partition_keeps_order(self) -> None:
        """Test that partitioning yields consecutive slices."""
        units = [ScriptUnit.speech(str(i)) for i in range(7)]

        batches = partition(units, 3)

        assert [len(batch) for batch in batches] == [3, 3, 1]
        assert [unit for batch in batches for unit in batch] == units

    def test_partition_rejects_zero(self) -> None:
        """Test that a non-positive batch size raises ValueError."""
        with pytest.raises(ValueError, match="batch size must be positive"):
            partition([], 0)


class TestCoordinatorOrdering:
    """Test that output slots follow input order."""

    @pytest.mark.asyncio
    async def test_slots_match_units(self, tmp_path: Path) -> None:
        """
        INVARIANT: Output slot i holds the artifact for input unit i
        BREAKS: Narration assembled out of order
        """
        units = [
            ScriptUnit.speech("A"),
            ScriptUnit.silence(2),
            ScriptUnit.speech("B"),
        ]
        coordinator = make_coordinator(tmp_path)

        artifacts = await coordinator.process(units, "alloy", "tts-1")

        assert artifacts[0].path.read_bytes() == b"speech:A"
        assert artifacts[1].path.name == "silence-2.0s.mp3"
        assert artifacts[2].path.read_bytes() == b"speech:B"

    @pytest.mark.asyncio
    async def test_order_independent_of_completion(self, tmp_path: Path) -> None:
        """Test that slow early units still land in their own slots."""
        provider = FakeProvider()
        original = provider.synthesize

        async def slow_first(text: str, voice: str, model: str) -> bytes:
            if text == "first":
                await asyncio.sleep(0.05)
            return await original(text, voice, model)

        provider.synthesize = slow_first  # type: ignore[method-assign]
        units = [ScriptUnit.speech("first"), ScriptUnit.speech("second")]

        artifacts = await make_coordinator(tmp_path, provider).process(
            units, "alloy", "tts-1"
        )

        assert [a.path.read_bytes() for a in artifacts] == [b"speech:first", b"speech:second"]

    @pytest.mark.asyncio
    async def test_sequential_executor_same_result(self, tmp_path: Path) -> None:
        """Test that the sequential executor preserves ordering and failure isolation."""
        provider = FakeProvider(failing={"bad"})
        units = [ScriptUnit.speech("good"), ScriptUnit.speech("bad"), ScriptUnit.speech("fine")]

        artifacts = await make_coordinator(
            tmp_path, provider, SequentialExecutor()
        ).process(units, "alloy", "tts-1")

        assert artifacts[1] is None
        assert artifacts[0].path.read_bytes() == b"speech:good"
        assert artifacts[2].path.read_bytes() == b"speech:fine"


class TestCoordinatorFailures:
    """Test per-unit failure isolation."""

    @pytest.mark.asyncio
    async def test_one_failure_in_five(self, tmp_path: Path) -> None:
        """
        INVARIANT: One failing unit yields exactly one None and leaves the rest intact
        BREAKS: A single API hiccup ruins a whole meditation
        """
        provider = FakeProvider(failing={"three"})
        units = [ScriptUnit.speech(text) for text in ("one", "two", "three", "four", "five")]

        artifacts = await make_coordinator(tmp_path, provider).process(
            units, "alloy", "tts-1"
        )

        assert len(artifacts) == 5
        assert [a is None for a in artifacts] == [False, False, True, False, False]
        survivors = [a.path.read_bytes() for a in artifacts if a is not None]
        assert survivors == [b"speech:one", b"speech:two", b"speech:four", b"speech:five"]

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_later_batches(self, tmp_path: Path) -> None:
        """Test that a failure in batch one does not skip batch two."""
        provider = FakeProvider(failing={"u0"})
        units = [ScriptUnit.speech(f"u{i}") for i in range(4)]

        artifacts = await make_coordinator(tmp_path, provider, batch_size=2).process(
            units, "alloy", "tts-1"
        )

        assert artifacts[0] is None
        assert all(a is not None for a in artifacts[1:])

    @pytest.mark.asyncio
    async def test_all_failures_yield_all_none(self, tmp_path: Path) -> None:
        """Test that the coordinator itself never raises for unit failures."""
        provider = FakeProvider(failing={"a", "b"})
        units = [ScriptUnit.speech("a"), ScriptUnit.speech("b")]

        artifacts = await make_coordinator(tmp_path, provider).process(
            units, "alloy", "tts-1"
        )

        assert artifacts == [None, None]


class TestCoordinatorBatching:
    """Test batch sequencing and progress reporting."""

    @pytest.mark.asyncio
    async def test_batches_run_sequentially(self, tmp_path: Path) -> None:
        """Test that no batch starts before the previous one resolved."""
        executor = RecordingExecutor()
        units = [ScriptUnit.speech(f"line {i}") for i in range(12)]

        artifacts = await make_coordinator(
            tmp_path, executor=executor, batch_size=5
        ).process(units, "alloy", "tts-1")

        assert executor.batches == [5, 5, 2]
        assert all(a is not None for a in artifacts)

    @pytest.mark.asyncio
    async def test_progress_reported_per_batch(self, tmp_path: Path) -> None:
        """Test that on_progress receives cumulative counts after each batch."""
        progress: list[tuple[int, int]] = []
        units = [ScriptUnit.speech(f"line {i}") for i in range(7)]

        await make_coordinator(tmp_path, batch_size=3).process(
            units, "alloy", "tts-1", on_progress=lambda done, total: progress.append((done, total))
        )

        assert progress == [(3, 7), (6, 7), (7, 7)]

    def test_invalid_batch_size(self, tmp_path: Path) -> None:
        """Test that a non-positive batch size is rejected."""
        with pytest.raises(ValueError, match="batch_size must be positive"):
            make_coordinator(tmp_path, batch_size=0)


class TestExecutorLookup:
    """Test executor lookup by name."""

    def test_known_names(self) -> None:
        """Test that both executors are available by name."""
        assert isinstance(get_executor("gather"), GatherExecutor)
        assert isinstance(get_executor("sequential"), SequentialExecutor)

    def test_unknown_name(self) -> None:
        """Test that an unknown executor raises KeyError."""
        with pytest.raises(KeyError, match="Executor 'threads' not found"):
            get_executor("threads")
