"""Batched fan-out of script units to the speech and silence synthesizers.

Units are processed in fixed-size batches. Inside a batch every unit is
dispatched at once through the executor; batches run strictly one after the
other, which bounds the number of in-flight synthesis calls and gives a
natural point to report progress.
"""

import asyncio
import logging
import math
from collections.abc import Callable, Sequence
from functools import partial

from ..audio.silence import SilenceSynthesizer
from .executors import BatchExecutor, GatherExecutor, UnitCall
from .models import AudioArtifact, ScriptUnit
from .synthesizer import SpeechSynthesizer

logger = logging.getLogger(__name__)

MIN_BATCH_SIZE = 5
MAX_BATCH_SIZE = 25

ProgressCallback = Callable[[int, int], None]


def determine_batch_size(
    total_units: int,
    minimum: int = MIN_BATCH_SIZE,
    maximum: int = MAX_BATCH_SIZE,
) -> int:
    """Pick a batch size of roughly a quarter of the units, clamped to [minimum, maximum]."""
    return min(maximum, max(minimum, math.ceil(total_units / 4)))


def partition(units: Sequence[ScriptUnit], size: int) -> list[Sequence[ScriptUnit]]:
    """Split ``units`` into consecutive batches of at most ``size``."""
    if size <= 0:
        raise ValueError(f"batch size must be positive, got {size}")
    return [units[start : start + size] for start in range(0, len(units), size)]


class SynthesisCoordinator:
    """Turns an ordered unit list into an ordered list of chunk files.

    The returned list always has one slot per input unit; slot i holds the
    artifact for unit i, or None if that unit failed. A failing unit never
    prevents the other units of its batch or later batches from running.

    Example:
        coordinator = SynthesisCoordinator(speech, silence)
        artifacts = await coordinator.process(units, voice="alloy", model="tts-1")
        files = [a.path for a in artifacts if a is not None]
    """

    def __init__(
        self,
        speech: SpeechSynthesizer,
        silence: SilenceSynthesizer,
        executor: BatchExecutor | None = None,
        batch_size: int | None = None,
    ) -> None:
        if batch_size is not None and batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.speech = speech
        self.silence = silence
        self.executor = executor or GatherExecutor()
        self.batch_size = batch_size

    def _call_for(self, unit: ScriptUnit, voice: str, model: str) -> UnitCall:
        if unit.is_silence:
            return partial(self.silence.silence, unit.pause_seconds)
        return partial(self.speech.synthesize, unit.text, voice, model)

    async def process(
        self,
        units: Sequence[ScriptUnit],
        voice: str,
        model: str,
        on_progress: ProgressCallback | None = None,
    ) -> list[AudioArtifact | None]:
        """Synthesize every unit, batch by batch.

        Args:
            units: Ordered units from the segmenter
            voice: Voice for speech units
            model: Model for speech units
            on_progress: Called with (completed, total) after each batch

        Returns:
            One artifact or None per input unit, in input order
        """
        total = len(units)
        size = self.batch_size or determine_batch_size(total)
        results: list[AudioArtifact | None] = []

        for number, batch in enumerate(partition(units, size), start=1):
            outcomes = await self.executor.run(
                [self._call_for(unit, voice, model) for unit in batch]
            )

            for unit, outcome in zip(batch, outcomes):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                if isinstance(outcome, BaseException):
                    logger.warning(
                        f"Unit {len(results) + 1}/{total} ({unit.kind.value}) "
                        f"dropped: {outcome}"
                    )
                    results.append(None)
                else:
                    results.append(outcome)

            logger.debug(f"Batch {number} done: {len(results)}/{total} units")
            if on_progress is not None:
                on_progress(len(results), total)

        return results
