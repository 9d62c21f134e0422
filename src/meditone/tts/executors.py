"""Executors that run one batch of unit calls.

An executor receives zero-argument coroutine factories and returns one result
per factory in the same order, with exceptions returned in place of results
rather than raised.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

UnitCall = Callable[[], Awaitable[Any]]


class BatchExecutor(ABC):
    """Strategy for running the calls of a single batch."""

    name = "abstract"

    @abstractmethod
    async def run(self, calls: Sequence[UnitCall]) -> list[Any]:
        """Run every call and return results (or exceptions) in input order."""
        pass


class GatherExecutor(BatchExecutor):
    """Runs every call of the batch concurrently on the event loop."""

    name = "gather"

    async def run(self, calls: Sequence[UnitCall]) -> list[Any]:
        return list(
            await asyncio.gather(*(call() for call in calls), return_exceptions=True)
        )


class SequentialExecutor(BatchExecutor):
    """Runs the calls one after another; useful under strict rate limits."""

    name = "sequential"

    async def run(self, calls: Sequence[UnitCall]) -> list[Any]:
        results: list[Any] = []
        for call in calls:
            try:
                results.append(await call())
            except Exception as e:
                results.append(e)
        return results


EXECUTORS: dict[str, type[BatchExecutor]] = {
    GatherExecutor.name: GatherExecutor,
    SequentialExecutor.name: SequentialExecutor,
}


def get_executor(name: str) -> BatchExecutor:
    """Instantiate an executor by name.

    Raises:
        KeyError: If no executor has that name
    """
    if name not in EXECUTORS:
        raise KeyError(
            f"Executor '{name}' not found. Available executors: {', '.join(EXECUTORS)}"
        )
    return EXECUTORS[name]()
