"""Bounded concurrent execution of async work items."""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

T = TypeVar("T")

Task = Callable[[], Awaitable[T]]


@dataclass
class TaskOutcome(Generic[T]):
    """Result of one scheduled task: a value or the exception it raised."""

    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def _outcome(task: Task) -> TaskOutcome:
    try:
        return TaskOutcome(value=await task())
    except Exception as e:
        return TaskOutcome(error=e)


async def run_bounded(limit: int, tasks: Sequence[Task]) -> List[TaskOutcome]:
    """
    Run every task with at most ``limit`` in flight.

    ``limit <= 1`` runs the tasks one after another. A task raising an
    Exception doesn't cancel its siblings; the exception is returned in
    its outcome. Cancellation and other BaseExceptions propagate on both
    paths. Outcomes are in task order, not completion order.

    Args:
        limit: Maximum number of tasks running at once
        tasks: Zero-argument coroutine factories

    Returns:
        One TaskOutcome per task
    """
    if not tasks:
        return []

    if limit <= 1:
        return [await _outcome(task) for task in tasks]

    semaphore = asyncio.Semaphore(limit)

    async def run_one(task: Task) -> TaskOutcome:
        async with semaphore:
            return await _outcome(task)

    return list(await asyncio.gather(*(run_one(t) for t in tasks)))
