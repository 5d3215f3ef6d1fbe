"""Tests for the bounded task runner."""

import asyncio

import pytest

from notion_snapshot.notion.concurrency import run_bounded


class Tracker:
    def __init__(self):
        self.active = 0
        self.peak = 0
        self.order = []

    def task(self, name, delay=0.01, error=None):
        async def run():
            self.active += 1
            self.peak = max(self.peak, self.active)
            self.order.append(name)
            try:
                await asyncio.sleep(delay)
                if error is not None:
                    raise error
                return name
            finally:
                self.active -= 1

        return run


@pytest.mark.asyncio
async def test_respects_limit():
    """Test that no more than the limit run at once."""
    tracker = Tracker()

    outcomes = await run_bounded(3, [tracker.task(i) for i in range(10)])

    assert tracker.peak == 3
    assert [o.value for o in outcomes] == list(range(10))


@pytest.mark.asyncio
async def test_limit_one_is_sequential():
    """Test sequential execution."""
    tracker = Tracker()

    outcomes = await run_bounded(1, [tracker.task(i) for i in range(4)])

    assert tracker.peak == 1
    assert tracker.order == [0, 1, 2, 3]
    assert all(o.ok for o in outcomes)


@pytest.mark.asyncio
async def test_outcomes_follow_task_order():
    """Test that results are in task order rather than completion order."""
    tracker = Tracker()
    tasks = [tracker.task("slow", delay=0.05), tracker.task("fast", delay=0)]

    outcomes = await run_bounded(2, tasks)

    assert [o.value for o in outcomes] == ["slow", "fast"]


@pytest.mark.asyncio
@pytest.mark.parametrize("limit", [1, 4])
async def test_failure_does_not_cancel_siblings(limit):
    """Test failure isolation."""
    tracker = Tracker()
    boom = RuntimeError("boom")
    tasks = [tracker.task("a"), tracker.task("b", error=boom), tracker.task("c")]

    outcomes = await run_bounded(limit, tasks)

    assert [o.ok for o in outcomes] == [True, False, True]
    assert outcomes[1].error is boom
    assert outcomes[2].value == "c"


@pytest.mark.asyncio
async def test_no_tasks():
    """Test empty input."""
    assert await run_bounded(3, []) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("limit", [1, 4])
async def test_cancellation_propagates(limit):
    """Test that a cancelled task is not turned into an outcome."""
    tracker = Tracker()
    tasks = [
        tracker.task("a", delay=0),
        tracker.task("b", delay=0.02, error=asyncio.CancelledError()),
        tracker.task("c", delay=0),
    ]

    with pytest.raises(asyncio.CancelledError):
        await run_bounded(limit, tasks)
