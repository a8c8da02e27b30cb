"""
Periodic background jobs.

Vector store upkeep runs as a plain asyncio task that sleeps between
cycles; cancelling the task is the only way to stop it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[None]]


async def startup(job: Job, interval: float, *, name: str = "maintenance") -> asyncio.Task:
    """
    Run ``job`` every ``interval`` seconds, starting one interval from now.

    A failing cycle is logged and the schedule carries on.

    :returns: The task handle to pass to :func:`shutdown`.
    """

    async def _loop() -> None:
        cycle = 0
        while True:
            await asyncio.sleep(interval)
            cycle += 1
            try:
                await job()
            except Exception as exc:
                logger.error("%s cycle %d failed: %s", name, cycle, exc)

    return asyncio.create_task(_loop(), name=name)


async def shutdown(task: asyncio.Task | None) -> None:
    """Cancel a job started with :func:`startup` and wait for it to unwind."""
    if task is None or task.done():
        return

    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
