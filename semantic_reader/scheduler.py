"""Schedule vector store maintenance."""

from __future__ import annotations

import asyncio
import logging

from semantic_reader.config import store as store_cfg
from semantic_reader.maintenance import startup as _startup, shutdown as _shutdown
from .store import vector_tasks
from .store.vector_tasks import ItemSource

logger = logging.getLogger(__name__)

_vec_task: asyncio.Task | None = None


async def start(store, queue, item_source: ItemSource, interval: float | None = None) -> asyncio.Task:
    """Run maintenance once and schedule periodic cycles.

    Returns the periodic task handle.
    """
    global _vec_task

    interval = store_cfg.MAINTENANCE_INTERVAL if interval is None else interval

    logger.info("Starting vector maintenance (interval=%ss)", interval)
    await vector_tasks.run(store, queue, item_source)

    if not _vec_task or _vec_task.done():
        async def _vec_loop():
            await vector_tasks.run(store, queue, item_source)
        _vec_task = await _startup(_vec_loop, interval, name="vector-maintenance")

    return _vec_task


async def stop() -> None:
    """Cancel scheduled maintenance if running."""
    global _vec_task

    if _vec_task:
        await _shutdown(_vec_task)
        _vec_task = None
