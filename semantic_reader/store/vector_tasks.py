"""
Vector store maintenance tasks.

The vector table drifts from the item corpus over time: items get deleted,
and failed embeddings leave zero-vector placeholders behind. One cycle:

1. prune records whose item no longer exists,
2. delete zero-vector records,
3. re-enqueue the whole corpus (the queue skips anything already embedded),
4. checkpoint the WAL.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Iterable, Mapping

from semantic_reader.models import FeedItem, as_feed_item

logger = logging.getLogger(__name__)

ItemSource = Callable[[], Awaitable[Iterable[FeedItem | Mapping[str, Any]]]]


async def run(store, queue, item_source: ItemSource) -> None:
    """Perform one maintenance cycle."""
    items = [as_feed_item(i) for i in await item_source()]

    pruned = await store.prune(i.id for i in items)
    if pruned:
        logger.info("Pruned %d vectors for deleted items", pruned)

    degenerate = await store.delete_degenerate()
    if degenerate:
        logger.info("Dropped %d zero vectors for re-embedding", degenerate)

    if queue.has_api_key:
        added = await queue.enqueue(items)
        logger.info("Backfill pass queued %d items", added)
    else:
        logger.info("No API key configured; skipping backfill pass")

    await store.checkpoint()
