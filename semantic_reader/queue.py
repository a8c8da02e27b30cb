"""
Background embedding queue
==========================

Accepts newly ingested feed items, drops the ones that already have a
vector, and drains the rest in fixed-size batches:

    enqueue -> pending (FIFO) -> embed_batch -> VectorStore.put_batch

Only one drain loop runs at a time. A failed batch is pushed back to the
front of the queue and the loop stops; the next ``enqueue`` restarts it.
Nothing here is persisted: after a restart the next enqueue pass simply
rediscovers items that still lack a vector.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Callable, Deque, Iterable, List, Mapping, Optional

from semantic_reader.config import embedding as emb_cfg, queue as queue_cfg
from semantic_reader.embeddings import embed_batch
from semantic_reader.models import EmbeddingTask, FeedItem, QueueStatus, as_feed_item
from semantic_reader.store import VectorStore
from semantic_reader.text import build_embedding_text

logger = logging.getLogger(__name__)


class EmbeddingQueue:
    def __init__(
        self,
        store: VectorStore,
        *,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        dimensions: Optional[int] = None,
        batch_size: Optional[int] = None,
        inter_batch_delay: Optional[float] = None,
        reembed_on_model_change: Optional[bool] = None,
        text_builder: Callable[[FeedItem], str] = build_embedding_text,
    ) -> None:
        self.store = store
        self.model = model or emb_cfg.EMB_MODEL_ID
        self.dimensions = dimensions or emb_cfg.EMB_DIM
        self.batch_size = max(1, batch_size or queue_cfg.BATCH_SIZE)
        self.inter_batch_delay = (
            queue_cfg.INTER_BATCH_DELAY if inter_batch_delay is None else inter_batch_delay
        )
        self.reembed_on_model_change = (
            queue_cfg.REEMBED_ON_MODEL_CHANGE
            if reembed_on_model_change is None
            else reembed_on_model_change
        )
        self._text_builder = text_builder
        self._api_key = emb_cfg.OPENAI_API_KEY if api_key is None else api_key

        self._pending: Deque[EmbeddingTask] = deque()
        self._in_flight: List[EmbeddingTask] = []
        self._drain_task: asyncio.Task | None = None
        self.processing = False

    # ------------------------------------------------------------------ #
    # Credential
    # ------------------------------------------------------------------ #

    def set_api_key(self, key: Optional[str]) -> None:
        """Use ``key`` for every provider call made from now on."""
        self._api_key = key or ""

    set_credential = set_api_key

    @property
    def has_api_key(self) -> bool:
        return bool(self._api_key)

    # ------------------------------------------------------------------ #
    # Intake
    # ------------------------------------------------------------------ #

    async def enqueue(self, items: Iterable[FeedItem | Mapping[str, Any]]) -> int:
        """
        Queue every item that still needs a vector and kick off draining.

        :param items: Feed items (or ``{_id, title, content}`` mappings).
        :returns: Number of tasks added.
        """
        if not self._api_key:
            logger.warning("OpenAI API key not set. Skipping embedding generation.")
            return 0

        feed_items = [as_feed_item(i) for i in items]
        if not feed_items:
            return 0

        # Snapshot before the lookup: a batch that commits while it runs is
        # then caught by either the snapshot or the store.
        queued = {t.item_id for t in self._pending}
        queued.update(t.item_id for t in self._in_flight)
        records = await self.store.get_batch([i.id for i in feed_items])
        stored = {r.item_id: r.model for r in records}

        new_tasks: List[EmbeddingTask] = []
        for item in feed_items:
            if item.id in queued:
                continue
            if item.id in stored:
                if not self.reembed_on_model_change or stored[item.id] == self.model:
                    continue
            if not (item.content or "").strip():
                continue
            new_tasks.append(EmbeddingTask(item_id=item.id, text=self._text_builder(item)))
            queued.add(item.id)

        if not new_tasks:
            return 0

        self._pending.extend(new_tasks)
        logger.info("Added %d items to embedding queue", len(new_tasks))

        drain = self._drain_task
        if not self.processing and (drain is None or drain.done()):
            self._drain_task = asyncio.create_task(self.process_queue())
        return len(new_tasks)

    # ------------------------------------------------------------------ #
    # Drain loop
    # ------------------------------------------------------------------ #

    def _requeue(self, batch: List[EmbeddingTask]) -> None:
        self._pending.extendleft(reversed(batch))

    async def process_queue(self) -> None:
        """Drain pending tasks batch by batch; stop at the first failed batch."""
        # Guard is checked and set before the first await.
        if self.processing or not self._pending:
            return

        self.processing = True
        logger.info("Processing %d embedding tasks...", len(self._pending))

        try:
            while self._pending:
                n = min(self.batch_size, len(self._pending))
                batch = [self._pending.popleft() for _ in range(n)]
                self._in_flight = batch
                api_key = self._api_key

                try:
                    vectors = await embed_batch(
                        [t.text for t in batch],
                        api_key,
                        model=self.model,
                        dimensions=self.dimensions,
                    )
                    await self.store.put_batch(
                        [(t.item_id, vec, self.model) for t, vec in zip(batch, vectors)]
                    )
                except asyncio.CancelledError:
                    self._requeue(batch)
                    raise
                except Exception as e:
                    logger.error("Failed to process batch of %d: %s", len(batch), e)
                    self._requeue(batch)
                    break
                finally:
                    self._in_flight = []

                logger.info("Stored %d embeddings", len(batch))

                if self._pending:
                    await asyncio.sleep(self.inter_batch_delay)
            else:
                logger.info("Embedding queue processing complete")
        finally:
            self.processing = False

    async def wait_idle(self) -> None:
        """Wait for the drain task started by ``enqueue`` (if any) to finish."""
        task = self._drain_task
        if task is not None and not task.done():
            await task

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_status(self) -> QueueStatus:
        return QueueStatus(queue_length=len(self._pending), processing=self.processing)

    def clear(self) -> None:
        """Drop all pending tasks. A batch already in flight is unaffected."""
        dropped = len(self._pending)
        self._pending.clear()
        if dropped:
            logger.info("Cleared %d pending embedding tasks", dropped)
