"""
Public façade for semantic search over feed items
=================================================

Stable, async API for the rest of the reader (article view, digest
generation, rule engine). Import from here::

    from semantic_reader import init, enqueue, semantic_search, ...

Call :func:`init` once at startup; every other function raises
:class:`~semantic_reader.errors.StoreError` until then.
"""

from __future__ import annotations
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from .errors import StoreError
from .models import FeedItem, QueueStatus, SearchResult, VectorRecord
from .queue import EmbeddingQueue
from .store import VectorStore
from . import scheduler as _scheduler
from . import search as _search
from .clients import oai as _oai
from .store.vector_tasks import ItemSource

# Limit the public surface (keeps star-imports clean)
__all__ = [
    "init",
    "shutdown",
    "start_maintenance",
    "enqueue",
    "set_api_key",
    "get_status",
    "clear_queue",
    "semantic_search",
    "hybrid_search",
    "find_similar_articles",
    "filter_by_topics",
    "get_embedding",
    "get_embeddings",
    "get_all_embeddings",
    "delete_embedding",
    "clear_embeddings",
    "embedding_count",
    "FeedItem",
    "QueueStatus",
    "SearchResult",
    "VectorRecord",
]

# --- Internals -------------------------------------------------------------

# Process-wide store + queue, bound by init()
_store: VectorStore | None = None
_queue: EmbeddingQueue | None = None


def _require_store() -> VectorStore:
    if _store is None:
        raise StoreError("not-initialized")
    return _store


def _require_queue() -> EmbeddingQueue:
    if _queue is None:
        raise StoreError("not-initialized")
    return _queue


def _embedding_params() -> dict:
    q = _require_queue()
    return {"model": q.model, "dimensions": q.dimensions}


# --- Lifecycle -------------------------------------------------------------

def init(
    path: Optional[str] = None,
    *,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    dimensions: Optional[int] = None,
    batch_size: Optional[int] = None,
    inter_batch_delay: Optional[float] = None,
) -> EmbeddingQueue:
    """
    Open the vector store and build the process-wide embedding queue.

    :param path: SQLite file; defaults to ``store.VECTOR_DB_PATH``.
    :param api_key: Initial OpenAI key; defaults to ``OPENAI_API_KEY``.
    :param model: Embedding model used for items and queries alike.
    :returns: The queue instance.
    """
    global _store, _queue
    if _queue is not None:
        return _queue
    _store = VectorStore(path).open()
    _queue = EmbeddingQueue(
        _store,
        api_key=api_key,
        model=model,
        dimensions=dimensions,
        batch_size=batch_size,
        inter_batch_delay=inter_batch_delay,
    )
    return _queue


async def shutdown() -> None:
    """Stop maintenance, drop pending work, close the OpenAI client and the store."""
    global _store, _queue
    await _scheduler.stop()
    if _queue is not None:
        _queue.clear()
        await _queue.wait_idle()
    await _oai.close_client()
    if _store is not None:
        _store.close()
    _store = None
    _queue = None


async def start_maintenance(item_source: ItemSource, interval: Optional[float] = None):
    """Run one maintenance cycle now and schedule the rest.

    :param item_source: Coroutine function returning every live feed item.
    """
    return await _scheduler.start(_require_store(), _require_queue(), item_source, interval)


# --- Queue -----------------------------------------------------------------

async def enqueue(items: Iterable[FeedItem | Mapping[str, Any]]) -> int:
    """Queue newly ingested items for embedding; returns tasks added."""
    return await _require_queue().enqueue(items)


def set_api_key(key: Optional[str]) -> None:
    _require_queue().set_api_key(key)


def get_status() -> QueueStatus:
    return _require_queue().get_status()


def clear_queue() -> None:
    _require_queue().clear()


# --- Search ----------------------------------------------------------------

async def semantic_search(
    query: str,
    api_key: str,
    corpus: Mapping[int, Any],
    top_k: int = 20,
) -> List[SearchResult]:
    """Rank ``corpus`` items by similarity to ``query``."""
    return await _search.semantic_search(
        query, api_key, corpus, top_k, store=_require_store(), **_embedding_params()
    )


async def hybrid_search(
    query: str,
    api_key: str,
    corpus: Mapping[int, Any],
    keyword_items: Sequence[Any],
    semantic_weight: float = 0.7,
    top_k: int = 20,
) -> List[SearchResult]:
    """Blend semantic ranking with a keyword-ranked item list."""
    return await _search.hybrid_search(
        query,
        api_key,
        corpus,
        keyword_items,
        semantic_weight,
        top_k,
        store=_require_store(),
        **_embedding_params(),
    )


async def find_similar_articles(
    source_item_id: int,
    corpus: Mapping[int, Any],
    top_k: int = 10,
    *,
    strict: bool = False,
) -> List[SearchResult]:
    """Items closest to an already-embedded article."""
    return await _search.find_similar(
        source_item_id, corpus, top_k, store=_require_store(), strict=strict
    )


async def filter_by_topics(
    topics: Sequence[str],
    api_key: str,
    corpus: Mapping[int, Any],
    top_k: int = 30,
) -> List[Any]:
    return await _search.filter_by_topics(
        topics, api_key, corpus, top_k, store=_require_store(), **_embedding_params()
    )


# --- Store -----------------------------------------------------------------

async def get_embedding(item_id: int) -> Optional[VectorRecord]:
    return await _require_store().get(item_id)


async def get_embeddings(item_ids: Sequence[int]) -> List[VectorRecord]:
    return await _require_store().get_batch(item_ids)


async def get_all_embeddings() -> List[VectorRecord]:
    return await _require_store().get_all()


async def delete_embedding(item_id: int) -> None:
    """Drop the vector of a deleted item."""
    await _require_store().delete(item_id)


async def clear_embeddings() -> None:
    await _require_store().clear()


async def embedding_count() -> int:
    return await _require_store().count()
