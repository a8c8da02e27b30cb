"""
Similarity ranking over stored item vectors.

All searches are a linear scan of the vector store. Records whose item is
not in the caller's ``corpus`` (deleted articles) are skipped. Similarities
that are not finite (a zero vector on either side) rank last.
"""

import logging
import math
from typing import Any, List, Mapping, Optional, Sequence

from .embeddings import cosine_similarity, embed_one
from .errors import NoSourceEmbedding
from .models import SearchResult, as_feed_item
from .store import VectorStore

logger = logging.getLogger(__name__)

Corpus = Mapping[int, Any]


def _sort_key(result: SearchResult) -> float:
    sim = result.similarity
    return sim if math.isfinite(sim) else -math.inf


def _rank(results: List[SearchResult], top_k: int) -> List[SearchResult]:
    # sorted() is stable, also with reverse=True
    return sorted(results, key=_sort_key, reverse=True)[: max(0, top_k)]


def _item_id(item: Any) -> int:
    if isinstance(item, int):
        return item
    item_id = getattr(item, "id", None)
    if item_id is not None:
        return item_id
    return as_feed_item(item).id


async def semantic_search(
    query: str,
    api_key: str,
    corpus: Corpus,
    top_k: int = 20,
    *,
    store: VectorStore,
    model: Optional[str] = None,
    dimensions: Optional[int] = None,
) -> List[SearchResult]:
    """Embed ``query`` and rank corpus items by cosine similarity.

    :param query: Natural language query.
    :param api_key: OpenAI API key used to embed the query.
    :param corpus: ``item_id -> item`` for every item still alive.
    :param top_k: Maximum number of results.
    :param model: Embedding model for the query; must match the one that
        produced the stored vectors.
    :returns: Results ordered by descending similarity; ``[]`` when the store
        holds no vectors yet.
    """
    qvec = await embed_one(query, api_key, model=model, dimensions=dimensions)

    records = await store.get_all()
    if not records:
        logger.info("No embeddings found. Generate embeddings before searching.")
        return []

    results: List[SearchResult] = []
    for rec in records:
        item = corpus.get(rec.item_id)
        if item is None:
            continue
        results.append(
            SearchResult(rec.item_id, item, cosine_similarity(qvec, rec.embedding))
        )

    return _rank(results, top_k)


async def hybrid_search(
    query: str,
    api_key: str,
    corpus: Corpus,
    keyword_items: Sequence[Any],
    semantic_weight: float = 0.7,
    top_k: int = 20,
    *,
    store: VectorStore,
    model: Optional[str] = None,
    dimensions: Optional[int] = None,
) -> List[SearchResult]:
    """Blend semantic similarity with keyword rank.

    Semantic score is ``similarity * semantic_weight`` over ``top_k * 2``
    candidates. Keyword score for the item at position ``i`` of
    ``keyword_items`` is ``(1 - i / len(keyword_items)) * (1 - semantic_weight)``.
    Scores are summed per item id.

    ``keyword_items`` entries may be bare ids, objects with an ``id``
    attribute (such as :class:`FeedItem`), or mappings carrying ``_id`` or
    ``id``.
    """
    if not 0.0 <= semantic_weight <= 1.0:
        raise ValueError(f"semantic_weight must be within [0, 1], got {semantic_weight}")

    semantic = await semantic_search(
        query, api_key, corpus, top_k * 2, store=store, model=model, dimensions=dimensions
    )

    scores: dict[int, float] = {}
    for r in semantic:
        if math.isfinite(r.similarity):
            scores[r.item_id] = r.similarity * semantic_weight

    keyword_weight = 1.0 - semantic_weight
    n = len(keyword_items)
    for i, kw in enumerate(keyword_items):
        item_id = _item_id(kw)
        scores[item_id] = scores.get(item_id, 0.0) + (1.0 - i / n) * keyword_weight

    results = [
        SearchResult(item_id, corpus[item_id], score)
        for item_id, score in scores.items()
        if item_id in corpus
    ]
    return _rank(results, top_k)


async def find_similar(
    source_item_id: int,
    corpus: Corpus,
    top_k: int = 10,
    *,
    store: VectorStore,
    strict: bool = False,
) -> List[SearchResult]:
    """Nearest neighbours of an already-embedded item.

    Returns ``[]`` when the source item has no vector, or raises
    :class:`NoSourceEmbedding` when ``strict`` is set.
    """
    source = await store.get(source_item_id)
    if source is None:
        if strict:
            raise NoSourceEmbedding(f"Item {source_item_id} has no embedding")
        logger.info("Source item %s has no embedding; nothing to compare", source_item_id)
        return []

    results: List[SearchResult] = []
    for rec in await store.get_all():
        if rec.item_id == source.item_id:
            continue
        item = corpus.get(rec.item_id)
        if item is None:
            continue
        results.append(
            SearchResult(rec.item_id, item, cosine_similarity(source.embedding, rec.embedding))
        )

    return _rank(results, top_k)


async def filter_by_topics(
    topics: Sequence[str],
    api_key: str,
    corpus: Corpus,
    top_k: int = 30,
    *,
    store: VectorStore,
    model: Optional[str] = None,
    dimensions: Optional[int] = None,
) -> List[Any]:
    """Items most related to ``topics``, best first (digest pre-filter).

    With no topics the corpus is returned unchanged in its own order.
    """
    if not topics:
        return list(corpus.values())
    results = await semantic_search(
        ", ".join(topics), api_key, corpus, top_k, store=store, model=model, dimensions=dimensions
    )
    return [r.item for r in results]
