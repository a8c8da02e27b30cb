"""
Plain data carriers shared across the embedding pipeline and the ranker.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

import numpy as np


@dataclass
class FeedItem:
    """An article as handed over by the feed storage layer."""

    id: int
    title: str = ""
    content: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "FeedItem":
        """Build from a ``{_id, title, content}`` style mapping."""
        raw_id = data.get("_id", data.get("id"))
        if raw_id is None:
            raise ValueError("Item mapping has no '_id' or 'id' key")
        return cls(
            id=int(raw_id),
            title=str(data.get("title") or ""),
            content=str(data.get("content") or ""),
        )


def as_feed_item(item: FeedItem | Mapping[str, Any]) -> FeedItem:
    if isinstance(item, FeedItem):
        return item
    return FeedItem.from_mapping(item)


@dataclass
class VectorRecord:
    item_id: int
    embedding: np.ndarray
    timestamp: float
    model: str


@dataclass
class EmbeddingTask:
    item_id: int
    text: str


@dataclass(frozen=True)
class QueueStatus:
    queue_length: int
    processing: bool


@dataclass
class SearchResult:
    item_id: int
    item: Any
    similarity: float = field(default=0.0)
