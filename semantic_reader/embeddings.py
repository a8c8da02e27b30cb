"""
Embedding utilities
===================

Centralizes embedding logic so the rest of the codebase does not care
about model details (dimensionality, truncation, rate pacing, etc.).
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Callable, Optional, Sequence

import numpy as np

from semantic_reader.clients.oai import embed_text
from semantic_reader.config import embedding as emb_cfg
from semantic_reader.errors import ConfigError, DimensionMismatch, ProviderError, TransportError

logger = logging.getLogger(__name__)

ProgressFn = Callable[[int, int], None]


def truncate(text: str) -> str:
    """Clip ``text`` to the provider's character budget."""
    return (text or "")[: emb_cfg.EMB_MAX_CHARS]


def zero_vector(dimensions: Optional[int] = None) -> np.ndarray:
    return np.zeros((dimensions or emb_cfg.EMB_DIM,), dtype=np.float32)


async def embed_one(
    text: str,
    api_key: str,
    *,
    model: Optional[str] = None,
    dimensions: Optional[int] = None,
) -> np.ndarray:
    """
    Return embedding vector for ``text``.

    :param text: Input string to embed; truncated before sending.
    :param api_key: OpenAI API key. Checked before any network call.
    :param model: Embedding model; defaults to ``EMB_MODEL_ID``.
    :param dimensions: Requested vector size; defaults to ``EMB_DIM``.
    :returns: ``np.ndarray`` of shape ``(dimensions,)``.
    :raises ConfigError: if ``api_key`` is empty.
    :raises ProviderError: on upstream or transport failure.
    """
    if not api_key:
        raise ConfigError()
    return await embed_text(truncate(text), api_key, model=model, dimensions=dimensions)


async def embed_batch(
    texts: Sequence[str],
    api_key: str,
    on_progress: Optional[ProgressFn] = None,
    *,
    model: Optional[str] = None,
    dimensions: Optional[int] = None,
) -> list[np.ndarray]:
    """
    Embed ``texts`` one at a time, preserving order.

    A failed item yields a zero vector so indices stay aligned with
    ``texts``. Missing-credential and transport failures are not per-item
    problems and propagate to the caller.

    :param on_progress: Optional ``(done, total)`` callback invoked after each
        successful embedding.
    :param model: Forwarded to every ``embed_one`` call.
    :param dimensions: Forwarded to every ``embed_one`` call and used for the
        zero-vector placeholder.
    """
    total = len(texts)
    vectors: list[np.ndarray] = []

    for i, text in enumerate(texts):
        try:
            vectors.append(await embed_one(text, api_key, model=model, dimensions=dimensions))
            if on_progress:
                on_progress(i + 1, total)
        except (ConfigError, TransportError):
            raise
        except ProviderError as e:
            logger.error("Failed to embed text %d/%d: %s. Defaulting to zeros vector.", i + 1, total, e)
            vectors.append(zero_vector(dimensions))

        if i < total - 1:
            await asyncio.sleep(emb_cfg.EMB_REQUEST_DELAY)

    return vectors


def cosine_similarity(a, b) -> float:
    """
    Return ``dot(a, b) / (|a| * |b|)``.

    NaN when either vector has zero norm; callers rank such results last.

    :raises DimensionMismatch: if ``a`` and ``b`` differ in length.
    """
    va = np.asarray(a, dtype=np.float64).reshape(-1)
    vb = np.asarray(b, dtype=np.float64).reshape(-1)
    if va.shape[0] != vb.shape[0]:
        raise DimensionMismatch(f"Vectors must have same dimensions ({va.shape[0]} != {vb.shape[0]})")

    denom = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if denom == 0.0:
        return math.nan
    return float(np.dot(va, vb) / denom)


def is_degenerate(vec) -> bool:
    """True when ``vec`` is all zeros (a failed embedding placeholder)."""
    return not np.any(np.asarray(vec))


def to_bytes(vec) -> bytes:
    """Serialize an embedding array to raw bytes."""
    return np.asarray(vec, dtype=np.float32).tobytes()


def from_bytes(blob: bytes) -> np.ndarray:
    """Deserialize raw bytes into a ``np.ndarray`` embedding."""
    return np.frombuffer(blob, dtype=np.float32)
