"""Helpers for interacting with the OpenAI embeddings API"""
from __future__ import annotations

from collections import Counter

import numpy as np
from openai import AsyncOpenAI, APIConnectionError, APIStatusError

from semantic_reader.config import embedding as emb_cfg
from semantic_reader.errors import ConfigError, ProviderError, TransportError

import logging
logger = logging.getLogger(__name__)

# Only the current key's client is kept. A replaced client is closed as soon
# as no request is running on it.
_client: AsyncOpenAI | None = None
_client_key: str | None = None
_active: Counter[int] = Counter()


async def _retire(client: AsyncOpenAI) -> None:
    if not _active[id(client)]:
        _active.pop(id(client), None)
        await client.close()


async def get_client(api_key: str) -> AsyncOpenAI:
    """Return the shared client, rebuilding it when ``api_key`` changes."""
    global _client, _client_key
    if _client is None or _client_key != api_key:
        stale = _client
        _client = AsyncOpenAI(
            api_key=api_key,
            base_url=emb_cfg.EMB_BASE_URL,
            timeout=emb_cfg.EMB_TIMEOUT,
            max_retries=emb_cfg.EMB_MAX_RETRIES,
        )
        _client_key = api_key
        if stale is not None:
            logger.info("OpenAI API key changed; closing previous client")
            await _retire(stale)
    return _client


async def close_client() -> None:
    """Close the shared client (if any)."""
    global _client, _client_key
    client, _client, _client_key = _client, None, None
    if client is not None:
        await _retire(client)


def _error_detail(exc: APIStatusError) -> str:
    """Pull ``error.message`` out of the response body, else the status text."""
    body = exc.body
    if isinstance(body, dict):
        err = body.get("error", body)
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    response = getattr(exc, "response", None)
    if response is not None and response.reason_phrase:
        return response.reason_phrase
    return f"HTTP {exc.status_code}"


# ==============================================
# Embedding utilities
# ==============================================
async def embed_text(
    text: str,
    api_key: str,
    *,
    model: str | None = None,
    dimensions: int | None = None,
) -> np.ndarray:
    """
    Return a float32 numpy vector for ``text`` using OpenAI embeddings.

    The caller is responsible for truncation. Model and dimensions default to
    ``embedding.EMB_MODEL_ID`` / ``embedding.EMB_DIM``.

    :raises ConfigError: if ``api_key`` is empty.
    :raises ProviderError: on a non-success HTTP status.
    :raises TransportError: if the endpoint cannot be reached.
    """
    if not api_key:
        raise ConfigError()

    use_model = model or emb_cfg.EMB_MODEL_ID
    dim = dimensions or emb_cfg.EMB_DIM

    client = await get_client(api_key)
    _active[id(client)] += 1
    try:
        resp = await client.embeddings.create(
            model=use_model,
            input=text,
            dimensions=dim,
        )
    except APIStatusError as e:
        raise ProviderError("upstream", _error_detail(e)) from e
    except APIConnectionError as e:
        raise TransportError(str(e)) from e
    finally:
        _active[id(client)] -= 1
        if client is not _client:
            await _retire(client)

    vec = np.asarray(resp.data[0].embedding, dtype=np.float32)
    if vec.size != dim:
        raise ProviderError(
            "upstream", f"Unexpected embedding size {vec.size} != {dim} for model {use_model}"
        )
    return vec
