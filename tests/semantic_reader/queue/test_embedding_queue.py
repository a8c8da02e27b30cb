import asyncio

import numpy as np
import pytest

from semantic_reader import embeddings
from semantic_reader import queue as queue_mod
from semantic_reader.errors import TransportError
from semantic_reader.models import FeedItem
from semantic_reader.queue import EmbeddingQueue


def _items(*ids):
    return [FeedItem(id=i, title=f"t{i}", content=f"<p>body {i}</p>") for i in ids]


def _vec(text: str) -> np.ndarray:
    return np.array([len(text), 1.0], dtype=np.float32)


class FakeEmbedder:
    """Records batches and optionally fails on the n-th call."""

    def __init__(self, fail_on: set[int] | None = None):
        self.calls: list[list[str]] = []
        self.fail_on = fail_on or set()

    async def __call__(self, texts, api_key, on_progress=None, **kw):
        self.calls.append(list(texts))
        if len(self.calls) in self.fail_on:
            raise TransportError("network unreachable")
        return [_vec(t) for t in texts]


def _queue(store, **kw):
    kw.setdefault("api_key", "sk-test")
    kw.setdefault("inter_batch_delay", 0)
    kw.setdefault("model", "m1")
    return EmbeddingQueue(store, **kw)


@pytest.mark.asyncio
async def test_enqueue_without_key_is_noop(store, monkeypatch, caplog):
    fake = FakeEmbedder()
    monkeypatch.setattr(queue_mod, "embed_batch", fake)
    q = _queue(store, api_key="")

    assert await q.enqueue(_items(1, 2)) == 0
    assert q.get_status().queue_length == 0
    assert fake.calls == []
    assert "API key not set" in caplog.text


@pytest.mark.asyncio
async def test_drain_stores_every_new_task(store, monkeypatch):
    fake = FakeEmbedder()
    monkeypatch.setattr(queue_mod, "embed_batch", fake)
    q = _queue(store, batch_size=2)

    before = await store.count()
    added = await q.enqueue(_items(1, 2, 3, 4, 5))
    await q.wait_idle()

    assert added == 5
    assert await store.count() == before + 5
    assert [len(c) for c in fake.calls] == [2, 2, 1]
    status = q.get_status()
    assert status.queue_length == 0
    assert status.processing is False
    assert (await store.get(3)).model == "m1"


@pytest.mark.asyncio
async def test_task_text_is_title_plus_plain_text(store, monkeypatch):
    fake = FakeEmbedder()
    monkeypatch.setattr(queue_mod, "embed_batch", fake)
    q = _queue(store)

    await q.enqueue([{"_id": 9, "title": "Hello", "content": "<div><b>World</b></div>"}])
    await q.wait_idle()
    assert fake.calls == [["Hello\n\nWorld"]]


@pytest.mark.asyncio
async def test_enqueue_is_idempotent(store, monkeypatch):
    fake = FakeEmbedder()
    monkeypatch.setattr(queue_mod, "embed_batch", fake)
    q = _queue(store)

    await q.enqueue(_items(1))
    await q.wait_idle()
    assert await q.enqueue(_items(1)) == 0
    assert await q.enqueue(_items(1)) == 0
    assert q.get_status().queue_length == 0
    assert len(fake.calls) == 1


@pytest.mark.asyncio
async def test_enqueue_skips_empty_content_and_pending_duplicates(store, monkeypatch):
    gate = asyncio.Event()

    async def slow_embed(texts, api_key, on_progress=None, **kw):
        await gate.wait()
        return [_vec(t) for t in texts]

    monkeypatch.setattr(queue_mod, "embed_batch", slow_embed)
    q = _queue(store, batch_size=1)

    added = await q.enqueue(_items(1, 2) + [FeedItem(id=3, title="x", content="")])
    assert added == 2
    await asyncio.sleep(0)  # let the drain claim item 1
    # item 1 in flight, item 2 pending
    assert await q.enqueue(_items(1, 2)) == 0

    gate.set()
    await q.wait_idle()
    assert await store.item_ids() == {1, 2}


@pytest.mark.asyncio
async def test_transport_failure_requeues_and_stops(store, monkeypatch):
    fake = FakeEmbedder(fail_on={1})
    monkeypatch.setattr(queue_mod, "embed_batch", fake)
    q = _queue(store, batch_size=10)

    await q.enqueue(_items(1, 2, 3))
    await q.wait_idle()

    status = q.get_status()
    assert status.queue_length == 3
    assert status.processing is False
    assert await store.count() == 0
    # fail-stop: no second attempt inside the same drain
    assert len(fake.calls) == 1


@pytest.mark.asyncio
async def test_mid_drain_failure_preserves_order(store, monkeypatch):
    fake = FakeEmbedder(fail_on={2})
    monkeypatch.setattr(queue_mod, "embed_batch", fake)
    q = _queue(store, batch_size=2)

    await q.enqueue(_items(1, 2, 3, 4, 5))
    await q.wait_idle()

    assert await store.item_ids() == {1, 2}
    assert q.get_status().queue_length == 3
    assert [t.item_id for t in q._pending] == [3, 4, 5]

    # A later enqueue restarts draining from the front
    fake.fail_on = set()
    assert await q.enqueue(_items(6)) == 1
    await q.wait_idle()
    assert await store.item_ids() == {1, 2, 3, 4, 5, 6}
    assert fake.calls[2] == fake.calls[1]


@pytest.mark.asyncio
async def test_process_queue_is_not_reentrant(store, monkeypatch):
    gate = asyncio.Event()
    calls = []

    async def slow_embed(texts, api_key, on_progress=None, **kw):
        calls.append(list(texts))
        await gate.wait()
        return [_vec(t) for t in texts]

    monkeypatch.setattr(queue_mod, "embed_batch", slow_embed)
    q = _queue(store)

    await q.enqueue(_items(1, 2))
    await asyncio.sleep(0)
    assert q.get_status().processing is True

    # A second drain returns immediately while the first is running
    await q.process_queue()
    assert len(calls) == 1

    gate.set()
    await q.wait_idle()
    assert q.get_status().processing is False


@pytest.mark.asyncio
async def test_clear_drops_pending_but_not_in_flight(store, monkeypatch):
    gate = asyncio.Event()

    async def slow_embed(texts, api_key, on_progress=None, **kw):
        await gate.wait()
        return [_vec(t) for t in texts]

    monkeypatch.setattr(queue_mod, "embed_batch", slow_embed)
    q = _queue(store, batch_size=1)

    await q.enqueue(_items(1, 2, 3))
    await asyncio.sleep(0)
    q.clear()
    assert q.get_status().queue_length == 0

    gate.set()
    await q.wait_idle()
    assert await store.item_ids() == {1}


@pytest.mark.asyncio
async def test_model_change_triggers_reembed(store, monkeypatch):
    fake = FakeEmbedder()
    monkeypatch.setattr(queue_mod, "embed_batch", fake)
    await store.put(1, [1.0, 0.0], model="old-model")

    q = _queue(store, model="m1")
    assert await q.enqueue(_items(1)) == 1
    await q.wait_idle()
    assert (await store.get(1)).model == "m1"

    keep = _queue(store, model="m2", reembed_on_model_change=False)
    assert await keep.enqueue(_items(1)) == 0


@pytest.mark.asyncio
async def test_new_key_applies_to_next_batch(store, monkeypatch):
    keys = []

    async def fake_embed(texts, api_key, on_progress=None, **kw):
        keys.append(api_key)
        return [_vec(t) for t in texts]

    monkeypatch.setattr(queue_mod, "embed_batch", fake_embed)
    q = _queue(store, api_key="sk-a")
    await q.enqueue(_items(1))
    await q.wait_idle()

    q.set_credential("sk-b")
    await q.enqueue(_items(2))
    await q.wait_idle()
    assert keys == ["sk-a", "sk-b"]


@pytest.mark.asyncio
async def test_enqueue_racing_a_commit_skips_the_in_flight_item(store, monkeypatch):
    gate = asyncio.Event()
    calls = []

    async def slow_embed(texts, api_key, on_progress=None, **kw):
        calls.append(list(texts))
        await gate.wait()
        return [_vec(t) for t in texts]

    monkeypatch.setattr(queue_mod, "embed_batch", slow_embed)
    q = _queue(store)
    await q.enqueue(_items(1))
    await asyncio.sleep(0)  # item 1 in flight

    real_get_batch = store.get_batch

    async def get_batch_then_commit(ids):
        # Lookup misses item 1; its batch then commits before enqueue resumes
        rows = await real_get_batch(ids)
        gate.set()
        await q.wait_idle()
        return rows

    monkeypatch.setattr(store, "get_batch", get_batch_then_commit)

    assert await q.enqueue(_items(1)) == 0
    await q.wait_idle()
    assert len(calls) == 1
    assert q.get_status().queue_length == 0


@pytest.mark.asyncio
async def test_provider_receives_queue_model_and_dimensions(store, monkeypatch):
    seen = []

    async def fake_embed_text(text, api_key, *, model=None, dimensions=None):
        seen.append((model, dimensions))
        return np.ones(dimensions, dtype=np.float32)

    monkeypatch.setattr(embeddings, "embed_text", fake_embed_text)
    q = _queue(store, model="text-embedding-3-large", dimensions=3)

    await q.enqueue(_items(1))
    await q.wait_idle()

    rec = await store.get(1)
    assert seen == [("text-embedding-3-large", 3)]
    assert rec.model == "text-embedding-3-large"
    assert rec.embedding.shape == (3,)
