"""
Vector store (SQL-only)
=======================
- Persistent ``item_id -> VectorRecord`` mapping backed by SQLite.
- No embedding logic here; pure CRUD and scans.
- Every write is committed before the coroutine returns.
"""

from __future__ import annotations
from typing import Iterable, List, Optional, Sequence, Tuple
import asyncio
import logging
import sqlite3
import time

import numpy as np

from semantic_reader.config import embedding as emb_cfg
from semantic_reader.errors import StoreError
from semantic_reader.models import VectorRecord
from ..embeddings import to_bytes, from_bytes
from . import db

logger = logging.getLogger(__name__)

_UPSERT_SQL = """
    INSERT INTO vectors (item_id, embedding, dim, model, ts)
    VALUES (?, ?, ?, ?, ?)
    ON CONFLICT(item_id) DO UPDATE SET
      embedding=excluded.embedding,
      dim=excluded.dim,
      model=excluded.model,
      ts=excluded.ts
"""

# SQLite caps host parameters per statement; stay well under it.
_IN_CHUNK = 500


def _row_to_record(row: sqlite3.Row) -> VectorRecord:
    return VectorRecord(
        item_id=int(row["item_id"]),
        embedding=from_bytes(row["embedding"]),
        timestamp=float(row["ts"]),
        model=row["model"],
    )


def _prepare(item_id: int, embedding, model: str, ts: float) -> Tuple:
    vec = np.asarray(embedding, dtype=np.float32).reshape(-1)
    return (int(item_id), to_bytes(vec), int(vec.shape[0]), model, ts)


class VectorStore:
    def __init__(self, path: Optional[str] = None):
        self.path = path or db.db_path()
        self.conn: Optional[sqlite3.Connection] = None
        self._lock = asyncio.Lock()

    # --- lifecycle ---------------------------------------------------------

    def open(self) -> "VectorStore":
        """Connect and apply the schema. Safe to call twice."""
        if self.conn is None:
            self.conn = db.connect(self.path)
            db.migrate(self.conn)
            logger.info("Vector store opened at %s", self.path)
        return self

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def _require(self) -> sqlite3.Connection:
        if self.conn is None:
            raise StoreError("not-initialized")
        return self.conn

    # --- writes ------------------------------------------------------------

    async def put(self, item_id: int, embedding, model: Optional[str] = None) -> None:
        """Insert or replace the vector for ``item_id``."""
        conn = self._require()
        row = _prepare(item_id, embedding, model or emb_cfg.EMB_MODEL_ID, time.time())

        def _run():
            with conn:
                conn.execute(_UPSERT_SQL, row)

        async with self._lock:
            await asyncio.to_thread(_run)

    async def put_batch(self, records: Iterable[Tuple[int, object] | Tuple[int, object, str]]) -> None:
        """
        Upsert many ``(item_id, embedding[, model])`` tuples in one transaction.

        Either every record lands or none does.
        """
        conn = self._require()
        now = time.time()
        rows = []
        for rec in records:
            item_id, embedding = rec[0], rec[1]
            model = rec[2] if len(rec) > 2 and rec[2] else emb_cfg.EMB_MODEL_ID
            rows.append(_prepare(item_id, embedding, model, now))
        if not rows:
            return

        def _run():
            with conn:
                conn.execute("BEGIN")
                conn.executemany(_UPSERT_SQL, rows)

        async with self._lock:
            await asyncio.to_thread(_run)

    async def delete(self, item_id: int) -> None:
        conn = self._require()

        def _run():
            with conn:
                conn.execute("DELETE FROM vectors WHERE item_id=?", (int(item_id),))

        async with self._lock:
            await asyncio.to_thread(_run)

    async def delete_many(self, item_ids: Sequence[int]) -> int:
        """Delete several records; returns the number removed."""
        conn = self._require()
        ids = [int(i) for i in item_ids]
        if not ids:
            return 0

        def _run() -> int:
            removed = 0
            with conn:
                conn.execute("BEGIN")
                for i in range(0, len(ids), _IN_CHUNK):
                    chunk = ids[i : i + _IN_CHUNK]
                    ph = ",".join(["?"] * len(chunk))
                    cur = conn.execute(f"DELETE FROM vectors WHERE item_id IN ({ph})", chunk)
                    removed += cur.rowcount
            return removed

        async with self._lock:
            return await asyncio.to_thread(_run)

    async def clear(self) -> None:
        conn = self._require()

        def _run():
            with conn:
                conn.execute("DELETE FROM vectors")

        async with self._lock:
            await asyncio.to_thread(_run)

    # --- reads -------------------------------------------------------------

    async def get(self, item_id: int) -> Optional[VectorRecord]:
        conn = self._require()

        def _query() -> Optional[VectorRecord]:
            row = conn.execute(
                "SELECT item_id, embedding, model, ts FROM vectors WHERE item_id=?",
                (int(item_id),),
            ).fetchone()
            return _row_to_record(row) if row else None

        async with self._lock:
            return await asyncio.to_thread(_query)

    async def get_batch(self, item_ids: Sequence[int]) -> List[VectorRecord]:
        """Return the records present for ``item_ids`` (order unspecified)."""
        conn = self._require()
        ids = [int(i) for i in item_ids]
        if not ids:
            return []

        def _query() -> List[VectorRecord]:
            out: List[VectorRecord] = []
            for i in range(0, len(ids), _IN_CHUNK):
                chunk = ids[i : i + _IN_CHUNK]
                ph = ",".join(["?"] * len(chunk))
                rows = conn.execute(
                    f"SELECT item_id, embedding, model, ts FROM vectors WHERE item_id IN ({ph})",
                    chunk,
                ).fetchall()
                out.extend(_row_to_record(r) for r in rows)
            return out

        async with self._lock:
            return await asyncio.to_thread(_query)

    async def get_all(self) -> List[VectorRecord]:
        """Every stored record, for linear-scan search."""
        conn = self._require()

        def _query() -> List[VectorRecord]:
            rows = conn.execute("SELECT item_id, embedding, model, ts FROM vectors").fetchall()
            return [_row_to_record(r) for r in rows]

        async with self._lock:
            return await asyncio.to_thread(_query)

    async def count(self) -> int:
        conn = self._require()

        def _query() -> int:
            return int(conn.execute("SELECT COUNT(*) FROM vectors").fetchone()[0])

        async with self._lock:
            return await asyncio.to_thread(_query)

    async def item_ids(self) -> set[int]:
        conn = self._require()

        def _query() -> set[int]:
            return {int(r[0]) for r in conn.execute("SELECT item_id FROM vectors").fetchall()}

        async with self._lock:
            return await asyncio.to_thread(_query)

    # --- maintenance -------------------------------------------------------

    async def prune(self, keep_ids: Iterable[int]) -> int:
        """Drop records whose item is not in ``keep_ids``; returns count removed."""
        keep = {int(i) for i in keep_ids}
        stale = (await self.item_ids()) - keep
        if not stale:
            return 0
        return await self.delete_many(sorted(stale))

    async def delete_degenerate(self) -> int:
        """Drop zero-vector placeholders left by failed embeddings."""
        conn = self._require()

        def _scan() -> List[int]:
            ids: List[int] = []
            for row in conn.execute("SELECT item_id, embedding FROM vectors"):
                blob = row["embedding"]
                if not blob or not np.any(from_bytes(blob)):
                    ids.append(int(row["item_id"]))
            return ids

        async with self._lock:
            ids = await asyncio.to_thread(_scan)
        return await self.delete_many(ids)

    async def checkpoint(self) -> None:
        conn = self._require()
        async with self._lock:
            await asyncio.to_thread(db.wal_checkpoint_truncate, conn)
