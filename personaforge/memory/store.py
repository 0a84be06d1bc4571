"""SQLite storage backend for conversation embeddings."""

from __future__ import annotations

import sqlite3
import threading
import time
from array import array
from pathlib import Path

from personaforge.memory.models import MemoryChunk, MemorySummary
from personaforge.utils.helpers import ensure_dir


class EmbeddingStore:
    """Persist message embeddings per conversation, plus summary checkpoints.

    Calls are blocking; async callers go through ``asyncio.to_thread``.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path.expanduser()
        ensure_dir(self.db_path.parent)
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._create_schema()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _create_schema(self) -> None:
        with self._lock:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS memory_chunks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    conversation_key TEXT NOT NULL,
                    role TEXT NOT NULL DEFAULT 'user',
                    text TEXT NOT NULL,
                    dims INTEGER NOT NULL,
                    vector BLOB NOT NULL,
                    importance REAL NOT NULL DEFAULT 1.0,
                    created_at REAL NOT NULL
                )
                """
            )
            self._conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_memory_chunks_conversation_created
                ON memory_chunks (conversation_key, created_at DESC, id DESC)
                """
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS memory_summaries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    conversation_key TEXT NOT NULL,
                    summary_text TEXT NOT NULL,
                    from_chunk_id INTEGER NOT NULL,
                    to_chunk_id INTEGER NOT NULL,
                    message_count INTEGER NOT NULL,
                    created_at REAL NOT NULL
                )
                """
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS memory_watermarks (
                    conversation_key TEXT PRIMARY KEY,
                    summarized_through INTEGER NOT NULL
                )
                """
            )
            self._conn.commit()

    @staticmethod
    def _serialize_vector(vector: list[float]) -> bytes:
        packed = array("f", [float(v) for v in vector])
        return packed.tobytes()

    @staticmethod
    def _deserialize_vector(blob: bytes) -> list[float]:
        unpacked = array("f")
        unpacked.frombytes(blob)
        return unpacked.tolist()

    @classmethod
    def _row_to_chunk(cls, row: sqlite3.Row) -> MemoryChunk:
        return MemoryChunk(
            id=int(row["id"]),
            conversation_key=str(row["conversation_key"]),
            text=str(row["text"]),
            embedding=cls._deserialize_vector(row["vector"]),
            created_at=float(row["created_at"]),
            importance=float(row["importance"]),
            role=str(row["role"]),
        )

    # ── Chunks ───────────────────────────────────────────────────────

    def store(
        self,
        conversation_key: str,
        text: str,
        embedding: list[float],
        *,
        importance: float = 1.0,
        role: str = "user",
        created_at: float | None = None,
    ) -> int:
        """Append one chunk and return its id."""
        stamp = time.time() if created_at is None else float(created_at)
        with self._lock:
            cursor = self._conn.execute(
                """
                INSERT INTO memory_chunks
                    (conversation_key, role, text, dims, vector, importance, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    conversation_key,
                    role,
                    text,
                    len(embedding),
                    self._serialize_vector(embedding),
                    float(importance),
                    stamp,
                ),
            )
            self._conn.commit()
            return int(cursor.lastrowid or 0)

    def load_recent(self, conversation_key: str, limit: int) -> list[MemoryChunk]:
        """Return up to ``limit`` chunks, newest first."""
        if limit <= 0:
            return []
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT * FROM memory_chunks
                WHERE conversation_key = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (conversation_key, int(limit)),
            ).fetchall()
        return [self._row_to_chunk(row) for row in rows]

    def set_importance(self, chunk_id: int, importance: float) -> bool:
        with self._lock:
            cursor = self._conn.execute(
                "UPDATE memory_chunks SET importance = ? WHERE id = ?",
                (float(importance), int(chunk_id)),
            )
            self._conn.commit()
            return cursor.rowcount > 0

    def count(self, conversation_key: str) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) AS n FROM memory_chunks WHERE conversation_key = ?",
                (conversation_key,),
            ).fetchone()
        return int(row["n"]) if row else 0

    def cap(self, conversation_key: str, keep: int) -> int:
        """Delete all but the ``keep`` most recent chunks; returns rows removed."""
        with self._lock:
            cursor = self._conn.execute(
                """
                DELETE FROM memory_chunks
                WHERE conversation_key = ?
                  AND id NOT IN (
                      SELECT id FROM memory_chunks
                      WHERE conversation_key = ?
                      ORDER BY created_at DESC, id DESC
                      LIMIT ?
                  )
                """,
                (conversation_key, conversation_key, max(0, int(keep))),
            )
            self._conn.commit()
            return int(cursor.rowcount or 0)

    def conversation_keys(self) -> list[str]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT DISTINCT conversation_key FROM memory_chunks ORDER BY conversation_key"
            ).fetchall()
        return [str(row["conversation_key"]) for row in rows]

    # ── Summaries ────────────────────────────────────────────────────

    def summarized_through(self, conversation_key: str) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT summarized_through FROM memory_watermarks WHERE conversation_key = ?",
                (conversation_key,),
            ).fetchone()
        return int(row["summarized_through"]) if row else 0

    def count_unsummarized(self, conversation_key: str) -> int:
        watermark = self.summarized_through(conversation_key)
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) AS n FROM memory_chunks WHERE conversation_key = ? AND id > ?",
                (conversation_key, watermark),
            ).fetchone()
        return int(row["n"]) if row else 0

    def unsummarized(self, conversation_key: str, limit: int | None = None) -> list[MemoryChunk]:
        """Chunks past the watermark, oldest first."""
        watermark = self.summarized_through(conversation_key)
        sql = "SELECT * FROM memory_chunks WHERE conversation_key = ? AND id > ? ORDER BY id ASC"
        params: tuple[object, ...] = (conversation_key, watermark)
        if limit is not None:
            sql += " LIMIT ?"
            params = (*params, int(limit))
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [self._row_to_chunk(row) for row in rows]

    def record_summary(self, summary: MemorySummary) -> None:
        """Persist *summary* and advance the watermark in one transaction."""
        with self._lock:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO memory_summaries
                        (conversation_key, summary_text, from_chunk_id, to_chunk_id,
                         message_count, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        summary.conversation_key,
                        summary.summary_text,
                        summary.from_chunk_id,
                        summary.to_chunk_id,
                        summary.message_count,
                        summary.created_at,
                    ),
                )
                self._conn.execute(
                    """
                    INSERT INTO memory_watermarks (conversation_key, summarized_through)
                    VALUES (?, ?)
                    ON CONFLICT(conversation_key) DO UPDATE SET
                        summarized_through = MAX(summarized_through, excluded.summarized_through)
                    """,
                    (summary.conversation_key, summary.to_chunk_id),
                )

    def latest_summary(self, conversation_key: str) -> MemorySummary | None:
        with self._lock:
            row = self._conn.execute(
                """
                SELECT * FROM memory_summaries
                WHERE conversation_key = ?
                ORDER BY to_chunk_id DESC, id DESC
                LIMIT 1
                """,
                (conversation_key,),
            ).fetchone()
        if row is None:
            return None
        return MemorySummary(
            conversation_key=str(row["conversation_key"]),
            summary_text=str(row["summary_text"]),
            from_chunk_id=int(row["from_chunk_id"]),
            to_chunk_id=int(row["to_chunk_id"]),
            message_count=int(row["message_count"]),
            created_at=float(row["created_at"]),
        )

    def stats(self) -> dict[str, int]:
        with self._lock:
            chunks = self._conn.execute("SELECT COUNT(*) AS n FROM memory_chunks").fetchone()
            convs = self._conn.execute(
                "SELECT COUNT(DISTINCT conversation_key) AS n FROM memory_chunks"
            ).fetchone()
            summaries = self._conn.execute("SELECT COUNT(*) AS n FROM memory_summaries").fetchone()
        return {
            "chunks": int(chunks["n"]) if chunks else 0,
            "conversations": int(convs["n"]) if convs else 0,
            "summaries": int(summaries["n"]) if summaries else 0,
        }
