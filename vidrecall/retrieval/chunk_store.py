"""
Chunk Store for vidrecall
Read-only async SQLite access to transcript chunks joined with video metadata
"""
from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import aiosqlite
import numpy as np

logger = logging.getLogger(__name__)


# Schema for videos and their transcript chunks. Embeddings are float32
# BLOBs; a NULL embedding keeps a chunk out of vector search only.
SCHEMA = """
CREATE TABLE IF NOT EXISTS videos (
  id           INTEGER PRIMARY KEY AUTOINCREMENT,
  youtube_id   TEXT UNIQUE,
  title        TEXT NOT NULL,
  channel      TEXT,
  thumbnail    TEXT,
  published_at TEXT
);

CREATE TABLE IF NOT EXISTS chunks (
  id          INTEGER PRIMARY KEY AUTOINCREMENT,
  video_id    INTEGER NOT NULL,
  content     TEXT NOT NULL,
  start_time  REAL,
  end_time    REAL,
  embedding   BLOB,
  FOREIGN KEY(video_id) REFERENCES videos(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_chunks_video_id ON chunks(video_id);
"""

_RESULT_COLUMNS = """
    c.id          AS chunk_id,
    c.content     AS content,
    c.start_time  AS start_time,
    c.end_time    AS end_time,
    v.id          AS video_id,
    v.title       AS video_title,
    v.channel     AS channel,
    v.youtube_id  AS youtube_id,
    v.thumbnail   AS thumbnail,
    v.published_at AS published_at
"""


def parse_published_at(value: Any) -> Optional[datetime]:
    """
    Parse a stored publish timestamp into an aware UTC datetime

    Accepts ISO-8601 text (with or without 'Z'), epoch seconds, or a
    datetime. Unparseable values are treated as unknown (None).
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Unparseable published_at: {value!r}")
            return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def encode_embedding(vec: np.ndarray) -> bytes:
    """Encode a 1D vector as a float32 BLOB"""
    return np.asarray(vec, dtype=np.float32).tobytes()


def _make_distance_fn(qvec: np.ndarray):
    """
    Build a per-query SQL function returning cosine distance in [0, 2]

    Returns NULL for embeddings of the wrong dimension or zero norm so
    they drop out of the result set instead of producing NaN.
    """
    q = np.asarray(qvec, dtype=np.float32)
    q_norm = float(np.linalg.norm(q))
    dim = q.shape[0]

    def query_distance(blob: Optional[bytes]) -> Optional[float]:
        if blob is None or len(blob) != dim * 4:
            return None
        vec = np.frombuffer(blob, dtype=np.float32)
        norm = float(np.linalg.norm(vec))
        if norm == 0.0 or not np.isfinite(norm):
            return None
        cos = float(np.dot(q, vec)) / (q_norm * norm)
        # Clamp to handle numerical errors
        cos = max(-1.0, min(1.0, cos))
        return 1.0 - cos

    return query_distance


def _make_match_fn(text: str):
    """Build a per-query SQL function for case-insensitive containment"""
    needle = text.casefold()

    def query_match(content: Optional[str]) -> int:
        if content is None:
            return 0
        return 1 if needle in content.casefold() else 0

    return query_match


class ChunkStore:
    """
    Read-only query interface over the chunk/video join

    Every call opens its own short-lived connection, so concurrent calls
    from one request never share a cursor.
    """

    def __init__(self, db_path: str, timeout: float = 30.0) -> None:
        """
        Initialize chunk store

        Args:
            db_path: Path to SQLite database
            timeout: Lock timeout in seconds
        """
        self.db_path = db_path
        self.timeout = timeout

    @property
    def read_only_uri(self) -> str:
        """SQLite URI opening the database read-only; never creates the file"""
        return f"{Path(self.db_path).resolve().as_uri()}?mode=ro"

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(self.read_only_uri, uri=True, timeout=self.timeout) as db:
            await db.execute("PRAGMA query_only = ON")
            await db.execute("PRAGMA busy_timeout = 5000")
            db.row_factory = aiosqlite.Row
            yield db

    async def init_schema(self) -> None:
        """Create videos/chunks tables if missing (tooling and tests)"""
        async with aiosqlite.connect(self.db_path, timeout=self.timeout) as db:
            await db.execute("PRAGMA journal_mode = WAL")
            await db.execute("PRAGMA foreign_keys = ON")
            await db.executescript(SCHEMA)
            await db.commit()
        logger.debug(f"Chunk store schema ready: {self.db_path}")

    async def nearest_chunks(
        self,
        qvec: np.ndarray,
        limit: int
    ) -> List[Dict[str, Any]]:
        """
        Nearest-neighbour search over chunk embeddings

        Args:
            qvec: Query vector (1D, already validated)
            limit: Maximum rows to return

        Returns:
            Row dicts ordered by cosine distance ascending, each with a
            'distance' key in [0, 2]
        """
        sql = f"""
            SELECT * FROM (
                SELECT {_RESULT_COLUMNS},
                       query_distance(c.embedding) AS distance
                FROM chunks c
                JOIN videos v ON v.id = c.video_id
                WHERE c.embedding IS NOT NULL
            )
            WHERE distance IS NOT NULL
            ORDER BY distance ASC, chunk_id ASC
            LIMIT ?
        """
        async with self._connect() as db:
            await db.create_function(
                "query_distance", 1, _make_distance_fn(qvec), deterministic=True
            )
            async with db.execute(sql, (limit,)) as cursor:
                rows = await cursor.fetchall()

        results = [self._row_to_dict(row) for row in rows]
        logger.debug(f"Vector store returned {len(results)} rows (limit={limit})")
        return results

    async def keyword_chunks(self, text: str, limit: int) -> List[Dict[str, Any]]:
        """
        Case-insensitive substring search over chunk content

        Returns:
            Row dicts in store order (chunk id ascending)
        """
        sql = f"""
            SELECT {_RESULT_COLUMNS}
            FROM chunks c
            JOIN videos v ON v.id = c.video_id
            WHERE query_match(c.content) = 1
            ORDER BY c.id ASC
            LIMIT ?
        """
        async with self._connect() as db:
            await db.create_function(
                "query_match", 1, _make_match_fn(text), deterministic=True
            )
            async with db.execute(sql, (limit,)) as cursor:
                rows = await cursor.fetchall()

        results = [self._row_to_dict(row) for row in rows]
        logger.debug(f"Keyword store returned {len(results)} rows for: {text}")
        return results

    async def count_chunks(self) -> Tuple[int, int]:
        """
        Count chunks

        Returns:
            (total chunks, chunks with an embedding)
        """
        async with self._connect() as db:
            async with db.execute(
                "SELECT COUNT(*), COUNT(embedding) FROM chunks"
            ) as cursor:
                row = await cursor.fetchone()
        if row is None:
            return 0, 0
        return int(row[0]), int(row[1])

    @staticmethod
    def _row_to_dict(row: aiosqlite.Row) -> Dict[str, Any]:
        data = dict(row)
        data["published_at"] = parse_published_at(data.get("published_at"))
        return data
