"""SQLite persistence for signed vote records."""

import logging
import os
import sqlite3
import threading
from dataclasses import dataclass
from typing import List, Optional

from .errors import DuplicateRecord, InternalError, NotFound, StoreUnavailable

logger = logging.getLogger("vote_operator.store")

DEFAULT_LIMIT = 10
MAX_LIMIT = 100
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class VoteRecord:
    id: str
    payload: str
    signature: str
    signer: Optional[str]
    created_at: str


@dataclass(frozen=True)
class VoteSummary:
    id: str
    created_at: str


def _to_int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def clamp_pagination(limit=None, offset=None) -> tuple[int, int]:
    """Clamp limit to [1, MAX_LIMIT] and offset to >= 0."""
    limit = _to_int(limit, DEFAULT_LIMIT) if limit is not None else DEFAULT_LIMIT
    offset = _to_int(offset, 0) if offset is not None else 0
    return max(1, min(limit, MAX_LIMIT)), max(0, offset)


class VoteStore:
    """First-write-wins store keyed by content identifier.

    One connection per thread; uniqueness is the table's primary key, so two
    concurrent inserts of the same id resolve to one row and one DuplicateRecord.
    """

    def __init__(self, db_path: str, timeout: float = DEFAULT_TIMEOUT):
        self.db_path = os.path.expanduser(db_path)
        self.timeout = timeout
        self._local = threading.local()

    def _get_connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            db_dir = os.path.dirname(self.db_path)
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)
            try:
                conn = sqlite3.connect(
                    self.db_path,
                    isolation_level=None,
                    timeout=self.timeout,
                )
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA journal_mode=WAL;")
            except sqlite3.Error as e:
                raise StoreUnavailable(f"Cannot open vote store: {e}") from e
            self._local.conn = conn
        return conn

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        conn = self._get_connection()
        try:
            return conn.execute(sql, params)
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as e:
            logger.warning("store error: %s", e)
            raise StoreUnavailable(f"Vote store error: {e}") from e

    def initialize(self) -> None:
        self._execute(
            """
            CREATE TABLE IF NOT EXISTS votes (
                id TEXT PRIMARY KEY CHECK(length(id) = 66),
                data TEXT NOT NULL,
                signature TEXT NOT NULL CHECK(length(signature) = 132),
                signer TEXT CHECK(signer IS NULL OR length(signer) = 42),
                created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
            )
            """
        )
        self._execute(
            "CREATE INDEX IF NOT EXISTS idx_votes_created_at ON votes(created_at)"
        )
        self._execute("CREATE INDEX IF NOT EXISTS idx_votes_signer ON votes(signer)")

    def insert(self, vote_id: str, payload: str, signature: str, signer: Optional[str] = None) -> None:
        try:
            cursor = self._execute(
                """
                INSERT INTO votes (id, data, signature, signer) VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO NOTHING
                """,
                (vote_id, payload, signature, signer),
            )
        except sqlite3.IntegrityError as e:
            raise InternalError(f"Vote rejected by store: {e}") from e
        if cursor.rowcount == 0:
            raise DuplicateRecord()

    def get(self, vote_id: str) -> VoteRecord:
        row = self._execute(
            "SELECT id, data, signature, signer, created_at FROM votes WHERE id = ?",
            (vote_id,),
        ).fetchone()
        if row is None:
            raise NotFound()
        return VoteRecord(
            id=row["id"],
            payload=row["data"],
            signature=row["signature"],
            signer=row["signer"],
            created_at=row["created_at"],
        )

    def list(self, limit=DEFAULT_LIMIT, offset=0) -> List[VoteSummary]:
        limit, offset = clamp_pagination(limit, offset)
        rows = self._execute(
            """
            SELECT id, created_at FROM votes
            ORDER BY created_at DESC, rowid DESC
            LIMIT ? OFFSET ?
            """,
            (limit, offset),
        ).fetchall()
        return [VoteSummary(id=row["id"], created_at=row["created_at"]) for row in rows]

    def count(self) -> int:
        row = self._execute("SELECT COUNT(*) AS cnt FROM votes").fetchone()
        return int(row["cnt"] or 0)

    def ping(self) -> None:
        self._execute("SELECT 1").fetchone()

    def close(self) -> None:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None
