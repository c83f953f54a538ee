"""
Journal Database — SQLite storage shared by the user, journal and entry stores
===============================================================================

Tables:
  users                    — accounts (unique email, unique username)
  trading_journals         — journals, owned by a user
  trading_journal_entries  — trades, owned by a journal

Every table carries a nullable deleted_at; rows are soft-deleted and the
Query builder hides them from every read.

Indexes:
  By user_id, journal_id, day, asset, session, result
"""

from __future__ import annotations

import asyncio
import os
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional, Tuple, TypeVar

from tradejournal.journal.models import (
    CurrencyPair, EntryType, TimeFrame, TradeDirection, TradeResult,
    TradeType, TradingSession,
)
from tradejournal.utils.exceptions import StorageError
from tradejournal.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

MEMORY = ":memory:"


def _check(column: str, enum_cls) -> str:
    values = ", ".join(f"'{v}'" for v in enum_cls.values())
    return f"CHECK ({column} IN ({values}))"


SCHEMA = f"""
    CREATE TABLE IF NOT EXISTS users (
        id              TEXT PRIMARY KEY,
        email           TEXT NOT NULL UNIQUE,
        username        TEXT NOT NULL UNIQUE,
        password_hash   TEXT NOT NULL,
        created_at      TEXT NOT NULL,
        updated_at      TEXT NOT NULL,
        deleted_at      TEXT
    );

    CREATE TABLE IF NOT EXISTS trading_journals (
        id              TEXT PRIMARY KEY,
        user_id         TEXT NOT NULL REFERENCES users(id),
        name            TEXT NOT NULL,
        description     TEXT DEFAULT '',
        created_at      TEXT NOT NULL,
        updated_at      TEXT NOT NULL,
        deleted_at      TEXT
    );

    CREATE TABLE IF NOT EXISTS trading_journal_entries (
        id              TEXT PRIMARY KEY,
        journal_id      TEXT NOT NULL REFERENCES trading_journals(id),
        day             TEXT NOT NULL,
        asset           TEXT NOT NULL {_check("asset", CurrencyPair)},
        ltf             TEXT NOT NULL {_check("ltf", TimeFrame)},
        htf             TEXT NOT NULL {_check("htf", TimeFrame)},
        entry_charts    TEXT DEFAULT '[]',
        session         TEXT NOT NULL {_check("session", TradingSession)},
        trade_type      TEXT NOT NULL {_check("trade_type", TradeType)},
        setup           TEXT,
        direction       TEXT NOT NULL {_check("direction", TradeDirection)},
        entry_type      TEXT NOT NULL {_check("entry_type", EntryType)},
        realized        REAL NOT NULL DEFAULT 0,
        max_rr          REAL NOT NULL CHECK (max_rr > 0),
        result          TEXT NOT NULL {_check("result", TradeResult)},
        notes           TEXT DEFAULT '',
        created_at      TEXT NOT NULL,
        updated_at      TEXT NOT NULL,
        deleted_at      TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_tj_user_id ON trading_journals(user_id);
    CREATE INDEX IF NOT EXISTS idx_tj_deleted_at ON trading_journals(deleted_at);
    CREATE INDEX IF NOT EXISTS idx_tje_journal_id ON trading_journal_entries(journal_id);
    CREATE INDEX IF NOT EXISTS idx_tje_day ON trading_journal_entries(day);
    CREATE INDEX IF NOT EXISTS idx_tje_asset ON trading_journal_entries(asset);
    CREATE INDEX IF NOT EXISTS idx_tje_session ON trading_journal_entries(session);
    CREATE INDEX IF NOT EXISTS idx_tje_result ON trading_journal_entries(result);
    CREATE INDEX IF NOT EXISTS idx_tje_deleted_at ON trading_journal_entries(deleted_at);
"""


class Query:
    """
    WHERE-clause builder for live rows.

    Starts with ``deleted_at IS NULL`` so no read path can forget the
    soft-delete filter.
    """

    def __init__(self, table: str):
        self.table = table
        self.conditions: List[str] = ["deleted_at IS NULL"]
        self.params: List[Any] = []
        self._order = ""
        self._limit: Optional[Tuple[int, int]] = None

    def where(self, clause: str, *params: Any) -> "Query":
        self.conditions.append(clause)
        self.params.extend(params)
        return self

    def where_if(self, value: Any, clause: str) -> "Query":
        """Add ``clause`` only when ``value`` is set."""
        if value is not None and value != "":
            self.where(clause, value)
        return self

    def order_by(self, order: str) -> "Query":
        self._order = order
        return self

    def paginate(self, limit: int, offset: int) -> "Query":
        self._limit = (limit, offset)
        return self

    @property
    def where_sql(self) -> str:
        return " AND ".join(self.conditions)

    def select(self, columns: str = "*") -> Tuple[str, List[Any]]:
        sql = f"SELECT {columns} FROM {self.table} WHERE {self.where_sql}"
        params = list(self.params)
        if self._order:
            sql += f" ORDER BY {self._order}"
        if self._limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend(self._limit)
        return sql, params

    def count(self) -> Tuple[str, List[Any]]:
        return f"SELECT COUNT(*) AS cnt FROM {self.table} WHERE {self.where_sql}", list(self.params)

    def exists(self) -> Tuple[str, List[Any]]:
        return (f"SELECT EXISTS(SELECT 1 FROM {self.table} WHERE {self.where_sql}) AS found",
                list(self.params))

    def update(self, assignments: dict) -> Tuple[str, List[Any]]:
        sets = ", ".join(f"{col} = ?" for col in assignments)
        return (f"UPDATE {self.table} SET {sets} WHERE {self.where_sql}",
                list(assignments.values()) + list(self.params))


class Database:
    """
    Thread-local SQLite connections in WAL mode.

    Stores are synchronous; services reach them through ``run()``, which
    moves the call onto a worker thread and interrupts the statement if the
    awaiting task is cancelled.
    """

    def __init__(self, db_path: str = "data/tradejournal.db"):
        self._db_path = db_path
        self._uri = db_path == MEMORY
        if self._uri:
            # one private shared-cache database per instance, so every worker
            # thread sees the same tables; it lives while any connection is open
            self._target = f"file:tradejournal-{uuid.uuid4().hex}?mode=memory&cache=shared"
        else:
            os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
            self._target = db_path
        self._local = threading.local()
        self._conns: List[sqlite3.Connection] = []
        self._conns_lock = threading.Lock()
        self._init_db()
        logger.info("database_initialized", path=db_path)

    @property
    def path(self) -> str:
        return self._db_path

    def connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(
                self._target, timeout=10, isolation_level=None, check_same_thread=False, uri=self._uri,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("PRAGMA foreign_keys=ON")
            self._local.conn = conn
            with self._conns_lock:
                self._conns.append(conn)
        return conn

    def _init_db(self):
        self.connection().executescript(SCHEMA)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Write transaction; rolled back on any exception."""
        conn = self.connection()
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
            conn.execute("COMMIT")
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise

    @contextmanager
    def snapshot(self) -> Iterator[sqlite3.Connection]:
        """Read transaction; every query inside sees the same snapshot."""
        conn = self.connection()
        conn.execute("BEGIN")
        try:
            yield conn
        finally:
            if conn.in_transaction:
                conn.execute("COMMIT")

    async def run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a blocking store call on a worker thread.

        sqlite3 errors surface as StorageError with the original as cause.
        """
        holder: dict = {}

        def call() -> T:
            holder["conn"] = self.connection()
            try:
                return fn(*args, **kwargs)
            except sqlite3.Error as e:
                raise StorageError(f"{getattr(fn, '__name__', 'query')} failed") from e
            finally:
                holder["done"] = True

        try:
            return await asyncio.to_thread(call)
        except asyncio.CancelledError:
            conn = holder.get("conn")
            # nothing to interrupt once the call has returned
            if conn is not None and not holder.get("done"):
                conn.interrupt()
                logger.info("query_interrupted", operation=getattr(fn, "__name__", "query"))
            raise

    def ping(self) -> bool:
        return self.connection().execute("SELECT 1").fetchone()[0] == 1

    def close(self):
        with self._conns_lock:
            conns, self._conns = self._conns, []
        for conn in conns:
            conn.close()
        self._local = threading.local()
        logger.info("database_closed", path=self._db_path)
