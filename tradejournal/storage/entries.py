"""
Entry store: CRUD over trading_journal_entries plus the aggregate queries
behind journal statistics.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from tradejournal.journal.models import (
    JournalEntry, Statistics, from_iso, to_iso, utcnow,
)
from tradejournal.storage.database import Database, Query
from tradejournal.utils.logger import get_logger

logger = get_logger(__name__)

TABLE = "trading_journal_entries"

_COLUMNS = (
    "id", "journal_id", "day", "asset", "ltf", "htf", "entry_charts", "session",
    "trade_type", "setup", "direction", "entry_type", "realized", "max_rr",
    "result", "notes", "created_at", "updated_at",
)

# Columns a caller may change; journal_id and created_at are fixed at creation.
_MUTABLE = (
    "day", "asset", "ltf", "htf", "entry_charts", "session", "trade_type",
    "setup", "direction", "entry_type", "realized", "max_rr", "result", "notes",
)


@dataclass
class EntryFilters:
    asset: Optional[str] = None
    session: Optional[str] = None
    result: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    def apply(self, q: Query) -> Query:
        return (q.where_if(self.asset, "asset = ?")
                 .where_if(self.session, "session = ?")
                 .where_if(self.result, "result = ?")
                 .where_if(to_iso(self.start_date), "day >= ?")
                 .where_if(to_iso(self.end_date), "day <= ?"))


def _entry_values(entry: JournalEntry) -> Dict:
    d = entry.to_dict()
    d["entry_charts"] = json.dumps(d["entry_charts"])
    return d


def _row_to_entry(row: sqlite3.Row) -> JournalEntry:
    d = dict(row)
    d["entry_charts"] = json.loads(d.get("entry_charts") or "[]")
    return JournalEntry.from_dict(d)


class EntryStore:

    def __init__(self, db: Database):
        self._db = db

    def create(self, entry: JournalEntry) -> JournalEntry:
        d = _entry_values(entry)
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with self._db.transaction() as conn:
            conn.execute(
                f"INSERT INTO {TABLE} ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                [d[c] for c in _COLUMNS],
            )
        logger.info("entry_created", entry_id=entry.id, journal_id=entry.journal_id)
        return entry

    def get_by_id(self, entry_id: str) -> Optional[JournalEntry]:
        sql, params = Query(TABLE).where("id = ?", entry_id).select()
        row = self._db.connection().execute(sql, params).fetchone()
        return _row_to_entry(row) if row else None

    def list(self, journal_id: str, limit: int = 20, offset: int = 0,
             filters: Optional[EntryFilters] = None) -> List[JournalEntry]:
        """Live entries of a journal, newest trade first. ``limit=-1`` returns all."""
        q = Query(TABLE).where("journal_id = ?", journal_id)
        (filters or EntryFilters()).apply(q)
        sql, params = q.order_by("day DESC, created_at DESC").paginate(limit, offset).select()
        rows = self._db.connection().execute(sql, params).fetchall()
        return [_row_to_entry(r) for r in rows]

    def count(self, journal_id: str, filters: Optional[EntryFilters] = None) -> int:
        q = Query(TABLE).where("journal_id = ?", journal_id)
        (filters or EntryFilters()).apply(q)
        sql, params = q.count()
        return self._db.connection().execute(sql, params).fetchone()["cnt"]

    def update(self, entry: JournalEntry) -> bool:
        entry.updated_at = utcnow()
        d = _entry_values(entry)
        assignments = {c: d[c] for c in _MUTABLE}
        assignments["updated_at"] = d["updated_at"]
        sql, params = (Query(TABLE)
                       .where("id = ?", entry.id)
                       .where("journal_id = ?", entry.journal_id)
                       .update(assignments))
        with self._db.transaction() as conn:
            changed = conn.execute(sql, params).rowcount
        return changed > 0

    def soft_delete(self, entry_id: str, journal_id: str) -> bool:
        now = to_iso(utcnow())
        sql, params = (Query(TABLE)
                       .where("id = ?", entry_id)
                       .where("journal_id = ?", journal_id)
                       .update({"deleted_at": now, "updated_at": now}))
        with self._db.transaction() as conn:
            changed = conn.execute(sql, params).rowcount
        if changed:
            logger.info("entry_deleted", entry_id=entry_id, journal_id=journal_id)
        return changed > 0

    def exists(self, entry_id: str, journal_id: str) -> bool:
        sql, params = (Query(TABLE)
                       .where("id = ?", entry_id)
                       .where("journal_id = ?", journal_id)
                       .exists())
        return bool(self._db.connection().execute(sql, params).fetchone()["found"])

    # ─── AGGREGATES ─────────────────────────────────────────────

    def get_statistics(self, journal_id: str) -> Statistics:
        """Four aggregate queries over one read snapshot."""
        base = Query(TABLE).where("journal_id = ?", journal_id)
        with self._db.snapshot() as conn:
            sql, params = base.count()
            total = conn.execute(sql, params).fetchone()["cnt"]

            sql, params = base.select("result, COUNT(*) AS cnt")
            rows = conn.execute(sql + " GROUP BY result", params).fetchall()
            by_result = {r["result"]: r["cnt"] for r in rows}

            sql, params = base.select("COALESCE(SUM(realized), 0) AS total_realized")
            total_realized = conn.execute(sql, params).fetchone()["total_realized"]

            sql, params = base.select("COALESCE(AVG(max_rr), 0) AS avg_rr")
            avg_rr = conn.execute(sql, params).fetchone()["avg_rr"]

        return Statistics.from_aggregates(total, by_result, total_realized, avg_rr)
