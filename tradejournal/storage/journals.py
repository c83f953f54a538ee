"""Journal store: CRUD over trading_journals plus the cascading soft delete."""

from __future__ import annotations

import sqlite3
from typing import List, Optional

from tradejournal.journal.models import TradingJournal, from_iso, to_iso, utcnow
from tradejournal.storage.database import Database, Query
from tradejournal.storage.entries import TABLE as ENTRIES_TABLE, EntryStore
from tradejournal.utils.logger import get_logger

logger = get_logger(__name__)

TABLE = "trading_journals"


def _row_to_journal(row: sqlite3.Row) -> TradingJournal:
    return TradingJournal(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        description=row["description"] or "",
        created_at=from_iso(row["created_at"]),
        updated_at=from_iso(row["updated_at"]),
        deleted_at=from_iso(row["deleted_at"]),
    )


class JournalStore:

    def __init__(self, db: Database):
        self._db = db

    def create(self, journal: TradingJournal) -> TradingJournal:
        d = journal.to_dict()
        with self._db.transaction() as conn:
            conn.execute("""
                INSERT INTO trading_journals (id, user_id, name, description, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (d["id"], d["user_id"], d["name"], d["description"],
                  d["created_at"], d["updated_at"]))
        logger.info("journal_created", journal_id=journal.id, user_id=journal.user_id)
        return journal

    def get_by_id(self, journal_id: str) -> Optional[TradingJournal]:
        sql, params = Query(TABLE).where("id = ?", journal_id).select()
        row = self._db.connection().execute(sql, params).fetchone()
        return _row_to_journal(row) if row else None

    def get_with_entries(self, journal_id: str) -> Optional[TradingJournal]:
        """Journal plus its live entries, newest trade first, from one snapshot."""
        with self._db.snapshot() as conn:
            sql, params = Query(TABLE).where("id = ?", journal_id).select()
            row = conn.execute(sql, params).fetchone()
            if row is None:
                return None
            journal = _row_to_journal(row)
            journal.entries = EntryStore(self._db).list(journal_id, limit=-1, offset=0)
        return journal

    def list_by_user(self, user_id: str, limit: int = 20, offset: int = 0) -> List[TradingJournal]:
        sql, params = (Query(TABLE)
                       .where("user_id = ?", user_id)
                       .order_by("created_at DESC, rowid DESC")
                       .paginate(limit, offset)
                       .select())
        rows = self._db.connection().execute(sql, params).fetchall()
        return [_row_to_journal(r) for r in rows]

    def count_by_user(self, user_id: str) -> int:
        sql, params = Query(TABLE).where("user_id = ?", user_id).count()
        return self._db.connection().execute(sql, params).fetchone()["cnt"]

    def update(self, journal: TradingJournal) -> bool:
        """Update name/description. False if no live row matched."""
        journal.updated_at = utcnow()
        sql, params = Query(TABLE).where("id = ?", journal.id).update({
            "name": journal.name,
            "description": journal.description,
            "updated_at": to_iso(journal.updated_at),
        })
        with self._db.transaction() as conn:
            changed = conn.execute(sql, params).rowcount
        return changed > 0

    def soft_delete_cascade(self, journal_id: str) -> bool:
        """Soft-delete the journal and all of its entries in one transaction."""
        now = to_iso(utcnow())
        journal_sql, journal_params = Query(TABLE).where("id = ?", journal_id).update(
            {"deleted_at": now, "updated_at": now})
        entries_sql, entries_params = Query(ENTRIES_TABLE).where("journal_id = ?", journal_id).update(
            {"deleted_at": now, "updated_at": now})
        with self._db.transaction() as conn:
            changed = conn.execute(journal_sql, journal_params).rowcount
            if changed == 0:
                return False
            cascaded = conn.execute(entries_sql, entries_params).rowcount
        logger.info("journal_deleted", journal_id=journal_id, entries_deleted=cascaded)
        return True

    def exists(self, journal_id: str, user_id: Optional[str] = None) -> bool:
        q = Query(TABLE).where("id = ?", journal_id)
        if user_id is not None:
            q.where("user_id = ?", user_id)
        sql, params = q.exists()
        return bool(self._db.connection().execute(sql, params).fetchone()["found"])
