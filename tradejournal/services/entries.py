from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, List, Optional

from tradejournal.journal.models import JournalEntry, Statistics
from tradejournal.services.access import AccessControl
from tradejournal.services.pagination import normalize_pagination
from tradejournal.storage.database import Database
from tradejournal.storage.entries import EntryFilters, EntryStore
from tradejournal.storage.journals import JournalStore
from tradejournal.utils.exceptions import NotFoundError
from tradejournal.utils.logger import get_logger

logger = get_logger(__name__)

# Fields a caller may set on create or update.
ENTRY_FIELDS = (
    "day", "asset", "ltf", "htf", "entry_charts", "session", "trade_type",
    "setup", "direction", "entry_type", "realized", "max_rr", "result", "notes",
)


class EntryService:
    """
    Entries of a journal.

    Callers are expected to have checked journal ownership already; the
    entry-level operations here only check that the entry sits in the
    journal named by the caller.
    """

    def __init__(self, db: Database, entries: EntryStore, journals: JournalStore,
                 access: AccessControl):
        self._db = db
        self._entries = entries
        self._journals = journals
        self._access = access

    async def create(self, journal_id: str, fields: Dict[str, Any]) -> JournalEntry:
        if await self._db.run(self._journals.get_by_id, journal_id) is None:
            raise NotFoundError("trading journal not found")

        entry = JournalEntry(journal_id=journal_id, **_pick(fields))
        entry.validate()
        return await self._db.run(self._entries.create, entry)

    async def get_by_id(self, entry_id: str) -> JournalEntry:
        entry = await self._db.run(self._entries.get_by_id, entry_id)
        if entry is None:
            raise NotFoundError("entry not found")
        return entry

    async def get_detail(self, entry_id: str, journal_id: str) -> JournalEntry:
        # the caller already owns the journal, so a mismatch is reported as 403
        await self._access.require_entry_in_journal(entry_id, journal_id, conceal=False)
        return await self.get_by_id(entry_id)

    async def list(self, journal_id: str, limit: Any = None, offset: Any = None,
                   filters: Optional[EntryFilters] = None) -> List[JournalEntry]:
        limit, offset = normalize_pagination(limit, offset)
        return await self._db.run(self._entries.list, journal_id, limit, offset, filters)

    async def count(self, journal_id: str, filters: Optional[EntryFilters] = None) -> int:
        return await self._db.run(self._entries.count, journal_id, filters)

    async def update(self, entry_id: str, journal_id: str, fields: Dict[str, Any]) -> JournalEntry:
        await self._access.require_entry_in_journal(entry_id, journal_id)
        entry = await self.get_by_id(entry_id)

        entry = replace(entry, **_pick(fields))
        entry.validate()

        if not await self._db.run(self._entries.update, entry):
            raise NotFoundError("entry not found")
        logger.info("entry_updated", entry_id=entry_id, journal_id=journal_id)
        return entry

    async def delete(self, entry_id: str, journal_id: str) -> None:
        await self._access.require_entry_in_journal(entry_id, journal_id)
        if not await self._db.run(self._entries.soft_delete, entry_id, journal_id):
            raise NotFoundError("entry not found")

    async def statistics(self, journal_id: str) -> Statistics:
        return await self._db.run(self._entries.get_statistics, journal_id)

    async def verify_access(self, entry_id: str, journal_id: str) -> bool:
        return await self._access.entry_belongs_to_journal(entry_id, journal_id)


def _pick(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in fields.items() if k in ENTRY_FIELDS}
