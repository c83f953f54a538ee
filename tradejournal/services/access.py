"""
Ownership checks over the User → Journal → Entry hierarchy.

Both predicates only see live rows, so a soft-deleted journal or entry
belongs to nobody.
"""

from __future__ import annotations

from tradejournal.storage.database import Database
from tradejournal.storage.entries import EntryStore
from tradejournal.storage.journals import JournalStore
from tradejournal.utils.exceptions import AccessDeniedError


class AccessControl:

    def __init__(self, db: Database, journals: JournalStore, entries: EntryStore):
        self._db = db
        self._journals = journals
        self._entries = entries

    async def journal_belongs_to_user(self, journal_id: str, user_id: str) -> bool:
        return await self._db.run(self._journals.exists, journal_id, user_id)

    async def entry_belongs_to_journal(self, entry_id: str, journal_id: str) -> bool:
        return await self._db.run(self._entries.exists, entry_id, journal_id)

    async def require_journal_owner(self, journal_id: str, user_id: str) -> None:
        if not await self.journal_belongs_to_user(journal_id, user_id):
            raise AccessDeniedError(conceal=True)

    async def require_entry_in_journal(self, entry_id: str, journal_id: str,
                                       conceal: bool = True) -> None:
        if not await self.entry_belongs_to_journal(entry_id, journal_id):
            raise AccessDeniedError(conceal=conceal)
