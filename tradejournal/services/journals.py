from __future__ import annotations

import json
from typing import Any, List

from tradejournal.journal.models import TradingJournal
from tradejournal.services.access import AccessControl
from tradejournal.services.pagination import normalize_pagination
from tradejournal.storage.cache import Cache, NullCache, journal_key
from tradejournal.storage.database import Database
from tradejournal.storage.journals import JournalStore
from tradejournal.utils.exceptions import CacheError, NotFoundError
from tradejournal.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CACHE_TTL = 900


class JournalService:
    """
    Journal CRUD for a user.

    get_by_id reads through the cache; update and delete invalidate it once
    the store mutation has succeeded. Cache failures are logged, never raised.
    """

    def __init__(self, db: Database, journals: JournalStore, access: AccessControl,
                 cache: Cache | None = None, cache_ttl: int = DEFAULT_CACHE_TTL):
        self._db = db
        self._journals = journals
        self._access = access
        self._cache = cache if cache is not None else NullCache()
        self._cache_ttl = cache_ttl

    async def create(self, user_id: str, name: str, description: str = "") -> TradingJournal:
        journal = TradingJournal(user_id=user_id, name=name, description=description or "")
        journal.validate()
        return await self._db.run(self._journals.create, journal)

    async def get_by_id(self, journal_id: str) -> TradingJournal:
        key = journal_key(journal_id)
        cached = await self._cache_get(key)
        if cached is not None:
            try:
                return TradingJournal.from_dict(json.loads(cached))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning("cache_payload_invalid", key=key, error=str(e))

        journal = await self._db.run(self._journals.get_by_id, journal_id)
        if journal is None:
            raise NotFoundError("trading journal not found")

        try:
            await self._cache.set(key, json.dumps(journal.to_dict()), self._cache_ttl)
        except CacheError as e:
            logger.warning("cache_set_failed", key=key, error=str(e))
        return journal

    async def get_by_id_with_entries(self, journal_id: str) -> TradingJournal:
        journal = await self._db.run(self._journals.get_with_entries, journal_id)
        if journal is None:
            raise NotFoundError("trading journal not found")
        return journal

    async def list_for_user(self, user_id: str, limit: Any = None, offset: Any = None) -> List[TradingJournal]:
        limit, offset = normalize_pagination(limit, offset)
        return await self._db.run(self._journals.list_by_user, user_id, limit, offset)

    async def count_for_user(self, user_id: str) -> int:
        return await self._db.run(self._journals.count_by_user, user_id)

    async def update(self, journal: TradingJournal) -> TradingJournal:
        journal.validate()
        if not await self._db.run(self._journals.update, journal):
            raise NotFoundError("trading journal not found")
        await self._invalidate(journal.id, "update")
        return journal

    async def delete(self, journal_id: str, user_id: str) -> None:
        await self._access.require_journal_owner(journal_id, user_id)
        if not await self._db.run(self._journals.soft_delete_cascade, journal_id):
            raise NotFoundError("trading journal not found")
        await self._invalidate(journal_id, "delete")

    async def verify_access(self, journal_id: str, user_id: str) -> bool:
        return await self._access.journal_belongs_to_user(journal_id, user_id)

    async def _cache_get(self, key: str):
        try:
            return await self._cache.get(key)
        except CacheError as e:
            logger.warning("cache_get_failed", key=key, error=str(e))
            return None

    async def _invalidate(self, journal_id: str, reason: str) -> None:
        key = journal_key(journal_id)
        try:
            await self._cache.delete(key)
        except CacheError as e:
            logger.warning("cache_invalidate_failed", key=key, reason=reason, error=str(e))
