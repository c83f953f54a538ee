"""
Request bodies and response mappers for the HTTP API.

Enum-valued fields are taken as plain strings here; the domain model's
validate() decides whether they are valid so the caller gets the specific
field in the error message.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from tradejournal.auth.tokens import TokenPair
from tradejournal.journal.models import JournalEntry, Statistics, TradingJournal, to_iso

_HTTP_URL = re.compile(r"^https?://\S+$", re.IGNORECASE)


# ── Auth ─────────────────────────────────────────────────────

class SignUpRequest(BaseModel):
    email: EmailStr
    username: str = Field(min_length=3, max_length=50)
    # bcrypt only looks at the first 72 bytes
    password: str = Field(min_length=8, max_length=72)


class SignInRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


# ── Journals ─────────────────────────────────────────────────

class CreateJournalRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str = Field(default="", max_length=1000)


class UpdateJournalRequest(CreateJournalRequest):
    pass


# ── Entries ──────────────────────────────────────────────────

class CreateEntryRequest(BaseModel):
    day: datetime
    asset: str
    ltf: str
    htf: str
    entry_charts: list[str] = Field(default_factory=list)
    session: str
    trade_type: str
    setup: Optional[str] = Field(default=None, max_length=500)
    direction: str
    entry_type: str
    realized: float = Field(default=0.0, allow_inf_nan=False)
    max_rr: float = Field(gt=0, allow_inf_nan=False)
    result: str
    notes: str = Field(default="", max_length=5000)

    @field_validator("entry_charts")
    @classmethod
    def charts_are_urls(cls, v: list[str]) -> list[str]:
        for url in v:
            if not _HTTP_URL.match(url):
                raise ValueError(f"invalid chart url: {url}")
        return v


class UpdateEntryRequest(CreateEntryRequest):
    pass


# ── Responses ────────────────────────────────────────────────

def token_response(tokens: TokenPair) -> dict[str, Any]:
    return tokens.to_dict()


def journal_response(journal: TradingJournal) -> dict[str, Any]:
    return {
        "id": journal.id,
        "user_id": journal.user_id,
        "name": journal.name,
        "description": journal.description,
        "created_at": to_iso(journal.created_at),
        "updated_at": to_iso(journal.updated_at),
    }


def journal_with_entries_response(journal: TradingJournal) -> dict[str, Any]:
    d = journal_response(journal)
    d["entries"] = [entry_response(e) for e in journal.entries]
    return d


def journal_list_response(journals: list[TradingJournal], total: int,
                          limit: int, offset: int) -> dict[str, Any]:
    return {
        "journals": [journal_response(j) for j in journals],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


def entry_response(entry: JournalEntry) -> dict[str, Any]:
    d = entry.to_dict()
    d.pop("deleted_at", None)
    if d.get("setup") is None:
        d.pop("setup", None)
    return d


def entry_list_response(entries: list[JournalEntry], total: int,
                        limit: int, offset: int) -> dict[str, Any]:
    return {
        "entries": [entry_response(e) for e in entries],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


def statistics_response(stats: Statistics) -> dict[str, Any]:
    return stats.to_dict()
