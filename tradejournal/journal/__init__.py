"""
Trading Journal Domain
======================

Users own journals; journals own entries (one per recorded trade).

Architecture:
  models.py — dataclasses for users, journals, entries, statistics + enums

Storage lives in tradejournal.storage, business rules in
tradejournal.services.
"""

from tradejournal.journal.models import (
    CurrencyPair,
    EntryType,
    JournalEntry,
    Statistics,
    TimeFrame,
    TradeDirection,
    TradeResult,
    TradeType,
    TradingJournal,
    TradingSession,
    User,
)

__all__ = [
    "CurrencyPair",
    "EntryType",
    "JournalEntry",
    "Statistics",
    "TimeFrame",
    "TradeDirection",
    "TradeResult",
    "TradeType",
    "TradingJournal",
    "TradingSession",
    "User",
]
