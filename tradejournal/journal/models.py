"""
Journal Data Models
===================

User          — account that owns journals
TradingJournal — named collection of trades, owned by one user
JournalEntry  — one recorded trade with structured metadata
Statistics    — performance summary of a journal's entries

All models are dataclasses with to_dict()/from_dict() for SQLite and cache
storage. Timestamps are timezone-aware datetimes, serialized as ISO-8601.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from tradejournal.utils.exceptions import InvalidField, InvalidFieldError

NIL_ID = "00000000-0000-0000-0000-000000000000"


def new_id() -> str:
    return str(uuid.uuid4())


def is_nil_id(value: Optional[str]) -> bool:
    return not value or str(value) == NIL_ID


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    # fixed width so stored timestamps sort lexically
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


# ── Enums ────────────────────────────────────────────────────

class ChoiceEnum(str, Enum):
    @classmethod
    def is_valid(cls, value: Any) -> bool:
        return value in cls._value2member_map_

    @classmethod
    def values(cls) -> List[str]:
        return [m.value for m in cls]


class CurrencyPair(ChoiceEnum):
    # Majors
    EURUSD = "EURUSD"
    GBPUSD = "GBPUSD"
    USDJPY = "USDJPY"
    USDCHF = "USDCHF"
    AUDUSD = "AUDUSD"
    USDCAD = "USDCAD"
    NZDUSD = "NZDUSD"
    # Minors
    EURGBP = "EURGBP"
    EURJPY = "EURJPY"
    GBPJPY = "GBPJPY"
    EURCHF = "EURCHF"
    EURAUD = "EURAUD"
    EURCAD = "EURCAD"
    GBPCHF = "GBPCHF"
    GBPAUD = "GBPAUD"
    GBPCAD = "GBPCAD"
    # Exotics
    USDTRY = "USDTRY"
    USDMXN = "USDMXN"
    USDZAR = "USDZAR"
    USDNOK = "USDNOK"
    USDSEK = "USDSEK"


class TimeFrame(ChoiceEnum):
    M1 = "1M"
    M5 = "5M"
    M15 = "15M"
    M30 = "30M"
    H1 = "1H"
    H4 = "4H"
    D1 = "1D"
    W1 = "1W"
    MO1 = "1MO"


class TradingSession(ChoiceEnum):
    ASIA = "asia"
    LONDON = "london"
    NEW_YORK = "new_york"


class TradeType(ChoiceEnum):
    SWING = "swing"
    INTRADAY = "intraday"


class TradeDirection(ChoiceEnum):
    BUY = "buy"
    SELL = "sell"


class EntryType(ChoiceEnum):
    MARKET = "market"
    LIMIT = "limit"


class TradeResult(ChoiceEnum):
    TAKE_PROFIT = "TP"
    STOP_LOSS = "SL"
    BREAK_EVEN = "BE"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# USERS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass
class User:
    email: str
    username: str
    password_hash: str
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    deleted_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "password_hash": self.password_hash,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
            "deleted_at": to_iso(self.deleted_at),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "User":
        return cls(
            id=d["id"],
            email=d["email"],
            username=d["username"],
            password_hash=d["password_hash"],
            created_at=from_iso(d.get("created_at")) or utcnow(),
            updated_at=from_iso(d.get("updated_at")) or utcnow(),
            deleted_at=from_iso(d.get("deleted_at")),
        )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# ENTRIES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass
class JournalEntry:
    """A single recorded trade.

    Enum fields may hold raw strings until validate() has run; a valid entry
    has them normalized to enum members.
    """
    journal_id: str
    day: datetime
    asset: CurrencyPair
    ltf: TimeFrame
    htf: TimeFrame
    session: TradingSession
    trade_type: TradeType
    direction: TradeDirection
    entry_type: EntryType
    realized: float
    max_rr: float
    result: TradeResult
    entry_charts: List[str] = field(default_factory=list)
    setup: Optional[str] = None
    notes: str = ""
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    deleted_at: Optional[datetime] = None

    def __post_init__(self):
        # decimal(10,2) semantics
        self.realized = round(float(self.realized), 2)
        self.max_rr = round(float(self.max_rr), 2)
        self.entry_charts = list(self.entry_charts or [])

    def validate(self) -> None:
        """Raise InvalidFieldError for the first invalid field."""
        if is_nil_id(self.journal_id):
            raise InvalidFieldError(InvalidField.JOURNAL_ID)
        checks = (
            (CurrencyPair, "asset", InvalidField.ASSET),
            (TimeFrame, "ltf", InvalidField.LTF),
            (TimeFrame, "htf", InvalidField.HTF),
            (TradingSession, "session", InvalidField.SESSION),
            (TradeType, "trade_type", InvalidField.TRADE_TYPE),
            (TradeDirection, "direction", InvalidField.DIRECTION),
            (EntryType, "entry_type", InvalidField.ENTRY_TYPE),
            (TradeResult, "result", InvalidField.RESULT),
        )
        for enum_cls, attr, kind in checks:
            if not enum_cls.is_valid(getattr(self, attr)):
                raise InvalidFieldError(kind)
        if not math.isfinite(self.realized):
            raise InvalidFieldError(InvalidField.REALIZED)
        if not (math.isfinite(self.max_rr) and self.max_rr > 0):
            raise InvalidFieldError(InvalidField.MAX_RR)

        for enum_cls, attr, _ in checks:
            setattr(self, attr, enum_cls(getattr(self, attr)))

    @property
    def is_profit(self) -> bool:
        return self.realized > 0

    @property
    def is_loss(self) -> bool:
        return self.realized < 0

    @property
    def is_break_even(self) -> bool:
        return self.realized == 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "journal_id": self.journal_id,
            "day": to_iso(self.day),
            "asset": _value(self.asset),
            "ltf": _value(self.ltf),
            "htf": _value(self.htf),
            "entry_charts": list(self.entry_charts),
            "session": _value(self.session),
            "trade_type": _value(self.trade_type),
            "setup": self.setup,
            "direction": _value(self.direction),
            "entry_type": _value(self.entry_type),
            "realized": self.realized,
            "max_rr": self.max_rr,
            "result": _value(self.result),
            "notes": self.notes,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
            "deleted_at": to_iso(self.deleted_at),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "JournalEntry":
        entry = cls(
            id=d["id"],
            journal_id=d["journal_id"],
            day=from_iso(d["day"]),
            asset=d["asset"],
            ltf=d["ltf"],
            htf=d["htf"],
            entry_charts=d.get("entry_charts") or [],
            session=d["session"],
            trade_type=d["trade_type"],
            setup=d.get("setup"),
            direction=d["direction"],
            entry_type=d["entry_type"],
            realized=d.get("realized", 0),
            max_rr=d.get("max_rr", 0),
            result=d["result"],
            notes=d.get("notes") or "",
            created_at=from_iso(d.get("created_at")) or utcnow(),
            updated_at=from_iso(d.get("updated_at")) or utcnow(),
            deleted_at=from_iso(d.get("deleted_at")),
        )
        entry.validate()
        return entry


def _value(v: Any) -> Any:
    return v.value if isinstance(v, Enum) else v


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# JOURNALS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass
class TradingJournal:
    user_id: str
    name: str
    description: str = ""
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    deleted_at: Optional[datetime] = None
    entries: List[JournalEntry] = field(default_factory=list)

    def validate(self) -> None:
        if is_nil_id(self.user_id):
            raise InvalidFieldError(InvalidField.USER_ID)
        if not self.name:
            raise InvalidFieldError(InvalidField.JOURNAL_NAME)

    def to_dict(self, include_entries: bool = False) -> dict:
        d = {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "description": self.description,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
            "deleted_at": to_iso(self.deleted_at),
        }
        if include_entries:
            d["entries"] = [e.to_dict() for e in self.entries]
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "TradingJournal":
        return cls(
            id=d["id"],
            user_id=d["user_id"],
            name=d["name"],
            description=d.get("description") or "",
            created_at=from_iso(d.get("created_at")) or utcnow(),
            updated_at=from_iso(d.get("updated_at")) or utcnow(),
            deleted_at=from_iso(d.get("deleted_at")),
            entries=[JournalEntry.from_dict(e) for e in d.get("entries", [])],
        )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# STATISTICS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass
class Statistics:
    total_trades: int = 0
    wins: int = 0
    losses: int = 0
    break_even: int = 0
    win_rate: float = 0.0
    total_realized: float = 0.0
    avg_risk_reward: float = 0.0

    @classmethod
    def from_aggregates(cls, total_trades: int, result_counts: Dict[str, int],
                        total_realized: float, avg_risk_reward: float) -> "Statistics":
        wins = int(result_counts.get(TradeResult.TAKE_PROFIT.value, 0))
        win_rate = wins / total_trades * 100 if total_trades > 0 else 0.0
        return cls(
            total_trades=int(total_trades),
            wins=wins,
            losses=int(result_counts.get(TradeResult.STOP_LOSS.value, 0)),
            break_even=int(result_counts.get(TradeResult.BREAK_EVEN.value, 0)),
            win_rate=win_rate,
            total_realized=round(float(total_realized or 0), 2),
            avg_risk_reward=float(avg_risk_reward or 0),
        )

    def to_dict(self) -> dict:
        return {
            "total_trades": self.total_trades,
            "wins": self.wins,
            "losses": self.losses,
            "break_even": self.break_even,
            "win_rate": self.win_rate,
            "total_realized": self.total_realized,
            "avg_risk_reward": self.avg_risk_reward,
        }
