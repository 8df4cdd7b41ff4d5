from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any, NewType

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from .errors import LedgerStructureError

AssetId = NewType("AssetId", str)
RefId = NewType("RefId", str)

TRADE_SUBCATEGORY = "tradespot"


class EventKind(StrEnum):
    TRADE = "TRADE"
    REWARD = "REWARD"
    REALLOCATION = "REALLOCATION"
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    IGNORED = "IGNORED"


_EVENT_KINDS: dict[tuple[str, str], EventKind] = {
    ("trade", TRADE_SUBCATEGORY): EventKind.TRADE,
    ("earn", "reward"): EventKind.REWARD,
    ("earn", "autoallocation"): EventKind.REALLOCATION,
    ("earn", "allocation"): EventKind.REALLOCATION,
    ("earn", "deallocation"): EventKind.REALLOCATION,
    ("deposit", ""): EventKind.DEPOSIT,
    ("withdrawal", ""): EventKind.WITHDRAWAL,
}


def resolve_event_kind(category: str, subcategory: str) -> EventKind:
    key = (category.strip().lower(), subcategory.strip().lower())
    return _EVENT_KINDS.get(key, EventKind.IGNORED)


class LedgerEntry(BaseModel):
    """A single normalized ledger movement.

    `amount` is signed (positive = asset increase). `fee` is charged in the same
    asset and is never negative, so the net change to holdings is `amount - fee`.
    """

    model_config = ConfigDict(frozen=True)

    txid: str
    refid: str
    time: datetime
    category: str
    subcategory: str = ""
    asset: AssetId
    amount: Decimal
    fee: Decimal = Decimal(0)
    kind: EventKind = EventKind.IGNORED

    @model_validator(mode="before")
    @classmethod
    def _resolve_kind(cls, data: Any) -> Any:
        if isinstance(data, dict):
            category = str(data.get("category") or "")
            subcategory = str(data.get("subcategory") or "")
            data = {**data, "kind": resolve_event_kind(category, subcategory)}
        return data

    @field_validator("category", "subcategory", mode="before")
    @classmethod
    def _lowercase(cls, value: str | None) -> str:
        if value is None:
            return ""
        return value.strip().lower()

    @field_validator("asset", mode="before")
    @classmethod
    def _uppercase(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("fee")
    @classmethod
    def _non_negative_fee(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("fee must be >= 0")
        return value

    @property
    def net_delta(self) -> Decimal:
        return self.amount - self.fee


@dataclass(frozen=True)
class TradeGroup:
    """Both rows of one spot trade, sharing a refid and a timestamp."""

    refid: str
    entries: tuple[LedgerEntry, ...]
    time: datetime = field(init=False)
    txid: str = field(init=False)

    def __post_init__(self) -> None:
        if len(self.entries) != 2:
            raise LedgerStructureError(f"trade refid {self.refid} expected 2 rows, got {len(self.entries)}")
        first, second = self.entries
        if first.time != second.time:
            raise LedgerStructureError(f"trade refid {self.refid} has mismatched times")
        object.__setattr__(self, "time", first.time)
        object.__setattr__(self, "txid", first.txid)
        self.split_legs()

    def split_legs(self) -> tuple[LedgerEntry, LedgerEntry]:
        """Return (outflow, inflow) by sign of the net delta."""
        a, b = self.entries
        if a.net_delta < 0 and b.net_delta > 0:
            return a, b
        if b.net_delta < 0 and a.net_delta > 0:
            return b, a
        raise LedgerStructureError(f"trade refid {self.refid} not reducible to one outflow and one inflow")


@dataclass(frozen=True)
class TradeEvent:
    group: TradeGroup

    @property
    def time(self) -> datetime:
        return self.group.time

    @property
    def sort_key(self) -> tuple[datetime, int, str]:
        return self.group.time, 0, f"{self.group.refid}:{self.group.txid}"


@dataclass(frozen=True)
class EntryEvent:
    entry: LedgerEntry

    @property
    def time(self) -> datetime:
        return self.entry.time

    @property
    def sort_key(self) -> tuple[datetime, int, str]:
        entry = self.entry
        return entry.time, 1, f"{entry.refid}:{entry.txid}:{entry.asset}"


Event = TradeEvent | EntryEvent
