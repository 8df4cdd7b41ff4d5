from __future__ import annotations

import logging
from csv import DictReader
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

from pydantic import BaseModel, ConfigDict, field_validator

from domain.ledger import LedgerEntry

logger = logging.getLogger(__name__)

TIMESTAMP_FORMATS = ("%Y-%m-%d %H:%M:%S.%f", "%Y-%m-%d %H:%M:%S")


def parse_timestamp(value: str) -> datetime:
    text = value.strip()
    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    raise ValueError(f"unsupported timestamp format: {text}")


class KrakenLedgerRow(BaseModel):
    """One row of a Kraken ledger export. Columns not listed here are ignored."""

    model_config = ConfigDict(extra="ignore")

    txid: str
    refid: str
    time: datetime
    type: str
    subtype: str = ""
    asset: str
    amount: Decimal
    fee: Decimal

    @field_validator("time", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: str | datetime) -> datetime:
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.replace(tzinfo=timezone.utc)
            return value
        return parse_timestamp(value)

    @field_validator("subtype", mode="before")
    @classmethod
    def _empty_subtype(cls, value: str | None) -> str:
        if value is None:
            return ""
        return value

    @field_validator("amount", "fee", mode="before")
    @classmethod
    def _ensure_decimal(cls, value: str | Decimal) -> str | Decimal:
        if isinstance(value, str):
            value = value.strip()
            if value == "":
                return "0"
        return value

    def to_entry(self) -> LedgerEntry:
        return LedgerEntry(
            txid=self.txid,
            refid=self.refid,
            time=self.time,
            category=self.type,
            subcategory=self.subtype,
            asset=self.asset,
            amount=self.amount,
            fee=self.fee,
        )


class KrakenImporter:
    def __init__(self, source_path: str | Path) -> None:
        self._source_path = Path(source_path)

    def load_entries(self) -> list[LedgerEntry]:
        """Read and normalize every row, ordered by (time, refid, txid, asset)."""
        if not self._source_path.exists():
            raise FileNotFoundError(f"CSV not found: {self._source_path}")

        entries = [row.to_entry() for row in self._read_rows()]
        entries.sort(key=lambda entry: (entry.time, entry.refid, entry.txid, entry.asset))
        logger.info("Loaded %d Kraken ledger rows from %s", len(entries), self._source_path)
        return entries

    def _read_rows(self) -> list[KrakenLedgerRow]:
        rows: list[KrakenLedgerRow] = []
        with self._source_path.open(encoding="utf-8", newline="") as handle:
            reader = DictReader(handle)
            for row in reader:
                rows.append(KrakenLedgerRow.model_validate(row))
        return rows
