from __future__ import annotations

import csv
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterable

from domain.engine import ReportRow

from .formatting import format_currency, format_units

FIELDNAMES = [
    "time",
    "refid",
    "txid",
    "event_type",
    "asset",
    "units_in",
    "units_out",
    "proceeds",
    "acb_disposed",
    "gain",
    "income",
    "acb_added",
    "pool_units_after",
    "pool_acb_after",
    "notes",
]

_UNIT_FIELDS = ("units_in", "units_out", "pool_units_after")
_CURRENCY_FIELDS = ("proceeds", "acb_disposed", "gain", "income", "acb_added", "pool_acb_after")


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _blank_or(formatter: Callable[[Decimal], str], value: Decimal | None) -> str:
    if value is None:
        return ""
    return formatter(value)


def report_row_to_csv(row: ReportRow) -> dict[str, str]:
    record = {
        "time": format_timestamp(row.time),
        "refid": row.refid,
        "txid": row.txid,
        "event_type": row.event_type,
        "asset": row.asset,
        "notes": row.notes,
    }
    for name in _UNIT_FIELDS:
        record[name] = _blank_or(format_units, getattr(row, name))
    for name in _CURRENCY_FIELDS:
        record[name] = _blank_or(format_currency, getattr(row, name))
    return record


def write_audit_report(rows: Iterable[ReportRow], path: Path) -> Path:
    """Write the audit trail as CSV, one line per report row."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as fp:
        writer = csv.DictWriter(fp, fieldnames=FIELDNAMES)
        writer.writeheader()
        for row in rows:
            writer.writerow(report_row_to_csv(row))
    return path
