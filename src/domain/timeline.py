from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable

from .ledger import EntryEvent, Event, EventKind, LedgerEntry, TradeEvent, TradeGroup

logger = logging.getLogger(__name__)


def build_trade_groups(entries: Iterable[LedgerEntry], tax_year: int) -> dict[str, TradeGroup]:
    """Collapse the two rows of every spot trade up to the end of `tax_year`."""
    grouped: dict[str, list[LedgerEntry]] = defaultdict(list)
    for entry in entries:
        if entry.time.year > tax_year:
            continue
        if entry.kind == EventKind.TRADE:
            grouped[entry.refid].append(entry)

    groups: dict[str, TradeGroup] = {}
    for refid, rows in grouped.items():
        rows.sort(key=lambda row: (row.txid, row.asset))
        groups[refid] = TradeGroup(refid=refid, entries=tuple(rows))
    return groups


def build_events(
    entries: Iterable[LedgerEntry],
    trade_groups: dict[str, TradeGroup],
    tax_year: int,
) -> list[Event]:
    """Merge trades and single entries into one ordered timeline.

    At equal timestamps trades come first, so prices they reveal are already
    known when the remaining entries of that instant are valued.
    """
    events: list[Event] = []
    emitted_trades: set[str] = set()

    for entry in entries:
        if entry.time.year > tax_year:
            continue
        if entry.kind == EventKind.TRADE:
            if entry.refid in emitted_trades:
                continue
            emitted_trades.add(entry.refid)
            group = trade_groups.get(entry.refid)
            if group is not None:
                events.append(TradeEvent(group))
        else:
            events.append(EntryEvent(entry))

    events.sort(key=lambda event: event.sort_key)
    logger.info("Built %d events (%d trades) up to tax year %d", len(events), len(emitted_trades), tax_year)
    return events
