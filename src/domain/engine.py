from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable

from pydantic import BaseModel

from .errors import LedgerValidationError
from .ledger import EntryEvent, EventKind, LedgerEntry, TradeEvent, TradeGroup
from .pools import Pool, PoolLedger
from .pricing import PriceOracle
from .timeline import build_events, build_trade_groups

logger = logging.getLogger(__name__)

UNPRICED_DEPOSIT_NOTE = "Deposit treated as transfer-in with unknown ACB; assumed 0 {currency} basis"


class ReportRow(BaseModel):
    """One line of the audit trail. Blank numeric fields stay None."""

    time: datetime
    refid: str
    txid: str
    event_type: str
    asset: str
    units_in: Decimal | None = None
    units_out: Decimal | None = None
    proceeds: Decimal | None = None
    acb_disposed: Decimal | None = None
    gain: Decimal | None = None
    income: Decimal | None = None
    acb_added: Decimal | None = None
    pool_units_after: Decimal | None = None
    pool_acb_after: Decimal | None = None
    notes: str = ""


@dataclass
class Totals:
    proceeds: Decimal = Decimal(0)
    acb_disposed: Decimal = Decimal(0)
    capital_gain: Decimal = Decimal(0)
    reward_income: Decimal = Decimal(0)
    warning_count: int = 0

    def record_disposition(self, *, proceeds: Decimal, acb_disposed: Decimal, gain: Decimal) -> None:
        self.proceeds += proceeds
        self.acb_disposed += acb_disposed
        self.capital_gain += gain


@dataclass
class ProcessingContext:
    """Mutable state threaded through a single pass over the timeline."""

    oracle: PriceOracle
    pools: PoolLedger = field(default_factory=PoolLedger)
    totals: Totals = field(default_factory=Totals)
    rows: list[ReportRow] = field(default_factory=list)


@dataclass
class AcbResult:
    rows: list[ReportRow]
    totals: Totals
    pools: dict[str, Pool]


class AcbEngine:
    """Average-cost-basis accounting over a complete ledger."""

    def __init__(
        self,
        *,
        tax_year: int,
        fallback_fx: Decimal,
        reporting_currency: str = "CAD",
        secondary_currency: str = "USD",
    ) -> None:
        self.tax_year = tax_year
        self.fallback_fx = fallback_fx
        self.reporting_currency = reporting_currency
        self.secondary_currency = secondary_currency
        self._entry_handlers: dict[EventKind, Callable[[ProcessingContext, LedgerEntry], None]] = {
            EventKind.REWARD: self._handle_reward,
            EventKind.REALLOCATION: self._handle_reallocation,
            EventKind.DEPOSIT: self._handle_deposit,
            EventKind.WITHDRAWAL: self._handle_withdrawal,
        }

    def new_context(self) -> ProcessingContext:
        oracle = PriceOracle(
            reporting_currency=self.reporting_currency,
            secondary_currency=self.secondary_currency,
            fallback_fx=self.fallback_fx,
        )
        return ProcessingContext(oracle=oracle)

    def process(self, entries: Iterable[LedgerEntry]) -> AcbResult:
        entries = list(entries)
        trade_groups = build_trade_groups(entries, self.tax_year)
        events = build_events(entries, trade_groups, self.tax_year)

        ctx = self.new_context()
        for event in events:
            if isinstance(event, TradeEvent):
                self._handle_trade(ctx, event.group)
            elif isinstance(event, EntryEvent):
                handler = self._entry_handlers.get(event.entry.kind)
                if handler is not None:
                    handler(ctx, event.entry)

        logger.info(
            "Processed %d events: %d report rows, %d warnings",
            len(events),
            len(ctx.rows),
            ctx.totals.warning_count,
        )
        return AcbResult(rows=ctx.rows, totals=ctx.totals, pools=ctx.pools.snapshot())

    def _in_tax_year(self, time: datetime) -> bool:
        return time.year == self.tax_year

    def _row(self, time: datetime, refid: str, txid: str, event_type: str, asset: str, pool: Pool) -> ReportRow:
        return ReportRow(
            time=time,
            refid=refid,
            txid=txid,
            event_type=event_type,
            asset=asset,
            pool_units_after=pool.units,
            pool_acb_after=pool.acb,
        )

    def _handle_trade(self, ctx: ProcessingContext, group: TradeGroup) -> None:
        outflow, inflow = group.split_legs()
        out_units = -outflow.net_delta
        in_units = inflow.net_delta
        oracle = ctx.oracle

        out_value = self._leg_value(
            oracle, outflow.asset, out_units, inflow.asset, in_units, f"trade {group.refid} out leg"
        )
        in_value = self._leg_value(
            oracle, inflow.asset, in_units, outflow.asset, out_units, f"trade {group.refid} in leg"
        )

        if outflow.asset != self.reporting_currency:
            acb_disposed = ctx.pools.dispose(
                outflow.asset,
                out_units,
                f"trade disposition {group.refid} {outflow.asset}",
            )
            gain = in_value - acb_disposed
            if self._in_tax_year(group.time):
                pool = ctx.pools.get(outflow.asset)
                row = self._row(group.time, group.refid, group.txid, "trade_disposition", outflow.asset, pool)
                row.units_out = out_units
                row.proceeds = in_value
                row.acb_disposed = acb_disposed
                row.gain = gain
                ctx.rows.append(row)
                ctx.totals.record_disposition(proceeds=in_value, acb_disposed=acb_disposed, gain=gain)

        if inflow.asset != self.reporting_currency:
            pool = ctx.pools.acquire(inflow.asset, in_units, out_value)
            if self._in_tax_year(group.time):
                row = self._row(group.time, group.refid, group.txid, "trade_acquisition", inflow.asset, pool)
                row.units_in = in_units
                row.acb_added = out_value
                ctx.rows.append(row)

        oracle.learn_from_trade(outflow, inflow)

    def _leg_value(
        self,
        oracle: PriceOracle,
        asset: str,
        units: Decimal,
        counter_asset: str,
        counter_units: Decimal,
        context: str,
    ) -> Decimal:
        """Value one trade leg, preferring fiat on either side over learned prices."""
        value = oracle.fiat_value(asset, units)
        if value is None:
            value = oracle.fiat_value(counter_asset, counter_units)
        if value is None:
            value = oracle.value_in_reporting_currency(asset, units, context)
        return value

    def _handle_reward(self, ctx: ProcessingContext, entry: LedgerEntry) -> None:
        if entry.net_delta <= 0:
            raise LedgerValidationError(f"earn reward must be positive net for refid {entry.refid}")

        income = ctx.oracle.value_in_reporting_currency(entry.asset, entry.net_delta, f"earn reward {entry.refid}")
        if entry.asset == self.reporting_currency:
            return

        pool = ctx.pools.acquire(entry.asset, entry.net_delta, income)
        if self._in_tax_year(entry.time):
            row = self._row(entry.time, entry.refid, entry.txid, "earn_reward_income", entry.asset, pool)
            row.units_in = entry.net_delta
            row.income = income
            row.acb_added = income
            ctx.rows.append(row)
            ctx.totals.reward_income += income

    def _handle_reallocation(self, ctx: ProcessingContext, entry: LedgerEntry) -> None:
        # Moves between spot and earn wallets leave pooled holdings unchanged.
        return None

    def _handle_deposit(self, ctx: ProcessingContext, entry: LedgerEntry) -> None:
        if entry.net_delta <= 0:
            raise LedgerValidationError(f"deposit with non-positive net delta at refid {entry.refid}")
        if entry.asset == self.reporting_currency:
            return

        pool = ctx.pools.acquire(entry.asset, entry.net_delta, Decimal(0))
        if self._in_tax_year(entry.time):
            logger.warning(
                "Deposit refid=%s asset=%s units=%s has unknown cost; assuming zero basis",
                entry.refid,
                entry.asset,
                entry.net_delta,
            )
            row = self._row(entry.time, entry.refid, entry.txid, "warning_unpriced_transfer_in", entry.asset, pool)
            row.units_in = entry.net_delta
            row.notes = UNPRICED_DEPOSIT_NOTE.format(currency=self.reporting_currency)
            ctx.rows.append(row)
            ctx.totals.warning_count += 1

    def _handle_withdrawal(self, ctx: ProcessingContext, entry: LedgerEntry) -> None:
        if entry.amount >= 0:
            raise LedgerValidationError(f"withdrawal amount must be negative at refid {entry.refid}")
        if entry.asset == self.reporting_currency:
            return

        ctx.pools.dispose(entry.asset, -entry.amount, f"withdrawal principal {entry.refid} {entry.asset}")
        if entry.fee <= 0:
            return

        acb_fee = ctx.pools.dispose(entry.asset, entry.fee, f"withdrawal fee {entry.refid} {entry.asset}")
        gain = -acb_fee
        if self._in_tax_year(entry.time):
            pool = ctx.pools.get(entry.asset)
            row = self._row(entry.time, entry.refid, entry.txid, "withdrawal_fee_disposition", entry.asset, pool)
            row.units_out = entry.fee
            row.proceeds = Decimal(0)
            row.acb_disposed = acb_fee
            row.gain = gain
            ctx.rows.append(row)
            ctx.totals.record_disposition(proceeds=Decimal(0), acb_disposed=acb_fee, gain=gain)
