from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from config import AppSettings
from domain.engine import AcbResult

from .formatting import format_currency, format_decimal, format_units


@dataclass
class PoolSummary:
    asset: str
    units: Decimal
    acb: Decimal
    average_cost: Decimal


@dataclass
class TaxSummary:
    tax_year: int
    currency: str
    fallback_fx: Decimal
    proceeds: Decimal
    acb_disposed: Decimal
    capital_gain: Decimal
    reward_income: Decimal
    warning_count: int
    pools: list[PoolSummary] = field(default_factory=list)


def compute_tax_summary(result: AcbResult, settings: AppSettings) -> TaxSummary:
    """Year totals plus ending pools, leaving out the reporting fiat itself."""
    pools = [
        PoolSummary(asset=asset, units=pool.units, acb=pool.acb, average_cost=pool.average_cost)
        for asset, pool in sorted(result.pools.items())
        if asset != settings.reporting_currency
    ]
    totals = result.totals
    return TaxSummary(
        tax_year=settings.tax_year,
        currency=settings.reporting_currency,
        fallback_fx=settings.fallback_fx,
        proceeds=totals.proceeds,
        acb_disposed=totals.acb_disposed,
        capital_gain=totals.capital_gain,
        reward_income=totals.reward_income,
        warning_count=totals.warning_count,
        pools=pools,
    )


def render_tax_summary(summary: TaxSummary) -> None:
    currency = summary.currency
    lines = [
        "=== CRYPTO TAX SUMMARY (LEDGER / ACB) ===",
        f"Tax year: {summary.tax_year}",
        f"Fallback FX: {format_decimal(summary.fallback_fx)}",
        f"Total proceeds ({currency}): {format_currency(summary.proceeds)}",
        f"Total ACB disposed ({currency}): {format_currency(summary.acb_disposed)}",
        f"Net capital gain/loss ({currency}): {format_currency(summary.capital_gain)}",
        f"Total reward income ({currency}): {format_currency(summary.reward_income)}",
        f"Warnings (transfer-in assumed 0 ACB): {summary.warning_count}",
        "",
        "Ending pools:",
    ]
    print("\n".join(lines))

    if not summary.pools:
        print("  (empty)")
        return

    units_label = "Units"
    acb_label = f"ACB {currency}"
    avg_label = f"Avg cost {currency}"

    rows = [
        (pool.asset, format_units(pool.units), format_currency(pool.acb), format_currency(pool.average_cost))
        for pool in summary.pools
    ]

    asset_width = max(len("Asset"), max(len(asset) for asset, _, _, _ in rows))
    units_width = max(len(units_label), max(len(units) for _, units, _, _ in rows))
    acb_width = max(len(acb_label), max(len(acb) for _, _, acb, _ in rows))
    avg_width = max(len(avg_label), max(len(avg) for _, _, _, avg in rows))

    header = (
        f"{'Asset':<{asset_width}} "
        f"{units_label:>{units_width}} "
        f"{acb_label:>{acb_width}} "
        f"{avg_label:>{avg_width}}"
    )
    table = [header, "-" * len(header)]
    for asset, units, acb, avg in rows:
        table.append(f"{asset:<{asset_width}} {units:>{units_width}} {acb:>{acb_width}} {avg:>{avg_width}}")
    table.append("-" * len(header))
    print("\n".join(table))
