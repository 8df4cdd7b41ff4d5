from __future__ import annotations

from decimal import Decimal

import pytest

from config import AppSettings
from domain.engine import AcbResult, Totals
from domain.pools import Pool
from utils.formatting import format_currency, format_decimal, format_units
from utils.tax_summary import compute_tax_summary, render_tax_summary


def _result() -> AcbResult:
    totals = Totals(
        proceeds=Decimal("120"),
        acb_disposed=Decimal("75"),
        capital_gain=Decimal("45"),
        reward_income=Decimal("28.005"),
        warning_count=2,
    )
    pools = {
        "SOL": Pool(units=Decimal("1.5"), acb=Decimal("225")),
        "CAD": Pool(units=Decimal("10"), acb=Decimal("10")),
        "BTC": Pool(units=Decimal("0"), acb=Decimal("0")),
    }
    return AcbResult(rows=[], totals=totals, pools=pools)


def test_compute_summary_excludes_reporting_fiat() -> None:
    summary = compute_tax_summary(_result(), AppSettings(tax_year=2025, fallback_fx=Decimal("1.3978")))

    assert [pool.asset for pool in summary.pools] == ["BTC", "SOL"]
    sol = summary.pools[1]
    assert sol.average_cost == Decimal("150")
    assert summary.capital_gain == Decimal("45")
    assert summary.warning_count == 2
    assert summary.currency == "CAD"


def test_render_summary(capsys: pytest.CaptureFixture[str]) -> None:
    summary = compute_tax_summary(_result(), AppSettings(tax_year=2025, fallback_fx=Decimal("1.3978")))

    render_tax_summary(summary)
    out = capsys.readouterr().out

    assert "Tax year: 2025" in out
    assert "Fallback FX: 1.3978" in out
    assert "Total proceeds (CAD): 120.00" in out
    assert "Net capital gain/loss (CAD): 45.00" in out
    assert "Total reward income (CAD): 28.01" in out
    assert "Warnings (transfer-in assumed 0 ACB): 2" in out
    sol_line = next(line for line in out.splitlines() if line.startswith("SOL"))
    assert sol_line.split() == ["SOL", "1.50000000", "225.00", "150.00"]


def test_render_summary_without_pools(capsys: pytest.CaptureFixture[str]) -> None:
    result = AcbResult(rows=[], totals=Totals(), pools={})
    render_tax_summary(compute_tax_summary(result, AppSettings()))

    assert "(empty)" in capsys.readouterr().out


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (Decimal("1.3978"), "1.3978"),
        (Decimal("2.000"), "2"),
        (Decimal("1E+2"), "100"),
    ],
)
def test_format_decimal(value: Decimal, expected: str) -> None:
    assert format_decimal(value) == expected


def test_format_currency_and_units_round_half_up() -> None:
    assert format_currency(Decimal("0.125")) == "0.13"
    assert format_currency(Decimal("-0.125")) == "-0.13"
    assert format_units(Decimal("0.000000005")) == "0.00000001"
