from __future__ import annotations

import csv
from decimal import Decimal
from pathlib import Path

import pytest
from pydantic import ValidationError

from config import AppSettings, config
from main import main
from tests.helpers.ledger_rows import ledger_row, write_csv


@pytest.fixture(autouse=True)
def _clear_settings_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in ("ACB_TAX_YEAR", "ACB_FALLBACK_FX", "ACB_REPORTING_CURRENCY", "ACB_SECONDARY_CURRENCY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    config.cache_clear()


def _ledger(tmp_path: Path) -> Path:
    return write_csv(
        tmp_path / "ledger.csv",
        [
            ledger_row(
                txid="T1",
                refid="R1",
                time="2024-12-01 00:00:00",
                tx_type="trade",
                subtype="tradespot",
                asset="CAD",
                amount="-140.0",
            ),
            ledger_row(
                txid="T2",
                refid="R1",
                time="2024-12-01 00:00:00",
                tx_type="trade",
                subtype="tradespot",
                asset="SOL",
                amount="1.0",
            ),
            ledger_row(
                txid="T3",
                refid="R2",
                time="2025-01-01 00:00:00.5",
                tx_type="withdrawal",
                asset="SOL",
                amount="-0.5",
                fee="0.1",
            ),
            ledger_row(
                txid="T4",
                refid="R3",
                time="2025-02-01 00:00:00",
                tx_type="deposit",
                asset="ETH",
                amount="0.25",
            ),
        ],
    )


def test_settings_defaults() -> None:
    settings = AppSettings()

    assert settings.tax_year == 2025
    assert settings.fallback_fx == Decimal("1.3978")
    assert settings.reporting_currency == "CAD"
    assert settings.secondary_currency == "USD"


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACB_TAX_YEAR", "2024")
    monkeypatch.setenv("ACB_REPORTING_CURRENCY", "eur")

    settings = config()

    assert settings.tax_year == 2024
    assert settings.reporting_currency == "EUR"


def test_settings_reject_same_currencies() -> None:
    with pytest.raises(ValidationError):
        AppSettings(reporting_currency="usd", secondary_currency="USD")


def test_settings_reject_non_positive_fx() -> None:
    with pytest.raises(ValidationError):
        AppSettings(fallback_fx=Decimal("0"))


def test_cli_writes_report_and_summary(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    csv_path = _ledger(tmp_path)

    main(["--csv", str(csv_path), "--tax-year", "2025", "--fallback-fx", "1.4"])

    output = tmp_path / "kraken_tax_report_2025.csv"
    with output.open(encoding="utf-8", newline="") as handle:
        records = list(csv.DictReader(handle))

    assert [record["event_type"] for record in records] == [
        "withdrawal_fee_disposition",
        "warning_unpriced_transfer_in",
    ]
    assert records[0]["time"] == "2025-01-01T00:00:00.500000+00:00"
    assert records[0]["gain"] == "-14.00"
    assert records[0]["pool_units_after"] == "0.40000000"

    out = capsys.readouterr().out
    assert "Net capital gain/loss (CAD): -14.00" in out
    assert "Warnings (transfer-in assumed 0 ACB): 1" in out
    assert f"Wrote tax report: {Path('kraken_tax_report_2025.csv')}" in out


def test_cli_output_override(tmp_path: Path) -> None:
    csv_path = _ledger(tmp_path)
    output = tmp_path / "reports" / "custom.csv"

    main(["--csv", str(csv_path), "--output", str(output)])

    assert output.exists()


def test_cli_rejects_bad_fallback_fx(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        main(["--csv", str(tmp_path / "ledger.csv"), "--fallback-fx", "abc"])


def test_cli_missing_csv(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError, match="CSV not found"):
        main(["--csv", str(tmp_path / "nope.csv")])
