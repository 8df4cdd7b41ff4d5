from __future__ import annotations

import argparse
import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Sequence

from config import AppSettings, config
from domain.engine import AcbEngine, AcbResult
from importers.kraken_importer import KrakenImporter
from utils.audit_report import write_audit_report
from utils.tax_summary import compute_tax_summary, render_tax_summary

logger = logging.getLogger(__name__)


def _decimal_arg(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation as err:
        raise argparse.ArgumentTypeError(f"invalid decimal value: {value}") from err


def default_output_path(tax_year: int) -> Path:
    return Path(f"kraken_tax_report_{tax_year}.csv")


def run(csv_path: Path, output_path: Path, settings: AppSettings) -> AcbResult:
    entries = KrakenImporter(csv_path).load_entries()

    engine = AcbEngine(
        tax_year=settings.tax_year,
        fallback_fx=settings.fallback_fx,
        reporting_currency=settings.reporting_currency,
        secondary_currency=settings.secondary_currency,
    )
    result = engine.process(entries)

    write_audit_report(result.rows, output_path)
    logger.info("Wrote %d report rows to %s", len(result.rows), output_path)

    render_tax_summary(compute_tax_summary(result, settings))
    print(f"\nWrote tax report: {output_path}")
    return result


def build_settings(args: argparse.Namespace) -> AppSettings:
    overrides = {
        "tax_year": args.tax_year,
        "fallback_fx": args.fallback_fx,
        "reporting_currency": args.reporting_currency,
        "secondary_currency": args.secondary_currency,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}
    if not overrides:
        return config()
    return AppSettings(**overrides)


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Compute an average-cost-basis tax report from a Kraken ledger.")
    parser.add_argument("--csv", type=Path, default=Path("kraken_ledgers.csv"))
    parser.add_argument("--tax-year", type=int, default=None)
    parser.add_argument("--output", type=Path, default=None)
    parser.add_argument("--fallback-fx", type=_decimal_arg, default=None)
    parser.add_argument("--reporting-currency", default=None)
    parser.add_argument("--secondary-currency", default=None)
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    settings = build_settings(args)
    output_path = args.output or default_output_path(settings.tax_year)
    run(args.csv, output_path, settings)


if __name__ == "__main__":
    main()
