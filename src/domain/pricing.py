from __future__ import annotations

import logging
from decimal import Decimal

from .errors import MissingValuationError
from .ledger import LedgerEntry

logger = logging.getLogger(__name__)


class PriceOracle:
    """Running valuation state learned from the trades seen so far.

    Prices are never fetched: every rate is the ratio of the two legs of an
    observed trade. The secondary fiat is converted through the last seen
    secondary/reporting trade, or `fallback_fx` until one has been seen.
    """

    def __init__(self, *, reporting_currency: str, secondary_currency: str, fallback_fx: Decimal) -> None:
        self.reporting_currency = reporting_currency
        self.secondary_currency = secondary_currency
        self.fallback_fx = fallback_fx
        self.last_fx: Decimal | None = None
        self._secondary_prices: dict[str, Decimal] = {}
        self._reporting_prices: dict[str, Decimal] = {}

    def fx_rate(self) -> Decimal:
        """Reporting-fiat units per one secondary-fiat unit."""
        if self.last_fx is None:
            return self.fallback_fx
        return self.last_fx

    def is_fiat(self, asset: str) -> bool:
        return asset in (self.reporting_currency, self.secondary_currency)

    def fiat_value(self, asset: str, units: Decimal) -> Decimal | None:
        """Value of a fiat amount in the reporting fiat, None for any other asset."""
        if asset == self.reporting_currency:
            return units
        if asset == self.secondary_currency:
            return units * self.fx_rate()
        return None

    def price_of(self, asset: str) -> Decimal | None:
        return self._reporting_prices.get(asset)

    def secondary_price_of(self, asset: str) -> Decimal | None:
        return self._secondary_prices.get(asset)

    def value_in_reporting_currency(self, asset: str, units: Decimal, context: str) -> Decimal:
        if units == 0:
            return Decimal(0)

        value = self.fiat_value(asset, units)
        if value is not None:
            return value

        price = self._reporting_prices.get(asset)
        if price is not None:
            return units * price

        secondary_price = self._secondary_prices.get(asset)
        if secondary_price is not None:
            return units * secondary_price * self.fx_rate()

        raise MissingValuationError(asset=asset, context=context)

    def learn_from_trade(self, outflow: LedgerEntry, inflow: LedgerEntry) -> None:
        out_units = -outflow.net_delta
        in_units = inflow.net_delta
        if out_units <= 0 or in_units <= 0:
            return

        reporting = self.reporting_currency
        secondary = self.secondary_currency
        units_by_asset = {outflow.asset: out_units, inflow.asset: in_units}

        if set(units_by_asset) == {reporting, secondary}:
            fx = units_by_asset[reporting] / units_by_asset[secondary]
            self.last_fx = fx
            self._reporting_prices[secondary] = fx
            logger.debug("Learned %s/%s rate %s", secondary, reporting, fx)

        for quote, prices in ((secondary, self._secondary_prices), (reporting, self._reporting_prices)):
            other = reporting if quote == secondary else secondary
            if outflow.asset == quote and inflow.asset != other:
                prices[inflow.asset] = out_units / in_units
                logger.debug("Learned %s price %s %s", inflow.asset, prices[inflow.asset], quote)
            if inflow.asset == quote and outflow.asset != other:
                prices[outflow.asset] = in_units / out_units
                logger.debug("Learned %s price %s %s", outflow.asset, prices[outflow.asset], quote)

        fx = self.fx_rate()
        for asset, secondary_price in self._secondary_prices.items():
            self._reporting_prices[asset] = secondary_price * fx
