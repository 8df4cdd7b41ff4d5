from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from .errors import InsufficientHoldingsError


@dataclass
class Pool:
    """Units of one asset and their blended cost basis in the reporting fiat."""

    units: Decimal = Decimal(0)
    acb: Decimal = Decimal(0)

    @property
    def average_cost(self) -> Decimal:
        if self.units == 0:
            return Decimal(0)
        return self.acb / self.units


class PoolLedger:
    def __init__(self) -> None:
        self._pools: dict[str, Pool] = {}

    def get(self, asset: str) -> Pool:
        pool = self._pools.get(asset)
        if pool is None:
            pool = self._pools[asset] = Pool()
        return pool

    def __contains__(self, asset: object) -> bool:
        return asset in self._pools

    def acquire(self, asset: str, units: Decimal, cost: Decimal) -> Pool:
        pool = self.get(asset)
        pool.units += units
        pool.acb += cost
        return pool

    def dispose(self, asset: str, units: Decimal, context: str) -> Decimal:
        """Remove `units` at the current average cost and return the ACB removed."""
        pool = self.get(asset)
        if units < 0:
            raise InsufficientHoldingsError(
                f"negative removal units in {context}",
                context=context,
                requested=units,
                available=pool.units,
            )
        if units > pool.units:
            raise InsufficientHoldingsError(
                f"insufficient units in {context}: remove={units}, pool={pool.units}",
                context=context,
                requested=units,
                available=pool.units,
            )

        disposed = pool.average_cost * units
        pool.units -= units
        pool.acb -= disposed
        if pool.units == 0:
            pool.acb = Decimal(0)
        return disposed

    def snapshot(self, *, exclude: Iterable[str] = ()) -> dict[str, Pool]:
        excluded = set(exclude)
        return {
            asset: Pool(units=pool.units, acb=pool.acb)
            for asset, pool in sorted(self._pools.items())
            if asset not in excluded
        }
