from __future__ import annotations

from decimal import Decimal


class AcbError(ValueError):
    """Base class for errors that abort an ACB run."""


class LedgerStructureError(AcbError):
    """Malformed trade groups (leg count, timestamps, leg signs)."""


class LedgerValidationError(AcbError):
    """Entry violates the semantics of its category."""


class MissingValuationError(AcbError):
    def __init__(self, *, asset: str, context: str) -> None:
        self.asset = asset
        self.context = context
        super().__init__(f"missing valuation price for {asset} in {context}")


class InsufficientHoldingsError(AcbError):
    def __init__(
        self,
        message: str,
        *,
        context: str,
        requested: Decimal,
        available: Decimal,
    ) -> None:
        super().__init__(message)
        self.context = context
        self.requested = requested
        self.available = available
