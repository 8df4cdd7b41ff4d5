from __future__ import annotations

from decimal import Decimal
from functools import cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    tax_year: int = 2025
    fallback_fx: Decimal = Decimal("1.3978")
    reporting_currency: str = "CAD"
    secondary_currency: str = "USD"

    model_config = SettingsConfigDict(
        env_prefix="ACB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    @field_validator("reporting_currency", "secondary_currency", mode="before")
    @classmethod
    def _uppercase(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("fallback_fx")
    @classmethod
    def _positive_fx(cls, value: Decimal) -> Decimal:
        if value <= 0:
            raise ValueError("fallback_fx must be > 0")
        return value

    @model_validator(mode="after")
    def _distinct_currencies(self) -> AppSettings:
        if self.reporting_currency == self.secondary_currency:
            raise ValueError("reporting_currency and secondary_currency must differ")
        return self


@cache
def config() -> AppSettings:
    return AppSettings()
