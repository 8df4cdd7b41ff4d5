import pytest

from domain.engine import AcbEngine
from domain.pools import PoolLedger
from domain.pricing import PriceOracle
from tests.constants import FALLBACK_FX, TAX_YEAR


@pytest.fixture(scope="function")
def engine() -> AcbEngine:
    return AcbEngine(tax_year=TAX_YEAR, fallback_fx=FALLBACK_FX)


@pytest.fixture(scope="function")
def oracle() -> PriceOracle:
    return PriceOracle(reporting_currency="CAD", secondary_currency="USD", fallback_fx=FALLBACK_FX)


@pytest.fixture(scope="function")
def pools() -> PoolLedger:
    return PoolLedger()
