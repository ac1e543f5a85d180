from decimal import Decimal

import pytest

from curvepool.config import EngineConfig
from curvepool.pool_types import DividendStrategy
from curvepool.sandbox import Sandbox


def scenario_config(**overrides) -> EngineConfig:
    params = dict(
        dividend_fee=Decimal("0.05"),
        jackpot_fee=Decimal("0.02"),
        initial_price=Decimal("1"),
        max_supply=Decimal("1000000"),
        curve_change_fraction=Decimal("0.5"),
        price_amplifier=Decimal("1"),
        jackpot_threshold=Decimal("0.5"),
        jackpot_threshold_time=3600,
    )
    params.update(overrides)
    return EngineConfig(**params)


@pytest.fixture
def config():
    return scenario_config()


@pytest.fixture
def sandbox(config):
    return Sandbox(config)


@pytest.fixture
def engine(sandbox):
    return sandbox.engine


@pytest.fixture(params=[DividendStrategy.WEIGHTED, DividendStrategy.UNASSIGNED_POOL],
                ids=["weighted", "unassigned_pool"])
def any_strategy_sandbox(request):
    return Sandbox(scenario_config(dividend_strategy=request.param))
