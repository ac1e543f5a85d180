from decimal import Decimal

import pytest

from curvepool.curve import CurveModel
from curvepool.decimals import NATIVE_UNIT

from conftest import scenario_config


def make_curve(**overrides):
    return CurveModel(scenario_config(**overrides).curve_config())


def test_curve_config_is_absolute():
    curve = make_curve()
    assert curve.config.fake_initial_reserve == Decimal("1000000")
    assert curve.config.curve_change_supply == Decimal("500000")


def test_initial_spot_price_is_initial_price():
    assert make_curve().spot_price(Decimal(0), Decimal(0)) == Decimal(1)
    assert make_curve(initial_price="2").spot_price(Decimal(0), Decimal(0)) == Decimal(2)


def test_fake_reserve_flat_before_phase_change():
    curve = make_curve()
    assert curve.fake_reserve(Decimal(0)) == Decimal("1000000")
    assert curve.fake_reserve(Decimal("500000")) == Decimal("1000000")


def test_fake_reserve_continuous_at_phase_change():
    curve = make_curve()
    just_after = curve.fake_reserve(Decimal("500000") + NATIVE_UNIT)
    assert Decimal("1000000") < just_after < Decimal("1000000") + Decimal("1e-9")


def test_fake_reserve_amplified_at_max_supply():
    assert make_curve().fake_reserve(Decimal("1000000")) == Decimal("2000000")
    assert make_curve(price_amplifier="3").fake_reserve(Decimal("1000000")) == Decimal("4000000")


def test_spot_price_increases_with_each_buy():
    curve = make_curve()
    reserve, supply = Decimal(0), Decimal(0)
    last = curve.spot_price(reserve, supply)
    for _ in range(30):
        value = Decimal("50000")
        quantity = curve.quantity_for_value(reserve, supply, value)
        assert quantity > 0
        reserve += value
        supply += quantity
        price = curve.spot_price(reserve, supply)
        assert price > last
        last = price
    # Walked past the phase change
    assert supply > curve.config.curve_change_supply


@pytest.mark.parametrize("supply", ["0", "1000", "499999", "600000", "999000"])
def test_spot_price_rises_with_reserve_at_fixed_supply(supply):
    curve = make_curve()
    supply = Decimal(supply)
    prices = [curve.spot_price(Decimal(r), supply) for r in ("0", "1", "1000", "250000", "5000000")]
    assert all(a < b for a, b in zip(prices, prices[1:]))


def test_same_value_buys_fewer_units_later():
    curve = make_curve()
    value = Decimal("1000")
    first = curve.quantity_for_value(Decimal(0), Decimal(0), value)
    second = curve.quantity_for_value(value, first, value)
    assert second < first


def test_selling_back_never_pays_more_than_paid():
    curve = make_curve()
    value = Decimal("930")
    quantity = curve.quantity_for_value(Decimal(0), Decimal(0), value)
    back = curve.value_for_quantity(value, quantity, quantity)
    assert Decimal(0) < back <= value
    assert value - back < Decimal("1e-9")


def test_average_price_truncates():
    assert CurveModel.average_price(Decimal(1), Decimal(3)) == Decimal("0.333333333333333333")
