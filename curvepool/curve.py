"""
curvepool - Bonding curve

Augmented constant product:

    product = (R + F(S)) * (S_max - S)

R is the real reserve, S the circulating supply and F(S) the fake reserve
that sets the initial price and pumps it once S passes S_c:

    F(S) = R0                                      S <= S_c
    F(S) = R0 * (1 + k * (S - S_c) / (S_max - S_c))  S >  S_c

Inputs must be positive; the engine rejects zero amounts before calling in.
"""

from decimal import Decimal
from typing import Tuple

from .decimals import ONE, to_native, wide_precision
from .pool_types import CurveConfig


class CurveModel:
    """Pure price/quantity functions over a CurveConfig."""

    def __init__(self, config: CurveConfig):
        self.config = config

    @wide_precision
    def fake_reserve(self, supply: Decimal) -> Decimal:
        """F(S), kept in wide precision."""
        c = self.config
        if supply <= c.curve_change_supply:
            return c.fake_initial_reserve
        return c.fake_initial_reserve * (
            ONE + c.price_amplifier * (supply - c.curve_change_supply) /
            (c.max_supply - c.curve_change_supply)
        )

    @wide_precision
    def constant_product(self, reserve: Decimal, supply: Decimal) -> Tuple[Decimal, Decimal]:
        """
        Returns:
            (product, reserve + F(S)) in wide precision
        """
        total_reserve = reserve + self.fake_reserve(supply)
        return total_reserve * (self.config.max_supply - supply), total_reserve

    @wide_precision
    def quantity_for_value(self, reserve: Decimal, supply: Decimal, value: Decimal) -> Decimal:
        """Units minted when `value` (after fees) enters the reserve."""
        product, total_reserve = self.constant_product(reserve, supply)
        return to_native(
            self.config.max_supply - supply - product / (total_reserve + value)
        )

    @wide_precision
    def value_for_quantity(self, reserve: Decimal, supply: Decimal, quantity: Decimal) -> Decimal:
        """Value (before fees) leaving the reserve when `quantity` units are burned."""
        product, total_reserve = self.constant_product(reserve, supply)
        units_in_pool = self.config.max_supply - (supply - quantity)
        return to_native(total_reserve - product / units_in_pool)

    @wide_precision
    def spot_price(self, reserve: Decimal, supply: Decimal) -> Decimal:
        """Marginal price at the current point of the curve."""
        _, total_reserve = self.constant_product(reserve, supply)
        return to_native(total_reserve / (self.config.max_supply - supply))

    @staticmethod
    @wide_precision
    def average_price(value: Decimal, quantity: Decimal) -> Decimal:
        return to_native(value / quantity)
