"""
curvepool - Engine configuration

Everything the engine needs at construction time. validate() runs before any
engine component is built, so a bad configuration never yields a partial
engine.
"""

import json
from dataclasses import dataclass, asdict
from decimal import Decimal
from pathlib import Path
from typing import Union

from .decimals import ZERO, ONE, to_decimal, to_native, wide_precision
from .errors import InvalidConfiguration
from .pool_types import CurveConfig, DividendStrategy

# =============================================================================
# DEFAULTS
# =============================================================================

DEFAULT_DIVIDEND_FEE = Decimal("0.05")
DEFAULT_JACKPOT_FEE = Decimal("0.02")
DEFAULT_INITIAL_PRICE = Decimal("1")
DEFAULT_MAX_SUPPLY = Decimal("1000000")
DEFAULT_CURVE_CHANGE_FRACTION = Decimal("0.5")
DEFAULT_PRICE_AMPLIFIER = Decimal("1")
DEFAULT_JACKPOT_THRESHOLD = Decimal("0.5")
DEFAULT_JACKPOT_THRESHOLD_TIME = 3600   # seconds below threshold before payout

_DECIMAL_FIELDS = (
    "dividend_fee", "jackpot_fee", "initial_price", "max_supply",
    "curve_change_fraction", "price_amplifier", "jackpot_threshold",
)


@dataclass
class EngineConfig:
    # Fractions of every trade's value (0-1 range)
    dividend_fee: Decimal = DEFAULT_DIVIDEND_FEE
    jackpot_fee: Decimal = DEFAULT_JACKPOT_FEE

    # Curve
    initial_price: Decimal = DEFAULT_INITIAL_PRICE
    max_supply: Decimal = DEFAULT_MAX_SUPPLY
    curve_change_fraction: Decimal = DEFAULT_CURVE_CHANGE_FRACTION
    price_amplifier: Decimal = DEFAULT_PRICE_AMPLIFIER

    # Jackpot trigger
    jackpot_threshold: Decimal = DEFAULT_JACKPOT_THRESHOLD
    jackpot_threshold_time: int = DEFAULT_JACKPOT_THRESHOLD_TIME

    dividend_strategy: DividendStrategy = DividendStrategy.WEIGHTED

    def __post_init__(self):
        try:
            for name in _DECIMAL_FIELDS:
                setattr(self, name, to_decimal(getattr(self, name)))
            self.jackpot_threshold_time = int(self.jackpot_threshold_time)
            if not isinstance(self.dividend_strategy, DividendStrategy):
                self.dividend_strategy = DividendStrategy(self.dividend_strategy)
        except (ValueError, ArithmeticError, TypeError) as e:
            raise InvalidConfiguration(f"Malformed config: {e}")

    def validate(self) -> "EngineConfig":
        """Raise InvalidConfiguration if any parameter is out of range."""
        if self.dividend_fee < ZERO:
            raise InvalidConfiguration(f"Wrong dividend_fee: {self.dividend_fee}")
        if self.jackpot_fee < ZERO:
            raise InvalidConfiguration(f"Wrong jackpot_fee: {self.jackpot_fee}")
        if self.dividend_fee + self.jackpot_fee >= ONE:
            raise InvalidConfiguration("dividend_fee + jackpot_fee >= 100%")
        if self.initial_price < ZERO:
            raise InvalidConfiguration(f"Wrong initial_price: {self.initial_price}")
        if self.max_supply <= ZERO:
            raise InvalidConfiguration(f"Wrong max_supply: {self.max_supply}")
        if not ZERO < self.curve_change_fraction < ONE:
            raise InvalidConfiguration(
                f"Wrong curve_change_fraction: {self.curve_change_fraction}")
        if self.price_amplifier < ZERO:
            raise InvalidConfiguration(f"Wrong price_amplifier: {self.price_amplifier}")
        if not ZERO < self.jackpot_threshold < ONE:
            raise InvalidConfiguration(f"Wrong jackpot_threshold: {self.jackpot_threshold}")
        if self.jackpot_threshold_time < 0:
            raise InvalidConfiguration(
                f"Wrong jackpot_threshold_time: {self.jackpot_threshold_time}")
        return self

    @wide_precision
    def curve_config(self) -> CurveConfig:
        """Derive the curve parameters (S_c and R0 are absolute amounts)."""
        return CurveConfig(
            max_supply=self.max_supply,
            fake_initial_reserve=self.initial_price * self.max_supply,
            curve_change_supply=to_native(self.curve_change_fraction * self.max_supply),
            price_amplifier=self.price_amplifier,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        for name in _DECIMAL_FIELDS:
            data[name] = str(data[name])
        data["dividend_strategy"] = self.dividend_strategy.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "EngineConfig":
        """Build from a plain dict; unknown keys are an error."""
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise InvalidConfiguration(f"Unknown config keys: {sorted(unknown)}")
        return cls(**data)

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "EngineConfig":
        with open(path, "r") as f:
            return cls.from_dict(json.load(f, parse_float=Decimal))
