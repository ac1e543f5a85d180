"""
curvepool - Data Types

Holder, epoch, ticket and event structures shared by the engine components.
"""

from dataclasses import dataclass, field, asdict
from decimal import Decimal
from enum import Enum
from typing import Optional
import json

from .decimals import ZERO


class DividendStrategy(Enum):
    """How fee dividends are spread over holders."""
    WEIGHTED = "weighted"
    UNASSIGNED_POOL = "unassigned_pool"


class ThresholdState(Enum):
    """Price position relative to jackpot_threshold x ATH."""
    ABOVE_THRESHOLD = "above"
    BELOW_THRESHOLD = "below"


class TicketKind(Enum):
    """DEPOSIT = finalize a buy, WITHDRAW = move units out to sell"""
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"


def _plain(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(frozen=True)
class CurveConfig:
    """
    Bonding curve parameters.

    Structure:
      - max_supply: S_max, units that can ever circulate
      - fake_initial_reserve: R0 = initial_price x S_max
      - curve_change_supply: S_c, supply where the amplified phase starts
      - price_amplifier: k, how much the fake reserve grows up to S_max
    """
    max_supply: Decimal
    fake_initial_reserve: Decimal
    curve_change_supply: Decimal
    price_amplifier: Decimal


@dataclass
class Holder:
    """
    Accounting record for one external account.

    amount must equal the externally custodied balance whenever no ticket
    is in flight. Records are never deleted, zero-amount holders keep their
    dividend and jackpot bookkeeping.
    """
    holder_id: str
    amount: Decimal = ZERO
    dividend_index: Decimal = ZERO
    accrued_dividends: Decimal = ZERO
    next_jackpot_epoch: int = 1
    accrued_jackpot: Decimal = ZERO

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {k: _plain(v) for k, v in asdict(self).items()}

    @classmethod
    def from_dict(cls, data: dict) -> "Holder":
        """Create Holder from dictionary."""
        return cls(
            holder_id=data["holder_id"],
            amount=Decimal(data.get("amount", "0")),
            dividend_index=Decimal(data.get("dividend_index", "0")),
            accrued_dividends=Decimal(data.get("accrued_dividends", "0")),
            next_jackpot_epoch=int(data.get("next_jackpot_epoch", 1)),
            accrued_jackpot=Decimal(data.get("accrued_jackpot", "0")),
        )


@dataclass(frozen=True)
class JackpotEpoch:
    """Closed jackpot period. Never mutated after creation."""
    epoch_number: int
    prize_per_unit: Decimal
    jackpot_amount: Decimal = ZERO
    total_supply: Decimal = ZERO
    closed_at: int = 0

    def to_dict(self) -> dict:
        return {k: _plain(v) for k, v in asdict(self).items()}


@dataclass
class DepositTicket:
    """
    Single-use capability returned by buy().

    It lets the minted units be deposited into the buyer's account and must
    be handed back to finalize_buy() in the same transaction.
    """
    ticket_id: int
    transaction_id: str
    quantity: Decimal
    price: Decimal
    fee_dividend: Decimal
    consumed: bool = False

    @property
    def kind(self) -> TicketKind:
        return TicketKind.DEPOSIT


@dataclass
class WithdrawTicket:
    """Single-use capability returned by begin_sell(), consumed by sell()."""
    ticket_id: int
    transaction_id: str
    consumed: bool = False

    @property
    def kind(self) -> TicketKind:
        return TicketKind.WITHDRAW


@dataclass(frozen=True)
class Quote:
    """Result of a curve computation that has not been executed."""
    side: str
    value: Decimal           # gross value paid or received before fees
    quantity: Decimal
    price: Decimal
    fee_dividend: Decimal
    fee_jackpot: Decimal
    net: Decimal             # value entering the pool (buy) or paid out (sell)

    def to_dict(self) -> dict:
        return {k: _plain(v) for k, v in asdict(self).items()}


# ═══════════════════════════════════════════════════════════════════════════════
# EVENTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PoolEvent:
    """Base class for observable occurrences."""

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        data = {k: _plain(v) for k, v in asdict(self).items()}
        data["event"] = self.name
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)


@dataclass(frozen=True)
class PurchaseCompleted(PoolEvent):
    holder_id: str
    price: Decimal
    quantity: Decimal
    current_jackpot_amount: Decimal
    dividend_index: Decimal
    ath: Decimal
    accrued_dividends: Decimal
    accrued_jackpot: Decimal


@dataclass(frozen=True)
class SaleCompleted(PoolEvent):
    holder_id: str
    price: Decimal
    quantity: Decimal
    current_jackpot_amount: Decimal
    dividend_index: Decimal
    accrued_dividends: Decimal
    accrued_jackpot: Decimal


@dataclass(frozen=True)
class DividendsClaimed(PoolEvent):
    holder_id: str
    dividends: Decimal
    jackpot: Decimal


@dataclass(frozen=True)
class JackpotEpochClosed(PoolEvent):
    epoch_number: int
    jackpot_amount: Decimal
    prize_per_unit: Decimal


@dataclass(frozen=True)
class AirdropCompleted(PoolEvent):
    quantity: Decimal
    delivered: Decimal
    burned: Decimal
    dividend_index: Decimal
    recipients: int = 0
    failed: Optional[tuple] = field(default=None)
