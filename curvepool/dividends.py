"""
curvepool - Dividend ledger

Fee dividends are tracked with a reward index. Two strategies share one
interface; the engine calls the same hooks in the same order whatever the
strategy:

    buy:   touch -> distribute(fee) -> add_units -> touch
    sell:  touch -> remove_units -> distribute(fee) -> touch
    claim: claimable -> (vaults pay out) -> record_claim

WeightedAccrualLedger (default)
    dividends_per_unit grows by fee / supply on every distribution. Touching a
    holder accrues amount * (dividends_per_unit - holder.dividend_index).

UnassignedPoolLedger
    Fees pile up in `unassigned`. Selling realizes the seller's per-unit share
    above their index for the withdrawn units only; buying moves the buyer's
    index to the amount-weighted average of the old index and the current
    per-unit pool value. A claim pays out only what sales have
    already realized; open positions keep their share in `unassigned`.

Invariant (both): distributed == accrued + pending + claimed (+ carry), up to
truncation of each index step to native precision.
"""

import logging
from decimal import Decimal
from typing import Iterable

from .decimals import ZERO, to_native, wide_precision, fmt
from .pool_types import DividendStrategy, Holder

log = logging.getLogger(__name__)


class DividendLedger:
    """Common bookkeeping; subclasses implement the index semantics."""

    strategy: DividendStrategy

    def __init__(self):
        self.total_distributed = ZERO   # every fee handed to distribute()
        self.total_claimed = ZERO

    # Hooks -----------------------------------------------------------------

    def current_index(self, supply: Decimal) -> Decimal:
        """Index a brand new holder starts from."""
        raise NotImplementedError

    def touch(self, holder: Holder) -> None:
        """Bring holder up to date with the global index."""
        raise NotImplementedError

    def distribute(self, fee: Decimal, supply: Decimal) -> None:
        """Spread `fee` over the `supply` units currently circulating."""
        raise NotImplementedError

    def add_units(self, holder: Holder, quantity: Decimal, supply: Decimal) -> None:
        raise NotImplementedError

    def remove_units(self, holder: Holder, quantity: Decimal, supply: Decimal) -> None:
        """`supply` is the circulating supply before the units are burned."""
        raise NotImplementedError

    def pending(self, holder: Holder, supply: Decimal) -> Decimal:
        """Entitlement not yet moved into holder.accrued_dividends."""
        raise NotImplementedError

    def undistributed(self) -> Decimal:
        """Fees held by the ledger that no holder has a claim on yet."""
        return ZERO

    # Shared ----------------------------------------------------------------

    def claimable(self, holder: Holder, supply: Decimal) -> Decimal:
        """Bring holder up to date and return what a claim would pay.

        Only the holder record is touched, the ledger totals are not.
        """
        self.touch(holder)
        return holder.accrued_dividends

    def record_claim(self, holder: Holder, amount: Decimal) -> None:
        """Book a payout made from the dividend vault."""
        holder.accrued_dividends -= amount
        self.total_claimed += amount

    def withdraw(self, holder: Holder, supply: Decimal) -> Decimal:
        """Settle and zero the holder's accrued dividends, return the amount."""
        amount = self.claimable(holder, supply)
        self.record_claim(holder, amount)
        return amount

    @wide_precision
    def outstanding(self, holders: Iterable[Holder], supply: Decimal) -> Decimal:
        """Sum of everything owed to holders plus what is still unassigned."""
        owed = ZERO
        for holder in holders:
            owed += holder.accrued_dividends + self.pending(holder, supply)
        return owed + self.undistributed()

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy.value,
            "total_distributed": str(self.total_distributed),
            "total_claimed": str(self.total_claimed),
        }


class WeightedAccrualLedger(DividendLedger):
    """Per-operation accrual against a global dividends_per_unit index."""

    strategy = DividendStrategy.WEIGHTED

    def __init__(self):
        super().__init__()
        self.dividends_per_unit = ZERO
        # Fees collected while nothing circulated; added to the next distribution
        self.carry = ZERO

    def current_index(self, supply: Decimal) -> Decimal:
        return self.dividends_per_unit

    @wide_precision
    def touch(self, holder: Holder) -> None:
        holder.accrued_dividends += to_native(
            holder.amount * (self.dividends_per_unit - holder.dividend_index))
        holder.dividend_index = self.dividends_per_unit

    @wide_precision
    def distribute(self, fee: Decimal, supply: Decimal) -> None:
        self.total_distributed += fee
        if supply <= ZERO:
            self.carry += fee
            log.debug(f"No supply, {fmt(fee)} carried to next distribution")
            return
        amount = fee + self.carry
        self.carry = ZERO
        self.dividends_per_unit += to_native(amount / supply)
        log.debug(f"dividends_per_unit -> {self.dividends_per_unit}")

    def add_units(self, holder: Holder, quantity: Decimal, supply: Decimal) -> None:
        holder.amount += quantity

    def remove_units(self, holder: Holder, quantity: Decimal, supply: Decimal) -> None:
        holder.amount -= quantity

    @wide_precision
    def pending(self, holder: Holder, supply: Decimal) -> Decimal:
        return to_native(holder.amount * (self.dividends_per_unit - holder.dividend_index))

    def undistributed(self) -> Decimal:
        return self.carry

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["dividends_per_unit"] = str(self.dividends_per_unit)
        data["carry"] = str(self.carry)
        return data


class UnassignedPoolLedger(DividendLedger):
    """Fees stay unassigned until a holder sells."""

    strategy = DividendStrategy.UNASSIGNED_POOL

    def __init__(self):
        super().__init__()
        self.unassigned = ZERO

    @wide_precision
    def per_unit(self, supply: Decimal) -> Decimal:
        if supply <= ZERO:
            return ZERO
        return to_native(self.unassigned / supply)

    def current_index(self, supply: Decimal) -> Decimal:
        return self.per_unit(supply)

    def touch(self, holder: Holder) -> None:
        # Nothing is realized by a plain touch
        pass

    def distribute(self, fee: Decimal, supply: Decimal) -> None:
        self.total_distributed += fee
        self.unassigned += fee

    @wide_precision
    def add_units(self, holder: Holder, quantity: Decimal, supply: Decimal) -> None:
        new_amount = holder.amount + quantity
        holder.dividend_index = to_native(
            (holder.amount * holder.dividend_index + quantity * self.per_unit(supply)) /
            new_amount)
        holder.amount = new_amount

    @wide_precision
    def remove_units(self, holder: Holder, quantity: Decimal, supply: Decimal) -> None:
        self._realize(holder, quantity, supply)
        holder.amount -= quantity

    @wide_precision
    def _realize(self, holder: Holder, quantity: Decimal, supply: Decimal) -> None:
        gain = self.per_unit(supply) - holder.dividend_index
        if gain <= ZERO or quantity <= ZERO:
            return
        realized = min(to_native(quantity * gain), self.unassigned)
        self.unassigned -= realized
        holder.accrued_dividends += realized
        log.debug(f"Realized {fmt(realized)} for {holder.holder_id}")

    @wide_precision
    def pending(self, holder: Holder, supply: Decimal) -> Decimal:
        # Pending is not ring-fenced; it is a slice of `unassigned`
        return ZERO

    def undistributed(self) -> Decimal:
        return self.unassigned

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["unassigned"] = str(self.unassigned)
        return data


def make_ledger(strategy: DividendStrategy) -> DividendLedger:
    if strategy is DividendStrategy.UNASSIGNED_POOL:
        return UnassignedPoolLedger()
    return WeightedAccrualLedger()
