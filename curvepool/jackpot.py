"""
curvepool - Jackpot scheduler

A share of every trade funds the open jackpot epoch. The epoch closes when the
trade price has stayed at or below jackpot_threshold x ATH for at least
jackpot_threshold_time seconds and another trade happens:

    ABOVE_THRESHOLD --(price <= t*ath)--> BELOW_THRESHOLD(since=now)
    BELOW_THRESHOLD --(price > t*ath)---> ABOVE_THRESHOLD
    BELOW_THRESHOLD --(now - since >= dt, price <= t*ath)--> close epoch,
                                                            ABOVE_THRESHOLD

Closed epochs keep only a prize per unit. Holders are paid lazily: on their
next touch they collect amount x prize_per_unit for every epoch they have not
seen yet, using their amount at catch-up time for all of them.
"""

import logging
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from .decimals import ZERO, to_native, wide_precision, fmt
from .pool_types import Holder, JackpotEpoch, JackpotEpochClosed, ThresholdState

log = logging.getLogger(__name__)


class JackpotScheduler:
    """ATH tracking, threshold timer and the append-only epoch list."""

    def __init__(self, threshold: Decimal, threshold_time: int,
                 on_close: Optional[Callable[[JackpotEpochClosed], None]] = None):
        """
        Args:
            threshold: Fraction of ATH (0-1 range) below which the timer runs
            threshold_time: Seconds the price must stay below before payout
            on_close: Called with the JackpotEpochClosed event
        """
        self.threshold = threshold
        self.threshold_time = threshold_time
        self.on_close = on_close

        self.ath = ZERO
        self.below_since: Optional[int] = None
        self.current_epoch = 1
        self.current_amount = ZERO
        self.epochs: Dict[int, JackpotEpoch] = {}

    @property
    def state(self) -> ThresholdState:
        if self.below_since is None:
            return ThresholdState.ABOVE_THRESHOLD
        return ThresholdState.BELOW_THRESHOLD

    def deposit(self, amount: Decimal) -> None:
        """Add a trade's jackpot fee to the open epoch."""
        self.current_amount += amount

    @wide_precision
    def observe_price(self, price: Decimal, now: int, supply: Decimal) -> Optional[JackpotEpoch]:
        """
        Run the threshold transition for a trade at `price`.

        Args:
            price: Average price of the trade
            now: Current time in seconds
            supply: Circulating supply after the trade

        Returns:
            The closed epoch, if this trade closed one
        """
        if price > self.ath:
            self.ath = price
            self.below_since = None
            return None

        if price > self.threshold * self.ath:
            if self.below_since is not None:
                log.info(f"Price {fmt(price)} recovered above threshold")
            self.below_since = None
            return None

        if self.below_since is None:
            self.below_since = now
            log.info(f"Price {fmt(price)} below {self.threshold} x ATH {fmt(self.ath)} "
                     f"since {now}")
            return None

        if now - self.below_since < self.threshold_time:
            return None

        if supply <= ZERO:
            # Nobody to pay; keep the pot and the timer running
            log.warning("Jackpot due but supply is zero, epoch stays open")
            return None

        return self._close_epoch(price, now, supply)

    @wide_precision
    def _close_epoch(self, price: Decimal, now: int, supply: Decimal) -> JackpotEpoch:
        prize_per_unit = to_native(self.current_amount / supply)
        epoch = JackpotEpoch(
            epoch_number=self.current_epoch,
            prize_per_unit=prize_per_unit,
            jackpot_amount=self.current_amount,
            total_supply=supply,
            closed_at=now,
        )
        self.epochs[epoch.epoch_number] = epoch

        log.info(f"Jackpot epoch {epoch.epoch_number} closed: {fmt(self.current_amount)} "
                 f"over {fmt(supply)} units ({prize_per_unit} per unit)")

        self.current_epoch += 1
        self.current_amount = ZERO
        self.below_since = None
        self.ath = price

        if self.on_close:
            self.on_close(JackpotEpochClosed(
                epoch_number=epoch.epoch_number,
                jackpot_amount=epoch.jackpot_amount,
                prize_per_unit=prize_per_unit,
            ))
        return epoch

    @wide_precision
    def unseen_prize(self, holder: Holder) -> Decimal:
        """
        Jackpot owed to holder for epochs [next_jackpot_epoch, current_epoch).

        Linear in the number of epochs the holder missed.
        """
        total = ZERO
        for number in range(holder.next_jackpot_epoch, self.current_epoch):
            total += to_native(holder.amount * self.epochs[number].prize_per_unit)
        return total

    def catch_up(self, holder: Holder, withdraw: bool = False) -> Decimal:
        """
        Fold unseen epochs into the holder record.

        Args:
            holder: Record to update in place
            withdraw: Also hand out (and zero) everything accrued so far

        Returns:
            Jackpot amount to pay out (ZERO unless withdraw)
        """
        won = self.unseen_prize(holder)
        holder.next_jackpot_epoch = self.current_epoch
        holder.accrued_jackpot += won
        if not withdraw:
            return ZERO
        payout = holder.accrued_jackpot
        holder.accrued_jackpot = ZERO
        return payout

    def closed_epochs(self) -> List[JackpotEpoch]:
        return [self.epochs[n] for n in sorted(self.epochs)]

    def to_dict(self) -> dict:
        return {
            "ath": str(self.ath),
            "state": self.state.value,
            "below_since": self.below_since,
            "current_epoch": self.current_epoch,
            "current_amount": str(self.current_amount),
            "threshold": str(self.threshold),
            "threshold_time": self.threshold_time,
        }
