"""
curvepool - Exchange engine

Entry point for trading. One engine instance owns all global accounting; the
collaborators own funds and tokens.

Buy (two phases, one transaction):
    ticket = engine.buy(value, tx)              # fees split, units minted
    <caller deposits ticket.quantity units into their account>
    engine.finalize_buy(ticket, holder_id, tx)  # balance reconciled, books updated

Sell (two phases, one transaction):
    ticket = engine.begin_sell(tx)
    <caller moves `quantity` units out of their account>
    value = engine.sell(quantity, holder_id, ticket, tx)

Every public operation performs all of its checks before its first mutation.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Sequence, Tuple, Union

from .collaborators import Collaborators
from .config import EngineConfig
from .curve import CurveModel
from .decimals import ZERO, ONE, Number, to_decimal, to_native, wide_precision, fmt
from .dividends import make_ledger
from .errors import InsufficientReserve, InvalidInput, ReconciliationMismatch
from .guard import TransactionGuard
from .jackpot import JackpotScheduler
from .pool_types import (
    AirdropCompleted, DepositTicket, DividendsClaimed, Holder,
    PoolEvent, PurchaseCompleted, Quote, SaleCompleted, TicketKind, WithdrawTicket,
)
from .registry import HolderRegistry

log = logging.getLogger(__name__)


class ExchangeEngine:
    """
    Bonding-curve exchange with fee dividends and a price-crash jackpot.

    Usage:
        engine = ExchangeEngine(EngineConfig(), collaborators)
        ticket = engine.buy(Decimal("100"), "tx-1")
        ...
    """

    def __init__(self, config: EngineConfig, collaborators: Collaborators,
                 creation_transaction: Optional[str] = None, holder_store=None):
        """
        Args:
            config: Engine parameters; validated before anything is built
            collaborators: Custody, token, oracle, auth, events, clock
            creation_transaction: Transaction that creates the engine
            holder_store: MutableMapping for holder records (dict by default)
        """
        self.config = config.validate()
        self.curve = CurveModel(config.curve_config())
        self.ledger = make_ledger(config.dividend_strategy)
        self.jackpot = JackpotScheduler(
            config.jackpot_threshold, config.jackpot_threshold_time, on_close=self._emit)
        self.holders = HolderRegistry(holder_store)
        self.guard = TransactionGuard(creation_transaction)

        self.pool = collaborators.pool
        self.dividend_vault = collaborators.dividend_vault
        self.jackpot_vault = collaborators.jackpot_vault
        self.token = collaborators.token
        self.balances = collaborators.balances
        self.authorizer = collaborators.authorizer
        self.events = collaborators.events
        self.clock = collaborators.clock

        log.info(f"Engine created: fees {config.dividend_fee}/{config.jackpot_fee}, "
                 f"max_supply {config.max_supply}, strategy {config.dividend_strategy.value}")

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _emit(self, event: PoolEvent) -> None:
        self.events.emit(event)

    @staticmethod
    def _amount(value: Number, what: str) -> Decimal:
        try:
            amount = to_decimal(value)
        except (TypeError, InvalidOperation):
            raise InvalidInput(f"Invalid {what}: {value!r}")
        if not amount.is_finite() or amount <= ZERO:
            raise InvalidInput(f"No {what} provided")
        if amount != to_native(amount):
            raise InvalidInput(f"Too many decimals in {what}: {amount}")
        return amount

    @wide_precision
    def _split_fees(self, value: Decimal) -> Tuple[Decimal, Decimal, Decimal]:
        fee_dividend = to_native(value * self.config.dividend_fee)
        fee_jackpot = to_native(value * self.config.jackpot_fee)
        return fee_dividend, fee_jackpot, value - fee_dividend - fee_jackpot

    def _collect_fees(self, fee_dividend: Decimal, fee_jackpot: Decimal) -> None:
        self.dividend_vault.deposit(fee_dividend)
        self.jackpot_vault.deposit(fee_jackpot)
        self.jackpot.deposit(fee_jackpot)

    def _new_or_existing(self, holder_id: str, supply: Decimal) -> Holder:
        return self.holders.get_or_new(
            holder_id, self.ledger.current_index(supply), self.jackpot.current_epoch)

    # =========================================================================
    # QUOTES (read-only)
    # =========================================================================

    def quote_buy(self, value: Number) -> Quote:
        """What buying with `value` would yield right now."""
        value = self._amount(value, "value")
        fee_dividend, fee_jackpot, net = self._split_fees(value)
        reserve = self.pool.balance()
        supply = self.token.total_supply()
        quantity = self.curve.quantity_for_value(reserve, supply, net)
        if quantity <= ZERO:
            raise InvalidInput(f"Value {value} too small to buy anything")
        return Quote(
            side="buy",
            value=value,
            quantity=quantity,
            price=self.curve.average_price(net, quantity),
            fee_dividend=fee_dividend,
            fee_jackpot=fee_jackpot,
            net=net,
        )

    def quote_sell(self, quantity: Number) -> Quote:
        """What selling `quantity` units would pay right now."""
        quantity = self._amount(quantity, "quantity")
        reserve = self.pool.balance()
        supply = self.token.total_supply()
        if quantity > supply:
            raise InvalidInput(f"Quantity {quantity} exceeds supply {supply}")
        value = self.curve.value_for_quantity(reserve, supply, quantity)
        if value <= ZERO:
            raise InvalidInput(f"Quantity {quantity} too small to sell for anything")
        if value > reserve:
            raise InsufficientReserve(f"Sale needs {value}, pool holds {reserve}")
        fee_dividend, fee_jackpot, net = self._split_fees(value)
        return Quote(
            side="sell",
            value=value,
            quantity=quantity,
            price=self.curve.average_price(value, quantity),
            fee_dividend=fee_dividend,
            fee_jackpot=fee_jackpot,
            net=net,
        )

    # =========================================================================
    # BUY
    # =========================================================================

    def buy(self, value: Number, transaction_id: str) -> DepositTicket:
        """
        Exchange `value` for freshly minted units.

        Args:
            value: Reserve currency paid in, fees included
            transaction_id: Identity of the enclosing transaction

        Returns:
            Deposit ticket carrying quantity, price and the dividend fee; it
            must be passed to finalize_buy() in the same transaction
        """
        quote = self.quote_buy(value)
        self.guard.check_transaction(transaction_id)

        supply = self.token.total_supply()
        self._collect_fees(quote.fee_dividend, quote.fee_jackpot)
        self.pool.deposit(quote.net)
        self.jackpot.observe_price(quote.price, self.clock.now(), supply)

        minted = self.token.mint(quote.quantity)
        ticket = self.guard.issue_deposit(
            transaction_id, minted, quote.price, quote.fee_dividend)

        log.info(f"Buy: {fmt(quote.value)} -> {fmt(minted)} units @ {fmt(quote.price)} "
                 f"(ticket {ticket.ticket_id})")
        return ticket

    def finalize_buy(self, ticket: Union[DepositTicket, Sequence[DepositTicket]],
                     holder_id: str, transaction_id: str) -> Holder:
        """
        Book a purchase once the units are observed in the buyer's account.

        Raises:
            ReconciliationMismatch: balance did not grow by exactly ticket.quantity
        """
        ticket = self.guard.validate(ticket, TicketKind.DEPOSIT, transaction_id)
        self.authorizer.require(holder_id)

        supply = self.token.total_supply()
        buyer = self._new_or_existing(holder_id, supply)
        observed = self.balances.balance_of(holder_id)
        if observed != buyer.amount + ticket.quantity:
            log.warning(f"Deposit mismatch for {holder_id}: expected "
                        f"{buyer.amount + ticket.quantity}, observed {observed}")
            raise ReconciliationMismatch(
                f"Expected balance {buyer.amount + ticket.quantity} for {holder_id}, "
                f"found {observed}")

        self.ledger.touch(buyer)
        self.jackpot.catch_up(buyer)
        self.ledger.distribute(ticket.fee_dividend, supply)
        self.ledger.add_units(buyer, ticket.quantity, supply)
        self.ledger.touch(buyer)

        self.holders.put(buyer)
        self.guard.redeem(ticket)

        self._emit(PurchaseCompleted(
            holder_id=holder_id,
            price=ticket.price,
            quantity=ticket.quantity,
            current_jackpot_amount=self.jackpot.current_amount,
            dividend_index=self.ledger.current_index(supply),
            ath=self.jackpot.ath,
            accrued_dividends=buyer.accrued_dividends,
            accrued_jackpot=buyer.accrued_jackpot,
        ))
        return buyer

    # =========================================================================
    # SELL
    # =========================================================================

    def begin_sell(self, transaction_id: str) -> WithdrawTicket:
        """Issue the withdraw ticket that lets units leave an account."""
        self.guard.check_transaction(transaction_id)
        ticket = self.guard.issue_withdraw(transaction_id)
        log.debug(f"Withdraw ticket {ticket.ticket_id} issued in {transaction_id}")
        return ticket

    def sell(self, quantity: Number, holder_id: str,
             ticket: Union[WithdrawTicket, Sequence[WithdrawTicket]],
             transaction_id: str) -> Decimal:
        """
        Burn `quantity` units taken out of holder_id's account.

        Returns:
            Reserve currency paid out, fees already deducted

        Raises:
            ReconciliationMismatch: quantity is not exactly what left the account
        """
        quantity = self._amount(quantity, "quantity")
        ticket = self.guard.validate(ticket, TicketKind.WITHDRAW, transaction_id)
        self.authorizer.require(holder_id)
        seller = self.holders.get(holder_id)

        withdrawn = seller.amount - self.balances.balance_of(holder_id)
        if quantity != withdrawn:
            log.warning(f"Withdraw mismatch for {holder_id}: selling {quantity}, "
                        f"withdrawn {withdrawn}")
            raise ReconciliationMismatch(
                f"Selling {quantity} but {withdrawn} left the account of {holder_id}")

        quote = self.quote_sell(quantity)
        supply_before = self.token.total_supply()

        self.ledger.touch(seller)
        self.jackpot.catch_up(seller)
        self.ledger.remove_units(seller, quantity, supply_before)

        self.token.burn(quantity)
        self.guard.redeem(ticket)
        supply = self.token.total_supply()

        self.pool.withdraw(quote.value)
        self._collect_fees(quote.fee_dividend, quote.fee_jackpot)
        self.ledger.distribute(quote.fee_dividend, supply)
        self.jackpot.observe_price(quote.price, self.clock.now(), supply)
        self.ledger.touch(seller)

        self.holders.put(seller)

        log.info(f"Sell: {fmt(quantity)} units -> {fmt(quote.net)} @ {fmt(quote.price)} "
                 f"({holder_id})")
        self._emit(SaleCompleted(
            holder_id=holder_id,
            price=quote.price,
            quantity=quantity,
            current_jackpot_amount=self.jackpot.current_amount,
            dividend_index=self.ledger.current_index(supply),
            accrued_dividends=seller.accrued_dividends,
            accrued_jackpot=seller.accrued_jackpot,
        ))
        return quote.net

    # =========================================================================
    # CLAIM
    # =========================================================================

    def claim(self, holder_id: str) -> Tuple[Decimal, Decimal]:
        """
        Pay out accrued dividends and jackpot shares.

        Returns:
            (dividends, jackpot)
        """
        self.authorizer.require(holder_id)
        holder = self.holders.get(holder_id)
        supply = self.token.total_supply()

        # Both work on the holder copy only
        dividends = self.ledger.claimable(holder, supply)
        jackpot = self.jackpot.catch_up(holder, withdraw=True)

        if dividends > self.dividend_vault.balance():
            raise InsufficientReserve(
                f"Dividend vault holds {self.dividend_vault.balance()}, owed {dividends}")
        if jackpot > self.jackpot_vault.balance():
            raise InsufficientReserve(
                f"Jackpot vault holds {self.jackpot_vault.balance()}, owed {jackpot}")

        if dividends > ZERO:
            self.dividend_vault.withdraw(dividends)
        if jackpot > ZERO:
            self.jackpot_vault.withdraw(jackpot)
        self.ledger.record_claim(holder, dividends)
        self.holders.put(holder)

        log.info(f"Claim by {holder_id}: dividends {fmt(dividends)}, jackpot {fmt(jackpot)}")
        self._emit(DividendsClaimed(holder_id=holder_id, dividends=dividends, jackpot=jackpot))
        return dividends, jackpot

    # =========================================================================
    # AIRDROP
    # =========================================================================

    @staticmethod
    def _check_recipients(recipients: Iterable[Tuple[str, Number]]) -> list:
        checked = []
        seen = set()
        total = ZERO
        for holder_id, share in recipients:
            try:
                share = to_decimal(share)
            except (TypeError, InvalidOperation):
                raise InvalidInput(f"Invalid share for {holder_id}: {share!r}")
            if not share.is_finite() or share < ZERO:
                raise InvalidInput(f"Negative share for {holder_id}")
            if holder_id in seen:
                raise InvalidInput(f"Duplicate recipient {holder_id}")
            seen.add(holder_id)
            total += share
            checked.append((holder_id, share))
        if total > ONE:
            raise InvalidInput(f"Shares sum to {total}, must be 1 or less")
        return checked

    @wide_precision
    def airdrop(self, value: Number, recipients: Iterable[Tuple[str, Number]],
                transaction_id: str) -> Decimal:
        """
        Buy with `value` and hand the units to recipients by share.

        Recipients are credited directly. A recipient whose account refuses
        the deposit has its share burned, as is any rounding remainder.

        Returns:
            Units actually delivered
        """
        if not transaction_id:
            raise InvalidInput("Transaction id required")
        recipients = self._check_recipients(recipients)
        quote = self.quote_buy(value)

        supply = self.token.total_supply()
        self._collect_fees(quote.fee_dividend, quote.fee_jackpot)
        self.pool.deposit(quote.net)
        self.jackpot.observe_price(quote.price, self.clock.now(), supply)

        minted = self.token.mint(quote.quantity)
        ticket = self.guard.issue_deposit(
            transaction_id, minted, quote.price, quote.fee_dividend)
        supply = self.token.total_supply()

        delivered = ZERO
        refused = ZERO
        failed = []
        for holder_id, share in recipients:
            amount = to_native(minted * share)
            if amount == ZERO:
                continue

            recipient = self._new_or_existing(holder_id, supply)
            self.ledger.touch(recipient)
            self.jackpot.catch_up(recipient)

            if self.token.try_deposit(holder_id, amount, ticket):
                self.ledger.add_units(recipient, amount, supply)
                delivered += amount
                self._emit(PurchaseCompleted(
                    holder_id=holder_id,
                    price=quote.price,
                    quantity=amount,
                    current_jackpot_amount=self.jackpot.current_amount,
                    dividend_index=self.ledger.current_index(supply),
                    ath=self.jackpot.ath,
                    accrued_dividends=recipient.accrued_dividends,
                    accrued_jackpot=recipient.accrued_jackpot,
                ))
            else:
                log.warning(f"Airdrop deposit refused by {holder_id}, burning {fmt(amount)}")
                self.token.burn(amount)
                refused += amount
                failed.append(holder_id)

            self.holders.put(recipient)

        remainder = minted - delivered - refused
        if remainder > ZERO:
            self.token.burn(remainder)
        self.guard.redeem(ticket)

        supply = self.token.total_supply()
        self.ledger.distribute(quote.fee_dividend, supply)

        log.info(f"Airdrop: {fmt(quote.value)} -> {fmt(delivered)} units to "
                 f"{len(recipients) - len(failed)} recipient(s), burned {fmt(remainder + refused)}")
        self._emit(AirdropCompleted(
            quantity=minted,
            delivered=delivered,
            burned=remainder + refused,
            dividend_index=self.ledger.current_index(supply),
            recipients=len(recipients),
            failed=tuple(failed) or None,
        ))
        return delivered

    # =========================================================================
    # STATE
    # =========================================================================

    def get_holder(self, holder_id: str) -> Holder:
        return self.holders.get(holder_id)

    def holder_view(self, holder_id: str) -> dict:
        """Holder record plus what a claim would pay right now."""
        holder = self.holders.get(holder_id)
        supply = self.token.total_supply()
        data = holder.to_dict()
        data["pending_dividends"] = str(self.ledger.pending(holder, supply))
        data["unseen_jackpot"] = str(self.jackpot.unseen_prize(holder))
        return data

    def reconcile(self, holder_id: str) -> dict:
        """Compare a holder's recorded amount with the external balance."""
        holder = self.holders.get(holder_id)
        observed = self.balances.balance_of(holder_id)
        if observed != holder.amount:
            log.warning(f"Balance drift for {holder_id}: recorded {holder.amount}, "
                        f"observed {observed}")
        return {
            "holder_id": holder_id,
            "recorded": str(holder.amount),
            "observed": str(observed),
            "ok": observed == holder.amount,
            "checked_at": self.clock.now(),
        }

    def jackpot_epochs(self) -> list:
        return self.jackpot.closed_epochs()

    def spot_price(self) -> Decimal:
        return self.curve.spot_price(self.pool.balance(), self.token.total_supply())

    def state(self) -> dict:
        """Snapshot of pool and global accounting."""
        reserve = self.pool.balance()
        supply = self.token.total_supply()
        return {
            "reserve": str(reserve),
            "supply": str(supply),
            "max_supply": str(self.config.max_supply),
            "fake_reserve": str(to_native(self.curve.fake_reserve(supply))),
            "spot_price": str(self.curve.spot_price(reserve, supply)),
            "dividend_vault": str(self.dividend_vault.balance()),
            "jackpot_vault": str(self.jackpot_vault.balance()),
            "dividends": self.ledger.to_dict(),
            "jackpot": self.jackpot.to_dict(),
            "closed_epochs": len(self.jackpot.epochs),
            "holders": len(self.holders),
        }

    @wide_precision
    def check_conservation(self, tolerance: Decimal = Decimal("1e-9")) -> dict:
        """
        Compare books against collaborators.

        Checks:
          - sum of holder amounts == total supply
          - dividends distributed == owed + claimed (within tolerance)
        """
        supply = self.token.total_supply()
        held = self.holders.total_amount()
        owed = self.ledger.outstanding(self.holders, supply)
        dividend_gap = self.ledger.total_distributed - owed - self.ledger.total_claimed
        return {
            "supply": supply,
            "held": held,
            "supply_ok": held == supply,
            "dividend_gap": dividend_gap,
            "dividends_ok": ZERO <= dividend_gap <= tolerance,
            "ok": held == supply and ZERO <= dividend_gap <= tolerance,
        }
