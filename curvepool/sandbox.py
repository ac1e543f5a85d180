"""
curvepool - In-memory collaborators

Everything the engine consumes, held in process memory. Used by the tests and
the simulator, and as a reference for writing real adapters.

The token mirrors a ledger where units cannot move freely:
  - minted units sit "in flight" until deposited with a DEPOSIT ticket
  - units leave an account only with a WITHDRAW ticket and go back in flight
  - only in-flight units can be burned

Usage:
    sandbox = Sandbox(EngineConfig())
    ticket = sandbox.buy("alice", Decimal("100"))
    value = sandbox.sell("alice", ticket.quantity)
"""

import itertools
import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Dict, Iterator, List, Optional, Set, Tuple, Type

from .collaborators import (
    Authorizer, BalanceOracle, Clock, Collaborators, EventSink, FungibleToken, ValueVault,
)
from .config import EngineConfig
from .decimals import ZERO
from .engine import ExchangeEngine
from .errors import InsufficientReserve, InvalidInput, Unauthorized
from .pool_types import DepositTicket, PoolEvent, TicketKind, WithdrawTicket

log = logging.getLogger(__name__)


class MemoryVault(ValueVault):
    def __init__(self, name: str = "vault"):
        self.name = name
        self.amount = ZERO

    def deposit(self, amount: Decimal) -> None:
        if amount < ZERO:
            raise InvalidInput(f"Negative deposit into {self.name}")
        self.amount += amount

    def withdraw(self, amount: Decimal) -> Decimal:
        if amount > self.amount:
            raise InsufficientReserve(f"{self.name} holds {self.amount}, asked {amount}")
        self.amount -= amount
        return amount

    def balance(self) -> Decimal:
        return self.amount


class MemoryToken(FungibleToken, BalanceOracle):
    """Fungible unit with ticket-gated deposits and withdrawals."""

    def __init__(self):
        self.supply = ZERO
        self.in_flight = ZERO
        self.accounts: Dict[str, Decimal] = {}
        self.refusing: Set[str] = set()    # accounts that reject deposits

    def mint(self, amount: Decimal) -> Decimal:
        self.supply += amount
        self.in_flight += amount
        return amount

    def burn(self, quantity: Decimal) -> None:
        if quantity > self.in_flight:
            raise InvalidInput(f"Cannot burn {quantity}, only {self.in_flight} in flight")
        self.supply -= quantity
        self.in_flight -= quantity

    def total_supply(self) -> Decimal:
        return self.supply

    def balance_of(self, holder_id: str) -> Decimal:
        return self.accounts.get(holder_id, ZERO)

    def try_deposit(self, holder_id: str, quantity: Decimal, ticket: DepositTicket) -> bool:
        if holder_id in self.refusing:
            return False
        self.deposit(holder_id, quantity, ticket)
        return True

    def deposit(self, holder_id: str, quantity: Decimal, ticket: DepositTicket) -> None:
        """Move in-flight units into an account."""
        self._check_ticket(ticket, TicketKind.DEPOSIT)
        if holder_id in self.refusing:
            raise InvalidInput(f"Account {holder_id} refuses deposits")
        if quantity > self.in_flight:
            raise InvalidInput(f"Only {self.in_flight} units in flight")
        self.in_flight -= quantity
        self.accounts[holder_id] = self.balance_of(holder_id) + quantity

    def withdraw(self, holder_id: str, quantity: Decimal, ticket: WithdrawTicket) -> Decimal:
        """Move units out of an account, back in flight."""
        self._check_ticket(ticket, TicketKind.WITHDRAW)
        balance = self.balance_of(holder_id)
        if quantity > balance:
            raise InvalidInput(f"Account {holder_id} holds {balance}, asked {quantity}")
        self.accounts[holder_id] = balance - quantity
        self.in_flight += quantity
        return quantity

    @staticmethod
    def _check_ticket(ticket, kind: TicketKind) -> None:
        if ticket is None or ticket.kind is not kind or ticket.consumed:
            raise Unauthorized(f"A live {kind.value} ticket is required")


class SignerAuthorizer(Authorizer):
    """Accounts that signed the current transaction."""

    def __init__(self):
        self.signers: Set[str] = set()

    def require(self, holder_id: str) -> None:
        if holder_id not in self.signers:
            raise Unauthorized(f"{holder_id} did not sign this transaction")


class ManualClock(Clock):
    def __init__(self, start: int = 1_700_000_000):
        self.current = start

    def now(self) -> int:
        return self.current

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Clock cannot go backwards")
        self.current += seconds
        return self.current


class MemoryEventSink(EventSink):
    def __init__(self):
        self.events: List[PoolEvent] = []

    def emit(self, event: PoolEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: Type[PoolEvent]) -> List[PoolEvent]:
        return [e for e in self.events if isinstance(e, event_type)]


class Sandbox:
    """
    Engine wired to in-memory collaborators, plus a transaction runner.

    transaction() hands out a fresh id, lets the given accounts sign, and
    raises InvalidInput if a ticket issued in it was never consumed.
    """

    def __init__(self, config: Optional[EngineConfig] = None, start_time: int = 1_700_000_000):
        self.pool = MemoryVault("pool")
        self.dividend_vault = MemoryVault("dividends")
        self.jackpot_vault = MemoryVault("jackpot")
        self.token = MemoryToken()
        self.authorizer = SignerAuthorizer()
        self.clock = ManualClock(start_time)
        self.events = MemoryEventSink()
        self._tx_ids = itertools.count(1)

        self.collaborators = Collaborators(
            pool=self.pool,
            dividend_vault=self.dividend_vault,
            jackpot_vault=self.jackpot_vault,
            token=self.token,
            balances=self.token,
            authorizer=self.authorizer,
            events=self.events,
            clock=self.clock,
        )
        self.engine = ExchangeEngine(
            config or EngineConfig(), self.collaborators,
            creation_transaction=self._next_tx_id())

    def _next_tx_id(self) -> str:
        return f"tx-{next(self._tx_ids):06d}"

    @contextmanager
    def transaction(self, *signers: str) -> Iterator[str]:
        transaction_id = self._next_tx_id()
        self.authorizer.signers = set(signers)
        try:
            yield transaction_id
        finally:
            self.authorizer.signers = set()
        leftover = self.engine.guard.outstanding(transaction_id)
        if leftover:
            raise InvalidInput(
                f"Transaction {transaction_id} ended with unconsumed ticket(s) "
                f"{[t.ticket_id for t in leftover]}")

    # Whole-transaction helpers -----------------------------------------------

    def buy(self, holder_id: str, value: Decimal) -> DepositTicket:
        with self.transaction(holder_id) as tx:
            ticket = self.engine.buy(value, tx)
            self.token.deposit(holder_id, ticket.quantity, ticket)
            self.engine.finalize_buy(ticket, holder_id, tx)
        return ticket

    def sell(self, holder_id: str, quantity: Decimal) -> Decimal:
        with self.transaction(holder_id) as tx:
            ticket = self.engine.begin_sell(tx)
            self.token.withdraw(holder_id, quantity, ticket)
            return self.engine.sell(quantity, holder_id, ticket, tx)

    def claim(self, holder_id: str) -> Tuple[Decimal, Decimal]:
        with self.transaction(holder_id):
            return self.engine.claim(holder_id)

    def airdrop(self, value: Decimal, recipients) -> Decimal:
        with self.transaction() as tx:
            return self.engine.airdrop(value, recipients, tx)
