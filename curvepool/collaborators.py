"""
curvepool - External collaborators

The engine never holds funds or tokens itself. It talks to:

  - ValueVault      custody of reserve currency (pool, dividends, jackpot)
  - FungibleToken   mint/burn/supply of the traded unit
  - BalanceOracle   how many units an external account holds
  - Authorizer      proof that the caller controls an account
  - EventSink       where observable occurrences go
  - Clock           wall-clock seconds

In-memory implementations live in curvepool.sandbox; network-backed ones in
curvepool.rpc_client and curvepool.evm.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from .pool_types import DepositTicket, PoolEvent

log = logging.getLogger(__name__)


class ValueVault:
    def deposit(self, amount: Decimal) -> None:
        raise NotImplementedError

    def withdraw(self, amount: Decimal) -> Decimal:
        raise NotImplementedError

    def balance(self) -> Decimal:
        raise NotImplementedError


class FungibleToken:
    def mint(self, amount: Decimal) -> Decimal:
        raise NotImplementedError

    def burn(self, quantity: Decimal) -> None:
        raise NotImplementedError

    def total_supply(self) -> Decimal:
        raise NotImplementedError

    def try_deposit(self, holder_id: str, quantity: Decimal, ticket: DepositTicket) -> bool:
        """Deposit freshly minted units into an account; False if refused."""
        raise NotImplementedError


class BalanceOracle:
    def balance_of(self, holder_id: str) -> Decimal:
        raise NotImplementedError


class Authorizer:
    def require(self, holder_id: str) -> None:
        """Raise Unauthorized unless the caller controls holder_id."""
        raise NotImplementedError


class EventSink:
    def emit(self, event: PoolEvent) -> None:
        raise NotImplementedError


class Clock:
    def now(self) -> int:
        """Seconds since the unix epoch, never decreasing."""
        raise NotImplementedError


class LoggingEventSink(EventSink):
    """Writes every event to the log, optionally forwarding to another sink."""

    def __init__(self, forward: EventSink = None, level: int = logging.INFO):
        self.forward = forward
        self.level = level

    def emit(self, event: PoolEvent) -> None:
        log.log(self.level, f"[EVENT] {event.name} {event.to_dict()}")
        if self.forward is not None:
            self.forward.emit(event)


@dataclass
class Collaborators:
    """Everything the engine consumes, bundled for the constructor."""
    pool: ValueVault
    dividend_vault: ValueVault
    jackpot_vault: ValueVault
    token: FungibleToken
    balances: BalanceOracle
    authorizer: Authorizer
    events: EventSink
    clock: Clock
