"""
curvepool - Bonding-curve exchange engine

Fee dividends and a price-crash jackpot on top of an augmented constant
product curve.

Architecture:
  - The engine keeps the books (holders, dividend index, jackpot epochs)
  - Funds, tokens, balances and auth live in external collaborators
  - Buys and sells are two-phase, tied together by single-use tickets

Dividend strategies:
  - weighted (default): accrual against a global dividends_per_unit index
  - unassigned_pool: fees stay pooled until a holder sells

Usage:
    from curvepool import EngineConfig, Sandbox

    sandbox = Sandbox(EngineConfig())
    ticket = sandbox.buy("alice", Decimal("1000"))
    value = sandbox.sell("alice", ticket.quantity)
"""

from .pool_types import (
    DividendStrategy, ThresholdState, TicketKind, Holder, JackpotEpoch,
    DepositTicket, WithdrawTicket, Quote, PoolEvent, PurchaseCompleted,
    SaleCompleted, DividendsClaimed, JackpotEpochClosed, AirdropCompleted,
)
from .errors import (
    PoolError, InvalidConfiguration, InvalidInput, ReconciliationMismatch,
    FrequencyViolation, MissingHolder, Unauthorized, InsufficientReserve, RPCError,
)
from .config import EngineConfig
from .curve import CurveModel
from .collaborators import Collaborators, LoggingEventSink
from .engine import ExchangeEngine
from .sandbox import Sandbox

__version__ = "0.1.0"
__all__ = [
    # Types
    "DividendStrategy", "ThresholdState", "TicketKind", "Holder", "JackpotEpoch",
    "DepositTicket", "WithdrawTicket", "Quote",
    # Events
    "PoolEvent", "PurchaseCompleted", "SaleCompleted", "DividendsClaimed",
    "JackpotEpochClosed", "AirdropCompleted",
    # Errors
    "PoolError", "InvalidConfiguration", "InvalidInput", "ReconciliationMismatch",
    "FrequencyViolation", "MissingHolder", "Unauthorized", "InsufficientReserve",
    "RPCError",
    # Core
    "EngineConfig", "CurveModel", "Collaborators", "LoggingEventSink",
    "ExchangeEngine", "Sandbox",
]
