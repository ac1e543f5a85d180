"""
curvepool - Transaction guard

Two rules keep the two-phase handshake honest:

  1. At most one buy or sell initiation per transaction. A transaction that
     could mint a ticket twice could move units out-of-band in between and
     desynchronize the dividend index from the circulating supply.
  2. Tickets are single use and only valid in the transaction that issued
     them. Every use checks the consumed flag.

Flow:
    buy():          check_transaction -> issue_deposit
    finalize_buy(): validate(DEPOSIT) ... checks ... -> redeem
    begin_sell():   check_transaction -> issue_withdraw
    sell():         validate(WITHDRAW) ... checks ... -> redeem
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Union

from .errors import FrequencyViolation, InvalidInput
from .pool_types import DepositTicket, TicketKind, WithdrawTicket

log = logging.getLogger(__name__)

Ticket = Union[DepositTicket, WithdrawTicket]


class TransactionGuard:
    """Per-transaction initiation limit and ticket lifecycle."""

    def __init__(self, creation_transaction: Optional[str] = None):
        """
        Args:
            creation_transaction: Id of the transaction that built the engine;
                no initiation is allowed in it
        """
        self.last_transaction = creation_transaction
        self.next_ticket_id = 1
        self._issued: Dict[int, Ticket] = {}

    def check_transaction(self, transaction_id: str) -> None:
        """Fail fast on a second initiation within one transaction."""
        if not transaction_id:
            raise InvalidInput("Transaction id required")
        if transaction_id == self.last_transaction:
            log.warning(f"Second initiation in transaction {transaction_id}")
            raise FrequencyViolation("Multiple operations per transaction")
        self.last_transaction = transaction_id

    def _next_id(self) -> int:
        ticket_id = self.next_ticket_id
        self.next_ticket_id += 1
        return ticket_id

    def issue_deposit(self, transaction_id: str, quantity: Decimal, price: Decimal,
                      fee_dividend: Decimal) -> DepositTicket:
        ticket = DepositTicket(
            ticket_id=self._next_id(),
            transaction_id=transaction_id,
            quantity=quantity,
            price=price,
            fee_dividend=fee_dividend,
        )
        self._issued[ticket.ticket_id] = ticket
        return ticket

    def issue_withdraw(self, transaction_id: str) -> WithdrawTicket:
        ticket = WithdrawTicket(ticket_id=self._next_id(), transaction_id=transaction_id)
        self._issued[ticket.ticket_id] = ticket
        return ticket

    def validate(self, tickets: Union[Ticket, Sequence[Ticket]], kind: TicketKind,
                 transaction_id: str) -> Ticket:
        """
        Check a ticket without consuming it.

        Args:
            tickets: The ticket, or a sequence that must hold exactly one
            kind: Expected ticket kind
            transaction_id: Transaction the ticket is being used in

        Returns:
            The single ticket
        """
        if isinstance(tickets, (list, tuple)):
            if len(tickets) != 1:
                raise InvalidInput(f"Exactly one {kind.value} ticket required")
            ticket = tickets[0]
        else:
            ticket = tickets

        if not isinstance(ticket, (DepositTicket, WithdrawTicket)) or ticket.kind is not kind:
            raise InvalidInput("Wrong ticket")
        if ticket.consumed:
            raise InvalidInput(f"Ticket {ticket.ticket_id} already used")
        if self._issued.get(ticket.ticket_id) is not ticket:
            raise InvalidInput(f"Ticket {ticket.ticket_id} was not issued by this engine")
        if ticket.transaction_id != transaction_id:
            raise InvalidInput(f"Ticket {ticket.ticket_id} belongs to another transaction")
        return ticket

    def redeem(self, ticket: Ticket) -> None:
        """Burn a validated ticket."""
        ticket.consumed = True
        del self._issued[ticket.ticket_id]

    def outstanding(self, transaction_id: Optional[str] = None) -> List[Ticket]:
        """Tickets issued and not consumed, optionally for one transaction."""
        return [
            t for t in self._issued.values()
            if transaction_id is None or t.transaction_id == transaction_id
        ]
