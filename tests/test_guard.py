from decimal import Decimal

import pytest

from curvepool.errors import FrequencyViolation, InvalidInput
from curvepool.guard import TransactionGuard
from curvepool.pool_types import TicketKind, WithdrawTicket


def deposit(guard, tx="tx-2"):
    return guard.issue_deposit(tx, Decimal(10), Decimal(1), Decimal("0.5"))


def test_one_initiation_per_transaction():
    guard = TransactionGuard("tx-1")
    guard.check_transaction("tx-2")
    with pytest.raises(FrequencyViolation):
        guard.check_transaction("tx-2")
    guard.check_transaction("tx-3")


def test_no_initiation_in_creation_transaction():
    guard = TransactionGuard("tx-1")
    with pytest.raises(FrequencyViolation):
        guard.check_transaction("tx-1")


def test_transaction_id_required():
    with pytest.raises(InvalidInput):
        TransactionGuard().check_transaction("")


def test_ticket_ids_increase():
    guard = TransactionGuard()
    first = deposit(guard)
    second = guard.issue_withdraw("tx-3")
    assert second.ticket_id == first.ticket_id + 1
    assert first.kind is TicketKind.DEPOSIT
    assert second.kind is TicketKind.WITHDRAW


def test_validate_accepts_single_ticket_or_one_element_sequence():
    guard = TransactionGuard()
    ticket = deposit(guard)
    assert guard.validate(ticket, TicketKind.DEPOSIT, "tx-2") is ticket
    assert guard.validate([ticket], TicketKind.DEPOSIT, "tx-2") is ticket


@pytest.mark.parametrize("count", [0, 2])
def test_validate_requires_exactly_one(count):
    guard = TransactionGuard()
    ticket = deposit(guard)
    with pytest.raises(InvalidInput, match="Exactly one"):
        guard.validate([ticket] * count, TicketKind.DEPOSIT, "tx-2")


def test_wrong_kind_rejected():
    guard = TransactionGuard()
    ticket = guard.issue_withdraw("tx-2")
    with pytest.raises(InvalidInput, match="Wrong ticket"):
        guard.validate(ticket, TicketKind.DEPOSIT, "tx-2")


def test_used_ticket_rejected():
    guard = TransactionGuard()
    ticket = deposit(guard)
    guard.redeem(ticket)
    assert ticket.consumed
    with pytest.raises(InvalidInput, match="already used"):
        guard.validate(ticket, TicketKind.DEPOSIT, "tx-2")


def test_forged_ticket_rejected():
    guard = TransactionGuard()
    forged = WithdrawTicket(ticket_id=99, transaction_id="tx-2")
    with pytest.raises(InvalidInput, match="not issued"):
        guard.validate(forged, TicketKind.WITHDRAW, "tx-2")


def test_ticket_from_other_transaction_rejected():
    guard = TransactionGuard()
    ticket = deposit(guard, tx="tx-2")
    with pytest.raises(InvalidInput, match="another transaction"):
        guard.validate(ticket, TicketKind.DEPOSIT, "tx-3")


def test_outstanding_tracks_unredeemed_tickets():
    guard = TransactionGuard()
    a = deposit(guard, tx="tx-2")
    b = guard.issue_withdraw("tx-3")
    assert guard.outstanding() == [a, b]
    assert guard.outstanding("tx-3") == [b]
    guard.redeem(a)
    assert guard.outstanding("tx-2") == []
