from decimal import Decimal

import pytest

from curvepool.errors import MissingHolder
from curvepool.pool_types import Holder
from curvepool.registry import HolderRegistry


def test_get_unknown_holder():
    with pytest.raises(MissingHolder):
        HolderRegistry().get("nobody")
    assert HolderRegistry().find("nobody") is None


def test_get_or_new_starts_at_current_globals():
    holder = HolderRegistry().get_or_new("alice", Decimal("0.25"), 7)
    assert holder.amount == Decimal(0)
    assert holder.dividend_index == Decimal("0.25")
    assert holder.next_jackpot_epoch == 7


def test_records_are_copies_until_put():
    registry = HolderRegistry()
    registry.put(Holder("alice", amount=Decimal(5)))

    copy = registry.get("alice")
    copy.amount = Decimal(9)
    assert registry.get("alice").amount == Decimal(5)

    registry.put(copy)
    assert registry.get("alice").amount == Decimal(9)
    assert len(registry) == 1


def test_custom_store_and_totals():
    store = {}
    registry = HolderRegistry(store)
    registry.put(Holder("a", amount=Decimal("1.5")))
    registry.put(Holder("b", amount=Decimal("2.5")))
    assert set(store) == {"a", "b"}
    assert "a" in registry
    assert registry.total_amount() == Decimal(4)
    assert sorted(h.holder_id for h in registry) == ["a", "b"]


def test_holder_dict_round_trip():
    holder = Holder("alice", amount=Decimal("1.5"), dividend_index=Decimal("0.1"),
                    accrued_dividends=Decimal("2"), next_jackpot_epoch=3,
                    accrued_jackpot=Decimal("0.5"))
    data = holder.to_dict()
    assert data["amount"] == "1.5"
    assert Holder.from_dict(data) == holder
