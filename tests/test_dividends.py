from decimal import Decimal

import pytest

from curvepool.dividends import UnassignedPoolLedger, WeightedAccrualLedger, make_ledger
from curvepool.pool_types import DividendStrategy, Holder
from curvepool.sandbox import Sandbox

from conftest import scenario_config


def buy(ledger, holder, quantity, fee, supply_after):
    ledger.touch(holder)
    ledger.distribute(Decimal(fee), Decimal(supply_after))
    ledger.add_units(holder, Decimal(quantity), Decimal(supply_after))
    ledger.touch(holder)


def sell(ledger, holder, quantity, fee, supply_before):
    ledger.touch(holder)
    ledger.remove_units(holder, Decimal(quantity), Decimal(supply_before))
    ledger.distribute(Decimal(fee), Decimal(supply_before) - Decimal(quantity))
    ledger.touch(holder)


def test_make_ledger():
    assert isinstance(make_ledger(DividendStrategy.WEIGHTED), WeightedAccrualLedger)
    assert isinstance(make_ledger(DividendStrategy.UNASSIGNED_POOL), UnassignedPoolLedger)


def test_weighted_fees_split_by_amount():
    ledger = WeightedAccrualLedger()
    a = Holder("a")
    b = Holder("b")
    buy(ledger, a, 100, 10, 100)
    b.dividend_index = ledger.current_index(Decimal(100))
    buy(ledger, b, 300, 40, 400)

    assert a.accrued_dividends == Decimal(10)
    assert ledger.pending(a, Decimal(400)) == Decimal(10)
    assert b.accrued_dividends == Decimal(30)
    assert ledger.withdraw(a, Decimal(400)) == Decimal(20)
    assert a.accrued_dividends == Decimal(0)
    assert ledger.total_claimed == Decimal(20)


def test_weighted_carry_when_nothing_circulates():
    ledger = WeightedAccrualLedger()
    ledger.distribute(Decimal(10), Decimal(0))
    assert ledger.carry == Decimal(10)
    assert ledger.dividends_per_unit == Decimal(0)

    a = Holder("a")
    buy(ledger, a, 100, 5, 100)
    assert ledger.carry == Decimal(0)
    assert a.accrued_dividends == Decimal(15)
    assert ledger.outstanding([a], Decimal(100)) == ledger.total_distributed


def test_unassigned_pool_realizes_only_on_sale():
    ledger = UnassignedPoolLedger()
    a, b = Holder("a"), Holder("b")
    buy(ledger, a, 100, 10, 100)
    buy(ledger, b, 100, 10, 200)
    assert a.dividend_index == Decimal("0.1")
    assert b.dividend_index == Decimal("0.1")

    sell(ledger, a, 50, 6, 200)
    assert a.accrued_dividends == Decimal(0)
    assert ledger.unassigned == Decimal(26)

    # A claim pays nothing the holder has not realized by selling
    assert ledger.withdraw(b, Decimal(150)) == Decimal(0)
    assert ledger.unassigned == Decimal(26)

    sell(ledger, b, 100, 0, 150)
    assert ledger.withdraw(b, Decimal(50)) == Decimal("7.3333333333333333")
    assert ledger.unassigned == Decimal(26) - Decimal("7.3333333333333333")


def test_unassigned_pool_buy_averages_index():
    ledger = UnassignedPoolLedger()
    holder = Holder("h", amount=Decimal(100), dividend_index=Decimal("0.1"))
    ledger.unassigned = Decimal(60)
    ledger.add_units(holder, Decimal(100), Decimal(200))
    # (100 * 0.1 + 100 * 0.3) / 200
    assert holder.dividend_index == Decimal("0.2")
    assert holder.amount == Decimal(200)


def test_unassigned_pool_realization_capped():
    ledger = UnassignedPoolLedger()
    ledger.unassigned = Decimal(1)
    holder = Holder("h", amount=Decimal(1000))
    ledger.remove_units(holder, Decimal(1000), Decimal(10))
    assert holder.accrued_dividends == Decimal(1)
    assert ledger.unassigned == Decimal(0)


def test_pending_is_zero_for_unassigned_pool():
    ledger = UnassignedPoolLedger()
    ledger.unassigned = Decimal(50)
    assert ledger.pending(Holder("h", amount=Decimal(10)), Decimal(10)) == Decimal(0)
    assert ledger.undistributed() == Decimal(50)


@pytest.mark.parametrize("strategy", list(DividendStrategy))
def test_equal_holders_claim_equal_amounts(strategy):
    ledger = make_ledger(strategy)
    a = Holder("a", amount=Decimal(100))
    b = Holder("b", amount=Decimal(100))
    ledger.distribute(Decimal(20), Decimal(200))

    first_a = ledger.withdraw(a, Decimal(200))
    first_b = ledger.withdraw(b, Decimal(200))
    assert first_a == first_b

    sell(ledger, a, 100, 0, 200)
    sell(ledger, b, 100, 0, 100)
    total_a = first_a + ledger.withdraw(a, Decimal(0))
    total_b = first_b + ledger.withdraw(b, Decimal(0))
    assert total_a == total_b == Decimal(10)
    assert ledger.total_claimed == ledger.total_distributed


def test_unassigned_pool_claims_do_not_strand_fees():
    sandbox = Sandbox(scenario_config(dividend_strategy=DividendStrategy.UNASSIGNED_POOL))
    for holder_id in ("alice", "bob", "carol"):
        sandbox.buy(holder_id, Decimal("1000"))
    collected = sandbox.engine.ledger.total_distributed

    claims = [sandbox.claim(h)[0] for h in ("alice", "bob", "carol")]
    assert claims == [Decimal(0)] * 3
    assert sandbox.engine.ledger.unassigned == collected
    assert sandbox.dividend_vault.balance() == collected


def test_conservation_through_engine(any_strategy_sandbox):
    sandbox = any_strategy_sandbox
    engine = sandbox.engine
    sandbox.buy("alice", Decimal("1000"))
    sandbox.buy("bob", Decimal("2000"))
    sandbox.sell("alice", Decimal("200"))
    sandbox.buy("carol", Decimal("500"))
    sandbox.sell("bob", Decimal("300"))
    sandbox.airdrop(Decimal("100"), [("dave", "0.5"), ("alice", "0.25")])
    sandbox.claim("carol")

    check = engine.check_conservation()
    assert check["ok"], check

    for holder_id in ("alice", "bob", "carol", "dave"):
        sandbox.claim(holder_id)

    check = engine.check_conservation()
    assert check["ok"], check
    assert sandbox.dividend_vault.balance() >= Decimal(0)
    assert engine.ledger.total_claimed <= engine.ledger.total_distributed


@pytest.mark.parametrize("strategy", list(DividendStrategy))
def test_claims_never_exceed_vault(strategy):
    sandbox = Sandbox(scenario_config(dividend_strategy=strategy))
    for i in range(5):
        sandbox.buy(f"h{i}", Decimal("777.77"))
    for i in range(5):
        sandbox.sell(f"h{i}", Decimal("100"))
    paid = sum(sandbox.claim(f"h{i}")[0] for i in range(5))
    assert paid <= sandbox.engine.ledger.total_distributed
    assert sandbox.dividend_vault.balance() == sandbox.engine.ledger.total_distributed - paid
