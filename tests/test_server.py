from decimal import Decimal

import pytest

from curvepool.config import EngineConfig
from curvepool.evm import BlockClock, ERC20BalanceOracle
from curvepool.pool_types import Holder
from curvepool.rpc_client import RPCBalanceOracle, RPCClock
from curvepool.server import build_engine, chain_adapters, create_app, parse_args


@pytest.fixture
def client(engine):
    app = create_app(engine)
    app.config["TESTING"] = True
    return app.test_client()


def test_health(client):
    data = client.get("/health").get_json()
    assert data["ok"] is True
    assert isinstance(data["timestamp"], int)


def test_state(client, sandbox):
    sandbox.buy("alice", Decimal("1000"))
    data = client.get("/api/state").get_json()
    assert data["ok"] is True
    assert Decimal(data["state"]["reserve"]) == Decimal(930)
    assert data["state"]["holders"] == 1


def test_quote_buy(client):
    response = client.get("/api/quote/buy?value=1000")
    assert response.status_code == 200
    quote = response.get_json()["quote"]
    assert quote["side"] == "buy"
    assert Decimal(quote["fee_dividend"]) == Decimal(50)
    assert Decimal(quote["net"]) == Decimal(930)


def test_quote_sell_beyond_supply(client):
    response = client.get("/api/quote/sell?quantity=10")
    assert response.status_code == 400
    assert response.get_json()["error"]["code"] == "invalid_input"


def test_bad_quote_value(client):
    response = client.get("/api/quote/buy?value=abc")
    assert response.status_code == 400
    assert response.get_json()["ok"] is False


def test_holder(client, sandbox):
    ticket = sandbox.buy("alice", Decimal("1000"))
    holder = client.get("/api/holders/alice").get_json()["holder"]
    assert Decimal(holder["amount"]) == ticket.quantity
    assert "pending_dividends" in holder
    assert holder["unseen_jackpot"] == "0"


def test_unknown_holder_is_404(client):
    response = client.get("/api/holders/nobody")
    assert response.status_code == 404
    assert response.get_json()["error"]["code"] == "missing_holder"


def test_jackpots_empty(client):
    data = client.get("/api/jackpots").get_json()
    assert data == {"ok": True, "epochs": [], "count": 0}


def test_reconcile_route(client, sandbox):
    sandbox.buy("alice", Decimal("1000"))
    report = client.get("/api/holders/alice/reconcile").get_json()["reconcile"]
    assert report["ok"] is True
    assert report["checked_at"] == sandbox.clock.now()


class FixedBalances:
    def __init__(self, balance):
        self.balance = balance

    def balance_of(self, holder_id):
        return self.balance


class FixedClock:
    def now(self):
        return 42


def test_engine_reads_chain_balances():
    engine = build_engine(EngineConfig(), FixedBalances(Decimal(5)), FixedClock())
    engine.holders.put(Holder("yAlice", amount=Decimal(5)))
    client = create_app(engine).test_client()

    report = client.get("/api/holders/yAlice/reconcile").get_json()["reconcile"]
    assert report == {"holder_id": "yAlice", "recorded": "5", "observed": "5",
                      "ok": True, "checked_at": 42}
    assert client.get("/api/holders/yBob/reconcile").status_code == 404


def test_engine_without_chain_uses_memory_token():
    engine = build_engine(EngineConfig())
    assert engine.balances is engine.token


def test_chain_adapters_for_erc20():
    args = parse_args(["--evm-rpc", "http://127.0.0.1:8545",
                       "--token", "0x000000000000000000000000000000000000dead",
                       "--decimals", "6"])
    balances, clock = chain_adapters(args)
    assert isinstance(balances, ERC20BalanceOracle)
    assert balances.decimals == 6
    assert isinstance(clock, BlockClock)


def test_chain_adapters_for_node():
    balances, clock = chain_adapters(parse_args(["--rpc-host", "node", "--rpc-port", "1234"]))
    assert isinstance(balances, RPCBalanceOracle)
    assert balances.rpc.url == "http://node:1234"
    assert isinstance(clock, RPCClock)


def test_no_chain_by_default():
    assert chain_adapters(parse_args([])) == (None, None)


@pytest.mark.parametrize("argv", [
    ["--evm-rpc", "http://127.0.0.1:8545"],
    ["--evm-rpc", "http://127.0.0.1:8545", "--token", "0x0", "--rpc-host", "node"],
])
def test_conflicting_chain_options(argv):
    with pytest.raises(SystemExit):
        parse_args(argv)
