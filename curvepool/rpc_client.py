"""
curvepool - RPC Client

JSON-RPC client for the node that custodies holder balances, plus the
collaborator adapters built on it. Holder ids are node addresses; a balance
is the sum of the address's confirmed unspent outputs.
"""

import logging
from decimal import Decimal
from typing import Any, List

import requests

from .collaborators import BalanceOracle, Clock
from .errors import RPCError

log = logging.getLogger(__name__)


class RPCClient:
    """
    JSON-RPC client.

    Usage:
        rpc = RPCClient("localhost", 27170, "user", "pass")
        height = rpc.getblockcount()
        balance = rpc.getaddressbalance("y7Lm...")
    """

    def __init__(self, host: str = "localhost", port: int = 27170,
                 user: str = "", password: str = "",
                 timeout: int = 30, session: requests.Session = None):
        self.url = f"http://{host}:{port}"
        self.auth = (user, password) if user else None
        self.timeout = timeout
        self.session = session or requests.Session()
        self._id = 0

    def _call(self, method: str, params: list = None) -> Any:
        """Make RPC call."""
        self._id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._id,
            "method": method,
            "params": params or []
        }

        try:
            response = self.session.post(
                self.url,
                json=payload,
                auth=self.auth,
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise RPCError(-1, f"Connection failed: {e}")

        result = response.json()

        if "error" in result and result["error"]:
            raise RPCError(result["error"]["code"], result["error"]["message"])

        return result.get("result")

    def getblockcount(self) -> int:
        """Get current block height."""
        return self._call("getblockcount")

    def getblockchaininfo(self) -> dict:
        """Get blockchain info (includes mediantime)."""
        return self._call("getblockchaininfo")

    def listunspent(self, minconf: int = 1, maxconf: int = 9999999,
                    addresses: List[str] = None) -> List[dict]:
        """Unspent outputs, optionally filtered by address."""
        return self._call("listunspent", [minconf, maxconf, addresses or []])

    def getaddressbalance(self, address: str, minconf: int = 1) -> Decimal:
        """Sum of unspent outputs paying `address`, as a Decimal."""
        utxos = self.listunspent(minconf, addresses=[address])
        return sum((Decimal(str(u["amount"])) for u in utxos), Decimal(0))

    def test_connection(self) -> bool:
        """Test if RPC connection works."""
        try:
            self.getblockcount()
            return True
        except RPCError:
            return False


class RPCBalanceOracle(BalanceOracle):
    """Holder balances read from the node that custodies them."""

    def __init__(self, rpc: RPCClient, minconf: int = 1):
        self.rpc = rpc
        self.minconf = minconf

    def balance_of(self, holder_id: str) -> Decimal:
        balance = self.rpc.getaddressbalance(holder_id, self.minconf)
        log.debug(f"Balance of {holder_id}: {balance}")
        return balance


class RPCClock(Clock):
    """Chain median time; monotonic by consensus rules."""

    def __init__(self, rpc: RPCClient):
        self.rpc = rpc
        self._last = 0

    def now(self) -> int:
        median = int(self.rpc.getblockchaininfo()["mediantime"])
        # Never let a reorg move time backwards for the engine
        self._last = max(self._last, median)
        return self._last
