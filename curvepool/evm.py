"""
curvepool - EVM adapters

Balance oracle and clock backed by an EVM chain through web3, for deployments
where the traded unit lives as an ERC-20 token.
"""

import logging
from decimal import Decimal
from typing import Optional

from web3 import Web3

from .collaborators import BalanceOracle, Clock
from .errors import RPCError

log = logging.getLogger(__name__)

ERC20_ABI = [
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}]
    },
    {
        "name": "decimals",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}]
    }
]


class ERC20BalanceOracle(BalanceOracle):
    """
    Reads balanceOf(holder) from an ERC-20 contract.

    Holder ids are EVM addresses. Raw integer balances are scaled by the
    token's decimals into Decimal units.
    """

    def __init__(self, w3: Web3, token_address: str, decimals: Optional[int] = None):
        self.w3 = w3
        self.contract = w3.eth.contract(
            address=Web3.to_checksum_address(token_address),
            abi=ERC20_ABI
        )
        self.decimals = decimals if decimals is not None else self._fetch_decimals()
        log.info(f"ERC20BalanceOracle on {token_address} ({self.decimals} decimals)")

    @classmethod
    def from_rpc_url(cls, rpc_url: str, token_address: str,
                     decimals: Optional[int] = None) -> "ERC20BalanceOracle":
        return cls(Web3(Web3.HTTPProvider(rpc_url)), token_address, decimals)

    def _fetch_decimals(self) -> int:
        try:
            return int(self.contract.functions.decimals().call())
        except Exception as e:
            raise RPCError(-1, f"decimals() failed: {e}")

    def balance_of(self, holder_id: str) -> Decimal:
        try:
            raw = self.contract.functions.balanceOf(
                Web3.to_checksum_address(holder_id)).call()
        except Exception as e:
            raise RPCError(-1, f"balanceOf({holder_id}) failed: {e}")
        return Decimal(int(raw)).scaleb(-self.decimals)


class BlockClock(Clock):
    """Timestamp of the latest block."""

    def __init__(self, w3: Web3):
        self.w3 = w3
        self._last = 0

    def now(self) -> int:
        try:
            timestamp = int(self.w3.eth.get_block("latest")["timestamp"])
        except Exception as e:
            raise RPCError(-1, f"Block query failed: {e}")
        self._last = max(self._last, timestamp)
        return self._last
