#!/usr/bin/env python3
"""
curvepool Server - read-only REST API over an engine

Endpoints:
  GET  /health                             - Liveness
  GET  /api/state                          - Pool, dividend and jackpot state
  GET  /api/quote/buy?value=               - Preview a buy
  GET  /api/quote/sell?quantity=           - Preview a sell
  GET  /api/holders/<holder_id>            - Holder record and claimable amounts
  GET  /api/holders/<holder_id>/reconcile  - Recorded amount vs external balance
  GET  /api/jackpots                       - Closed jackpot epochs

Balances and time come from the in-memory sandbox by default, from a node
(--rpc-host) or from an ERC-20 contract on an EVM chain (--evm-rpc, --token).
"""

import argparse
import logging
import sys
import time
from typing import Optional, Tuple

from flask import Flask, jsonify, request
from flask_cors import CORS
from web3 import Web3

from .collaborators import BalanceOracle, Clock, Collaborators, LoggingEventSink
from .config import EngineConfig
from .engine import ExchangeEngine
from .errors import MissingHolder, PoolError
from .evm import BlockClock, ERC20BalanceOracle
from .rpc_client import RPCBalanceOracle, RPCClient, RPCClock
from .sandbox import ManualClock, MemoryToken, MemoryVault, SignerAuthorizer

log = logging.getLogger(__name__)

HTTP_PORT = 8080
RPC_PORT = 27170


def create_app(engine: ExchangeEngine) -> Flask:
    app = Flask(__name__)
    CORS(app)  # Allow cross-origin for frontends

    @app.errorhandler(PoolError)
    def pool_error(e: PoolError):
        status = 404 if isinstance(e, MissingHolder) else 400
        return jsonify({'ok': False, 'error': e.to_dict()}), status

    @app.route('/health')
    def health():
        """Simple health check - returns ok if server is running"""
        return jsonify({'ok': True, 'timestamp': int(time.time())})

    @app.route('/api/state')
    def state():
        return jsonify({'ok': True, 'state': engine.state()})

    @app.route('/api/quote/buy')
    def quote_buy():
        value = request.args.get('value', '')
        return jsonify({'ok': True, 'quote': engine.quote_buy(value).to_dict()})

    @app.route('/api/quote/sell')
    def quote_sell():
        quantity = request.args.get('quantity', '')
        return jsonify({'ok': True, 'quote': engine.quote_sell(quantity).to_dict()})

    @app.route('/api/holders/<holder_id>')
    def holder(holder_id):
        return jsonify({'ok': True, 'holder': engine.holder_view(holder_id)})

    @app.route('/api/holders/<holder_id>/reconcile')
    def reconcile(holder_id):
        return jsonify({'ok': True, 'reconcile': engine.reconcile(holder_id)})

    @app.route('/api/jackpots')
    def jackpots():
        epochs = [epoch.to_dict() for epoch in engine.jackpot_epochs()]
        return jsonify({'ok': True, 'epochs': epochs, 'count': len(epochs)})

    return app


def build_engine(config: EngineConfig, balances: Optional[BalanceOracle] = None,
                 clock: Optional[Clock] = None) -> ExchangeEngine:
    """
    Engine over in-memory custody, with balances and time optionally taken
    from a chain. Without them the memory token answers balance queries.
    """
    token = MemoryToken()
    collaborators = Collaborators(
        pool=MemoryVault("pool"),
        dividend_vault=MemoryVault("dividends"),
        jackpot_vault=MemoryVault("jackpot"),
        token=token,
        balances=balances or token,
        authorizer=SignerAuthorizer(),
        events=LoggingEventSink(),
        clock=clock or ManualClock(int(time.time())),
    )
    return ExchangeEngine(config, collaborators)


def chain_adapters(args) -> Tuple[Optional[BalanceOracle], Optional[Clock]]:
    """Balance oracle and clock selected by the command line."""
    if args.evm_rpc:
        w3 = Web3(Web3.HTTPProvider(args.evm_rpc))
        log.info(f"Balances from ERC-20 {args.token} via {args.evm_rpc}")
        return ERC20BalanceOracle(w3, args.token, args.decimals), BlockClock(w3)
    if args.rpc_host:
        rpc = RPCClient(args.rpc_host, args.rpc_port, args.rpc_user, args.rpc_password)
        log.info(f"Balances from node {rpc.url} (minconf {args.minconf})")
        return RPCBalanceOracle(rpc, args.minconf), RPCClock(rpc)
    return None, None


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="curvepool REST API")
    parser.add_argument("--config", help="JSON engine config file")
    parser.add_argument("--port", type=int, default=HTTP_PORT, help="HTTP port")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    node = parser.add_argument_group("node balances")
    node.add_argument("--rpc-host", help="Node RPC host")
    node.add_argument("--rpc-port", type=int, default=RPC_PORT, help="Node RPC port")
    node.add_argument("--rpc-user", default="", help="Node RPC user")
    node.add_argument("--rpc-password", default="", help="Node RPC password")
    node.add_argument("--minconf", type=int, default=1, help="Confirmations to count")

    evm = parser.add_argument_group("ERC-20 balances")
    evm.add_argument("--evm-rpc", help="EVM JSON-RPC URL")
    evm.add_argument("--token", help="ERC-20 contract address")
    evm.add_argument("--decimals", type=int, help="Token decimals (read from chain if omitted)")

    args = parser.parse_args(argv)
    if args.evm_rpc and not args.token:
        parser.error("--evm-rpc requires --token")
    if args.evm_rpc and args.rpc_host:
        parser.error("use either --evm-rpc or --rpc-host")
    return args


def main():
    args = parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s'
    )

    try:
        config = EngineConfig.from_json_file(args.config) if args.config else EngineConfig()
        balances, clock = chain_adapters(args)
        engine = build_engine(config, balances, clock)
    except PoolError as e:
        log.error(f"Startup failed: {e}")
        sys.exit(1)

    log.info(f"Serving engine on port {args.port}")
    create_app(engine).run(host="0.0.0.0", port=args.port)


if __name__ == '__main__':
    main()
