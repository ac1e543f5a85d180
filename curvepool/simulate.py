#!/usr/bin/env python3
# Copyright (c) 2026 The curvepool developers
# Distributed under the MIT software license

"""
curvepool Simulator - replays a pump, crash and jackpot cycle on the sandbox

  1. A few buyers enter the curve
  2. The largest holder dumps, price falls under threshold x ATH
  3. Time passes, a small trade closes the jackpot epoch
  4. Everybody claims dividends and jackpot shares
"""

import argparse
import logging
import sys
from decimal import Decimal

from .config import EngineConfig
from .errors import PoolError
from .sandbox import Sandbox

log = logging.getLogger(__name__)

DEFAULT_BUYERS = ["alice", "bob", "carol", "dave"]
DEFAULT_BUY_VALUE = Decimal("25000")


def status(sandbox: Sandbox):
    """Print pool status"""
    state = sandbox.engine.state()
    print("\n" + "=" * 60)
    print("POOL STATUS")
    print("=" * 60)
    print(f"Reserve:        {Decimal(state['reserve']):,.6f}")
    print(f"Supply:         {Decimal(state['supply']):,.6f} / {Decimal(state['max_supply']):,.0f}")
    print(f"Spot price:     {Decimal(state['spot_price']):,.6f}")
    print(f"ATH:            {Decimal(state['jackpot']['ath']):,.6f}")
    print(f"Jackpot:        {Decimal(state['jackpot']['current_amount']):,.6f} "
          f"(epoch {state['jackpot']['current_epoch']}, {state['jackpot']['state']})")
    print(f"Dividend vault: {Decimal(state['dividend_vault']):,.6f}")
    print(f"\nHolders: {state['holders']}")
    for holder in sandbox.engine.holders:
        print(f"  {holder.holder_id}: {holder.amount:,.6f} units")
    print("=" * 60 + "\n")


def run(config: EngineConfig, buyers, value: Decimal) -> Sandbox:
    sandbox = Sandbox(config)
    engine = sandbox.engine

    print("\n[PHASE 1] Buyers enter the curve")
    for name in buyers:
        ticket = sandbox.buy(name, value)
        print(f"[BUY] {name}: {value:,} -> {ticket.quantity:,.6f} units @ {ticket.price:,.6f}")
    status(sandbox)

    print("[PHASE 2] Largest holder dumps")
    whale = max(engine.holders, key=lambda h: h.amount)
    proceeds = sandbox.sell(whale.holder_id, whale.amount)
    print(f"[SELL] {whale.holder_id}: {whale.amount:,.6f} units -> {proceeds:,.6f}")
    # A second dump starts the below-threshold timer if the first did not
    second = max(engine.holders, key=lambda h: h.amount)
    half = (second.amount / 2).quantize(Decimal(1).scaleb(-18))
    if half > 0:
        proceeds = sandbox.sell(second.holder_id, half)
        print(f"[SELL] {second.holder_id}: {half:,.6f} units -> {proceeds:,.6f}")
    status(sandbox)

    print(f"[PHASE 3] Waiting {config.jackpot_threshold_time}s below threshold")
    sandbox.clock.advance(config.jackpot_threshold_time)
    remaining = [h for h in engine.holders if h.amount > 0]
    if remaining:
        small = min(remaining, key=lambda h: h.amount)
        part = (small.amount / 10).quantize(Decimal(1).scaleb(-18))
        sandbox.sell(small.holder_id, part)
    for epoch in engine.jackpot_epochs():
        print(f"[JACKPOT] epoch {epoch.epoch_number}: {epoch.jackpot_amount:,.6f} "
              f"-> {epoch.prize_per_unit} per unit")
    status(sandbox)

    print("[PHASE 4] Claims")
    for holder in list(engine.holders):
        dividends, jackpot = sandbox.claim(holder.holder_id)
        print(f"[CLAIM] {holder.holder_id}: dividends {dividends:,.6f}, jackpot {jackpot:,.6f}")

    check = engine.check_conservation()
    print(f"\n[CHECK] supply_ok={check['supply_ok']} dividends_ok={check['dividends_ok']} "
          f"gap={check['dividend_gap']}")
    return sandbox


def main():
    parser = argparse.ArgumentParser(description="curvepool pump/crash/jackpot simulation")
    parser.add_argument("--config", help="JSON engine config file")
    parser.add_argument("--buyers", nargs="+", default=DEFAULT_BUYERS, help="Buyer names")
    parser.add_argument("--value", default=str(DEFAULT_BUY_VALUE), help="Value per buy")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format='%(asctime)s [%(levelname)s] %(message)s'
    )

    try:
        config = EngineConfig.from_json_file(args.config) if args.config else EngineConfig()
        run(config, args.buyers, Decimal(args.value))
    except PoolError as e:
        log.error(f"Simulation aborted: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
