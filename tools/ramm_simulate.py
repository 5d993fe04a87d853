#!/usr/bin/env python3

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ramm import DEFAULT_CONSTANTS, Context, RammEngine, RammError, StateStore, load_constants
from ramm.core.math import UNIT


def _parse_eth(text: str) -> int:
    """Whole units (e.g. "145000") or raw wei with a "wei:" prefix."""
    if text.startswith("wei:"):
        return int(text[4:])
    return int(text) * UNIT


def main() -> int:
    ap = argparse.ArgumentParser(
        description="Fast-forward a fresh RAMM through fixed time steps and print reserves and prices as JSON lines.",
    )
    ap.add_argument("--config", type=str, default="", help="YAML file with constant overrides")
    ap.add_argument("--capital", type=str, default="145000", help="capital pool value (ETH)")
    ap.add_argument("--supply", type=str, default="6700000", help="NXM supply")
    ap.add_argument("--mcr", type=str, default="110000", help="minimum capital requirement (ETH)")
    ap.add_argument("--spot-a", type=str, default="wei:22500000000000000", help="initial side A spot price")
    ap.add_argument("--spot-b", type=str, default="wei:20000000000000000", help="initial side B spot price")
    ap.add_argument("--start", type=int, default=1_700_000_000)
    ap.add_argument("--step", type=int, default=3600, help="seconds between steps")
    ap.add_argument("--steps", type=int, default=48)
    ap.add_argument("--commit", action="store_true", help="persist the TWAP at every step")
    ap.add_argument("--log-level", type=str, default="WARNING")
    args = ap.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    constants = load_constants(args.config) if args.config else DEFAULT_CONSTANTS
    context = Context(
        capital=_parse_eth(args.capital),
        supply=_parse_eth(args.supply),
        mcr=_parse_eth(args.mcr),
    )

    try:
        store = StateStore.initialize(_parse_eth(args.spot_a), _parse_eth(args.spot_b), args.start, constants)
        engine = RammEngine(store, lambda: context)
        for n in range(args.steps + 1):
            now = args.start + n * args.step
            reserves = engine.get_reserves(now)
            if args.commit:
                price = engine.get_internal_price_and_update_twap(now)
            else:
                price = engine.get_internal_price(now)
            spot_a, spot_b = engine.get_spot_prices(now)
            print(json.dumps({
                "t": now,
                "eth": reserves.eth,
                "nxm_a": reserves.nxm_a,
                "nxm_b": reserves.nxm_b,
                "budget": reserves.budget,
                "spot_a": spot_a,
                "spot_b": spot_b,
                "book_value": engine.get_book_value(),
                "internal_price": price,
            }, sort_keys=True))
    except RammError as exc:
        print(f"[ramm-simulate] FAIL: {exc}", file=sys.stderr)
        return 1

    if args.commit:
        print(f"[ramm-simulate] state_root={store.state_root()}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
