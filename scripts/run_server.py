#!/usr/bin/env python3
"""Run the WattWise market API server with a background simulation clock."""

import argparse
import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from api.app import build_app
from engine.config import MarketConfig, load_market_config

logger = logging.getLogger(__name__)


def _optional_int(value: str):
    return int(value) if value not in ("", None) else None


def main() -> None:
    """CLI entry point: parse args, start the simulation clock, run uvicorn."""
    parser = argparse.ArgumentParser(
        description="Run the WattWise market API server.",
    )
    _env = os.environ.get
    parser.add_argument(
        "--config",
        type=str,
        default=_env("WATTWISE_CONFIG", ""),
        help="YAML file overriding market defaults (empty = built-in defaults)",
    )
    parser.add_argument("--flats", type=int, default=_optional_int(_env("WATTWISE_FLATS", "")))
    parser.add_argument("--seed", type=int, default=_optional_int(_env("WATTWISE_SEED", "")))
    parser.add_argument("--pace", type=float, default=float(_env("WATTWISE_PACE", "0")) or None,
                        help="Seconds between ticks")
    parser.add_argument("--port", type=int, default=int(_env("PORT", _env("WATTWISE_PORT", "4000"))))
    parser.add_argument("--host", type=str, default=_env("WATTWISE_HOST", "0.0.0.0"))
    parser.add_argument(
        "--no-top-up",
        action="store_true",
        default=_env("WATTWISE_NO_TOP_UP", "") not in ("", "0", "false"),
        help="Disable the demo credit top-up (closed economy)",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=_env("WATTWISE_DATA_DIR", ""),
        help="Directory for the persistent ledger (empty = in-memory only)",
    )
    parser.add_argument("--log-level", type=str, default=_env("WATTWISE_LOG_LEVEL", "INFO"))
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_market_config(args.config) if args.config else MarketConfig.default()
    overrides = {}
    if args.flats is not None:
        overrides["num_participants"] = args.flats
    if args.seed is not None:
        overrides["random_seed"] = args.seed
    if args.pace is not None:
        overrides["tick_period"] = args.pace
    if args.no_top_up:
        overrides["top_up_enabled"] = False
    if overrides:
        config = config.replace(**overrides)

    app = build_app(config, data_dir=args.data_dir)
    kernel = app.state.wattwise["kernel"]
    app.state.sim_thread = kernel.clock.start()

    import uvicorn

    logger.info("WattWise backend running on %s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)

    # After uvicorn exits, ensure the clock thread stops
    kernel.clock.stop(timeout=5)


if __name__ == "__main__":
    main()
