from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from grid_bot.board_ev import board_ev
from grid_bot.config import load_settings
from grid_bot.logging_setup import configure_logging
from grid_bot.models import InvalidParameters
from grid_bot.planner import plan
from grid_bot.snapshot import read_snapshot

LOGGER = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Plan EV-maximizing stakes for one round of the 25-option grid",
    )
    parser.add_argument(
        "--snapshot",
        type=str,
        required=True,
        help="Path to a JSON grid-state observation",
    )
    parser.add_argument(
        "--bankroll",
        type=int,
        default=None,
        help="Override GRID_BANKROLL for this run",
    )
    parser.add_argument(
        "--board",
        action="store_true",
        help="Also print the bankroll-independent per-option EV report",
    )
    return parser.parse_args(argv)


def run(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = load_settings()
    configure_logging(settings.log_level, settings.verbose_solver)

    if args.bankroll is not None:
        settings = replace(
            settings,
            strategy=replace(settings.strategy, bankroll=args.bankroll, gross_balance=None),
        )

    try:
        payload = json.loads(Path(args.snapshot).read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise InvalidParameters(f"snapshot file must hold a JSON object, got {type(payload).__name__}")
        snapshot = read_snapshot(payload, pool_skim_bps=settings.protocol.pool_skim_bps)
        if "reward_per_round" not in payload:
            snapshot = replace(snapshot, reward_per_round=settings.protocol.reward_per_round)
        strategy = settings.strategy_params()
        allocation = plan(snapshot, strategy)
    except (InvalidParameters, json.JSONDecodeError) as exc:
        LOGGER.error("invalid parameters: %s", exc)
        return 2

    output = {"plan": allocation.as_dict()}
    if args.board:
        output["board"] = board_ev(snapshot, strategy.unit_value_ratio).as_dict()
    print(json.dumps(output, indent=2, sort_keys=True))

    LOGGER.info(
        "planned options=%d total=%d bankroll=%d reason=%s",
        len(allocation.entries),
        allocation.total_allocated,
        allocation.bankroll,
        allocation.reason or "-",
    )
    return 0


if __name__ == "__main__":
    sys.exit(run())
