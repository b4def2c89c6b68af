from __future__ import annotations

import logging

# Per-solve debug chatter; kept at INFO unless asked for.
SOLVER_LOGGERS = ("grid_bot.prefilter", "grid_bot.lambda_solver", "grid_bot.snapper")


def configure_logging(level: str, verbose_solver: bool = False) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    if not verbose_solver:
        for name in SOLVER_LOGGERS:
            logging.getLogger(name).setLevel(logging.INFO)
