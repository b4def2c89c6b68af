from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping

from grid_bot.models import StrategyParams
from grid_bot.value_model import ValueModel

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapResult:
    """Feasible discrete allocation plus the model priced against it."""

    allocations: Dict[int, int]
    model: ValueModel
    rejected: Dict[int, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.allocations.values())


def snap_allocations(
    model: ValueModel,
    allocations: Mapping[int, int],
    strategy: StrategyParams,
) -> SnapResult:
    """Project continuous stakes onto tick/min-bet/cap limits, keeping EV > 0.

    Rounding leftovers are not redistributed; the snapped total never
    exceeds the continuous total.
    """
    tick = strategy.tick_size
    snapped: Dict[int, int] = {}
    rejected: Dict[int, str] = {}

    for index, amount in sorted(allocations.items()):
        stake = amount // tick * tick
        if stake < strategy.min_bet:
            if amount > 0:
                rejected[index] = "below_min_bet"
            continue
        snapped[index] = min(stake, strategy.max_per_option)

    # Dropping one option shrinks the pool every other option is priced
    # against, so re-check until nothing else turns non-positive.
    priced = model.with_pool(snapped)
    while True:
        losers = [index for index, stake in snapped.items() if priced.value(index, stake) <= 0]
        if not losers:
            break
        for index in losers:
            del snapped[index]
            rejected[index] = "non_positive_ev"
        priced = model.with_pool(snapped)

    if rejected:
        LOGGER.debug("snapper rejected %s", rejected)
    return SnapResult(allocations=snapped, model=priced, rejected=rejected)
