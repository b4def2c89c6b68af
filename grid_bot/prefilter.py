from __future__ import annotations

import logging

from grid_bot.models import GRID_SIZE, RoundSnapshot, StrategyParams
from grid_bot.value_model import ValueModel

LOGGER = logging.getLogger(__name__)


def prefilter(
    snapshot: RoundSnapshot,
    strategy: StrategyParams,
) -> tuple[int, ...]:
    """Option indices that can carry a positive-EV stake.

    Evaluated with no own allocations in the pool. A staked option survives
    when its marginal value at zero stake is strictly positive; past that
    point EV only falls. An option nobody has staked survives when a single
    ``min_bet`` already has positive value, since its EV falls with every
    unit added above that.
    """
    model = ValueModel(snapshot, strategy)
    survivors = tuple(
        index for index in range(GRID_SIZE)
        if _can_be_positive(model, index, strategy.min_bet)
    )
    LOGGER.debug("prefilter kept %d/%d options: %s", len(survivors), GRID_SIZE, survivors)
    return survivors


def _can_be_positive(model: ValueModel, index: int, min_bet: int) -> bool:
    if model.is_flat(index):
        return model.value(index, min_bet) > 0
    return model.marginal_value(index, 0) > 0
