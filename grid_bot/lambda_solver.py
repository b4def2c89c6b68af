"""Shadow-price (lambda) solver for the bankroll constraint.

Water-filling: at the optimum every funded option has marginal value equal
to a single shadow price ``lam`` and every unfunded option has marginal
value at most ``lam``. Aggregate allocation

    agg(lam) = sum_i min(optimal_unconstrained_x(i, lam), max_per_option)

is non-increasing in ``lam``, so an integer bisection on ``lam`` converges
monotonically. The solver keeps ``agg(lo) > bankroll >= agg(hi)`` and only
ever returns the ``hi`` side, so its allocation never exceeds the bankroll.

Usage::

    result = solve_lambda(model, (0, 3, 7), bankroll=300_000_000,
                          max_per_option=100_000_000, tick_size=1)
    result.allocations   # {option_index: stake}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Sequence

from grid_bot.value_model import ValueModel

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 60
_MAX_BRACKET_DOUBLINGS = 128


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SolverResult:
    """Continuous (pre-snap) allocation at the converged shadow price.

    ``converged`` is False when the iteration budget ran out before the
    aggregate came within one tick of the bankroll; the allocation is then
    the best feasible estimate found.
    """

    lambda_wad: int
    allocations: Dict[int, int] = field(default_factory=dict)
    aggregate: int = 0
    iterations: int = 0
    converged: bool = True


# ---------------------------------------------------------------------------
# Solver
# ---------------------------------------------------------------------------


def solve_lambda(
    model: ValueModel,
    candidates: Sequence[int],
    bankroll: int,
    max_per_option: int,
    tick_size: int,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> SolverResult:
    """Find the smallest shadow price whose allocation fits ``bankroll``."""
    if not candidates or bankroll <= 0:
        return SolverResult(lambda_wad=0)

    def allocate(lam: int) -> Dict[int, int]:
        return {
            index: min(model.optimal_unconstrained_x(index, lam), max_per_option)
            for index in candidates
        }

    saturated = allocate(0)
    saturated_total = sum(saturated.values())
    if saturated_total <= bankroll:
        # Every option already sits at its unconstrained optimum or its cap.
        LOGGER.debug("lambda solver saturated at lam=0 aggregate=%d bankroll=%d", saturated_total, bankroll)
        return SolverResult(
            lambda_wad=0,
            allocations=_funded(saturated),
            aggregate=saturated_total,
        )

    lo = 0
    hi = max(1, max(model.marginal_value(index, 0) for index in candidates) + 1)
    upper = allocate(hi)
    doublings = 0
    while sum(upper.values()) > bankroll:
        if doublings >= _MAX_BRACKET_DOUBLINGS:
            LOGGER.warning("lambda solver could not bracket bankroll=%d", bankroll)
            return SolverResult(lambda_wad=hi, converged=False)
        lo = hi
        hi *= 2
        upper = allocate(hi)
        doublings += 1

    iterations = 0
    converged = False
    while True:
        aggregate = sum(upper.values())
        if bankroll - aggregate < tick_size or hi - lo <= 1:
            converged = True
            break
        if iterations >= max_iterations:
            break
        mid = (lo + hi) // 2
        trial = allocate(mid)
        iterations += 1
        if sum(trial.values()) > bankroll:
            lo = mid
        else:
            hi = mid
            upper = trial

    aggregate = sum(upper.values())
    LOGGER.debug(
        "lambda solver lam=%d aggregate=%d bankroll=%d iterations=%d converged=%s",
        hi, aggregate, bankroll, iterations, converged,
    )
    return SolverResult(
        lambda_wad=hi,
        allocations=_funded(upper),
        aggregate=aggregate,
        iterations=iterations,
        converged=converged,
    )


def _funded(allocations: Dict[int, int]) -> Dict[int, int]:
    return {index: amount for index, amount in sorted(allocations.items()) if amount > 0}
