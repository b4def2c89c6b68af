"""Allocation planner: one pure call per round.

Composes prefilter -> value model + lambda solver -> snapper into
``plan(snapshot, strategy) -> AllocationPlan``. Identical inputs always give
an identical plan; nothing here reads configuration, clocks or I/O.

The solver first prices every option against an empty pool (no own stake
anywhere), then re-solves up to ``pool_refinement_passes`` times with the
pool state of the previous pass so that our own stake on the other options
is part of each option's distributable pool.

Options nobody else has staked are funded first, one ``min_bet`` each,
because their EV only falls above that; the solver gets what is left.

Usage::

    plan = plan(snapshot, StrategyParams(bankroll=300_000_000,
                                         max_per_option=100_000_000,
                                         min_bet=10_000))
    for entry in plan.entries:
        submit(entry.option_index, entry.stake_amount)
"""

from __future__ import annotations

import logging
from typing import Dict

from grid_bot.lambda_solver import SolverResult, solve_lambda
from grid_bot.models import (
    AllocationPlan,
    RoundSnapshot,
    StakeEntry,
    StrategyParams,
    empty_plan,
    validate_snapshot,
    validate_strategy,
)
from grid_bot.prefilter import prefilter
from grid_bot.round_phase import RoundPhase, round_phase
from grid_bot.snapper import snap_allocations
from grid_bot.value_model import ValueModel

LOGGER = logging.getLogger(__name__)


def plan(snapshot: RoundSnapshot, strategy: StrategyParams) -> AllocationPlan:
    validate_snapshot(snapshot)
    validate_strategy(strategy)

    phase = round_phase(
        snapshot.remaining_time_units,
        strategy.deadline_threshold,
        snapshot.round_open,
    )
    if phase is RoundPhase.OPEN:
        return empty_plan(strategy.bankroll, "too_early")
    if phase is RoundPhase.LOCKED:
        return empty_plan(strategy.bankroll, "round_locked")

    if strategy.bankroll == 0:
        return empty_plan(strategy.bankroll, "empty_bankroll")
    if strategy.bankroll < strategy.min_bet:
        return empty_plan(strategy.bankroll, "infeasible_budget")

    candidates = prefilter(snapshot, strategy)
    if not candidates:
        return empty_plan(strategy.bankroll, "no_positive_ev")

    base = ValueModel(snapshot, strategy)
    flat = _fund_flat_options(base, candidates, strategy)
    staked = tuple(index for index in candidates if not base.is_flat(index))
    budget = strategy.bankroll - sum(flat.values())

    result = _solve(base.with_pool(flat), staked, budget, strategy)
    for _ in range(strategy.pool_refinement_passes):
        refined = _solve(base.with_pool({**flat, **result.allocations}), staked, budget, strategy)
        if refined.allocations == result.allocations:
            break
        result = refined

    if not result.converged:
        LOGGER.warning(
            "lambda solver hit its iteration budget: lam=%d aggregate=%d bankroll=%d",
            result.lambda_wad, result.aggregate, budget,
        )

    snapped = snap_allocations(base, {**result.allocations, **flat}, strategy)
    entries = tuple(
        StakeEntry(option_index=index, stake_amount=stake)
        for index, stake in sorted(snapped.allocations.items())
        if stake > 0
    )
    expected_value = sum(
        snapped.model.value(entry.option_index, entry.stake_amount) for entry in entries
    )

    allocation = AllocationPlan(
        entries=entries,
        bankroll=strategy.bankroll,
        converged=result.converged,
        reason="" if entries else "nothing_after_snapping",
        lambda_wad=result.lambda_wad,
        solver_iterations=result.iterations,
        expected_value=expected_value,
    )
    LOGGER.debug(
        "plan options=%d total=%d bankroll=%d ev=%d lam=%d",
        len(entries), allocation.total_allocated, strategy.bankroll,
        expected_value, result.lambda_wad,
    )
    return allocation


def _fund_flat_options(
    model: ValueModel,
    candidates: tuple[int, ...],
    strategy: StrategyParams,
) -> Dict[int, int]:
    """One ``min_bet`` on each unstaked candidate, best value first.

    Their EV falls with every unit above ``min_bet``, so they are funded
    ahead of the solver, which shares out whatever budget remains.
    """
    flat = [index for index in candidates if model.is_flat(index)]
    ranked = sorted(flat, key=lambda index: (-model.value(index, strategy.min_bet), index))
    funded: Dict[int, int] = {}
    budget = strategy.bankroll
    for index in ranked:
        if budget < strategy.min_bet:
            break
        funded[index] = strategy.min_bet
        budget -= strategy.min_bet
    if funded:
        LOGGER.debug("funded unstaked options at min_bet: %s", sorted(funded))
    return funded


def _solve(
    model: ValueModel,
    candidates: tuple[int, ...],
    budget: int,
    strategy: StrategyParams,
) -> SolverResult:
    return solve_lambda(
        model,
        candidates,
        bankroll=budget,
        max_per_option=strategy.max_per_option,
        tick_size=strategy.tick_size,
        max_iterations=strategy.solver_max_iterations,
    )


class AllocationPlanner:
    """Holds the protocol constants injected at startup and plans per round."""

    def __init__(self, pool_skim_bps: int, reward_per_round: int = 0) -> None:
        self._pool_skim_bps = pool_skim_bps
        self._reward_per_round = reward_per_round

    @property
    def pool_skim_bps(self) -> int:
        return self._pool_skim_bps

    def plan(
        self,
        existing_stake: tuple[int, ...],
        existing_bettors: tuple[int, ...],
        remaining_time_units: int,
        strategy: StrategyParams,
        round_open: bool = True,
    ) -> AllocationPlan:
        snapshot = RoundSnapshot(
            existing_stake=tuple(existing_stake),
            existing_bettors=tuple(existing_bettors),
            pool_skim_bps=self._pool_skim_bps,
            remaining_time_units=remaining_time_units,
            round_open=round_open,
            reward_per_round=self._reward_per_round,
        )
        allocation = plan(snapshot, strategy)
        if allocation.is_empty:
            LOGGER.info("empty plan reason=%s remaining=%d", allocation.reason, remaining_time_units)
        else:
            LOGGER.info(
                "plan options=%d total=%d ev=%d converged=%s",
                len(allocation.entries), allocation.total_allocated,
                allocation.expected_value, allocation.converged,
            )
        return allocation
