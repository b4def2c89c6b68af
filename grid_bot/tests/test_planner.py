"""End-to-end tests for plan() and AllocationPlanner."""

from __future__ import annotations

import json
import logging

import pytest

from grid_bot.models import (
    GRID_SIZE,
    AllocationPlan,
    InvalidParameters,
    RoundSnapshot,
    StrategyParams,
)
from grid_bot.planner import AllocationPlanner, plan
from grid_bot.prefilter import prefilter
from grid_bot.value_model import ValueModel


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

LADDER = tuple((k + 1) * 100_000_000 for k in range(GRID_SIZE))
# Five thin options among twenty crowded ones.
CLUSTER = (10_000_000,) * 5 + (2_000_000_000,) * 20


def _snapshot(stakes=LADDER, **kw) -> RoundSnapshot:
    defaults = dict(
        existing_stake=tuple(stakes),
        existing_bettors=(3,) * GRID_SIZE,
        remaining_time_units=1,
    )
    defaults.update(kw)
    return RoundSnapshot(**defaults)


def _strategy(**kw) -> StrategyParams:
    defaults = dict(
        bankroll=500_000_000,
        max_per_option=200_000_000,
        min_bet=1_000_000,
        tick_size=100_000,
    )
    defaults.update(kw)
    return StrategyParams(**defaults)


def _cluster_strategy(**kw) -> StrategyParams:
    defaults = dict(bankroll=300_000_000, max_per_option=100_000_000, min_bet=10_000, tick_size=1)
    defaults.update(kw)
    return StrategyParams(**defaults)


BOARDS = [
    LADDER,
    tuple(reversed(LADDER)),
    CLUSTER,
    tuple((3 if k % 2 else 1) * 150_000_000 for k in range(GRID_SIZE)),
    tuple(50_000_000 + (k * 37 % 25) * 90_000_000 for k in range(GRID_SIZE)),
    LADDER[:20] + (0,) * 5,
]


# ---------------------------------------------------------------------------
# Gating reasons
# ---------------------------------------------------------------------------


class TestGating:
    def test_all_zero_board_is_empty(self) -> None:
        result = plan(_snapshot([0] * GRID_SIZE), _cluster_strategy())
        assert result.is_empty
        assert result.reason == "no_positive_ev"
        assert result.total_allocated == 0

    def test_too_early(self) -> None:
        result = plan(_snapshot(CLUSTER, remaining_time_units=10), _cluster_strategy(deadline_threshold=2))
        assert result.is_empty
        assert result.reason == "too_early"

    def test_at_threshold_plans(self) -> None:
        result = plan(_snapshot(CLUSTER, remaining_time_units=2), _cluster_strategy(deadline_threshold=2))
        assert not result.is_empty

    def test_locked_round(self) -> None:
        result = plan(_snapshot(CLUSTER, remaining_time_units=0, round_open=False), _cluster_strategy())
        assert result.is_empty
        assert result.reason == "round_locked"

    def test_zero_countdown_still_open_plans(self) -> None:
        result = plan(_snapshot(CLUSTER, remaining_time_units=0, round_open=True), _cluster_strategy())
        assert not result.is_empty

    def test_empty_bankroll(self) -> None:
        result = plan(_snapshot(), _strategy(bankroll=0))
        assert result.is_empty
        assert result.reason == "empty_bankroll"

    def test_bankroll_below_min_bet(self) -> None:
        result = plan(_snapshot(), _strategy(bankroll=999_999))
        assert result.is_empty
        assert result.reason == "infeasible_budget"

    def test_uniform_board_no_positive_ev(self) -> None:
        result = plan(_snapshot([1_000_000_000] * GRID_SIZE), _strategy())
        assert result.reason == "no_positive_ev"

    def test_empty_plan_keeps_bankroll(self) -> None:
        result = plan(_snapshot(remaining_time_units=50), _strategy())
        assert result.bankroll == 500_000_000
        assert result.entries == ()


# ---------------------------------------------------------------------------
# Allocation properties
# ---------------------------------------------------------------------------


class TestSymmetricCluster:
    def test_equal_stakes_on_thin_options(self) -> None:
        result = plan(_snapshot(CLUSTER), _cluster_strategy())
        assert [entry.option_index for entry in result.entries] == [0, 1, 2, 3, 4]
        stakes = {entry.stake_amount for entry in result.entries}
        assert len(stakes) == 1
        assert 300_000_000 - 5 <= result.total_allocated <= 300_000_000

    def test_positive_expected_value(self) -> None:
        result = plan(_snapshot(CLUSTER), _cluster_strategy())
        assert result.expected_value > 0
        assert result.converged


class TestCapBinds:
    def test_every_positive_option_at_cap(self) -> None:
        strategy = _strategy(bankroll=100_000_000_000, max_per_option=10_000_000)
        result = plan(_snapshot(), strategy)
        assert result.stakes == {index: 10_000_000 for index in range(11)}
        assert result.lambda_wad == 0
        # Leftover budget is not redistributed.
        assert result.total_allocated == 110_000_000


@pytest.mark.parametrize("stakes", BOARDS)
class TestInvariants:
    def test_within_bankroll(self, stakes) -> None:
        strategy = _strategy()
        assert plan(_snapshot(stakes), strategy).total_allocated <= strategy.bankroll

    def test_granularity(self, stakes) -> None:
        strategy = _strategy()
        for entry in plan(_snapshot(stakes), strategy).entries:
            assert entry.stake_amount % strategy.tick_size == 0
            assert strategy.min_bet <= entry.stake_amount <= strategy.max_per_option

    def test_each_entry_positive_ev(self, stakes) -> None:
        snapshot = _snapshot(stakes)
        strategy = _strategy()
        result = plan(snapshot, strategy)
        priced = ValueModel(snapshot, strategy).with_pool(result.stakes)
        for entry in result.entries:
            assert priced.value(entry.option_index, entry.stake_amount) > 0

    def test_only_prefiltered_options(self, stakes) -> None:
        snapshot = _snapshot(stakes)
        strategy = _strategy()
        result = plan(snapshot, strategy)
        indices = [entry.option_index for entry in result.entries]
        assert indices == sorted(set(indices))
        assert set(indices) <= set(prefilter(snapshot, strategy))

    def test_deterministic(self, stakes) -> None:
        first = plan(_snapshot(stakes), _strategy())
        second = plan(_snapshot(stakes), _strategy())
        assert first == second
        assert json.dumps(first.as_dict(), sort_keys=True) == json.dumps(second.as_dict(), sort_keys=True)


class TestMonotoneInBankroll:
    def test_total_non_decreasing(self) -> None:
        bankrolls = [0, 10_000_000, 100_000_000, 500_000_000, 1_000_000_000, 10_000_000_000]
        totals = [plan(_snapshot(), _strategy(bankroll=b)).total_allocated for b in bankrolls]
        assert totals == sorted(totals)
        assert totals[-1] > 0


class TestRefinement:
    def test_zero_passes_still_feasible(self) -> None:
        strategy = _strategy(pool_refinement_passes=0)
        result = plan(_snapshot(), strategy)
        assert not result.is_empty
        assert result.total_allocated <= strategy.bankroll

    def test_reward_raises_expected_value(self) -> None:
        strategy = _strategy(unit_value_ratio=800_000_000)
        plain = plan(_snapshot(), strategy)
        rewarded = plan(_snapshot(reward_per_round=100_000_000_000), strategy)
        assert rewarded.expected_value > plain.expected_value


class TestConvergence:
    def test_iteration_budget_warns(self, caplog) -> None:
        strategy = _strategy(bankroll=100_000_000, tick_size=1, min_bet=1, solver_max_iterations=1)
        with caplog.at_level(logging.WARNING, logger="grid_bot.planner"):
            result = plan(_snapshot(), strategy)
        assert not result.converged
        assert result.total_allocated <= strategy.bankroll
        assert any("iteration budget" in record.getMessage() for record in caplog.records)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestInvalidParameters:
    def test_wrong_board_size(self) -> None:
        snapshot = RoundSnapshot(existing_stake=(1,) * 24, existing_bettors=(0,) * 24)
        with pytest.raises(InvalidParameters):
            plan(snapshot, _strategy())

    def test_negative_stake(self) -> None:
        stakes = list(LADDER)
        stakes[3] = -1
        with pytest.raises(InvalidParameters):
            plan(_snapshot(stakes), _strategy())

    def test_min_bet_off_tick(self) -> None:
        with pytest.raises(InvalidParameters):
            plan(_snapshot(), _strategy(min_bet=1_050_000))

    def test_validated_even_when_too_early(self) -> None:
        with pytest.raises(InvalidParameters):
            plan(_snapshot(remaining_time_units=99), _strategy(tick_size=0))

    def test_is_value_error(self) -> None:
        assert issubclass(InvalidParameters, ValueError)


# ---------------------------------------------------------------------------
# AllocationPlanner
# ---------------------------------------------------------------------------


class TestAllocationPlanner:
    def test_matches_plan(self) -> None:
        planner = AllocationPlanner(pool_skim_bps=1_090)
        strategy = _strategy()
        result = planner.plan(LADDER, (3,) * GRID_SIZE, 1, strategy)
        assert isinstance(result, AllocationPlan)
        assert result == plan(_snapshot(), strategy)

    def test_injected_skim(self) -> None:
        planner = AllocationPlanner(pool_skim_bps=0)
        assert planner.pool_skim_bps == 0
        strategy = _strategy()
        result = planner.plan(LADDER, (3,) * GRID_SIZE, 1, strategy)
        assert result == plan(_snapshot(pool_skim_bps=0), strategy)

    def test_logs_empty_reason(self, caplog) -> None:
        planner = AllocationPlanner(pool_skim_bps=1_090)
        with caplog.at_level(logging.INFO, logger="grid_bot.planner"):
            planner.plan(LADDER, (3,) * GRID_SIZE, 30, _strategy())
        assert any("too_early" in record.getMessage() for record in caplog.records)


# ---------------------------------------------------------------------------
# Unstaked options
# ---------------------------------------------------------------------------


def _flat_strategy(**kw) -> StrategyParams:
    defaults = dict(
        bankroll=1_000_000_000,
        max_per_option=200_000_000,
        min_bet=10_000_000,
        tick_size=1_000_000,
    )
    defaults.update(kw)
    return StrategyParams(**defaults)


class TestUnstakedOptions:
    def test_single_unstaked_option_funded_at_min_bet(self) -> None:
        stakes = [100_000_000] * GRID_SIZE
        stakes[3] = 0
        result = plan(_snapshot(stakes), _flat_strategy())
        assert result.stakes == {3: 10_000_000}
        assert result.reason == ""
        # (10_000_000 + 8910 * 2_400_000_000 // 10_000) // 25 - 10_000_000
        assert result.expected_value == 75_936_000

    def test_funded_alongside_solver_allocation(self) -> None:
        stakes = LADDER[:24] + (0,)
        result = plan(_snapshot(stakes), _strategy())
        assert result.stakes[24] == 1_000_000
        assert len(result.entries) > 1
        assert result.total_allocated <= 500_000_000

    def test_budget_limits_unstaked_options_in_index_order(self) -> None:
        stakes = [0] * 5 + [100_000_000] * 20
        result = plan(_snapshot(stakes), _flat_strategy(bankroll=25_000_000))
        assert result.stakes == {0: 10_000_000, 1: 10_000_000}

    def test_unstaked_option_without_pool_stays_empty(self) -> None:
        result = plan(_snapshot([0] * GRID_SIZE), _flat_strategy())
        assert result.reason == "no_positive_ev"


class TestClosedFlagWithSlotsLeft:
    def test_still_planned(self) -> None:
        result = plan(_snapshot(CLUSTER, remaining_time_units=1, round_open=False), _cluster_strategy())
        assert not result.is_empty
