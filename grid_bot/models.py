from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


GRID_SIZE = 25
BPS = 10_000
DEFAULT_POOL_SKIM_BPS = 1_090


class InvalidParameters(ValueError):
    """Malformed snapshot or strategy; the caller must fix its configuration."""


@dataclass(frozen=True)
class RoundSnapshot:
    existing_stake: tuple[int, ...]
    existing_bettors: tuple[int, ...]
    pool_skim_bps: int = DEFAULT_POOL_SKIM_BPS
    remaining_time_units: int = 0
    round_open: bool = True
    reward_per_round: int = 0

    @property
    def total_stake(self) -> int:
        return sum(self.existing_stake)


@dataclass(frozen=True)
class StrategyParams:
    bankroll: int
    max_per_option: int
    min_bet: int
    tick_size: int = 1
    unit_value_ratio: int = 0
    deadline_threshold: int = 2
    # Lambda-solver bisection budget; 60 halvings cover a 64-bit range.
    solver_max_iterations: int = 60
    pool_refinement_passes: int = 2


@dataclass(frozen=True)
class StakeEntry:
    option_index: int
    stake_amount: int


@dataclass(frozen=True)
class AllocationPlan:
    entries: tuple[StakeEntry, ...]
    bankroll: int
    converged: bool = True
    reason: str = ""
    lambda_wad: int = 0
    solver_iterations: int = 0
    expected_value: int = 0

    @property
    def total_allocated(self) -> int:
        return sum(entry.stake_amount for entry in self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @property
    def stakes(self) -> Dict[int, int]:
        return {entry.option_index: entry.stake_amount for entry in self.entries}

    def as_dict(self) -> Dict[str, Any]:
        return {
            "entries": [
                {"option_index": entry.option_index, "stake_amount": entry.stake_amount}
                for entry in self.entries
            ],
            "total_allocated": self.total_allocated,
            "bankroll": self.bankroll,
            "converged": self.converged,
            "reason": self.reason,
            "lambda_wad": self.lambda_wad,
            "solver_iterations": self.solver_iterations,
            "expected_value": self.expected_value,
        }


def empty_plan(bankroll: int, reason: str) -> AllocationPlan:
    return AllocationPlan(entries=(), bankroll=bankroll, reason=reason)


def validate_snapshot(snapshot: RoundSnapshot) -> None:
    if len(snapshot.existing_stake) != GRID_SIZE:
        raise InvalidParameters(
            f"existing_stake must have {GRID_SIZE} entries, got {len(snapshot.existing_stake)}"
        )
    if len(snapshot.existing_bettors) != GRID_SIZE:
        raise InvalidParameters(
            f"existing_bettors must have {GRID_SIZE} entries, got {len(snapshot.existing_bettors)}"
        )
    for index, amount in enumerate(snapshot.existing_stake):
        _require_non_negative_int(f"existing_stake[{index}]", amount)
    for index, count in enumerate(snapshot.existing_bettors):
        _require_non_negative_int(f"existing_bettors[{index}]", count)
    _require_non_negative_int("pool_skim_bps", snapshot.pool_skim_bps)
    if snapshot.pool_skim_bps > BPS:
        raise InvalidParameters(f"pool_skim_bps out of range [0, {BPS}]: {snapshot.pool_skim_bps}")
    _require_non_negative_int("remaining_time_units", snapshot.remaining_time_units)
    _require_non_negative_int("reward_per_round", snapshot.reward_per_round)
    if not isinstance(snapshot.round_open, bool):
        raise InvalidParameters(f"round_open must be a bool: {snapshot.round_open!r}")


def validate_strategy(strategy: StrategyParams) -> None:
    _require_non_negative_int("bankroll", strategy.bankroll)
    _require_non_negative_int("unit_value_ratio", strategy.unit_value_ratio)
    _require_non_negative_int("deadline_threshold", strategy.deadline_threshold)
    _require_non_negative_int("pool_refinement_passes", strategy.pool_refinement_passes)
    for name in ("tick_size", "min_bet", "max_per_option", "solver_max_iterations"):
        value = getattr(strategy, name)
        _require_non_negative_int(name, value)
        if value == 0:
            raise InvalidParameters(f"{name} must be positive")

    tick = strategy.tick_size
    if strategy.min_bet % tick:
        raise InvalidParameters(f"min_bet {strategy.min_bet} is not a multiple of tick_size {tick}")
    if strategy.max_per_option % tick:
        raise InvalidParameters(
            f"max_per_option {strategy.max_per_option} is not a multiple of tick_size {tick}"
        )
    if strategy.min_bet > strategy.max_per_option:
        raise InvalidParameters(
            f"min_bet {strategy.min_bet} exceeds max_per_option {strategy.max_per_option}"
        )


def _require_non_negative_int(name: str, value: object) -> None:
    # bool is an int subclass; a stray True must not pass as 1.
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameters(f"{name} must be an integer: {value!r}")
    if value < 0:
        raise InvalidParameters(f"{name} must be non-negative: {value}")
