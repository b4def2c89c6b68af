from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from grid_bot.fee_model import DEFAULT_PROTOCOL_FEE, FeeSchedule
from grid_bot.models import DEFAULT_POOL_SKIM_BPS, StrategyParams


def _as_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value.replace("_", ""))


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_optional_int(value: str | None) -> int | None:
    if value is None or not value.strip():
        return None
    return int(value.replace("_", ""))


@dataclass(frozen=True)
class StrategySettings:
    bankroll: int = 0
    # When set, the bankroll is derived from this balance net of fees.
    gross_balance: int | None = None
    max_per_option: int = 100_000_000
    min_bet: int = 10_000
    tick_size: int = 1
    unit_value_ratio: int = 800_000_000
    deadline_threshold: int = 2
    solver_max_iterations: int = 60
    pool_refinement_passes: int = 2


@dataclass(frozen=True)
class ProtocolSettings:
    pool_skim_bps: int = DEFAULT_POOL_SKIM_BPS
    reward_per_round: int = 0


@dataclass(frozen=True)
class FeeSettings:
    flat_fee: int = 0
    fee_bps: int = 0
    protocol_fee: int = DEFAULT_PROTOCOL_FEE

    def schedule(self) -> FeeSchedule:
        return FeeSchedule(
            flat_fee=self.flat_fee,
            fee_bps=self.fee_bps,
            protocol_fee=self.protocol_fee,
        )


@dataclass(frozen=True)
class AppSettings:
    log_level: str
    verbose_solver: bool = False
    strategy: StrategySettings = field(default_factory=StrategySettings)
    protocol: ProtocolSettings = field(default_factory=ProtocolSettings)
    fees: FeeSettings = field(default_factory=FeeSettings)

    def strategy_params(self) -> StrategyParams:
        strategy = self.strategy
        bankroll = strategy.bankroll
        if strategy.gross_balance is not None:
            bankroll = self.fees.schedule().net_bankroll(strategy.gross_balance)
        return StrategyParams(
            bankroll=bankroll,
            max_per_option=strategy.max_per_option,
            min_bet=strategy.min_bet,
            tick_size=strategy.tick_size,
            unit_value_ratio=strategy.unit_value_ratio,
            deadline_threshold=strategy.deadline_threshold,
            solver_max_iterations=strategy.solver_max_iterations,
            pool_refinement_passes=strategy.pool_refinement_passes,
        )


def load_settings() -> AppSettings:
    load_dotenv(override=False)

    defaults = StrategySettings()
    strategy = StrategySettings(
        bankroll=_as_int(os.getenv("GRID_BANKROLL"), defaults.bankroll),
        gross_balance=_as_optional_int(os.getenv("GRID_GROSS_BALANCE")),
        max_per_option=_as_int(os.getenv("GRID_MAX_PER_OPTION"), defaults.max_per_option),
        min_bet=_as_int(os.getenv("GRID_MIN_BET"), defaults.min_bet),
        tick_size=_as_int(os.getenv("GRID_TICK_SIZE"), defaults.tick_size),
        unit_value_ratio=_as_int(os.getenv("GRID_UNIT_VALUE_RATIO"), defaults.unit_value_ratio),
        deadline_threshold=_as_int(os.getenv("GRID_DEADLINE_THRESHOLD"), defaults.deadline_threshold),
        solver_max_iterations=_as_int(
            os.getenv("GRID_SOLVER_MAX_ITERATIONS"),
            defaults.solver_max_iterations,
        ),
        pool_refinement_passes=_as_int(
            os.getenv("GRID_POOL_REFINEMENT_PASSES"),
            defaults.pool_refinement_passes,
        ),
    )

    protocol = ProtocolSettings(
        pool_skim_bps=_as_int(os.getenv("GRID_POOL_SKIM_BPS"), DEFAULT_POOL_SKIM_BPS),
        reward_per_round=_as_int(os.getenv("GRID_REWARD_PER_ROUND"), 0),
    )

    fees = FeeSettings(
        flat_fee=_as_int(os.getenv("GRID_FLAT_FEE"), 0),
        fee_bps=_as_int(os.getenv("GRID_FEE_BPS"), 0),
        protocol_fee=_as_int(os.getenv("GRID_PROTOCOL_FEE"), DEFAULT_PROTOCOL_FEE),
    )

    return AppSettings(
        log_level=os.getenv("GRID_LOG_LEVEL", "INFO"),
        verbose_solver=_as_bool(os.getenv("GRID_VERBOSE_SOLVER")),
        strategy=strategy,
        protocol=protocol,
        fees=fees,
    )
