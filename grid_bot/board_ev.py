"""Bankroll-independent EV report for every option on the board.

For display: each option's unconstrained optimal stake (no caps, no own
stake elsewhere, shadow price zero) and the EV at that stake.
"""

from __future__ import annotations

from dataclasses import dataclass

from grid_bot.models import GRID_SIZE, RoundSnapshot, StrategyParams
from grid_bot.value_model import ValueModel


@dataclass(frozen=True)
class OptionEV:
    index: int
    existing_stake: int
    optimal_stake: int
    expected_value: int
    is_positive: bool


@dataclass(frozen=True)
class BoardEV:
    options: tuple[OptionEV, ...]
    total_optimal_stake: int
    total_expected_value: int
    positive_count: int

    def as_dict(self) -> dict:
        return {
            "options": [
                {
                    "index": option.index,
                    "existing_stake": option.existing_stake,
                    "optimal_stake": option.optimal_stake,
                    "expected_value": option.expected_value,
                    "is_positive": option.is_positive,
                }
                for option in self.options
            ],
            "total_optimal_stake": self.total_optimal_stake,
            "total_expected_value": self.total_expected_value,
            "positive_count": self.positive_count,
        }


def board_ev(snapshot: RoundSnapshot, unit_value_ratio: int = 0) -> BoardEV:
    strategy = StrategyParams(
        bankroll=0, max_per_option=1, min_bet=1, unit_value_ratio=unit_value_ratio,
    )
    model = ValueModel(snapshot, strategy)

    options: list[OptionEV] = []
    for index in range(GRID_SIZE):
        optimal = model.optimal_unconstrained_x(index, 0)
        value = model.value(index, optimal)
        options.append(
            OptionEV(
                index=index,
                existing_stake=snapshot.existing_stake[index],
                optimal_stake=optimal,
                expected_value=value,
                is_positive=value > 0,
            )
        )

    positive = [option for option in options if option.is_positive]
    return BoardEV(
        options=tuple(options),
        total_optimal_stake=sum(option.optimal_stake for option in positive),
        total_expected_value=sum(option.expected_value for option in positive),
        positive_count=len(positive),
    )
