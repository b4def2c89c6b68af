"""Per-option pari-mutuel value model.

Closed-form EV of adding stake to one option of the 25-option grid while
every other allocation is held fixed. All arithmetic is integer: bankroll
amounts stay in bankroll units, dimensionless quantities (marginal value,
shadow price, pool shares) are fixed-point with ``WAD = 10**18``, and every
division floors.

Model, for option ``i`` with others' stake ``T`` and our stake ``x``::

    P_win     = 1 / 25
    A         = keep * (S - T + O) // 10000 + V      distributable if i wins
    payout(x) = x + x / (T + x) * A                   (stake back + pro rata share)
    EV(x)     = P_win * (payout(x) + x * keep/10000 * F) - x

where ``S`` is all others' stake on the grid, ``O`` and ``F`` describe our
own allocations on the *other* options (their stake total and the sum of
our pool shares there), ``keep = 10000 - pool_skim_bps`` and ``V`` is the
secondary reward valued in bankroll units. Stake placed on ``i`` enlarges
the losers' pool of every other option we hold, hence the ``F`` term.

Usage::

    model = ValueModel(snapshot, strategy)
    model.marginal_value(3, 0)            # WAD units
    model.optimal_unconstrained_x(3, 0)   # bankroll units
    model.with_pool((0,) * 25).value(3, 1_000_000)
"""

from __future__ import annotations

from dataclasses import dataclass
from math import isqrt
from typing import Iterable, Mapping

from grid_bot.models import BPS, GRID_SIZE, RoundSnapshot, StrategyParams


WAD = 10**18
# Atomic reward-token units per whole token; unit_value_ratio prices one whole token.
REWARD_UNIT_SCALE = 10**11


# ---------------------------------------------------------------------------
# Pool state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PoolState:
    """Own allocations of the current invocation, one per option."""

    own_allocations: tuple[int, ...] = (0,) * GRID_SIZE

    @classmethod
    def from_mapping(cls, allocations: Mapping[int, int]) -> "PoolState":
        own = [0] * GRID_SIZE
        for index, amount in allocations.items():
            own[index] = max(0, int(amount))
        return cls(own_allocations=tuple(own))

    @property
    def own_total(self) -> int:
        return sum(self.own_allocations)


# ---------------------------------------------------------------------------
# Value model
# ---------------------------------------------------------------------------


class ValueModel:
    """EV, marginal EV and its inverse for every option of one snapshot."""

    def __init__(
        self,
        snapshot: RoundSnapshot,
        strategy: StrategyParams,
        pool: PoolState | None = None,
    ) -> None:
        self._snapshot = snapshot
        self._strategy = strategy
        self._pool = pool or PoolState()

        stakes = snapshot.existing_stake
        own = self._pool.own_allocations
        keep = BPS - snapshot.pool_skim_bps
        reward = reward_value(snapshot.reward_per_round, strategy.unit_value_ratio)

        others_total = sum(stakes)
        own_total = sum(own)
        shares = tuple(
            own[j] * WAD // (stakes[j] + own[j]) if own[j] > 0 else 0
            for j in range(GRID_SIZE)
        )
        share_total = sum(shares)

        self._keep = keep
        self._reward = reward
        self._distributable = tuple(
            keep * (others_total - stakes[i] + own_total - own[i]) // BPS + reward
            for i in range(GRID_SIZE)
        )
        self._cross_wad = tuple(
            keep * (share_total - shares[i]) // BPS for i in range(GRID_SIZE)
        )

    @property
    def snapshot(self) -> RoundSnapshot:
        return self._snapshot

    @property
    def strategy(self) -> StrategyParams:
        return self._strategy

    @property
    def pool(self) -> PoolState:
        return self._pool

    @property
    def reward(self) -> int:
        return self._reward

    def with_pool(self, allocations: Iterable[int] | Mapping[int, int]) -> "ValueModel":
        """Same snapshot and strategy, priced against new own allocations."""
        if isinstance(allocations, Mapping):
            pool = PoolState.from_mapping(allocations)
        else:
            pool = PoolState(own_allocations=tuple(max(0, int(x)) for x in allocations))
        return ValueModel(self._snapshot, self._strategy, pool)

    def distributable(self, index: int) -> int:
        """Amount shared pro rata by option ``index``'s stakers if it wins."""
        return self._distributable[index]

    def value(self, index: int, stake: int) -> int:
        """EV (bankroll units, floored) contributed by ``stake`` on ``index``."""
        if stake <= 0:
            return 0
        existing = self._snapshot.existing_stake[index]
        payout_wad = (
            stake * WAD
            + stake * self._distributable[index] * WAD // (existing + stake)
            + stake * self._cross_wad[index]
        )
        return payout_wad // (GRID_SIZE * WAD) - stake

    def marginal_value(self, index: int, stake: int) -> int:
        """d(value)/d(stake) in WAD units; non-increasing in ``stake``."""
        stake = max(0, stake)
        existing = self._snapshot.existing_stake[index]
        slope = 0
        if existing > 0:
            slope = existing * self._distributable[index] * WAD // (existing + stake) ** 2
        return (WAD + slope + self._cross_wad[index]) // GRID_SIZE - WAD

    def is_flat(self, index: int) -> bool:
        """True when nobody else has staked ``index``.

        Any stake then owns the whole option, so EV peaks at the smallest
        allowed stake instead of at an interior optimum.
        """
        return self._snapshot.existing_stake[index] == 0

    def optimal_unconstrained_x(self, index: int, lam: int) -> int:
        """Stake at which ``marginal_value`` falls to ``lam``, clipped at 0.

        A flat option (see ``is_flat``) has no interior optimum and gets 0
        here; the planner funds it at ``min_bet`` instead.
        """
        existing = self._snapshot.existing_stake[index]
        distributable = self._distributable[index]
        if existing == 0 or distributable == 0:
            return 0
        denominator = GRID_SIZE * (max(0, lam) + WAD) - WAD - self._cross_wad[index]
        if denominator < 1:
            denominator = 1
        root = isqrt(existing * distributable * WAD // denominator)
        return max(0, root - existing)


def reward_value(reward_per_round: int, unit_value_ratio: int) -> int:
    """Secondary reward of one round expressed in bankroll units."""
    return reward_per_round * unit_value_ratio // REWARD_UNIT_SCALE
