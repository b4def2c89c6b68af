from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

from grid_bot.models import (
    DEFAULT_POOL_SKIM_BPS,
    GRID_SIZE,
    InvalidParameters,
    RoundSnapshot,
    validate_snapshot,
)
from grid_bot.round_phase import remaining_units


# Canonical key first, then the names the grid-state feed uses.
_STAKE_KEYS = ("existing_stake", "deployed")
_BETTOR_KEYS = ("existing_bettors", "count")
_REMAINING_KEYS = ("remaining_time_units", "slots_left")


def read_snapshot(
    payload: Mapping[str, Any],
    pool_skim_bps: int = DEFAULT_POOL_SKIM_BPS,
) -> RoundSnapshot:
    """Normalize one grid-state observation into a validated RoundSnapshot.

    ``pool_skim_bps`` is the protocol constant used when the payload does
    not carry its own.
    """
    raw_stakes = _first(payload, _STAKE_KEYS)
    if raw_stakes is None:
        raise InvalidParameters("snapshot payload has no existing_stake/deployed array")
    stakes = _int_tuple("existing_stake", raw_stakes)

    raw_bettors = _first(payload, _BETTOR_KEYS)
    bettors = (0,) * GRID_SIZE if raw_bettors is None else _int_tuple("existing_bettors", raw_bettors)

    raw_remaining = _first(payload, _REMAINING_KEYS)
    if raw_remaining is not None:
        remaining = _coerce_int("remaining_time_units", raw_remaining)
    elif "end_slot" in payload and "current_slot" in payload:
        remaining = remaining_units(
            _coerce_int("end_slot", payload["end_slot"]),
            _coerce_int("current_slot", payload["current_slot"]),
        )
    else:
        raise InvalidParameters("snapshot payload has no remaining_time_units/slots_left")

    snapshot = RoundSnapshot(
        existing_stake=stakes,
        existing_bettors=bettors,
        pool_skim_bps=_coerce_int("pool_skim_bps", payload.get("pool_skim_bps", pool_skim_bps)),
        remaining_time_units=remaining,
        round_open=_coerce_bool("round_open", payload.get("round_open", True)),
        reward_per_round=_coerce_int("reward_per_round", payload.get("reward_per_round", 0)),
    )
    validate_snapshot(snapshot)
    return snapshot


def snapshot_from_board(
    deployed: Sequence[int],
    counts: Sequence[int],
    end_slot: int,
    current_slot: int,
    pool_skim_bps: int = DEFAULT_POOL_SKIM_BPS,
    round_open: bool = True,
    reward_per_round: int = 0,
) -> RoundSnapshot:
    snapshot = RoundSnapshot(
        existing_stake=_int_tuple("existing_stake", deployed),
        existing_bettors=_int_tuple("existing_bettors", counts),
        pool_skim_bps=pool_skim_bps,
        remaining_time_units=remaining_units(end_slot, current_slot),
        round_open=round_open,
        reward_per_round=reward_per_round,
    )
    validate_snapshot(snapshot)
    return snapshot


def _first(payload: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None


def _int_tuple(name: str, values: Any) -> tuple[int, ...]:
    if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
        raise InvalidParameters(f"{name} must be a sequence of integers")
    return tuple(_coerce_int(f"{name}[{index}]", value) for index, value in enumerate(values))


def _coerce_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidParameters(f"{name} must be an integer: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise InvalidParameters(f"{name} must be an integer: {value!r}") from None
    raise InvalidParameters(f"{name} must be an integer: {value!r}")


def _coerce_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    raise InvalidParameters(f"{name} must be a boolean: {value!r}")
