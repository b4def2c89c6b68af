from __future__ import annotations

from enum import Enum


class RoundPhase(str, Enum):
    OPEN = "open"
    CLOSING_SOON = "closing_soon"
    LOCKED = "locked"


def round_phase(
    remaining_time_units: int,
    deadline_threshold: int,
    round_open: bool = True,
) -> RoundPhase:
    """Phase of a round from its countdown and the feed's open flag.

    ``open -> closing_soon`` once the countdown reaches the deadline
    threshold; ``locked`` needs both a zero countdown and the closed signal.
    """
    if remaining_time_units <= 0 and not round_open:
        return RoundPhase.LOCKED
    # A closed flag with slots still left is planned; the countdown decides.
    if remaining_time_units > deadline_threshold:
        return RoundPhase.OPEN
    return RoundPhase.CLOSING_SOON


def remaining_units(end_slot: int, current_slot: int) -> int:
    return max(0, end_slot - current_slot)
