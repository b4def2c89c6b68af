"""Participation fees charged on top of the staked amount.

The optimizer receives a bankroll that is already net of fees; this module
turns a gross balance into that bankroll. A deploy costs the staked total
plus a proportional fee (basis points of the total), a flat per-deploy fee
and the protocol's fixed fee.

Usage::

    fees = FeeSchedule(flat_fee=0, fee_bps=500, protocol_fee=500)
    bankroll = fees.net_bankroll(gross=1_000_000_000)
    assert bankroll + fees.fee_for(bankroll) <= 1_000_000_000
"""

from __future__ import annotations

from dataclasses import dataclass

from grid_bot.models import BPS


# Fixed protocol fee per deploy, in bankroll units.
DEFAULT_PROTOCOL_FEE = 500


@dataclass(frozen=True)
class FeeSchedule:
    """Fee schedule for one deploy.

    Parameters
    ----------
    flat_fee:
        Fixed fee per deploy. Default 0.
    fee_bps:
        Proportional fee in basis points of the staked total. Default 0.
    protocol_fee:
        Protocol's fixed fee per deploy. Default 500.
    """

    flat_fee: int = 0
    fee_bps: int = 0
    protocol_fee: int = DEFAULT_PROTOCOL_FEE

    def fee_for(self, total_staked: int) -> int:
        if total_staked <= 0:
            return 0
        return total_staked * self.fee_bps // BPS + self.flat_fee + self.protocol_fee

    def net_bankroll(self, gross: int) -> int:
        """Largest stake total whose fees still fit inside ``gross``."""
        available = gross - self.flat_fee - self.protocol_fee
        if available <= 0:
            return 0
        # total + floor(total * bps / BPS) <= available is monotone in total.
        candidate = available * BPS // (BPS + self.fee_bps)
        while candidate + 1 + (candidate + 1) * self.fee_bps // BPS <= available:
            candidate += 1
        while candidate > 0 and candidate + candidate * self.fee_bps // BPS > available:
            candidate -= 1
        return candidate
