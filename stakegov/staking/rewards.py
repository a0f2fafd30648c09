"""
Duration tiers, voting power and reward accrual.

All math is integer-only. Multipliers are exact rationals and every
intermediate product is checked at 128 bits; results that must be stored
are checked back down to 64 bits.
"""

from dataclasses import dataclass
from typing import Tuple

from ..arith import checked_div, checked_mul
from ..constants import (
    REWARD_DENOMINATOR,
    STAKE_BASE_TIER,
    STAKE_DURATION_TIERS,
    VOTING_POWER_DIVISOR,
)


@dataclass(frozen=True)
class DurationTier:
    min_duration_seconds: int
    reputation_boost_percent: int
    multiplier_num: int
    multiplier_den: int

    @property
    def multiplier(self) -> Tuple[int, int]:
        return self.multiplier_num, self.multiplier_den


# Highest breakpoint first
TIERS: Tuple[DurationTier, ...] = tuple(DurationTier(*t) for t in STAKE_DURATION_TIERS)
BASE_TIER = DurationTier(*STAKE_BASE_TIER)


def tier_for_duration(duration: int) -> DurationTier:
    """Highest tier whose lower bound ``duration`` reaches."""
    for tier in TIERS:
        if duration >= tier.min_duration_seconds:
            return tier
    return BASE_TIER


def reputation_boost(duration: int) -> int:
    return tier_for_duration(duration).reputation_boost_percent


def derive_voting_power(amount: int, duration: int) -> int:
    """
    amount * num // (10**9 * den)

    Multiplying before dividing keeps the fractional part of the 1.5x tier
    for amounts that are not whole multiples of the divisor.
    """
    tier = tier_for_duration(duration)
    scaled = checked_mul(amount, tier.multiplier_num, bits=128)
    return checked_div(scaled, VOTING_POWER_DIVISOR * tier.multiplier_den, bits=64)


def accrued_reward(amount: int, rate_bps_per_day: int, elapsed_seconds: int) -> int:
    """
    floor(amount * rate * elapsed / (365 * 86400 * 10000))

    Fractions are truncated and forfeited; the next claim accrues from the
    new baseline timestamp.
    """
    if elapsed_seconds <= 0:
        return 0
    numerator = checked_mul(
        checked_mul(amount, rate_bps_per_day, bits=128), elapsed_seconds, bits=128
    )
    return checked_div(numerator, REWARD_DENOMINATOR, bits=64)
