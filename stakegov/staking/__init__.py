"""
Staking Ledger

Provides:
  - StakingProgram / StakingPool / UserStake / StakeStatus   (pool.py, types.py)
  - tier_for_duration / derive_voting_power / accrued_reward (rewards.py)
"""

from .types import (
    InvalidRewardParamsError,
    InvalidStakeAmountError,
    InvalidStakeDurationError,
    NoRewardsYetError,
    StakeAlreadyExistsError,
    StakeAlreadyWithdrawnError,
    StakeLockNotExpiredError,
    StakeStatus,
    StakingError,
    StakingPool,
    UserStake,
)
from .rewards import (
    BASE_TIER,
    TIERS,
    DurationTier,
    accrued_reward,
    derive_voting_power,
    reputation_boost,
    tier_for_duration,
)
from .pool import StakingProgram

__all__ = [
    # Records
    "StakeStatus",
    "StakingPool",
    "UserStake",
    # Errors
    "InvalidRewardParamsError",
    "InvalidStakeAmountError",
    "InvalidStakeDurationError",
    "NoRewardsYetError",
    "StakeAlreadyExistsError",
    "StakeAlreadyWithdrawnError",
    "StakeLockNotExpiredError",
    "StakingError",
    # Math
    "BASE_TIER",
    "TIERS",
    "DurationTier",
    "accrued_reward",
    "derive_voting_power",
    "reputation_boost",
    "tier_for_duration",
    # Program
    "StakingProgram",
]
