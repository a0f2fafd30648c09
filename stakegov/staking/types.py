"""
Staking records and errors.

StakingPool is the singleton per token mint; UserStake is keyed by
(owner, pool) and kept as history after withdrawal.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict

from ..exceptions import (
    LedgerException,
    StatePreconditionError,
    ValidationError,
)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class StakingError(LedgerException):
    """Base staking exception."""


class InvalidStakeDurationError(StakingError, ValidationError):
    """Duration outside the pool's [min, max] window."""


class InvalidStakeAmountError(StakingError, ValidationError):
    """Stake amount is zero or not a u64."""


class InvalidRewardParamsError(StakingError, ValidationError):
    """Reward rate or duration bounds are out of range."""


class StakeAlreadyExistsError(StakingError, StatePreconditionError):
    """The owner already has a stake record in this pool."""


class StakeLockNotExpiredError(StakingError, StatePreconditionError):
    """Unstake attempted before end_timestamp."""


class StakeAlreadyWithdrawnError(StakingError, StatePreconditionError):
    """The stake has been withdrawn and is inert."""


class NoRewardsYetError(StakingError, StatePreconditionError):
    """No time has elapsed since the last claim."""


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class StakeStatus(IntEnum):
    ACTIVE = 0
    WITHDRAWN = 1


_VALID_TRANSITIONS: Dict[StakeStatus, set] = {
    StakeStatus.ACTIVE:    {StakeStatus.WITHDRAWN},
    StakeStatus.WITHDRAWN: set(),
}


# ══════════════════════════════════════════════════════════════════════
#  RECORDS
# ══════════════════════════════════════════════════════════════════════

@dataclass
class StakingPool:
    """
    Per-mint staking pool.

    Fields:
        authority:                   May update reward parameters
        token_mint:                  Staked token
        treasury_account:            Owner identity of the reward treasury
        vault_account:               Owner identity of the principal vault
        total_staked:                Sum of active stake amounts
        staker_count:                Number of active stakes
        reward_rate_bps_per_day:     Reward rate in basis points
        min_stake_duration_seconds:  Lower duration bound (inclusive)
        max_stake_duration_seconds:  Upper duration bound (inclusive)
    """
    address: str
    authority: str
    token_mint: str
    treasury_account: str
    vault_account: str
    reward_rate_bps_per_day: int
    min_stake_duration_seconds: int
    max_stake_duration_seconds: int
    total_staked: int = 0
    staker_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "authority": self.authority,
            "tokenMint": self.token_mint,
            "treasuryAccount": self.treasury_account,
            "vaultAccount": self.vault_account,
            "totalStaked": self.total_staked,
            "stakerCount": self.staker_count,
            "rewardRateBpsPerDay": self.reward_rate_bps_per_day,
            "minStakeDurationSeconds": self.min_stake_duration_seconds,
            "maxStakeDurationSeconds": self.max_stake_duration_seconds,
        }

    def __repr__(self) -> str:
        return (
            f"<StakingPool {self.address} staked={self.total_staked} "
            f"stakers={self.staker_count} rate={self.reward_rate_bps_per_day}bps>"
        )


@dataclass
class UserStake:
    address: str
    owner: str
    pool: str
    stake_amount: int
    start_timestamp: int
    end_timestamp: int
    last_claim_timestamp: int
    reputation_boost_percent: int
    derived_voting_power: int
    claimed_reward: int = 0
    status: StakeStatus = StakeStatus.ACTIVE

    @property
    def withdrawn(self) -> bool:
        return self.status == StakeStatus.WITHDRAWN

    @property
    def duration(self) -> int:
        return self.end_timestamp - self.start_timestamp

    def is_unlocked(self, now: int) -> bool:
        return now >= self.end_timestamp

    def transition_to(self, new_status: StakeStatus) -> None:
        allowed = _VALID_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            if self.status == StakeStatus.WITHDRAWN:
                raise StakeAlreadyWithdrawnError(f"Stake {self.address} is already withdrawn")
            raise StakingError(
                f"Cannot transition from {self.status.name} → {new_status.name}"
            )
        self.status = new_status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "owner": self.owner,
            "pool": self.pool,
            "stakeAmount": self.stake_amount,
            "startTimestamp": self.start_timestamp,
            "endTimestamp": self.end_timestamp,
            "claimedReward": self.claimed_reward,
            "lastClaimTimestamp": self.last_claim_timestamp,
            "reputationBoostPercent": self.reputation_boost_percent,
            "derivedVotingPower": self.derived_voting_power,
            "status": self.status.name,
        }

    def __repr__(self) -> str:
        return (
            f"<UserStake {self.owner} amount={self.stake_amount} "
            f"power={self.derived_voting_power} status={self.status.name}>"
        )
