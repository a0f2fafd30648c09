"""
Staking Ledger

Token holders lock tokens in a per-mint pool for a chosen duration. The lock
earns a pro-rated reward from the pool treasury and a duration-weighted
voting power, which is pushed to an optional power sink (the governance
voting power registry) inside the same transaction.

Every public operation is one all-or-nothing transaction over the record
store; token movements roll back with the records.
"""

from typing import Callable, Optional

from ..arith import (
    checked_add,
    checked_add_i64,
    checked_sub,
    require_i64,
    require_u64,
)
from ..clock import SystemClock
from ..constants import (
    SECONDS_PER_DAY,
    SEED_STAKING_POOL,
    SEED_STAKING_TREASURY,
    SEED_STAKING_VAULT,
    SEED_USER_STAKE,
    STAKING_DEFAULT_MAX_DURATION_SECONDS,
    STAKING_DEFAULT_MIN_DURATION_SECONDS,
    STAKING_DEFAULT_REWARD_RATE_BPS,
)
from ..events import (
    ParamsUpdateEvent,
    RewardEvent,
    StakeEvent,
    StakingPoolInitializedEvent,
    UnstakeEvent,
)
from ..exceptions import UnauthorizedError, ValidationError
from ..logger import get_logger
from ..state import RecordStore, derive_address, ledger_operation
from ..tokens import TokenLedger
from .rewards import accrued_reward, derive_voting_power, reputation_boost
from .types import (
    InvalidRewardParamsError,
    InvalidStakeAmountError,
    InvalidStakeDurationError,
    NoRewardsYetError,
    StakeAlreadyExistsError,
    StakeAlreadyWithdrawnError,
    StakeLockNotExpiredError,
    StakeStatus,
    StakingPool,
    UserStake,
)

logger = get_logger(__name__)

PowerSink = Callable[[str, int], None]


def _validate_reward_params(rate: int, min_duration: int, max_duration: int) -> None:
    try:
        require_u64(rate, "reward_rate_bps_per_day")
        require_i64(min_duration, "min_stake_duration")
        require_i64(max_duration, "max_stake_duration")
    except ValidationError as e:
        raise InvalidRewardParamsError(str(e)) from e
    if min_duration <= 0:
        raise InvalidRewardParamsError(f"Minimum stake duration must be positive, got {min_duration}")
    if min_duration > max_duration:
        raise InvalidRewardParamsError(
            f"Minimum stake duration {min_duration} exceeds maximum {max_duration}"
        )


class StakingProgram:
    """
    Staking ledger bound to one token mint.

    Usage:
        >>> staking = StakingProgram(store, tokens, clock)
        >>> staking.initialize(authority, mint)
        >>> staking.stake(alice, 5_000 * 10**9, 90 * 86400)
    """

    def __init__(
        self,
        store: RecordStore,
        tokens: TokenLedger,
        clock=None,
        token_mint: Optional[str] = None,
        power_sink: Optional[PowerSink] = None,
    ):
        self.store = store
        self.tokens = tokens
        self.clock = clock or SystemClock()
        self.token_mint = token_mint
        self.power_sink = power_sink

    # ── Addressing ────────────────────────────────────────────────────

    @staticmethod
    def pool_address_for(token_mint: str) -> str:
        return derive_address(SEED_STAKING_POOL, token_mint)

    @property
    def pool_address(self) -> str:
        if self.token_mint is None:
            raise ValidationError("Staking program is not bound to a token mint")
        return self.pool_address_for(self.token_mint)

    def _bind_mint(self, token_mint: str) -> None:
        previous = self.token_mint
        self.token_mint = token_mint
        self.store.on_rollback(lambda: setattr(self, "token_mint", previous))

    def stake_address(self, owner: str) -> str:
        return derive_address(SEED_USER_STAKE, owner, self.pool_address)

    # ── Read-only views ───────────────────────────────────────────────

    def get_pool(self) -> StakingPool:
        return self.store.require(self.pool_address, StakingPool)

    def get_stake(self, owner: str) -> UserStake:
        return self.store.require(self.stake_address(owner), UserStake)

    def has_stake(self, owner: str) -> bool:
        return self.store.exists(self.stake_address(owner))

    def pending_reward(self, owner: str) -> int:
        """Reward that a claim at the current time would pay."""
        user_stake = self.get_stake(owner)
        if user_stake.withdrawn:
            return 0
        pool = self.get_pool()
        elapsed = self.clock.now() - user_stake.last_claim_timestamp
        return accrued_reward(user_stake.stake_amount, pool.reward_rate_bps_per_day, elapsed)

    def treasury_balance(self) -> int:
        pool = self.get_pool()
        return self.tokens.balance_of(pool.token_mint, pool.treasury_account)

    def vault_balance(self) -> int:
        pool = self.get_pool()
        return self.tokens.balance_of(pool.token_mint, pool.vault_account)

    # ── Administration ────────────────────────────────────────────────

    def initialize(
        self,
        authority: str,
        token_mint: str,
        reward_rate_bps_per_day: int = STAKING_DEFAULT_REWARD_RATE_BPS,
        min_stake_duration: int = STAKING_DEFAULT_MIN_DURATION_SECONDS,
        max_stake_duration: int = STAKING_DEFAULT_MAX_DURATION_SECONDS,
    ) -> StakingPool:
        """Create the pool for ``token_mint``; one pool per mint."""
        with ledger_operation(self.store, "InitializePool", logger):
            _validate_reward_params(reward_rate_bps_per_day, min_stake_duration, max_stake_duration)
            self.tokens.get_mint(token_mint)

            address = self.pool_address_for(token_mint)
            pool = self.store.create(
                StakingPool(
                    address=address,
                    authority=authority,
                    token_mint=token_mint,
                    treasury_account=derive_address(SEED_STAKING_TREASURY, address),
                    vault_account=derive_address(SEED_STAKING_VAULT, address),
                    reward_rate_bps_per_day=reward_rate_bps_per_day,
                    min_stake_duration_seconds=min_stake_duration,
                    max_stake_duration_seconds=max_stake_duration,
                )
            )
            self._bind_mint(token_mint)
            self.store.emit(
                StakingPoolInitializedEvent(
                    pool=pool.address,
                    authority=authority,
                    token_mint=token_mint,
                    reward_rate_bps_per_day=reward_rate_bps_per_day,
                    min_stake_duration=min_stake_duration,
                    max_stake_duration=max_stake_duration,
                )
            )

        self.store.log_on_commit(
            logger,
            f"Staking pool {pool.address} initialized for mint {token_mint} "
            f"rate={reward_rate_bps_per_day}bps/day window=[{min_stake_duration}, {max_stake_duration}]"
        )
        return pool

    def update_reward_params(
        self,
        authority: str,
        reward_rate_bps_per_day: int,
        min_stake_duration: int,
        max_stake_duration: int,
    ) -> StakingPool:
        """Replace the reward rate and duration window; applies from now on."""
        with ledger_operation(self.store, "UpdateRewardParams", logger):
            pool = self.store.load_mut(self.pool_address, StakingPool)
            if authority != pool.authority:
                raise UnauthorizedError(f"{authority} is not the staking pool authority")
            _validate_reward_params(reward_rate_bps_per_day, min_stake_duration, max_stake_duration)

            pool.reward_rate_bps_per_day = reward_rate_bps_per_day
            pool.min_stake_duration_seconds = min_stake_duration
            pool.max_stake_duration_seconds = max_stake_duration
            self.store.emit(
                ParamsUpdateEvent(
                    reward_rate=reward_rate_bps_per_day,
                    min_stake_duration=min_stake_duration,
                    max_stake_duration=max_stake_duration,
                )
            )

        self.store.log_on_commit(
            logger,
            f"Reward params updated: rate={reward_rate_bps_per_day}bps/day "
            f"window=[{min_stake_duration}, {max_stake_duration}]"
        )
        return pool

    def fund_treasury(self, funder: str, amount: int) -> int:
        """Move ``amount`` from ``funder`` into the reward treasury."""
        with ledger_operation(self.store, "FundTreasury", logger):
            pool = self.get_pool()
            self.tokens.transfer(pool.token_mint, funder, pool.treasury_account, amount)

        self.store.log_on_commit(
            logger, f"Treasury funded: {funder} → {pool.treasury_account} {amount}"
        )
        return self.treasury_balance()

    # ── Staking ───────────────────────────────────────────────────────

    def stake(self, staker: str, amount: int, duration: int) -> UserStake:
        """
        Lock ``amount`` for ``duration`` seconds.

        Creates the staker's UserStake, moves the principal into the vault and
        reports the derived voting power to the power sink.
        """
        with ledger_operation(self.store, "Stake", logger):
            try:
                require_u64(amount, "amount")
            except ValidationError as e:
                raise InvalidStakeAmountError(str(e)) from e
            try:
                require_i64(duration, "duration")
            except ValidationError as e:
                raise InvalidStakeDurationError(str(e)) from e

            pool = self.store.load_mut(self.pool_address, StakingPool)
            if not pool.min_stake_duration_seconds <= duration <= pool.max_stake_duration_seconds:
                raise InvalidStakeDurationError(
                    f"Duration {duration} outside "
                    f"[{pool.min_stake_duration_seconds}, {pool.max_stake_duration_seconds}]"
                )
            if amount == 0:
                raise InvalidStakeAmountError("Stake amount must be positive")

            address = self.stake_address(staker)
            if self.store.exists(address):
                raise StakeAlreadyExistsError(f"{staker} already has a stake in pool {pool.address}")

            now = self.clock.now()
            end_timestamp = checked_add_i64(now, duration)
            boost = reputation_boost(duration)
            voting_power = derive_voting_power(amount, duration)

            user_stake = self.store.create(
                UserStake(
                    address=address,
                    owner=staker,
                    pool=pool.address,
                    stake_amount=amount,
                    start_timestamp=now,
                    end_timestamp=end_timestamp,
                    last_claim_timestamp=now,
                    reputation_boost_percent=boost,
                    derived_voting_power=voting_power,
                )
            )

            pool.total_staked = checked_add(pool.total_staked, amount)
            pool.staker_count = checked_add(pool.staker_count, 1)

            self.tokens.transfer(pool.token_mint, staker, pool.vault_account, amount)

            self.store.emit(
                StakeEvent(
                    user=staker,
                    amount=amount,
                    duration=duration,
                    end_timestamp=end_timestamp,
                    reputation_boost=boost,
                    voting_power=voting_power,
                )
            )
            if self.power_sink is not None:
                self.power_sink(staker, voting_power)

        self.store.log_on_commit(
            logger,
            f"Stake: {staker} locked {amount} for {duration // SECONDS_PER_DAY}d "
            f"boost={boost}% power={voting_power}"
        )
        return user_stake

    def claim_reward(self, staker: str) -> int:
        """Pay out the reward accrued since the last claim; returns the amount."""
        with ledger_operation(self.store, "ClaimReward", logger):
            pool = self.get_pool()
            user_stake = self.store.load_mut(self.stake_address(staker), UserStake)
            if user_stake.withdrawn:
                raise StakeAlreadyWithdrawnError(f"Stake of {staker} is already withdrawn")

            now = self.clock.now()
            elapsed = now - user_stake.last_claim_timestamp
            if elapsed <= 0:
                raise NoRewardsYetError(f"No time elapsed since last claim at {user_stake.last_claim_timestamp}")

            reward = accrued_reward(user_stake.stake_amount, pool.reward_rate_bps_per_day, elapsed)
            user_stake.claimed_reward = checked_add(user_stake.claimed_reward, reward)
            user_stake.last_claim_timestamp = now

            self.tokens.transfer(pool.token_mint, pool.treasury_account, staker, reward)

            self.store.emit(
                RewardEvent(
                    user=staker,
                    reward_amount=reward,
                    days_elapsed=elapsed // SECONDS_PER_DAY,
                    total_claimed=user_stake.claimed_reward,
                )
            )

        self.store.log_on_commit(
            logger, f"Reward: {staker} claimed {reward} over {elapsed}s total={user_stake.claimed_reward}"
        )
        return reward

    def unstake(self, staker: str) -> int:
        """
        Close the stake after its lock expires.

        Settles any unclaimed reward first, then returns the principal from
        the vault. Returns the final reward paid.
        """
        with ledger_operation(self.store, "Unstake", logger):
            pool = self.store.load_mut(self.pool_address, StakingPool)
            user_stake = self.store.load_mut(self.stake_address(staker), UserStake)
            if user_stake.withdrawn:
                raise StakeAlreadyWithdrawnError(f"Stake of {staker} is already withdrawn")

            now = self.clock.now()
            if not user_stake.is_unlocked(now):
                raise StakeLockNotExpiredError(
                    f"Stake of {staker} locked until {user_stake.end_timestamp} (now {now})"
                )

            final_reward = 0
            if now > user_stake.last_claim_timestamp:
                final_reward = accrued_reward(
                    user_stake.stake_amount,
                    pool.reward_rate_bps_per_day,
                    now - user_stake.last_claim_timestamp,
                )
                user_stake.claimed_reward = checked_add(user_stake.claimed_reward, final_reward)
                user_stake.last_claim_timestamp = now
                self.tokens.transfer(pool.token_mint, pool.treasury_account, staker, final_reward)

            self.tokens.transfer(pool.token_mint, pool.vault_account, staker, user_stake.stake_amount)

            pool.total_staked = checked_sub(pool.total_staked, user_stake.stake_amount)
            pool.staker_count = checked_sub(pool.staker_count, 1)
            user_stake.transition_to(StakeStatus.WITHDRAWN)

            self.store.emit(
                UnstakeEvent(
                    user=staker,
                    amount=user_stake.stake_amount,
                    final_reward=final_reward,
                    total_rewards=user_stake.claimed_reward,
                )
            )
            if self.power_sink is not None:
                self.power_sink(staker, 0)

        self.store.log_on_commit(
            logger,
            f"Unstake: {staker} withdrew {user_stake.stake_amount} "
            f"final_reward={final_reward} total_rewards={user_stake.claimed_reward}"
        )
        return final_reward
