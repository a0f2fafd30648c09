"""
Ledger Engine

Wires one record store, clock, event log, token ledger, staking program and
governance program together, and bootstraps a token with its staking pool
and governance instance.

Usage:
    >>> engine = LedgerEngine(clock=ManualClock())
    >>> engine.bootstrap(authority)
    >>> engine.tokens.mint_to(engine.token_mint, alice, 10_000 * 10**9)
    >>> engine.staking.stake(alice, 5_000 * 10**9, 180 * 86400)
    >>> engine.governance.voting_power_of(alice)
    10000
"""

from typing import Any, Dict, Optional

from .clock import SystemClock
from .config import LedgerConfig
from .events import EventLog
from .governance import GovernanceProgram
from .logger import configure_logging, get_logger
from .staking import StakingProgram
from .state import RecordStore
from .tokens import TokenLedger

logger = get_logger(__name__)


class LedgerEngine:
    """Composition root for the staking and governance ledgers."""

    def __init__(self, config: Optional[LedgerConfig] = None, clock=None, configure_logs: bool = False):
        self.config = config or LedgerConfig()
        self.clock = clock or SystemClock()

        if configure_logs:
            configure_logging(log_level=self.config.logging.level)

        self.store = RecordStore()
        self.events = EventLog()
        self.store.subscribe(self.events)

        self.tokens = TokenLedger(self.store)
        self.staking = StakingProgram(self.store, self.tokens, self.clock)
        self.governance = GovernanceProgram(self.store, self.tokens, self.clock)
        self.token_mint: Optional[str] = None

    def _push_voting_power(self, owner: str, power: int) -> None:
        self.governance.register_voting_power(self.staking.pool_address, owner, power)

    def link_staking_to_governance(self, authority: str) -> None:
        """
        Make the staking pool a power source of the governance registry.

        After this, stake and unstake update the staker's registered voting
        power inside their own transaction. Called inside a transaction that
        later aborts, the link is undone with it.
        """
        self.governance.authorize_power_source(authority, self.staking.pool_address)
        previous = self.staking.power_sink
        self.staking.power_sink = self._push_voting_power
        self.store.on_rollback(lambda: setattr(self.staking, "power_sink", previous))
        self.store.log_on_commit(
            logger, f"Staking pool {self.staking.pool_address} → registry power source"
        )

    def bootstrap(
        self,
        authority: str,
        treasury: Optional[str] = None,
        initial_supply: int = 0,
    ) -> Dict[str, Any]:
        """
        Create the mint, the staking pool and the governance instance.

        Parameters come from the engine's LedgerConfig. The governance
        treasury defaults to the authority. ``initial_supply`` is minted to
        the authority.
        """
        self.config.validate()
        staking_cfg = self.config.staking
        gov_cfg = self.config.governance

        with self.store.transaction():
            mint = self.tokens.create_mint(authority, decimals=self.config.token.decimals)
            if initial_supply:
                self.tokens.mint_to(mint, authority, initial_supply)

            pool = self.staking.initialize(
                authority,
                mint,
                reward_rate_bps_per_day=staking_cfg.reward_rate_bps_per_day,
                min_stake_duration=staking_cfg.min_stake_duration_seconds,
                max_stake_duration=staking_cfg.max_stake_duration_seconds,
            )
            governance = self.governance.initialize(
                authority,
                mint,
                treasury or authority,
                min_proposal_tokens=gov_cfg.min_proposal_tokens,
                voting_period=gov_cfg.voting_period_seconds,
                execution_delay=gov_cfg.execution_delay_seconds,
                quorum_percentage=gov_cfg.quorum_percentage,
            )
            self.link_staking_to_governance(authority)

        previous = self.token_mint
        self.token_mint = mint
        self.store.on_rollback(lambda: setattr(self, "token_mint", previous))
        self.store.log_on_commit(
            logger,
            f"Ledger bootstrapped: mint={mint} pool={pool.address} governance={governance.address}",
        )
        return {
            "tokenMint": mint,
            "stakingPool": pool.address,
            "governance": governance.address,
            "registry": self.governance.registry.registry_address,
        }

    def __repr__(self) -> str:
        return f"<LedgerEngine mint={self.token_mint} records={len(self.store)} events={len(self.events)}>"
