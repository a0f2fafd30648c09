"""
Ledger Engine Integration Tests

Coverage:
  - Bootstrap of mint, staking pool, governance and registry from config
  - Staking pushes voting power into the governance registry
  - End-to-end: stake → propose → vote → execute treasury withdrawal
  - Unstake clears registered voting power
  - Failed operations leave the registry and event log untouched
"""

import logging
import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import stakegov
from stakegov.clock import ManualClock
from stakegov.config import LedgerConfig
from stakegov.constants import SECONDS_PER_DAY
from stakegov.engine import LedgerEngine
from stakegov.events import (
    PowerSourceAuthorizedEvent,
    ProposalExecutedEvent,
    StakeEvent,
    VotingPowerUpdatedEvent,
)
from stakegov.exceptions import ConfigurationError, UnauthorizedError
from stakegov.governance import (
    NoVotingPowerError,
    ProposalType,
    Vote,
    encode_treasury_withdrawal,
)
from stakegov.staking import StakeAlreadyExistsError
from stakegov.tokens import InsufficientBalanceError


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

AUTHORITY = "0x" + "0a" * 20
ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20

DAY = SECONDS_PER_DAY
TOKEN = 10 ** 9
T0 = 1_700_000_000


def make_engine(config=None, fund=True):
    """Bootstrapped engine; ALICE and BOB hold 10_000 tokens each."""
    engine = LedgerEngine(config=config, clock=ManualClock(start=T0))
    engine.bootstrap(AUTHORITY, initial_supply=10 ** 16)
    if fund:
        engine.staking.fund_treasury(AUTHORITY, 10 ** 14)
    engine.tokens.mint_to(engine.token_mint, ALICE, 10_000 * TOKEN)
    engine.tokens.mint_to(engine.token_mint, BOB, 10_000 * TOKEN)
    engine.events.clear()
    return engine


# ══════════════════════════════════════════════════════════════════════
#  BOOTSTRAP
# ══════════════════════════════════════════════════════════════════════


class TestBootstrap:

    def test_bootstrap_creates_everything(self):
        engine = LedgerEngine(clock=ManualClock(start=T0))
        result = engine.bootstrap(AUTHORITY, initial_supply=1_000 * TOKEN)

        mint = result["tokenMint"]
        assert engine.token_mint == mint
        assert engine.tokens.supply_of(mint) == 1_000 * TOKEN
        assert engine.tokens.balance_of(mint, AUTHORITY) == 1_000 * TOKEN
        assert result["stakingPool"] == engine.staking.pool_address
        assert result["governance"] == engine.governance.governance_address
        assert result["registry"] == engine.governance.registry.registry_address

        governance = engine.governance.get_governance()
        assert governance.treasury == AUTHORITY
        assert engine.governance.registry.is_power_source(engine.staking.pool_address)
        assert len(engine.events.of_type(PowerSourceAuthorizedEvent)) == 1

    def test_bootstrap_uses_config(self):
        config = LedgerConfig.from_dict({
            "staking": {"reward_rate_bps_per_day": 25, "min_stake_duration_seconds": DAY},
            "governance": {"quorum_percentage": 50, "execution_delay_seconds": 0},
        })
        engine = LedgerEngine(config=config, clock=ManualClock(start=T0))
        engine.bootstrap(AUTHORITY, treasury=CAROL)

        pool = engine.staking.get_pool()
        assert pool.reward_rate_bps_per_day == 25
        assert pool.min_stake_duration_seconds == DAY
        governance = engine.governance.get_governance()
        assert governance.quorum_percentage == 50
        assert governance.execution_delay_seconds == 0
        assert governance.treasury == CAROL

    @pytest.mark.parametrize("data", [
        {"governance": {"quorum_percentage": 0}},
        {"governance": {"min_proposal_tokens": 2 ** 64}},
        {"staking": {"reward_rate_bps_per_day": "10"}},
    ])
    def test_invalid_config_creates_nothing(self, data):
        config = LedgerConfig.from_dict(data)
        engine = LedgerEngine(config=config, clock=ManualClock(start=T0))
        with pytest.raises(ConfigurationError):
            engine.bootstrap(AUTHORITY)
        assert len(engine.store) == 0
        assert len(engine.events) == 0

    def test_failed_bootstrap_unbinds_programs(self, monkeypatch):
        engine = LedgerEngine(clock=ManualClock(start=T0))

        def refuse(authority, source):
            raise UnauthorizedError("power source refused")

        monkeypatch.setattr(engine.governance, "authorize_power_source", refuse)
        with pytest.raises(UnauthorizedError):
            engine.bootstrap(AUTHORITY, initial_supply=TOKEN)

        assert len(engine.store) == 0
        assert len(engine.events) == 0
        assert engine.token_mint is None
        assert engine.staking.token_mint is None
        assert engine.governance.token_mint is None
        assert engine.staking.power_sink is None

        monkeypatch.undo()
        result = engine.bootstrap(AUTHORITY, initial_supply=TOKEN)
        assert engine.staking.get_pool().address == result["stakingPool"]
        assert engine.governance.get_governance().address == result["governance"]

    def test_bootstrap_inside_aborted_transaction(self):
        engine = LedgerEngine(clock=ManualClock(start=T0))
        with pytest.raises(RuntimeError):
            with engine.store.transaction():
                engine.bootstrap(AUTHORITY)
                raise RuntimeError("outer step failed")
        assert len(engine.store) == 0
        assert engine.token_mint is None
        assert engine.staking.token_mint is None
        assert engine.governance.token_mint is None
        assert engine.staking.power_sink is None

    def test_repr(self):
        engine = make_engine()
        assert "LedgerEngine" in repr(engine)

    def test_lazy_package_exports(self):
        assert stakegov.LedgerEngine is LedgerEngine
        assert stakegov.ManualClock is ManualClock
        with pytest.raises(AttributeError):
            stakegov.DoesNotExist


# ══════════════════════════════════════════════════════════════════════
#  STAKING ↔ REGISTRY
# ══════════════════════════════════════════════════════════════════════


class TestVotingPowerLink:

    def test_stake_registers_power(self):
        engine = make_engine()
        engine.staking.stake(ALICE, 5_000 * TOKEN, 180 * DAY)

        assert engine.governance.voting_power_of(ALICE) == 10_000
        assert engine.governance.registry.total_voting_power() == 10_000
        names = [e.event_name for e in engine.events]
        assert names.index("Stake") < names.index("VotingPowerUpdated")

    def test_powers_sum_across_stakers(self):
        engine = make_engine()
        engine.staking.stake(ALICE, 5_000 * TOKEN, 180 * DAY)
        engine.staking.stake(BOB, 1_000 * TOKEN, 90 * DAY)
        assert engine.governance.voting_power_of(BOB) == 1_500
        assert engine.governance.registry.total_voting_power() == 11_500

    def test_unstake_clears_power(self):
        engine = make_engine()
        engine.staking.stake(ALICE, 5_000 * TOKEN, 180 * DAY)
        engine.staking.stake(BOB, 1_000 * TOKEN, 30 * DAY)
        engine.clock.advance(180 * DAY)

        engine.staking.unstake(ALICE)

        assert engine.governance.voting_power_of(ALICE) == 0
        assert engine.governance.registry.total_voting_power() == 1_000
        event = engine.events.of_type(VotingPowerUpdatedEvent)[-1]
        assert (event.old_voting_power, event.new_voting_power) == (10_000, 0)

    def test_failed_stake_leaves_registry_untouched(self):
        engine = make_engine()
        registry = engine.governance.registry
        with pytest.raises(InsufficientBalanceError):
            engine.staking.stake(CAROL, TOKEN, 30 * DAY)
        assert not engine.store.exists(registry.voter_power_address(CAROL))
        assert registry.total_voting_power() == 0
        assert len(engine.events) == 0

    def test_duplicate_stake_keeps_power(self):
        engine = make_engine()
        engine.staking.stake(ALICE, 5_000 * TOKEN, 180 * DAY)
        with pytest.raises(StakeAlreadyExistsError):
            engine.staking.stake(ALICE, 1_000 * TOKEN, 30 * DAY)
        assert engine.governance.voting_power_of(ALICE) == 10_000

    def test_rejection_is_logged(self, caplog):
        engine = make_engine()
        with caplog.at_level(logging.WARNING):
            with pytest.raises(InsufficientBalanceError):
                engine.staking.stake(CAROL, TOKEN, 30 * DAY)
        assert "Stake REJECTED: InsufficientBalanceError" in caplog.text


# ══════════════════════════════════════════════════════════════════════
#  END TO END
# ══════════════════════════════════════════════════════════════════════


class TestEndToEnd:

    def test_stake_propose_vote_execute(self):
        engine = make_engine()
        gov = engine.governance
        engine.staking.stake(ALICE, 5_000 * TOKEN, 180 * DAY)
        engine.staking.stake(BOB, 1_000 * TOKEN, 30 * DAY)

        payload = encode_treasury_withdrawal(CAROL, 100 * TOKEN)
        proposal = gov.create_proposal(
            ALICE, "Grant for Carol", "Pay Carol from the treasury",
            ProposalType.TREASURY_WITHDRAWAL, payload,
        )
        gov.cast_vote(ALICE, proposal.proposal_id, Vote.YES)
        gov.cast_vote(BOB, proposal.proposal_id, Vote.NO)

        with pytest.raises(NoVotingPowerError):
            gov.cast_vote(CAROL, proposal.proposal_id, Vote.YES)

        engine.clock.set(proposal.voting_ends_at + 2 * DAY)
        changes = gov.execute_proposal(BOB, proposal.proposal_id)

        assert changes["treasury_withdrawal"]["amount"] == 100 * TOKEN
        assert engine.tokens.balance_of(engine.token_mint, CAROL) == 100 * TOKEN
        assert gov.get_proposal(proposal.proposal_id).executed
        assert engine.events.last() == ProposalExecutedEvent(
            proposal=proposal.address,
            executed_by=BOB,
            execution_time=proposal.voting_ends_at + 2 * DAY,
            proposal_type="TREASURY_WITHDRAWAL",
        )

    def test_rewards_flow_back_to_staker(self):
        engine = make_engine()
        before = engine.tokens.balance_of(engine.token_mint, ALICE)
        engine.staking.stake(ALICE, 1_000 * TOKEN, 30 * DAY)
        engine.clock.advance(30 * DAY)
        final_reward = engine.staking.unstake(ALICE)

        assert final_reward == 82_191_780
        assert engine.tokens.balance_of(engine.token_mint, ALICE) == before + final_reward
        assert len(engine.events.of_type(StakeEvent)) == 1

    def test_unfunded_treasury_blocks_unstake(self):
        engine = make_engine(fund=False)
        engine.staking.stake(ALICE, 1_000 * TOKEN, 30 * DAY)
        engine.clock.advance(30 * DAY)
        with pytest.raises(InsufficientBalanceError):
            engine.staking.unstake(ALICE)
        assert engine.governance.voting_power_of(ALICE) == 1_000
