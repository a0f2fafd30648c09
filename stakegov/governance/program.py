"""
Governance Ledger

Proposal creation, vote casting and revoting, quorum/majority gated
execution, cancellation and parameter updates for one governance instance
per token mint. Voting power is read from the instance's registry at the
moment each vote is cast.

Every public operation is one all-or-nothing transaction over the record
store.
"""

from typing import Any, Dict, List, Optional

from ..arith import checked_add, checked_add_i64
from ..clock import SystemClock
from ..constants import (
    GOVERNANCE_DEFAULT_EXECUTION_DELAY_SECONDS,
    GOVERNANCE_DEFAULT_MIN_PROPOSAL_TOKENS,
    GOVERNANCE_DEFAULT_QUORUM_PERCENTAGE,
    GOVERNANCE_DEFAULT_VOTING_PERIOD_SECONDS,
    SEED_GOVERNANCE,
    SEED_PROPOSAL,
    SEED_VOTER_VOTE,
)
from ..events import (
    GovernanceInitializedEvent,
    GovernanceUpdatedEvent,
    ProposalCancelledEvent,
    ProposalCreatedEvent,
    ProposalExecutedEvent,
    VoteCastEvent,
)
from ..exceptions import UnauthorizedError, ValidationError
from ..logger import get_logger
from ..state import RecordStore, derive_address, ledger_operation
from ..tokens import TokenLedger
from .execution import (
    ExecutionContext,
    ExecutionDelayNotPassedError,
    ExecutionDispatcher,
    ProposalNotPassedError,
    QuorumNotReachedError,
    VotingStillOpenError,
    majority_reached,
    quorum_reached,
    quorum_threshold,
)
from .proposals import (
    GovernanceConfig,
    InsufficientTokensError,
    Proposal,
    ProposalAlreadyExecutedError,
    ProposalCancelledError,
    ProposalPhase,
    ProposalStatus,
    ProposalType,
    UnauthorizedCancellationError,
    apply_governance_updates,
    validate_execution_delay,
    validate_min_proposal_tokens,
    validate_proposal_content,
    validate_quorum_percentage,
    validate_voting_period,
)
from .registry import RegistryProgram
from .voting import NoVotingPowerError, Vote, VoteRecord, VotingClosedError, apply_vote

logger = get_logger(__name__)


class GovernanceProgram:
    """
    Governance ledger bound to one token mint.

    Usage:
        >>> gov = GovernanceProgram(store, tokens, clock)
        >>> gov.initialize(authority, mint, treasury)
        >>> proposal = gov.create_proposal(alice, "Raise quorum", "...", ProposalType.OTHER)
        >>> gov.cast_vote(bob, proposal.proposal_id, Vote.YES)
    """

    def __init__(
        self,
        store: RecordStore,
        tokens: TokenLedger,
        clock=None,
        token_mint: Optional[str] = None,
        dispatcher: Optional[ExecutionDispatcher] = None,
    ):
        self.store = store
        self.tokens = tokens
        self.clock = clock or SystemClock()
        self.token_mint = token_mint
        self.dispatcher = dispatcher or ExecutionDispatcher()

    # ── Addressing ────────────────────────────────────────────────────

    @staticmethod
    def governance_address_for(token_mint: str) -> str:
        return derive_address(SEED_GOVERNANCE, token_mint)

    @property
    def governance_address(self) -> str:
        if self.token_mint is None:
            raise ValidationError("Governance program is not bound to a token mint")
        return self.governance_address_for(self.token_mint)

    def _bind_mint(self, token_mint: str) -> None:
        previous = self.token_mint
        self.token_mint = token_mint
        self.store.on_rollback(lambda: setattr(self, "token_mint", previous))

    def proposal_address(self, proposal_id: int) -> str:
        return derive_address(SEED_PROPOSAL, self.governance_address, proposal_id)

    def vote_address(self, proposal_id: int, voter: str) -> str:
        return derive_address(SEED_VOTER_VOTE, self.proposal_address(proposal_id), voter)

    @property
    def registry(self) -> RegistryProgram:
        return RegistryProgram(self.store, self.governance_address)

    # ── Read-only views ───────────────────────────────────────────────

    def get_governance(self) -> GovernanceConfig:
        return self.store.require(self.governance_address, GovernanceConfig)

    def get_proposal(self, proposal_id: int) -> Proposal:
        return self.store.require(self.proposal_address(proposal_id), Proposal)

    def get_vote(self, proposal_id: int, voter: str) -> Optional[VoteRecord]:
        return self.store.get(self.vote_address(proposal_id, voter))

    def votes_for(self, proposal_id: int) -> List[VoteRecord]:
        proposal = self.proposal_address(proposal_id)
        return [v for v in self.store.records_of(VoteRecord) if v.proposal == proposal]

    def proposal_phase(self, proposal_id: int) -> ProposalPhase:
        return self.get_proposal(proposal_id).phase(self.clock.now())

    def proposals(self) -> List[Proposal]:
        governance = self.governance_address
        found = [p for p in self.store.records_of(Proposal) if p.governance == governance]
        return sorted(found, key=lambda p: p.proposal_id)

    def tally(self, proposal_id: int) -> Dict[str, Any]:
        """Current tallies against the quorum and majority rules."""
        proposal = self.get_proposal(proposal_id)
        governance = self.get_governance()
        total = self.registry.total_voting_power()
        return {
            "proposalId": proposal.proposal_id,
            "yesVotes": proposal.yes_votes,
            "noVotes": proposal.no_votes,
            "totalVotingPower": total,
            "quorumThreshold": quorum_threshold(total, governance.quorum_percentage),
            "quorumReached": quorum_reached(
                proposal.yes_votes, proposal.no_votes, total, governance.quorum_percentage
            ),
            "majorityReached": majority_reached(proposal.yes_votes, proposal.no_votes),
            "phase": proposal.phase(self.clock.now()).name,
        }

    # ── Registry passthroughs ─────────────────────────────────────────

    def register_voting_power(self, source: str, voter: str, new_power: int) -> int:
        return self.registry.register_voting_power(source, voter, new_power)

    def authorize_power_source(self, authority: str, source: str):
        return self.registry.authorize_power_source(authority, source)

    def voting_power_of(self, voter: str) -> int:
        return self.registry.voting_power_of(voter)

    # ── Administration ────────────────────────────────────────────────

    def initialize(
        self,
        authority: str,
        token_mint: str,
        treasury: str,
        min_proposal_tokens: int = GOVERNANCE_DEFAULT_MIN_PROPOSAL_TOKENS,
        voting_period: int = GOVERNANCE_DEFAULT_VOTING_PERIOD_SECONDS,
        execution_delay: int = GOVERNANCE_DEFAULT_EXECUTION_DELAY_SECONDS,
        quorum_percentage: int = GOVERNANCE_DEFAULT_QUORUM_PERCENTAGE,
    ) -> GovernanceConfig:
        """Create the governance config and its voting power registry."""
        with ledger_operation(self.store, "InitializeGovernance", logger):
            validate_quorum_percentage(quorum_percentage)
            validate_voting_period(voting_period)
            validate_execution_delay(execution_delay)
            validate_min_proposal_tokens(min_proposal_tokens)
            self.tokens.get_mint(token_mint)

            governance = self.store.create(
                GovernanceConfig(
                    address=self.governance_address_for(token_mint),
                    authority=authority,
                    token_mint=token_mint,
                    treasury=treasury,
                    min_proposal_tokens=min_proposal_tokens,
                    voting_period_seconds=voting_period,
                    execution_delay_seconds=execution_delay,
                    quorum_percentage=quorum_percentage,
                )
            )
            self._bind_mint(token_mint)
            self.registry.create()
            self.store.emit(
                GovernanceInitializedEvent(
                    governance=governance.address,
                    min_proposal_tokens=min_proposal_tokens,
                    voting_period=voting_period,
                    execution_delay=execution_delay,
                    quorum_percentage=quorum_percentage,
                )
            )

        self.store.log_on_commit(
            logger,
            f"Governance {governance.address} initialized for mint {token_mint} "
            f"period={voting_period}s delay={execution_delay}s quorum={quorum_percentage}%"
        )
        return governance

    def update_governance(
        self,
        authority: str,
        min_proposal_tokens: Optional[int] = None,
        voting_period: Optional[int] = None,
        execution_delay: Optional[int] = None,
        quorum_percentage: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Apply the provided fields; omitted fields stay untouched."""
        with ledger_operation(self.store, "UpdateGovernance", logger):
            governance = self.store.load_mut(self.governance_address, GovernanceConfig)
            if authority != governance.authority:
                raise UnauthorizedError(f"{authority} is not the governance authority")

            changes = apply_governance_updates(
                governance,
                min_proposal_tokens=min_proposal_tokens,
                voting_period=voting_period,
                execution_delay=execution_delay,
                quorum_percentage=quorum_percentage,
            )
            self.store.emit(
                GovernanceUpdatedEvent(
                    governance=governance.address,
                    min_proposal_tokens=governance.min_proposal_tokens,
                    voting_period=governance.voting_period_seconds,
                    execution_delay=governance.execution_delay_seconds,
                    quorum_percentage=governance.quorum_percentage,
                )
            )

        self.store.log_on_commit(logger, f"Governance updated: {changes}")
        return changes

    # ── Proposals ─────────────────────────────────────────────────────

    def create_proposal(
        self,
        proposer: str,
        title: str,
        description: str,
        proposal_type=ProposalType.OTHER,
        execution_payload: bytes = b"",
    ) -> Proposal:
        """Open a new proposal; the proposer must hold min_proposal_tokens."""
        with ledger_operation(self.store, "CreateProposal", logger):
            proposal_type = ProposalType.coerce(proposal_type)
            validate_proposal_content(title, description, execution_payload)

            governance = self.store.load_mut(self.governance_address, GovernanceConfig)
            balance = self.tokens.balance_of(governance.token_mint, proposer)
            if balance < governance.min_proposal_tokens:
                raise InsufficientTokensError(
                    f"{proposer} holds {balance} < required {governance.min_proposal_tokens}"
                )

            now = self.clock.now()
            proposal_id = checked_add(governance.proposal_count, 1)
            proposal = self.store.create(
                Proposal(
                    address=self.proposal_address(proposal_id),
                    governance=governance.address,
                    proposal_id=proposal_id,
                    proposer=proposer,
                    title=title,
                    description=description,
                    proposal_type=proposal_type,
                    execution_payload=bytes(execution_payload),
                    created_at=now,
                    voting_ends_at=checked_add_i64(now, governance.voting_period_seconds),
                )
            )
            governance.proposal_count = proposal_id

            self.store.emit(
                ProposalCreatedEvent(
                    proposal=proposal.address,
                    governance=governance.address,
                    proposer=proposer,
                    proposal_id=proposal_id,
                    title=title,
                    proposal_type=proposal_type.name,
                    voting_ends_at=proposal.voting_ends_at,
                )
            )

        self.store.log_on_commit(
            logger,
            f"Proposal #{proposal_id} created by {proposer}: '{title}' "
            f"type={proposal_type.name} voting_ends_at={proposal.voting_ends_at}"
        )
        return proposal

    def cast_vote(self, voter: str, proposal_id: int, choice) -> VoteRecord:
        """
        Cast or change a vote with the voter's current registered power.

        A revote first retracts the power recorded by the previous vote from
        that vote's tally, then counts the current power for the new choice.
        """
        with ledger_operation(self.store, "CastVote", logger):
            choice = Vote.coerce(choice)
            proposal = self.store.load_mut(self.proposal_address(proposal_id), Proposal)

            now = self.clock.now()
            if now >= proposal.voting_ends_at:
                raise VotingClosedError(f"Voting on proposal #{proposal_id} ended at {proposal.voting_ends_at}")
            if proposal.cancelled:
                raise ProposalCancelledError(f"Proposal #{proposal_id} is cancelled")
            if proposal.executed:
                raise ProposalAlreadyExecutedError(f"Proposal #{proposal_id} already executed")

            power = self.registry.voting_power_of(voter)
            if power == 0:
                raise NoVotingPowerError(f"{voter} has no registered voting power")

            address = self.vote_address(proposal_id, voter)
            if self.store.exists(address):
                record = self.store.load_mut(address, VoteRecord)
                previous = record.vote
                apply_vote(proposal, record, choice, power)
                record.vote = choice
                record.voting_power_at_cast = power
                record.cast_at = now
                revote = True
            else:
                previous = None
                apply_vote(proposal, None, choice, power)
                record = self.store.create(
                    VoteRecord(
                        address=address,
                        proposal=proposal.address,
                        voter=voter,
                        vote=choice,
                        voting_power_at_cast=power,
                        cast_at=now,
                    )
                )
                revote = False

            self.store.emit(
                VoteCastEvent(
                    proposal=proposal.address,
                    voter=voter,
                    vote=choice.name,
                    voting_power=power,
                    revote=revote,
                )
            )

        if revote:
            self.store.log_on_commit(
                logger,
                f"Proposal #{proposal_id}: {voter} revoted {previous.name} → {choice.name} "
                f"power={power} yes={proposal.yes_votes} no={proposal.no_votes}"
            )
        else:
            self.store.log_on_commit(
                logger,
                f"Proposal #{proposal_id}: {voter} voted {choice.name} "
                f"power={power} yes={proposal.yes_votes} no={proposal.no_votes}"
            )
        return record

    def execute_proposal(self, executor: str, proposal_id: int) -> Dict[str, Any]:
        """
        Latch the proposal as executed and dispatch its effect.

        Requires voting to have ended, the execution delay to have elapsed,
        quorum (yes + no against total registered power) and a strict yes
        majority. Returns the handler's description of what changed.
        """
        with ledger_operation(self.store, "ExecuteProposal", logger):
            governance = self.get_governance()
            proposal = self.store.load_mut(self.proposal_address(proposal_id), Proposal)

            now = self.clock.now()
            if now < proposal.voting_ends_at:
                raise VotingStillOpenError(
                    f"Voting on proposal #{proposal_id} open until {proposal.voting_ends_at}"
                )
            if proposal.executed:
                raise ProposalAlreadyExecutedError(f"Proposal #{proposal_id} already executed")
            if proposal.cancelled:
                raise ProposalCancelledError(f"Proposal #{proposal_id} is cancelled")

            executable_at = checked_add_i64(proposal.voting_ends_at, governance.execution_delay_seconds)
            if now < executable_at:
                raise ExecutionDelayNotPassedError(
                    f"Proposal #{proposal_id} executable at {executable_at} (now {now})"
                )

            total = self.registry.total_voting_power()
            if not quorum_reached(proposal.yes_votes, proposal.no_votes, total, governance.quorum_percentage):
                raise QuorumNotReachedError(
                    f"Proposal #{proposal_id}: yes+no={proposal.yes_votes + proposal.no_votes} "
                    f"< threshold {quorum_threshold(total, governance.quorum_percentage)}"
                )
            if not majority_reached(proposal.yes_votes, proposal.no_votes):
                raise ProposalNotPassedError(
                    f"Proposal #{proposal_id}: yes={proposal.yes_votes} <= no={proposal.no_votes}"
                )

            proposal.transition_to(ProposalStatus.EXECUTED, now)
            changes = self.dispatcher.dispatch(
                ExecutionContext(
                    proposal=proposal,
                    governance=governance,
                    executor=executor,
                    now=now,
                    store=self.store,
                    tokens=self.tokens,
                )
            )

            self.store.emit(
                ProposalExecutedEvent(
                    proposal=proposal.address,
                    executed_by=executor,
                    execution_time=now,
                    proposal_type=proposal.proposal_type.name,
                )
            )

        self.store.log_on_commit(
            logger,
            f"Proposal #{proposal_id} EXECUTED by {executor}: "
            f"{proposal.proposal_type.name} {changes}"
        )
        return changes

    def cancel_proposal(self, actor: str, proposal_id: int) -> Proposal:
        """Cancel before execution; proposer or governance authority only."""
        with ledger_operation(self.store, "CancelProposal", logger):
            governance = self.get_governance()
            proposal = self.store.load_mut(self.proposal_address(proposal_id), Proposal)

            if proposal.executed:
                raise ProposalAlreadyExecutedError(f"Proposal #{proposal_id} already executed")
            if proposal.cancelled:
                raise ProposalCancelledError(f"Proposal #{proposal_id} is already cancelled")
            if actor != proposal.proposer and actor != governance.authority:
                raise UnauthorizedCancellationError(
                    f"{actor} is neither the proposer nor the governance authority"
                )

            now = self.clock.now()
            proposal.transition_to(ProposalStatus.CANCELLED, now)
            self.store.emit(
                ProposalCancelledEvent(
                    proposal=proposal.address, cancelled_by=actor, cancellation_time=now
                )
            )

        self.store.log_on_commit(logger, f"Proposal #{proposal_id} CANCELLED by {actor}")
        return proposal
