"""
On-Chain Governance

Provides:
  - GovernanceConfig / ProposalType / ProposalStatus / ProposalPhase / Proposal  (proposals.py)
  - Vote / VoteRecord / apply_vote                                              (voting.py)
  - VotingPowerRegistry / VoterPower / RegistryProgram                          (registry.py)
  - quorum helpers / payload codecs / ExecutionDispatcher                       (execution.py)
  - GovernanceProgram                                                           (program.py)
"""

from .proposals import (
    GovernanceConfig,
    GovernanceError,
    InsufficientTokensError,
    InvalidExecutionDelayError,
    InvalidProposalError,
    InvalidQuorumPercentageError,
    InvalidVotingPeriodError,
    Proposal,
    ProposalAlreadyExecutedError,
    ProposalCancelledError,
    ProposalPhase,
    ProposalStatus,
    ProposalType,
    UnauthorizedCancellationError,
)
from .voting import (
    InvalidVoteError,
    NoVotingPowerError,
    Vote,
    VoteRecord,
    VotingClosedError,
    VotingError,
    apply_vote,
)
from .registry import (
    RegistryProgram,
    UnauthorizedPowerSourceError,
    VoterPower,
    VotingPowerRegistry,
)
from .execution import (
    ExecutionContext,
    ExecutionDelayNotPassedError,
    ExecutionDispatcher,
    InvalidExecutionPayloadError,
    ProposalNotPassedError,
    QuorumNotReachedError,
    VotingStillOpenError,
    decode_parameter_change,
    decode_treasury_withdrawal,
    encode_parameter_change,
    encode_treasury_withdrawal,
    majority_reached,
    quorum_reached,
    quorum_threshold,
)
from .program import GovernanceProgram

__all__ = [
    # Proposals
    "GovernanceConfig",
    "GovernanceError",
    "InsufficientTokensError",
    "InvalidExecutionDelayError",
    "InvalidProposalError",
    "InvalidQuorumPercentageError",
    "InvalidVotingPeriodError",
    "Proposal",
    "ProposalAlreadyExecutedError",
    "ProposalCancelledError",
    "ProposalPhase",
    "ProposalStatus",
    "ProposalType",
    "UnauthorizedCancellationError",
    # Voting
    "InvalidVoteError",
    "NoVotingPowerError",
    "Vote",
    "VoteRecord",
    "VotingClosedError",
    "VotingError",
    "apply_vote",
    # Registry
    "RegistryProgram",
    "UnauthorizedPowerSourceError",
    "VoterPower",
    "VotingPowerRegistry",
    # Execution
    "ExecutionContext",
    "ExecutionDelayNotPassedError",
    "ExecutionDispatcher",
    "InvalidExecutionPayloadError",
    "ProposalNotPassedError",
    "QuorumNotReachedError",
    "VotingStillOpenError",
    "decode_parameter_change",
    "decode_treasury_withdrawal",
    "encode_parameter_change",
    "encode_treasury_withdrawal",
    "majority_reached",
    "quorum_reached",
    "quorum_threshold",
    # Program
    "GovernanceProgram",
]
