"""
Governance Proposals

Defines the governance config record, proposal types, the stored status
latch and derived lifecycle phase, and the Proposal record that tracks one
proposal from creation to execution or cancellation.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional

from ..arith import require_i64, require_u64
from ..constants import (
    GOVERNANCE_MAX_QUORUM_PERCENTAGE,
    PROPOSAL_MAX_DESCRIPTION_BYTES,
    PROPOSAL_MAX_PAYLOAD_BYTES,
    PROPOSAL_MAX_TITLE_BYTES,
)
from ..exceptions import (
    AuthorizationError,
    LedgerException,
    StatePreconditionError,
    ValidationError,
)
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class GovernanceError(LedgerException):
    """Base governance exception."""


class InvalidQuorumPercentageError(GovernanceError, ValidationError):
    """Quorum percentage must be in (0, 100]."""


class InvalidVotingPeriodError(GovernanceError, ValidationError):
    """Voting period must be positive."""


class InvalidExecutionDelayError(GovernanceError, ValidationError):
    """Execution delay must not be negative."""


class InvalidProposalError(GovernanceError, ValidationError):
    """Raised when proposal data is invalid."""


class InsufficientTokensError(GovernanceError, StatePreconditionError):
    """Proposer holds fewer tokens than min_proposal_tokens."""


class ProposalAlreadyExecutedError(GovernanceError, StatePreconditionError):
    """The proposal has already been executed."""


class ProposalCancelledError(GovernanceError, StatePreconditionError):
    """The proposal has been cancelled."""


class UnauthorizedCancellationError(GovernanceError, AuthorizationError):
    """Only the proposer or the governance authority may cancel."""


# ══════════════════════════════════════════════════════════════════════
#  VALIDATION
# ══════════════════════════════════════════════════════════════════════

def validate_quorum_percentage(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQuorumPercentageError(f"Quorum percentage must be an integer, got {value!r}")
    if not 0 < value <= GOVERNANCE_MAX_QUORUM_PERCENTAGE:
        raise InvalidQuorumPercentageError(f"Quorum percentage must be in (0, 100], got {value}")
    return value


def validate_voting_period(value) -> int:
    try:
        require_i64(value, "voting_period")
    except ValidationError as e:
        raise InvalidVotingPeriodError(str(e)) from e
    if value <= 0:
        raise InvalidVotingPeriodError(f"Voting period must be positive, got {value}")
    return value


def validate_execution_delay(value) -> int:
    try:
        require_i64(value, "execution_delay")
    except ValidationError as e:
        raise InvalidExecutionDelayError(str(e)) from e
    if value < 0:
        raise InvalidExecutionDelayError(f"Execution delay cannot be negative, got {value}")
    return value


def validate_min_proposal_tokens(value) -> int:
    return require_u64(value, "min_proposal_tokens")


GOVERNANCE_UPDATE_FIELDS = (
    "min_proposal_tokens",
    "voting_period",
    "execution_delay",
    "quorum_percentage",
)


def apply_governance_updates(governance: "GovernanceConfig", **updates) -> Dict[str, Any]:
    """
    Validate every provided field, then apply them; ``None`` means untouched.

    Returns {field: {"old": ..., "new": ...}} for the fields that were given.
    """
    unknown = set(updates) - set(GOVERNANCE_UPDATE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown governance fields: {sorted(unknown)}")

    validators = {
        "min_proposal_tokens": (validate_min_proposal_tokens, "min_proposal_tokens"),
        "voting_period": (validate_voting_period, "voting_period_seconds"),
        "execution_delay": (validate_execution_delay, "execution_delay_seconds"),
        "quorum_percentage": (validate_quorum_percentage, "quorum_percentage"),
    }
    staged = {}
    for name in GOVERNANCE_UPDATE_FIELDS:
        value = updates.get(name)
        if value is None:
            continue
        validate, attr = validators[name]
        staged[attr] = validate(value)

    changes: Dict[str, Any] = {}
    for attr, value in staged.items():
        changes[attr] = {"old": getattr(governance, attr), "new": value}
        setattr(governance, attr, value)
    return changes


def _utf8_len(text: str) -> int:
    return len(text.encode("utf-8"))


def validate_proposal_content(title: str, description: str, payload: bytes) -> None:
    """Proposal fields must fit the fixed-capacity proposal record."""
    if not isinstance(title, str) or not title:
        raise InvalidProposalError("Proposal title cannot be empty")
    if _utf8_len(title) > PROPOSAL_MAX_TITLE_BYTES:
        raise InvalidProposalError(f"Proposal title exceeds {PROPOSAL_MAX_TITLE_BYTES} bytes")
    if not isinstance(description, str):
        raise InvalidProposalError("Proposal description must be a string")
    if _utf8_len(description) > PROPOSAL_MAX_DESCRIPTION_BYTES:
        raise InvalidProposalError(
            f"Proposal description exceeds {PROPOSAL_MAX_DESCRIPTION_BYTES} bytes"
        )
    if not isinstance(payload, (bytes, bytearray)):
        raise InvalidProposalError("Execution payload must be bytes")
    if len(payload) > PROPOSAL_MAX_PAYLOAD_BYTES:
        raise InvalidProposalError(f"Execution payload exceeds {PROPOSAL_MAX_PAYLOAD_BYTES} bytes")


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class ProposalType(IntEnum):
    """Category of governance proposal."""
    TREASURY_WITHDRAWAL = 0   # Pay out of the governance treasury
    PARAMETER_CHANGE = 1      # Update governance parameters
    OTHER = 2                 # Signalling only

    @classmethod
    def coerce(cls, value) -> "ProposalType":
        if isinstance(value, cls):
            return value
        try:
            if isinstance(value, str):
                return cls[value.upper()]
            return cls(value)
        except (KeyError, ValueError) as e:
            raise InvalidProposalError(f"Unknown proposal type: {value!r}") from e


class ProposalStatus(IntEnum):
    """Stored latch; EXECUTED and CANCELLED are terminal and exclusive."""
    ACTIVE = 0
    EXECUTED = 1
    CANCELLED = 2


class ProposalPhase(IntEnum):
    """Lifecycle phase derived from the status and the current time."""
    OPEN = 0            # Voting in progress
    CLOSED_PENDING = 1  # Voting ended, awaiting execution or cancellation
    EXECUTED = 2
    CANCELLED = 3


_VALID_TRANSITIONS: Dict[ProposalStatus, set] = {
    ProposalStatus.ACTIVE:    {ProposalStatus.EXECUTED, ProposalStatus.CANCELLED},
    # Terminal states
    ProposalStatus.EXECUTED:  set(),
    ProposalStatus.CANCELLED: set(),
}


# ══════════════════════════════════════════════════════════════════════
#  RECORDS
# ══════════════════════════════════════════════════════════════════════

@dataclass
class GovernanceConfig:
    """
    Per-mint governance instance.

    Fields:
        authority:                May update parameters and cancel any proposal
        token_mint:               Governance token
        treasury:                 Owner identity of the governance treasury
        min_proposal_tokens:      Token balance required to create a proposal
        voting_period_seconds:    Length of the voting window
        execution_delay_seconds:  Wait after voting ends before execution
        quorum_percentage:        Share of total voting power required (1..100)
        proposal_count:           Last assigned proposal id
    """
    address: str
    authority: str
    token_mint: str
    treasury: str
    min_proposal_tokens: int
    voting_period_seconds: int
    execution_delay_seconds: int
    quorum_percentage: int
    proposal_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "authority": self.authority,
            "tokenMint": self.token_mint,
            "treasury": self.treasury,
            "minProposalTokens": self.min_proposal_tokens,
            "votingPeriodSeconds": self.voting_period_seconds,
            "executionDelaySeconds": self.execution_delay_seconds,
            "quorumPercentage": self.quorum_percentage,
            "proposalCount": self.proposal_count,
        }


@dataclass
class Proposal:
    """
    On-chain governance proposal.

    Fields:
        proposal_id:        governance.proposal_count + 1 at creation
        proposer:           Address that created the proposal
        title:              Short title (<= 96 bytes UTF-8)
        description:        Rationale (<= 996 bytes UTF-8)
        proposal_type:      Dispatch category
        execution_payload:  Opaque bytes handed to the executor
        created_at:         Creation timestamp
        voting_ends_at:     created_at + voting period
        yes_votes:          Sum of power behind current YES records
        no_votes:           Sum of power behind current NO records
        status:             ACTIVE until executed or cancelled
    """
    address: str
    governance: str
    proposal_id: int
    proposer: str
    title: str
    description: str
    proposal_type: ProposalType
    execution_payload: bytes
    created_at: int
    voting_ends_at: int
    yes_votes: int = 0
    no_votes: int = 0
    status: ProposalStatus = ProposalStatus.ACTIVE
    executed_at: Optional[int] = None
    cancelled_at: Optional[int] = None

    # ── Properties ────────────────────────────────────────────────────

    @property
    def executed(self) -> bool:
        return self.status == ProposalStatus.EXECUTED

    @property
    def cancelled(self) -> bool:
        return self.status == ProposalStatus.CANCELLED

    @property
    def is_terminal(self) -> bool:
        return self.status != ProposalStatus.ACTIVE

    def phase(self, now: int) -> ProposalPhase:
        if self.status == ProposalStatus.CANCELLED:
            return ProposalPhase.CANCELLED
        if self.status == ProposalStatus.EXECUTED:
            return ProposalPhase.EXECUTED
        if now < self.voting_ends_at:
            return ProposalPhase.OPEN
        return ProposalPhase.CLOSED_PENDING

    def is_votable(self, now: int) -> bool:
        return self.phase(now) == ProposalPhase.OPEN

    # ── State transitions ─────────────────────────────────────────────

    def transition_to(self, new_status: ProposalStatus, timestamp: int) -> None:
        """
        Latch *new_status*.

        Raises ProposalAlreadyExecutedError / ProposalCancelledError when the
        proposal is already terminal.
        """
        allowed = _VALID_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            if self.status == ProposalStatus.EXECUTED:
                raise ProposalAlreadyExecutedError(f"Proposal #{self.proposal_id} already executed")
            raise ProposalCancelledError(f"Proposal #{self.proposal_id} is cancelled")
        old = self.status
        self.status = new_status
        if new_status == ProposalStatus.EXECUTED:
            self.executed_at = timestamp
        else:
            self.cancelled_at = timestamp
        logger.debug(f"Proposal #{self.proposal_id}: {old.name} → {new_status.name}")

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "governance": self.governance,
            "proposalId": self.proposal_id,
            "proposer": self.proposer,
            "title": self.title,
            "description": self.description,
            "proposalType": self.proposal_type.name,
            "executionPayload": "0x" + bytes(self.execution_payload).hex(),
            "createdAt": self.created_at,
            "votingEndsAt": self.voting_ends_at,
            "yesVotes": self.yes_votes,
            "noVotes": self.no_votes,
            "status": self.status.name,
            "executed": self.executed,
            "cancelled": self.cancelled,
            "executedAt": self.executed_at,
            "cancelledAt": self.cancelled_at,
        }

    def __repr__(self) -> str:
        return (
            f"<Proposal #{self.proposal_id} '{self.title}' "
            f"type={self.proposal_type.name} status={self.status.name}>"
        )
