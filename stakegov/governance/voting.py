"""
Vote casting and revoting.

Each (voter, proposal) pair holds at most one VoteRecord. The record moves
through a small state machine:

    no vote  --cast(X)-->  X     adds the current power to X's tally
    X        --cast(Y)-->  Y     retracts the recorded power from X's tally,
                                 then adds the current power to Y's tally

ABSTAIN has no tally, so casting or retracting it never touches yes/no.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional

from ..arith import checked_add, checked_sub
from ..exceptions import StatePreconditionError, ValidationError
from .proposals import GovernanceError, Proposal


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class VotingError(GovernanceError):
    """Base voting error."""


class VotingClosedError(VotingError, StatePreconditionError):
    """Voting period has ended."""


class NoVotingPowerError(VotingError, StatePreconditionError):
    """Voter has no registered voting power."""


class InvalidVoteError(VotingError, ValidationError):
    """Unknown vote choice."""


# ══════════════════════════════════════════════════════════════════════
#  VOTE DATA
# ══════════════════════════════════════════════════════════════════════

class Vote(IntEnum):
    YES = 0
    NO = 1
    ABSTAIN = 2

    @classmethod
    def coerce(cls, value) -> "Vote":
        if isinstance(value, cls):
            return value
        try:
            if isinstance(value, str):
                return cls[value.upper()]
            return cls(value)
        except (KeyError, ValueError) as e:
            raise InvalidVoteError(f"Unknown vote choice: {value!r}") from e


@dataclass
class VoteRecord:
    """The single vote slot of one voter on one proposal."""
    address: str
    proposal: str
    voter: str
    vote: Vote
    voting_power_at_cast: int
    cast_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "proposal": self.proposal,
            "voter": self.voter,
            "vote": self.vote.name,
            "votingPowerAtCast": self.voting_power_at_cast,
            "castAt": self.cast_at,
        }


# ══════════════════════════════════════════════════════════════════════
#  TALLY TRANSITIONS
# ══════════════════════════════════════════════════════════════════════

def _count(proposal: Proposal, choice: Vote, power: int) -> None:
    if choice == Vote.YES:
        proposal.yes_votes = checked_add(proposal.yes_votes, power)
    elif choice == Vote.NO:
        proposal.no_votes = checked_add(proposal.no_votes, power)


def _retract(proposal: Proposal, choice: Vote, power: int) -> None:
    # Underflow here means the tallies no longer match the vote records
    if choice == Vote.YES:
        proposal.yes_votes = checked_sub(proposal.yes_votes, power)
    elif choice == Vote.NO:
        proposal.no_votes = checked_sub(proposal.no_votes, power)


def apply_vote(
    proposal: Proposal,
    prior: Optional[VoteRecord],
    choice: Vote,
    power: int,
) -> None:
    """Move the proposal tallies for one cast or revote."""
    if prior is not None:
        _retract(proposal, prior.vote, prior.voting_power_at_cast)
    _count(proposal, choice, power)
