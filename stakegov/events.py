"""
Ledger events.

Every successful operation emits one structured event. Events are buffered by
the enclosing transaction and only reach subscribed sinks once it commits, so
a rejected operation never leaves a trace in the event stream.
"""

import time
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Dict, Iterator, List, Type, TypeVar

E = TypeVar("E", bound="LedgerEvent")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass(frozen=True)
class LedgerEvent:
    """Base class; subclasses set `event_name`."""
    event_name: ClassVar[str] = "LedgerEvent"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"event": self.event_name}
        for f in fields(self):
            data[_camel(f.name)] = getattr(self, f.name)
        return data


# ══════════════════════════════════════════════════════════════════════
#  TOKEN CUSTODY
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TokenMintEvent(LedgerEvent):
    event_name: ClassVar[str] = "MintTo"
    mint: str
    recipient: str
    amount: int


@dataclass(frozen=True)
class TokenTransferEvent(LedgerEvent):
    event_name: ClassVar[str] = "Transfer"
    mint: str
    sender: str
    recipient: str
    amount: int


# ══════════════════════════════════════════════════════════════════════
#  STAKING
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StakingPoolInitializedEvent(LedgerEvent):
    event_name: ClassVar[str] = "StakingPoolInitialized"
    pool: str
    authority: str
    token_mint: str
    reward_rate_bps_per_day: int
    min_stake_duration: int
    max_stake_duration: int


@dataclass(frozen=True)
class StakeEvent(LedgerEvent):
    event_name: ClassVar[str] = "Stake"
    user: str
    amount: int
    duration: int
    end_timestamp: int
    reputation_boost: int
    voting_power: int


@dataclass(frozen=True)
class RewardEvent(LedgerEvent):
    event_name: ClassVar[str] = "Reward"
    user: str
    reward_amount: int
    days_elapsed: int
    total_claimed: int


@dataclass(frozen=True)
class UnstakeEvent(LedgerEvent):
    event_name: ClassVar[str] = "Unstake"
    user: str
    amount: int
    final_reward: int
    total_rewards: int


@dataclass(frozen=True)
class ParamsUpdateEvent(LedgerEvent):
    event_name: ClassVar[str] = "ParamsUpdate"
    reward_rate: int
    min_stake_duration: int
    max_stake_duration: int


# ══════════════════════════════════════════════════════════════════════
#  GOVERNANCE
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class GovernanceInitializedEvent(LedgerEvent):
    event_name: ClassVar[str] = "GovernanceInitialized"
    governance: str
    min_proposal_tokens: int
    voting_period: int
    execution_delay: int
    quorum_percentage: int


@dataclass(frozen=True)
class ProposalCreatedEvent(LedgerEvent):
    event_name: ClassVar[str] = "ProposalCreated"
    proposal: str
    governance: str
    proposer: str
    proposal_id: int
    title: str
    proposal_type: str
    voting_ends_at: int


@dataclass(frozen=True)
class VoteCastEvent(LedgerEvent):
    event_name: ClassVar[str] = "VoteCast"
    proposal: str
    voter: str
    vote: str
    voting_power: int
    revote: bool = False


@dataclass(frozen=True)
class ProposalExecutedEvent(LedgerEvent):
    event_name: ClassVar[str] = "ProposalExecuted"
    proposal: str
    executed_by: str
    execution_time: int
    proposal_type: str


@dataclass(frozen=True)
class ProposalCancelledEvent(LedgerEvent):
    event_name: ClassVar[str] = "ProposalCancelled"
    proposal: str
    cancelled_by: str
    cancellation_time: int


@dataclass(frozen=True)
class GovernanceUpdatedEvent(LedgerEvent):
    event_name: ClassVar[str] = "GovernanceUpdated"
    governance: str
    min_proposal_tokens: int
    voting_period: int
    execution_delay: int
    quorum_percentage: int


@dataclass(frozen=True)
class VotingPowerUpdatedEvent(LedgerEvent):
    event_name: ClassVar[str] = "VotingPowerUpdated"
    voter: str
    old_voting_power: int
    new_voting_power: int
    total_voting_power: int


@dataclass(frozen=True)
class PowerSourceAuthorizedEvent(LedgerEvent):
    event_name: ClassVar[str] = "PowerSourceAuthorized"
    registry: str
    source: str
    authorized_by: str


# ══════════════════════════════════════════════════════════════════════
#  SINK
# ══════════════════════════════════════════════════════════════════════

@dataclass
class _Published:
    event: LedgerEvent
    published_at: float = field(default_factory=time.time)


class EventLog:
    """In-memory event sink."""

    def __init__(self):
        self._entries: List[_Published] = []

    def publish(self, event: LedgerEvent) -> None:
        self._entries.append(_Published(event))

    @property
    def events(self) -> List[LedgerEvent]:
        return [e.event for e in self._entries]

    def of_type(self, event_cls: Type[E]) -> List[E]:
        return [e.event for e in self._entries if isinstance(e.event, event_cls)]

    def last(self) -> LedgerEvent:
        if not self._entries:
            raise IndexError("event log is empty")
        return self._entries[-1].event

    def clear(self) -> None:
        self._entries.clear()

    def __iter__(self) -> Iterator[LedgerEvent]:
        return iter(self.events)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"<EventLog events={len(self._entries)}>"
