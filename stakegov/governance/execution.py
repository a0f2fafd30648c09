"""
Quorum, majority and execution dispatch.

Governance only decides whether a proposal may execute; what execution does
is delegated to a per-type handler registered on the ExecutionDispatcher.
Handlers run inside the execute transaction, so a failing handler also
undoes the executed latch. The dispatcher records an execution only once
that transaction commits.

Execution payloads are RLP lists:
    TREASURY_WITHDRAWAL  [recipient(20 bytes), amount]
    PARAMETER_CHANGE     [[field_name, value], ...]
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import rlp
from eth_utils import is_hex_address, to_checksum_address

from ..arith import checked_add, checked_div, checked_mul, require_u64
from ..events import GovernanceUpdatedEvent
from ..exceptions import StatePreconditionError, ValidationError
from ..logger import get_logger
from ..state import RecordStore
from ..tokens import TokenLedger
from .proposals import (
    GOVERNANCE_UPDATE_FIELDS,
    GovernanceConfig,
    GovernanceError,
    Proposal,
    ProposalType,
    apply_governance_updates,
)

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class VotingStillOpenError(GovernanceError, StatePreconditionError):
    """Voting has not ended yet."""


class ExecutionDelayNotPassedError(GovernanceError, StatePreconditionError):
    """Voting ended but the execution delay has not elapsed."""


class QuorumNotReachedError(GovernanceError, StatePreconditionError):
    """yes + no is below the quorum threshold."""


class ProposalNotPassedError(GovernanceError, StatePreconditionError):
    """yes did not strictly exceed no."""


class InvalidExecutionPayloadError(GovernanceError, ValidationError):
    """The execution payload cannot be decoded for the proposal type."""


# ══════════════════════════════════════════════════════════════════════
#  QUORUM / MAJORITY
# ══════════════════════════════════════════════════════════════════════

def quorum_threshold(total_voting_power: int, quorum_percentage: int) -> int:
    """floor(total * pct / 100) with a 128-bit intermediate."""
    return checked_div(checked_mul(total_voting_power, quorum_percentage, bits=128), 100)


def quorum_reached(yes_votes: int, no_votes: int, total_voting_power: int, quorum_percentage: int) -> bool:
    """Only yes + no count toward quorum; abstentions do not."""
    participating = checked_add(yes_votes, no_votes, bits=128)
    return participating >= quorum_threshold(total_voting_power, quorum_percentage)


def majority_reached(yes_votes: int, no_votes: int) -> bool:
    return yes_votes > no_votes


# ══════════════════════════════════════════════════════════════════════
#  PAYLOADS
# ══════════════════════════════════════════════════════════════════════

def encode_treasury_withdrawal(recipient: str, amount: int) -> bytes:
    if not is_hex_address(recipient):
        raise InvalidExecutionPayloadError(f"Recipient is not an address: {recipient!r}")
    require_u64(amount, "amount")
    return rlp.encode([bytes.fromhex(to_checksum_address(recipient)[2:]), amount])


def decode_treasury_withdrawal(payload: bytes) -> Tuple[str, int]:
    try:
        recipient, amount = rlp.decode(payload)
    except (rlp.exceptions.RLPException, ValueError, TypeError) as e:
        raise InvalidExecutionPayloadError(f"Malformed treasury withdrawal payload: {e}") from e
    if not isinstance(recipient, bytes) or len(recipient) != 20 or not isinstance(amount, bytes):
        raise InvalidExecutionPayloadError("Malformed treasury withdrawal payload")
    return to_checksum_address("0x" + recipient.hex()), int.from_bytes(amount, "big")


def encode_parameter_change(**fields) -> bytes:
    items = []
    for name in GOVERNANCE_UPDATE_FIELDS:
        value = fields.pop(name, None)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise InvalidExecutionPayloadError(f"{name} must be a non-negative integer")
        items.append([name.encode("utf-8"), value])
    if fields:
        raise InvalidExecutionPayloadError(f"Unknown governance fields: {sorted(fields)}")
    return rlp.encode(items)


def decode_parameter_change(payload: bytes) -> Dict[str, int]:
    try:
        items = rlp.decode(payload)
        fields = {
            name.decode("utf-8"): int.from_bytes(value, "big")
            for name, value in items
        }
    except (rlp.exceptions.RLPException, ValueError, TypeError, AttributeError) as e:
        raise InvalidExecutionPayloadError(f"Malformed parameter change payload: {e}") from e
    unknown = set(fields) - set(GOVERNANCE_UPDATE_FIELDS)
    if unknown:
        raise InvalidExecutionPayloadError(f"Unknown governance fields: {sorted(unknown)}")
    return fields


# ══════════════════════════════════════════════════════════════════════
#  DISPATCH
# ══════════════════════════════════════════════════════════════════════

@dataclass
class ExecutionContext:
    """Everything a handler may touch while executing one proposal."""
    proposal: Proposal
    governance: GovernanceConfig
    executor: str
    now: int
    store: RecordStore
    tokens: TokenLedger


Handler = Callable[[ExecutionContext], Dict[str, Any]]


def execute_treasury_withdrawal(ctx: ExecutionContext) -> Dict[str, Any]:
    recipient, amount = decode_treasury_withdrawal(ctx.proposal.execution_payload)
    ctx.tokens.transfer(ctx.governance.token_mint, ctx.governance.treasury, recipient, amount)
    return {"treasury_withdrawal": {"recipient": recipient, "amount": amount}}


def execute_parameter_change(ctx: ExecutionContext) -> Dict[str, Any]:
    fields = decode_parameter_change(ctx.proposal.execution_payload)
    governance = ctx.store.load_mut(ctx.governance.address, GovernanceConfig)
    changes = apply_governance_updates(governance, **fields)
    ctx.store.emit(
        GovernanceUpdatedEvent(
            governance=governance.address,
            min_proposal_tokens=governance.min_proposal_tokens,
            voting_period=governance.voting_period_seconds,
            execution_delay=governance.execution_delay_seconds,
            quorum_percentage=governance.quorum_percentage,
        )
    )
    return changes


def execute_other(ctx: ExecutionContext) -> Dict[str, Any]:
    return {}


class ExecutionDispatcher:
    """Routes an approved proposal to the handler for its type."""

    def __init__(self, handlers: Optional[Dict[ProposalType, Handler]] = None):
        self._handlers: Dict[ProposalType, Handler] = {
            ProposalType.TREASURY_WITHDRAWAL: execute_treasury_withdrawal,
            ProposalType.PARAMETER_CHANGE: execute_parameter_change,
            ProposalType.OTHER: execute_other,
        }
        if handlers:
            self._handlers.update(handlers)
        self._execution_log: List[Dict[str, Any]] = []

    def register_executor(self, proposal_type: ProposalType, handler: Handler) -> None:
        """Replace the handler for a proposal type."""
        self._handlers[ProposalType.coerce(proposal_type)] = handler

    def dispatch(self, ctx: ExecutionContext) -> Dict[str, Any]:
        proposal = ctx.proposal
        handler = self._handlers[proposal.proposal_type]
        logger.debug(
            f"Dispatching proposal #{proposal.proposal_id} ({proposal.proposal_type.name}) "
            f"→ {getattr(handler, '__name__', repr(handler))}"
        )
        changes = handler(ctx) or {}

        entry = {
            "proposalId": proposal.proposal_id,
            "proposalType": proposal.proposal_type.name,
            "title": proposal.title,
            "changes": changes,
            "executedBy": ctx.executor,
            "executedAt": ctx.now,
        }
        ctx.store.on_commit(lambda: self._execution_log.append(entry))
        return changes

    @property
    def execution_log(self) -> List[Dict[str, Any]]:
        return list(self._execution_log)

    def execution_count(self) -> int:
        return len(self._execution_log)

    def __repr__(self) -> str:
        return (
            f"<ExecutionDispatcher handlers={len(self._handlers)} "
            f"executed={len(self._execution_log)}>"
        )
