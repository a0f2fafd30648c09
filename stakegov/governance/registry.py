"""
Voting Power Registry

Maps voter -> current voting power for one governance instance and keeps a
running total. Written by authorized power sources (the staking pool, or the
governance authority directly); read by governance at vote time.

Invariant: total_voting_power == sum(VoterPower.voting_power).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..arith import checked_add, checked_sub, require_u64
from ..constants import SEED_VOTER_POWER, SEED_VOTING_POWER_REGISTRY
from ..events import PowerSourceAuthorizedEvent, VotingPowerUpdatedEvent
from ..exceptions import AuthorizationError, UnauthorizedError
from ..logger import get_logger
from ..state import RecordStore, derive_address, ledger_operation
from .proposals import GovernanceConfig, GovernanceError

logger = get_logger(__name__)


class UnauthorizedPowerSourceError(GovernanceError, AuthorizationError):
    """Caller may not write voting power."""


@dataclass
class VotingPowerRegistry:
    address: str
    governance: str
    total_voting_power: int = 0
    power_sources: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "governance": self.governance,
            "totalVotingPower": self.total_voting_power,
            "powerSources": list(self.power_sources),
        }


@dataclass
class VoterPower:
    address: str
    registry: str
    voter: str
    voting_power: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "registry": self.registry,
            "voter": self.voter,
            "votingPower": self.voting_power,
        }


class RegistryProgram:
    """Operations on the voting power registry of one governance instance."""

    def __init__(self, store: RecordStore, governance_address: str):
        self.store = store
        self.governance_address = governance_address

    # ── Addressing ────────────────────────────────────────────────────

    @property
    def registry_address(self) -> str:
        return derive_address(SEED_VOTING_POWER_REGISTRY, self.governance_address)

    def voter_power_address(self, voter: str) -> str:
        return derive_address(SEED_VOTER_POWER, self.registry_address, voter)

    # ── Read-only views ───────────────────────────────────────────────

    def get_registry(self) -> VotingPowerRegistry:
        return self.store.require(self.registry_address, VotingPowerRegistry)

    def voting_power_of(self, voter: str) -> int:
        """Current registered power; 0 for voters never registered."""
        record = self.store.get(self.voter_power_address(voter))
        return record.voting_power if record is not None else 0

    def total_voting_power(self) -> int:
        return self.get_registry().total_voting_power

    def is_power_source(self, source: str) -> bool:
        return source in self.get_registry().power_sources

    def voters(self) -> List[VoterPower]:
        registry = self.registry_address
        return [v for v in self.store.records_of(VoterPower) if v.registry == registry]

    # ── Mutations ─────────────────────────────────────────────────────

    def create(self) -> VotingPowerRegistry:
        """Create the registry record; runs inside governance initialization."""
        return self.store.create(
            VotingPowerRegistry(address=self.registry_address, governance=self.governance_address)
        )

    def _authority(self) -> str:
        return self.store.require(self.governance_address, GovernanceConfig).authority

    def authorize_power_source(self, authority: str, source: str) -> VotingPowerRegistry:
        """Allow ``source`` to write voting power; governance authority only."""
        with ledger_operation(self.store, "AuthorizePowerSource", logger):
            if authority != self._authority():
                raise UnauthorizedError(f"{authority} is not the governance authority")
            registry = self.store.load_mut(self.registry_address, VotingPowerRegistry)
            if source not in registry.power_sources:
                registry.power_sources.append(source)
            self.store.emit(
                PowerSourceAuthorizedEvent(
                    registry=registry.address, source=source, authorized_by=authority
                )
            )

        self.store.log_on_commit(logger, f"Power source authorized: {source} by {authority}")
        return registry

    def register_voting_power(self, source: str, voter: str, new_power: int) -> int:
        """
        Idempotent upsert of ``voter``'s power; returns the new total.

        The total is updated as two checked steps (subtract old, add new) so
        an underflow, which means the registry is already inconsistent, fails
        the operation instead of saturating.
        """
        with ledger_operation(self.store, "RegisterVotingPower", logger):
            require_u64(new_power, "voting_power")
            registry = self.store.load_mut(self.registry_address, VotingPowerRegistry)
            if source != self._authority() and source not in registry.power_sources:
                raise UnauthorizedPowerSourceError(f"{source} is not an authorized power source")

            address = self.voter_power_address(voter)
            if self.store.exists(address):
                record = self.store.load_mut(address, VoterPower)
                old_power = record.voting_power
                total = checked_sub(registry.total_voting_power, old_power)
                registry.total_voting_power = checked_add(total, new_power)
            else:
                record = self.store.create(
                    VoterPower(address=address, registry=registry.address, voter=voter)
                )
                old_power = 0
                registry.total_voting_power = checked_add(registry.total_voting_power, new_power)
            record.voting_power = new_power

            self.store.emit(
                VotingPowerUpdatedEvent(
                    voter=voter,
                    old_voting_power=old_power,
                    new_voting_power=new_power,
                    total_voting_power=registry.total_voting_power,
                )
            )

        self.store.log_on_commit(
            logger,
            f"Voting power: {voter} {old_power} → {new_power} total={registry.total_voting_power}"
        )
        return registry.total_voting_power
