"""
Record Store

Keyed storage for every ledger entity, addressed deterministically from
stable seeds, with journaled all-or-nothing transactions.

Addresses follow the contract-address scheme: the last 20 bytes of
keccak256 over the RLP encoding of the seed list, returned as a checksum
address. Any caller can recompute where an entity lives without a lookup.
"""

import copy
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Type, TypeVar

import rlp
from eth_utils import is_hex_address, keccak, to_checksum_address

from .events import LedgerEvent
from .exceptions import (
    LedgerException,
    RecordError,
    RecordExistsError,
    RecordNotFoundError,
)
from .logger import get_logger

logger = get_logger(__name__)

R = TypeVar("R")

_ABSENT = object()


def seed_bytes(seed: Any) -> bytes:
    """
    Normalize one address seed to bytes.

    bytes pass through, ints are 8-byte little-endian, hex addresses are
    decoded to their 20 raw bytes and any other string is UTF-8.
    """
    if isinstance(seed, (bytes, bytearray)):
        return bytes(seed)
    if isinstance(seed, bool):
        raise RecordError("Boolean seeds are not allowed")
    if isinstance(seed, int):
        if seed < 0 or seed >= 2 ** 64:
            raise RecordError(f"Integer seed out of u64 range: {seed}")
        return seed.to_bytes(8, "little")
    if isinstance(seed, str):
        if is_hex_address(seed):
            return bytes.fromhex(seed[2:] if seed.startswith(("0x", "0X")) else seed)
        return seed.encode("utf-8")
    raise RecordError(f"Unsupported seed type: {type(seed).__name__}")


def derive_address(*seeds: Any) -> str:
    """
    Derive a record address from its seeds.

    Address = keccak256(rlp([seed_0, seed_1, ...]))[-20:]
    """
    if not seeds:
        raise RecordError("At least one seed is required")
    encoded = rlp.encode([seed_bytes(s) for s in seeds])
    return to_checksum_address("0x" + keccak(encoded)[-20:].hex())


class RecordStore:
    """
    In-memory record store with journaled transactions.

    Records are plain dataclasses carrying an ``address`` attribute. Inside a
    transaction every record reached through ``create`` or ``load_mut`` is
    journaled before it can change; if the transaction raises, each journaled
    record is restored in place (or removed, if it was created) and the events
    buffered by the transaction are dropped. Transactions nest and only the
    outermost one commits or rolls back.
    """

    def __init__(self):
        self._records: Dict[str, Any] = {}
        self._journal: Dict[str, Any] = {}
        self._pending_events: List[LedgerEvent] = []
        self._on_commit: List[Callable[[], None]] = []
        self._on_rollback: List[Callable[[], None]] = []
        self._sinks: List[Any] = []
        self._depth = 0

    # ── Sinks ─────────────────────────────────────────────────────────

    def subscribe(self, sink: Any) -> None:
        """Register a sink; anything with ``publish(event)`` works."""
        self._sinks.append(sink)

    def emit(self, event: LedgerEvent) -> None:
        if self._depth == 0:
            self._publish([event])
        else:
            self._pending_events.append(event)

    def _publish(self, events: List[LedgerEvent]) -> None:
        for event in events:
            for sink in self._sinks:
                sink.publish(event)

    # ── Side effects outside the records ──────────────────────────────

    def on_commit(self, callback: Callable[[], None]) -> None:
        """
        Run ``callback`` once the outermost transaction commits.

        Outside a transaction it runs immediately. Dropped on rollback.
        """
        if self._depth == 0:
            callback()
        else:
            self._on_commit.append(callback)

    def on_rollback(self, callback: Callable[[], None]) -> None:
        """
        Run ``callback`` if the outermost transaction rolls back.

        Used to undo in-memory state that lives outside the records.
        Callbacks run newest first. Outside a transaction this is a no-op.
        """
        if self._depth > 0:
            self._on_rollback.append(callback)

    def log_on_commit(self, log, message: str) -> None:
        """INFO-log a completed operation once it is durable."""
        self.on_commit(lambda: log.info(message))

    # ── Reads ─────────────────────────────────────────────────────────

    @staticmethod
    def _key(address: Any) -> str:
        if not isinstance(address, str) or not is_hex_address(address):
            raise RecordNotFoundError(f"Not a record address: {address!r}")
        return to_checksum_address(address)

    def get(self, address: str) -> Optional[Any]:
        return self._records.get(self._key(address))

    def exists(self, address: str) -> bool:
        return self._key(address) in self._records

    def require(self, address: str, kind: Optional[Type[R]] = None) -> R:
        """Fetch a record or raise ``RecordNotFoundError``."""
        record = self.get(address)
        if record is None:
            label = kind.__name__ if kind else "Record"
            raise RecordNotFoundError(f"{label} not found at {address}")
        if kind is not None and not isinstance(record, kind):
            raise RecordError(
                f"Record at {address} is a {type(record).__name__}, expected {kind.__name__}"
            )
        return record

    def records_of(self, kind: Type[R]) -> List[R]:
        return [r for r in self._records.values() if isinstance(r, kind)]

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, address: str) -> bool:
        return self.exists(address)

    # ── Writes ────────────────────────────────────────────────────────

    def create(self, record: R) -> R:
        """Store a new record at ``record.address``."""
        address = getattr(record, "address", None)
        if not isinstance(address, str) or not is_hex_address(address):
            raise RecordError(f"{type(record).__name__} has no valid address: {address!r}")
        address = to_checksum_address(address)
        if address in self._records:
            raise RecordExistsError(
                f"{type(record).__name__} already exists at {address}"
            )
        self._remember(address)
        record.address = address
        self._records[address] = record
        return record

    def load_mut(self, address: str, kind: Optional[Type[R]] = None) -> R:
        """Fetch a record for mutation, journaling it first."""
        record = self.require(address, kind)
        self._remember(self._key(address))
        return record

    def _remember(self, address: str) -> None:
        if self._depth == 0 or address in self._journal:
            return
        current = self._records.get(address)
        self._journal[address] = _ABSENT if current is None else copy.deepcopy(current)

    # ── Transactions ──────────────────────────────────────────────────

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def transaction(self) -> Iterator["RecordStore"]:
        """
        All-or-nothing scope for one ledger operation.

        Usage:
            >>> with store.transaction():
            ...     pool = store.load_mut(pool_address, StakingPool)
            ...     pool.total_staked += amount
        """
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self._rollback()
            raise
        else:
            self._depth -= 1
            if self._depth == 0:
                self._commit()

    def _commit(self) -> None:
        events, callbacks = self._pending_events, self._on_commit
        self._journal = {}
        self._pending_events = []
        self._on_commit = []
        self._on_rollback = []
        self._publish(events)
        for callback in callbacks:
            callback()

    def _rollback(self) -> None:
        restored = len(self._journal)
        for address, snapshot in self._journal.items():
            if snapshot is _ABSENT:
                self._records.pop(address, None)
                continue
            live = self._records.get(address)
            if live is not None and type(live) is type(snapshot):
                # Restore in place so references held by callers stay valid
                live.__dict__.clear()
                live.__dict__.update(snapshot.__dict__)
            else:
                self._records[address] = snapshot
        dropped = len(self._pending_events)
        undo = self._on_rollback
        self._journal = {}
        self._pending_events = []
        self._on_commit = []
        self._on_rollback = []
        for callback in reversed(undo):
            callback()
        logger.debug(f"Rolled back {restored} record(s), dropped {dropped} event(s)")

    def __repr__(self) -> str:
        return f"<RecordStore records={len(self._records)} depth={self._depth}>"


@contextmanager
def ledger_operation(store: RecordStore, name: str, log) -> Iterator[RecordStore]:
    """
    Run one public ledger operation as a transaction.

    Rejections are logged as a WARNING with the error class and re-raised
    unchanged; the transaction has already been rolled back by then.
    """
    try:
        with store.transaction():
            yield store
    except LedgerException as e:
        log.warning(f"{name} REJECTED: {type(e).__name__}: {e}")
        raise
