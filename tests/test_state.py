"""
Substrate Test Suite

Coverage:
  - Checked fixed-width arithmetic (u64 / u128 / i64)
  - Deterministic record addressing (keccak256 over RLP seeds)
  - RecordStore journaled transactions: commit, rollback, nesting
  - Event buffering and EventLog sink
  - Token custody: mints, mint_to, transfer, rollback of balances
  - ManualClock
"""

import os
import sys
from dataclasses import dataclass, field
from typing import List

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from eth_utils import is_checksum_address

from stakegov.arith import (
    I64_MAX,
    U64_MAX,
    U128_MAX,
    checked_add,
    checked_add_i64,
    checked_div,
    checked_mul,
    checked_sub,
    require_i64,
    require_u64,
)
from stakegov.clock import ManualClock
from stakegov.events import EventLog, StakeEvent, TokenMintEvent, TokenTransferEvent
from stakegov.exceptions import (
    ArithmeticInvariantError,
    ArithmeticOverflowError,
    ArithmeticUnderflowError,
    LedgerException,
    RecordError,
    RecordExistsError,
    RecordNotFoundError,
    StatePreconditionError,
    ValidationError,
)
from stakegov.state import RecordStore, derive_address, seed_bytes
from stakegov.tokens import (
    InsufficientBalanceError,
    InvalidMintError,
    TokenAccount,
    TokenLedger,
    TokenMint,
)


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20


@dataclass
class Counter:
    address: str
    value: int = 0
    tags: List[str] = field(default_factory=list)


def counter_address(name: str) -> str:
    return derive_address(b"counter", name)


def make_token_ledger(supply_to=ALICE, supply=1_000_000):
    store = RecordStore()
    log = EventLog()
    store.subscribe(log)
    tokens = TokenLedger(store)
    mint = tokens.create_mint(ALICE)
    if supply:
        tokens.mint_to(mint, supply_to, supply)
    log.clear()
    return store, log, tokens, mint


# ══════════════════════════════════════════════════════════════════════
#  CHECKED ARITHMETIC
# ══════════════════════════════════════════════════════════════════════


class TestCheckedArithmetic:

    def test_add_within_range(self):
        assert checked_add(U64_MAX - 1, 1) == U64_MAX

    def test_add_overflow_raises(self):
        with pytest.raises(ArithmeticOverflowError):
            checked_add(U64_MAX, 1)

    def test_sub_underflow_raises(self):
        with pytest.raises(ArithmeticUnderflowError):
            checked_sub(5, 6)

    def test_sub_to_zero(self):
        assert checked_sub(7, 7) == 0

    def test_mul_128_bit_intermediate(self):
        assert checked_mul(U64_MAX, U64_MAX, bits=128) == U64_MAX * U64_MAX
        with pytest.raises(ArithmeticOverflowError):
            checked_mul(U64_MAX, U64_MAX)

    def test_mul_128_overflow(self):
        with pytest.raises(ArithmeticOverflowError):
            checked_mul(U128_MAX, 2, bits=128)

    def test_div_floors(self):
        assert checked_div(7, 2) == 3

    def test_div_result_checked_to_width(self):
        with pytest.raises(ArithmeticOverflowError):
            checked_div(U64_MAX * 4, 2)

    def test_div_by_zero(self):
        with pytest.raises(ArithmeticInvariantError):
            checked_div(1, 0)

    def test_overflow_is_ledger_exception(self):
        with pytest.raises(LedgerException):
            checked_add(U64_MAX, U64_MAX)

    def test_i64_add(self):
        assert checked_add_i64(1_700_000_000, 86400) == 1_700_086_400
        with pytest.raises(ArithmeticOverflowError):
            checked_add_i64(I64_MAX, 1)

    def test_require_u64(self):
        assert require_u64(0, "x") == 0
        assert require_u64(U64_MAX, "x") == U64_MAX
        for bad in (-1, U64_MAX + 1, 1.5, "10", True, None):
            with pytest.raises(ValidationError):
                require_u64(bad, "x")

    def test_require_i64(self):
        assert require_i64(-5, "x") == -5
        with pytest.raises(ValidationError):
            require_i64(I64_MAX + 1, "x")
        with pytest.raises(ValidationError):
            require_i64(False, "x")


# ══════════════════════════════════════════════════════════════════════
#  ADDRESSING
# ══════════════════════════════════════════════════════════════════════


class TestDeriveAddress:

    def test_deterministic_checksum(self):
        a = derive_address(b"staking_pool", ALICE)
        b = derive_address(b"staking_pool", ALICE)
        assert a == b
        assert is_checksum_address(a)

    def test_seed_order_matters(self):
        assert derive_address(b"x", ALICE, BOB) != derive_address(b"x", BOB, ALICE)

    def test_distinct_prefixes(self):
        assert derive_address(b"governance", ALICE) != derive_address(b"staking_pool", ALICE)

    def test_proposal_ids_distinct(self):
        addresses = {derive_address(b"proposal", ALICE, i) for i in range(1, 50)}
        assert len(addresses) == 49

    def test_address_case_insensitive(self):
        assert derive_address(b"x", ALICE.upper().replace("0X", "0x")) == derive_address(b"x", ALICE)

    def test_seed_bytes_int_little_endian(self):
        assert seed_bytes(1) == b"\x01" + b"\x00" * 7

    def test_seed_bytes_address(self):
        assert seed_bytes(ALICE) == bytes.fromhex("a1" * 20)

    def test_seed_bytes_text(self):
        assert seed_bytes("hello") == b"hello"

    def test_int_and_bytes_differ(self):
        assert derive_address(b"p", 1) != derive_address(b"p", b"\x01")

    def test_rejects_bad_seeds(self):
        with pytest.raises(RecordError):
            derive_address()
        with pytest.raises(RecordError):
            derive_address(b"p", True)
        with pytest.raises(RecordError):
            derive_address(b"p", -1)
        with pytest.raises(RecordError):
            derive_address(b"p", 1.5)


# ══════════════════════════════════════════════════════════════════════
#  RECORD STORE
# ══════════════════════════════════════════════════════════════════════


class TestRecordStore:

    def test_create_and_require(self):
        store = RecordStore()
        addr = counter_address("a")
        store.create(Counter(address=addr, value=3))
        assert store.exists(addr)
        assert addr in store
        assert store.require(addr, Counter).value == 3
        assert len(store) == 1

    def test_create_twice_raises(self):
        store = RecordStore()
        addr = counter_address("a")
        store.create(Counter(address=addr))
        with pytest.raises(RecordExistsError):
            store.create(Counter(address=addr))

    def test_require_missing_raises(self):
        store = RecordStore()
        with pytest.raises(RecordNotFoundError):
            store.require(counter_address("missing"), Counter)
        assert store.get(counter_address("missing")) is None

    def test_require_wrong_kind_raises(self):
        store = RecordStore()
        addr = counter_address("a")
        store.create(Counter(address=addr))
        with pytest.raises(RecordError):
            store.require(addr, TokenMint)

    def test_lookup_normalizes_address(self):
        store = RecordStore()
        addr = counter_address("a")
        store.create(Counter(address=addr.lower()))
        assert store.get(addr.lower()).address == addr

    @pytest.mark.parametrize("key", ["wct-mint", "", "0x1234", 42, None])
    def test_non_address_key_is_typed_rejection(self, key):
        store = RecordStore()
        with pytest.raises(RecordNotFoundError):
            store.get(key)
        with pytest.raises(RecordNotFoundError):
            store.exists(key)
        with pytest.raises(RecordNotFoundError):
            store.load_mut(key)
        with pytest.raises(RecordNotFoundError):
            store.require(key, Counter)

    def test_create_rejects_record_without_address(self):
        store = RecordStore()
        with pytest.raises(RecordError):
            store.create(Counter(address="counter-a"))
        assert len(store) == 0

    def test_records_of(self):
        store = RecordStore()
        store.create(Counter(address=counter_address("a")))
        store.create(Counter(address=counter_address("b")))
        store.create(TokenMint(address=counter_address("m"), authority=ALICE))
        assert len(store.records_of(Counter)) == 2
        assert len(store.records_of(TokenMint)) == 1


class TestTransactions:

    def test_commit_keeps_changes(self):
        store = RecordStore()
        addr = counter_address("a")
        with store.transaction():
            store.create(Counter(address=addr))
            store.load_mut(addr, Counter).value = 5
        assert store.require(addr, Counter).value == 5

    def test_rollback_restores_in_place(self):
        store = RecordStore()
        addr = counter_address("a")
        held = store.create(Counter(address=addr, value=1, tags=["x"]))

        with pytest.raises(ValidationError):
            with store.transaction():
                record = store.load_mut(addr, Counter)
                record.value = 99
                record.tags.append("y")
                raise ValidationError("boom")

        assert held.value == 1
        assert held.tags == ["x"]
        assert store.require(addr, Counter) is held

    def test_rollback_removes_created_records(self):
        store = RecordStore()
        addr = counter_address("new")
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.create(Counter(address=addr))
                raise RuntimeError("abort")
        assert not store.exists(addr)
        assert len(store) == 0

    def test_nested_rolls_back_with_outer(self):
        store = RecordStore()
        a = store.create(Counter(address=counter_address("a")))
        b = store.create(Counter(address=counter_address("b")))

        with pytest.raises(ValidationError):
            with store.transaction():
                store.load_mut(a.address, Counter).value = 1
                with store.transaction():
                    store.load_mut(b.address, Counter).value = 2
                raise ValidationError("outer fails after inner committed")

        assert a.value == 0
        assert b.value == 0

    def test_in_transaction_flag(self):
        store = RecordStore()
        assert not store.in_transaction
        with store.transaction():
            assert store.in_transaction
            with store.transaction():
                assert store.in_transaction
            assert store.in_transaction
        assert not store.in_transaction

    def test_events_published_on_commit_only(self):
        store = RecordStore()
        log = EventLog()
        store.subscribe(log)
        event = TokenMintEvent(mint=ALICE, recipient=BOB, amount=1)

        with store.transaction():
            store.emit(event)
            assert len(log) == 0
        assert log.events == [event]

    def test_events_dropped_on_rollback(self):
        store = RecordStore()
        log = EventLog()
        store.subscribe(log)

        with pytest.raises(ValidationError):
            with store.transaction():
                store.emit(TokenMintEvent(mint=ALICE, recipient=BOB, amount=1))
                raise ValidationError("nope")
        assert len(log) == 0

        # Next transaction starts clean
        with store.transaction():
            store.emit(TokenMintEvent(mint=ALICE, recipient=BOB, amount=2))
        assert [e.amount for e in log] == [2]

    def test_nested_events_wait_for_outer_commit(self):
        store = RecordStore()
        log = EventLog()
        store.subscribe(log)
        with store.transaction():
            with store.transaction():
                store.emit(TokenMintEvent(mint=ALICE, recipient=BOB, amount=1))
            assert len(log) == 0
        assert len(log) == 1

    def test_on_commit_waits_for_outer_commit(self):
        store = RecordStore()
        calls = []
        store.on_commit(lambda: calls.append("now"))
        assert calls == ["now"]
        with store.transaction():
            with store.transaction():
                store.on_commit(lambda: calls.append("inner"))
            store.on_commit(lambda: calls.append("outer"))
            assert calls == ["now"]
        assert calls == ["now", "inner", "outer"]

    def test_on_commit_dropped_on_rollback(self):
        store = RecordStore()
        calls = []
        with pytest.raises(ValidationError):
            with store.transaction():
                store.on_commit(lambda: calls.append("committed"))
                raise ValidationError("abort")
        assert calls == []
        with store.transaction():
            pass
        assert calls == []

    def test_on_rollback_runs_newest_first(self):
        store = RecordStore()
        calls = []
        store.on_rollback(lambda: calls.append("outside"))
        with pytest.raises(ValidationError):
            with store.transaction():
                store.on_rollback(lambda: calls.append("first"))
                with store.transaction():
                    store.on_rollback(lambda: calls.append("second"))
                raise ValidationError("abort")
        assert calls == ["second", "first"]

    def test_on_rollback_discarded_on_commit(self):
        store = RecordStore()
        calls = []
        with store.transaction():
            store.on_rollback(lambda: calls.append("undo"))
        with pytest.raises(ValidationError):
            with store.transaction():
                raise ValidationError("abort")
        assert calls == []


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════


class TestEvents:

    def test_to_dict_camel_case(self):
        event = StakeEvent(
            user=ALICE, amount=10, duration=30, end_timestamp=100,
            reputation_boost=10, voting_power=1,
        )
        d = event.to_dict()
        assert d["event"] == "Stake"
        assert d["endTimestamp"] == 100
        assert d["reputationBoost"] == 10
        assert d["votingPower"] == 1

    def test_events_are_frozen(self):
        event = TokenMintEvent(mint=ALICE, recipient=BOB, amount=1)
        with pytest.raises(Exception):
            event.amount = 2

    def test_event_log_queries(self):
        log = EventLog()
        m = TokenMintEvent(mint=ALICE, recipient=BOB, amount=1)
        t = TokenTransferEvent(mint=ALICE, sender=BOB, recipient=CAROL, amount=1)
        log.publish(m)
        log.publish(t)
        assert log.of_type(TokenTransferEvent) == [t]
        assert log.last() is t
        assert list(log) == [m, t]
        log.clear()
        assert len(log) == 0
        with pytest.raises(IndexError):
            log.last()


# ══════════════════════════════════════════════════════════════════════
#  TOKEN CUSTODY
# ══════════════════════════════════════════════════════════════════════


class TestTokenLedger:

    def test_create_mint(self):
        store = RecordStore()
        tokens = TokenLedger(store)
        mint = tokens.create_mint(ALICE)
        record = tokens.get_mint(mint)
        assert record.authority == ALICE
        assert record.decimals == 9
        assert record.supply == 0

    def test_second_mint_gets_new_address(self):
        store = RecordStore()
        tokens = TokenLedger(store)
        assert tokens.create_mint(ALICE) != tokens.create_mint(ALICE)

    def test_invalid_decimals(self):
        tokens = TokenLedger(RecordStore())
        with pytest.raises(InvalidMintError):
            tokens.create_mint(ALICE, decimals=19)

    def test_mint_to(self):
        store, log, tokens, mint = make_token_ledger(supply=0)
        assert tokens.mint_to(mint, BOB, 500) == 500
        assert tokens.balance_of(mint, BOB) == 500
        assert tokens.supply_of(mint) == 500
        assert isinstance(log.last(), TokenMintEvent)

    def test_balance_of_unknown_owner(self):
        _, _, tokens, mint = make_token_ledger()
        assert tokens.balance_of(mint, CAROL) == 0

    def test_transfer(self):
        _, log, tokens, mint = make_token_ledger()
        tokens.transfer(mint, ALICE, BOB, 400)
        assert tokens.balance_of(mint, ALICE) == 999_600
        assert tokens.balance_of(mint, BOB) == 400
        assert log.last() == TokenTransferEvent(mint=mint, sender=ALICE, recipient=BOB, amount=400)

    def test_transfer_insufficient_balance(self):
        store, log, tokens, mint = make_token_ledger()
        with pytest.raises(InsufficientBalanceError):
            tokens.transfer(mint, BOB, ALICE, 1)
        assert tokens.balance_of(mint, ALICE) == 1_000_000
        assert len(log) == 0

    def test_insufficient_balance_is_precondition(self):
        assert issubclass(InsufficientBalanceError, StatePreconditionError)

    def test_zero_transfer_is_noop(self):
        _, log, tokens, mint = make_token_ledger()
        tokens.transfer(mint, CAROL, BOB, 0)
        assert tokens.balance_of(mint, BOB) == 0
        assert len(log) == 0

    def test_transfer_rejects_negative(self):
        _, _, tokens, mint = make_token_ledger()
        with pytest.raises(ValidationError):
            tokens.transfer(mint, ALICE, BOB, -1)

    def test_transfer_rolled_back_with_outer_transaction(self):
        store, log, tokens, mint = make_token_ledger()
        with pytest.raises(ValidationError):
            with store.transaction():
                tokens.transfer(mint, ALICE, BOB, 100)
                raise ValidationError("later step failed")
        assert tokens.balance_of(mint, ALICE) == 1_000_000
        assert tokens.balance_of(mint, BOB) == 0
        assert not store.exists(tokens.account_address(mint, BOB))
        assert len(log) == 0

    def test_unknown_mint_name_rejected(self):
        _, log, tokens, _ = make_token_ledger()
        with pytest.raises(RecordNotFoundError):
            tokens.get_mint("wct-mint")
        with pytest.raises(RecordNotFoundError):
            tokens.mint_to("wct-mint", BOB, 10)
        with pytest.raises(RecordNotFoundError):
            tokens.transfer("wct-mint", ALICE, BOB, 10)
        assert len(log) == 0

    def test_account_record(self):
        store, _, tokens, mint = make_token_ledger()
        account = store.require(tokens.account_address(mint, ALICE), TokenAccount)
        assert account.owner == ALICE
        assert account.to_dict()["amount"] == 1_000_000


# ══════════════════════════════════════════════════════════════════════
#  CLOCK
# ══════════════════════════════════════════════════════════════════════


class TestManualClock:

    def test_advance(self):
        clock = ManualClock(start=1000)
        assert clock.advance(50) == 1050
        assert clock.now() == 1050

    def test_set(self):
        clock = ManualClock(start=1000)
        clock.set(2000)
        assert clock.now() == 2000

    def test_cannot_go_backwards(self):
        clock = ManualClock(start=1000)
        with pytest.raises(ValueError):
            clock.set(999)
        with pytest.raises(ValueError):
            clock.advance(-1)
