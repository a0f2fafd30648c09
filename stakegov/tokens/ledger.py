"""
Token custody

Minimal fungible-token primitives over the record store: mints, per-owner
token accounts, mint_to and transfer. Balances are ordinary records, so a
rejected ledger operation rolls token movements back together with every
other record it touched.
"""

from dataclasses import dataclass
from typing import Any, Dict

from ..arith import checked_add, checked_sub, require_u64
from ..constants import SEED_TOKEN_ACCOUNT, SEED_TOKEN_MINT, TOKEN_DEFAULT_DECIMALS
from ..events import TokenMintEvent, TokenTransferEvent
from ..exceptions import LedgerException, StatePreconditionError, ValidationError
from ..logger import get_logger
from ..state import RecordStore, derive_address

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class TokenError(LedgerException):
    """Base exception for token custody operations."""


class InsufficientBalanceError(TokenError, StatePreconditionError):
    """Raised when the source account cannot fund a transfer."""


class InvalidMintError(TokenError, ValidationError):
    """Raised for malformed mint parameters."""


# ══════════════════════════════════════════════════════════════════════
#  RECORDS
# ══════════════════════════════════════════════════════════════════════

@dataclass
class TokenMint:
    address: str
    authority: str
    decimals: int = TOKEN_DEFAULT_DECIMALS
    supply: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "authority": self.authority,
            "decimals": self.decimals,
            "supply": self.supply,
        }


@dataclass
class TokenAccount:
    address: str
    mint: str
    owner: str
    amount: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "mint": self.mint,
            "owner": self.owner,
            "amount": self.amount,
        }


# ══════════════════════════════════════════════════════════════════════
#  LEDGER
# ══════════════════════════════════════════════════════════════════════

class TokenLedger:
    """Mint and transfer primitives used by the staking and governance ledgers."""

    def __init__(self, store: RecordStore):
        self.store = store

    # ── Addressing ────────────────────────────────────────────────────

    @staticmethod
    def mint_address(authority: str, index: int = 0) -> str:
        return derive_address(SEED_TOKEN_MINT, authority, index)

    @staticmethod
    def account_address(mint: str, owner: str) -> str:
        return derive_address(SEED_TOKEN_ACCOUNT, mint, owner)

    # ── Read-only views ───────────────────────────────────────────────

    def get_mint(self, mint: str) -> TokenMint:
        return self.store.require(mint, TokenMint)

    def balance_of(self, mint: str, owner: str) -> int:
        account = self.store.get(self.account_address(mint, owner))
        return account.amount if account is not None else 0

    def supply_of(self, mint: str) -> int:
        return self.get_mint(mint).supply

    # ── Mutations ─────────────────────────────────────────────────────

    def create_mint(self, authority: str, decimals: int = TOKEN_DEFAULT_DECIMALS) -> str:
        """Create a new mint owned by ``authority`` and return its address."""
        if isinstance(decimals, bool) or not isinstance(decimals, int) or not 0 <= decimals <= 18:
            raise InvalidMintError(f"Decimals must be 0-18, got {decimals}")

        with self.store.transaction():
            index = sum(1 for m in self.store.records_of(TokenMint) if m.authority == authority)
            mint = self.store.create(
                TokenMint(
                    address=self.mint_address(authority, index),
                    authority=authority,
                    decimals=decimals,
                )
            )

        self.store.log_on_commit(
            logger, f"Mint created: {mint.address} authority={authority} decimals={decimals}"
        )
        return mint.address

    def _account_mut(self, mint: str, owner: str) -> TokenAccount:
        address = self.account_address(mint, owner)
        if self.store.exists(address):
            return self.store.load_mut(address, TokenAccount)
        return self.store.create(TokenAccount(address=address, mint=mint, owner=owner))

    def mint_to(self, mint: str, to: str, amount: int) -> int:
        """Create ``amount`` new tokens in ``to``'s account; returns the new balance."""
        require_u64(amount, "amount")

        with self.store.transaction():
            record = self.store.load_mut(mint, TokenMint)
            record.supply = checked_add(record.supply, amount)
            account = self._account_mut(record.address, to)
            account.amount = checked_add(account.amount, amount)
            self.store.emit(TokenMintEvent(mint=record.address, recipient=to, amount=amount))

        logger.debug(f"MintTo: {to} +{amount} (mint {mint})")
        return account.amount

    def transfer(self, mint: str, source: str, destination: str, amount: int) -> None:
        """
        Move ``amount`` from ``source``'s account to ``destination``'s.

        A zero amount is accepted and moves nothing. Insufficient funds
        fail the whole enclosing transaction.
        """
        require_u64(amount, "amount")
        self.get_mint(mint)

        with self.store.transaction():
            available = self.balance_of(mint, source)
            if available < amount:
                raise InsufficientBalanceError(
                    f"{source} balance {available} < transfer amount {amount}"
                )
            if amount == 0 or source == destination:
                return

            sender = self._account_mut(mint, source)
            sender.amount = checked_sub(sender.amount, amount)
            receiver = self._account_mut(mint, destination)
            receiver.amount = checked_add(receiver.amount, amount)
            self.store.emit(
                TokenTransferEvent(mint=mint, sender=source, recipient=destination, amount=amount)
            )

        logger.debug(f"Transfer: {source} → {destination} {amount}")
