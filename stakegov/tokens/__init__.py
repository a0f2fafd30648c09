"""
Token custody primitives

Provides:
  - TokenLedger   : mint / mint_to / transfer / balance_of over the record store
  - TokenMint     : mint record
  - TokenAccount  : per-(mint, owner) balance record
"""

from .ledger import (
    InsufficientBalanceError,
    InvalidMintError,
    TokenAccount,
    TokenError,
    TokenLedger,
    TokenMint,
)

__all__ = [
    "InsufficientBalanceError",
    "InvalidMintError",
    "TokenAccount",
    "TokenError",
    "TokenLedger",
    "TokenMint",
]
