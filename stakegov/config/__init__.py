"""
stakegov Configuration

Loads the ledger sections of config.toml.
Environment variables override TOML values.
"""

from .loader import (
    GovernanceSectionConfig,
    LedgerConfig,
    LoggingSectionConfig,
    StakingSectionConfig,
    TokenSectionConfig,
    load_config,
)

__all__ = [
    "GovernanceSectionConfig",
    "LedgerConfig",
    "LoggingSectionConfig",
    "StakingSectionConfig",
    "TokenSectionConfig",
    "load_config",
]
