"""
stakegov TOML Configuration Loader

Loads the ledger parameters from config.toml with environment variable
overrides (dataclass + from_dict + from_file per section).

Environment variable mapping:
    [logging] level                       → STAKEGOV_LOG_LEVEL
    [staking] reward_rate_bps_per_day     → STAKEGOV_REWARD_RATE_BPS
    [staking] min_stake_duration_seconds  → STAKEGOV_MIN_STAKE_DURATION
    [staking] max_stake_duration_seconds  → STAKEGOV_MAX_STAKE_DURATION
    [governance] min_proposal_tokens      → STAKEGOV_MIN_PROPOSAL_TOKENS
    [governance] voting_period_seconds    → STAKEGOV_VOTING_PERIOD
    [governance] execution_delay_seconds  → STAKEGOV_EXECUTION_DELAY
    [governance] quorum_percentage        → STAKEGOV_QUORUM_PERCENTAGE
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from ..arith import require_i64, require_u64
from ..constants import (
    GOVERNANCE_DEFAULT_EXECUTION_DELAY_SECONDS,
    GOVERNANCE_DEFAULT_MIN_PROPOSAL_TOKENS,
    GOVERNANCE_DEFAULT_QUORUM_PERCENTAGE,
    GOVERNANCE_DEFAULT_VOTING_PERIOD_SECONDS,
    GOVERNANCE_MAX_QUORUM_PERCENTAGE,
    STAKING_DEFAULT_MAX_DURATION_SECONDS,
    STAKING_DEFAULT_MIN_DURATION_SECONDS,
    STAKING_DEFAULT_REWARD_RATE_BPS,
    TOKEN_DEFAULT_DECIMALS,
)
from ..exceptions import ConfigurationError, ValidationError
from ..logger import get_logger

logger = get_logger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_int(name: str) -> Optional[int]:
    value = os.environ.get(name)
    if not value:
        return None
    try:
        return int(value.replace("_", ""))
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


def _require_int(value: Any, name: str, check) -> int:
    try:
        return check(value, name)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass
class LoggingSectionConfig:
    """[logging] section."""
    level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingSectionConfig":
        return cls(level=str(data.get("level", "INFO")).upper())

    def apply_env(self) -> None:
        if v := os.environ.get("STAKEGOV_LOG_LEVEL"):
            self.level = v.upper()


@dataclass
class TokenSectionConfig:
    """[token] section."""
    decimals: int = TOKEN_DEFAULT_DECIMALS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenSectionConfig":
        return cls(decimals=data.get("decimals", TOKEN_DEFAULT_DECIMALS))


@dataclass
class StakingSectionConfig:
    """[staking] section."""
    reward_rate_bps_per_day: int = STAKING_DEFAULT_REWARD_RATE_BPS
    min_stake_duration_seconds: int = STAKING_DEFAULT_MIN_DURATION_SECONDS
    max_stake_duration_seconds: int = STAKING_DEFAULT_MAX_DURATION_SECONDS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StakingSectionConfig":
        return cls(
            reward_rate_bps_per_day=data.get("reward_rate_bps_per_day", STAKING_DEFAULT_REWARD_RATE_BPS),
            min_stake_duration_seconds=data.get(
                "min_stake_duration_seconds", STAKING_DEFAULT_MIN_DURATION_SECONDS
            ),
            max_stake_duration_seconds=data.get(
                "max_stake_duration_seconds", STAKING_DEFAULT_MAX_DURATION_SECONDS
            ),
        )

    def apply_env(self) -> None:
        if (v := _env_int("STAKEGOV_REWARD_RATE_BPS")) is not None:
            self.reward_rate_bps_per_day = v
        if (v := _env_int("STAKEGOV_MIN_STAKE_DURATION")) is not None:
            self.min_stake_duration_seconds = v
        if (v := _env_int("STAKEGOV_MAX_STAKE_DURATION")) is not None:
            self.max_stake_duration_seconds = v


@dataclass
class GovernanceSectionConfig:
    """[governance] section."""
    min_proposal_tokens: int = GOVERNANCE_DEFAULT_MIN_PROPOSAL_TOKENS
    voting_period_seconds: int = GOVERNANCE_DEFAULT_VOTING_PERIOD_SECONDS
    execution_delay_seconds: int = GOVERNANCE_DEFAULT_EXECUTION_DELAY_SECONDS
    quorum_percentage: int = GOVERNANCE_DEFAULT_QUORUM_PERCENTAGE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceSectionConfig":
        return cls(
            min_proposal_tokens=data.get("min_proposal_tokens", GOVERNANCE_DEFAULT_MIN_PROPOSAL_TOKENS),
            voting_period_seconds=data.get(
                "voting_period_seconds", GOVERNANCE_DEFAULT_VOTING_PERIOD_SECONDS
            ),
            execution_delay_seconds=data.get(
                "execution_delay_seconds", GOVERNANCE_DEFAULT_EXECUTION_DELAY_SECONDS
            ),
            quorum_percentage=data.get("quorum_percentage", GOVERNANCE_DEFAULT_QUORUM_PERCENTAGE),
        )

    def apply_env(self) -> None:
        if (v := _env_int("STAKEGOV_MIN_PROPOSAL_TOKENS")) is not None:
            self.min_proposal_tokens = v
        if (v := _env_int("STAKEGOV_VOTING_PERIOD")) is not None:
            self.voting_period_seconds = v
        if (v := _env_int("STAKEGOV_EXECUTION_DELAY")) is not None:
            self.execution_delay_seconds = v
        if (v := _env_int("STAKEGOV_QUORUM_PERCENTAGE")) is not None:
            self.quorum_percentage = v


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------

@dataclass
class LedgerConfig:
    """
    Unified ledger configuration.

    Holds the defaults used when bootstrapping a staking pool and a
    governance instance. The ledgers validate their own parameters again
    at initialization.
    """
    logging: LoggingSectionConfig = field(default_factory=LoggingSectionConfig)
    token: TokenSectionConfig = field(default_factory=TokenSectionConfig)
    staking: StakingSectionConfig = field(default_factory=StakingSectionConfig)
    governance: GovernanceSectionConfig = field(default_factory=GovernanceSectionConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerConfig":
        """Create LedgerConfig from a parsed TOML dict."""
        return cls(
            logging=LoggingSectionConfig.from_dict(data.get("logging", {})),
            token=TokenSectionConfig.from_dict(data.get("token", {})),
            staking=StakingSectionConfig.from_dict(data.get("staking", {})),
            governance=GovernanceSectionConfig.from_dict(data.get("governance", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "LedgerConfig":
        """
        Load configuration from a TOML file.

        Args:
            config_path: Path to config.toml

        Returns:
            LedgerConfig instance
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        try:
            with open(path, "rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.logging.apply_env()
        self.staking.apply_env()
        self.governance.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Integer fields must be real integers within the width the ledgers
        store them in (u64 amounts and rates, i64 durations) before any
        range rule is checked.

        Returns:
            True if all valid

        Raises:
            ConfigurationError: on invalid config
        """
        if not isinstance(self.logging.level, str) or self.logging.level not in _LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.logging.level!r}")

        decimals = self.token.decimals
        if isinstance(decimals, bool) or not isinstance(decimals, int) or not 0 <= decimals <= 18:
            raise ConfigurationError(f"token.decimals must be 0-18, got {decimals!r}")

        staking = self.staking
        _require_int(staking.reward_rate_bps_per_day, "staking.reward_rate_bps_per_day", require_u64)
        _require_int(staking.min_stake_duration_seconds, "staking.min_stake_duration_seconds", require_i64)
        _require_int(staking.max_stake_duration_seconds, "staking.max_stake_duration_seconds", require_i64)
        if staking.min_stake_duration_seconds <= 0:
            raise ConfigurationError("staking.min_stake_duration_seconds must be positive")
        if staking.min_stake_duration_seconds > staking.max_stake_duration_seconds:
            raise ConfigurationError(
                "staking.min_stake_duration_seconds exceeds max_stake_duration_seconds"
            )

        gov = self.governance
        _require_int(gov.quorum_percentage, "governance.quorum_percentage", require_u64)
        _require_int(gov.voting_period_seconds, "governance.voting_period_seconds", require_i64)
        _require_int(gov.execution_delay_seconds, "governance.execution_delay_seconds", require_i64)
        _require_int(gov.min_proposal_tokens, "governance.min_proposal_tokens", require_u64)
        if not 0 < gov.quorum_percentage <= GOVERNANCE_MAX_QUORUM_PERCENTAGE:
            raise ConfigurationError(
                f"governance.quorum_percentage must be in (0, 100], got {gov.quorum_percentage}"
            )
        if gov.voting_period_seconds <= 0:
            raise ConfigurationError("governance.voting_period_seconds must be positive")
        if gov.execution_delay_seconds < 0:
            raise ConfigurationError("governance.execution_delay_seconds cannot be negative")
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "logging": {"level": self.logging.level},
            "token": {"decimals": self.token.decimals},
            "staking": {
                "reward_rate_bps_per_day": self.staking.reward_rate_bps_per_day,
                "min_stake_duration_seconds": self.staking.min_stake_duration_seconds,
                "max_stake_duration_seconds": self.staking.max_stake_duration_seconds,
            },
            "governance": {
                "min_proposal_tokens": self.governance.min_proposal_tokens,
                "voting_period_seconds": self.governance.voting_period_seconds,
                "execution_delay_seconds": self.governance.execution_delay_seconds,
                "quorum_percentage": self.governance.quorum_percentage,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> LedgerConfig:
    """
    Load ledger configuration.

    Resolution order:
        1. Explicit *path* argument
        2. STAKEGOV_CONFIG env var
        3. ./config.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("STAKEGOV_CONFIG", "config.toml")

    return LedgerConfig.from_file(path)
