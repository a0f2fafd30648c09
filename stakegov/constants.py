"""
stakegov Constants

This module consolidates the protocol constants of the staking and governance
ledgers together with the environment-driven logging configuration. Constants
are organized by category for easy reference and maintenance.
"""
import ast
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_ENABLED':                'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE VALUES BELOW DEFINE LEDGER ARITHMETIC. CHANGING THEM CHANGES THE RESULT OF EVERY
# REWARD AND VOTING-POWER COMPUTATION AND MAKES EXISTING RECORDS INCONSISTENT WITH NEW ONES.

# ==================================================================================
# TIME
# ==================================================================================
SECONDS_PER_DAY = 24 * 60 * 60
DAYS_PER_YEAR = 365


# ==================================================================================
# TOKEN
# ==================================================================================
TOKEN_DEFAULT_DECIMALS = 9
# Voting power is counted in whole tokens
VOTING_POWER_DIVISOR = 10 ** TOKEN_DEFAULT_DECIMALS


# ==================================================================================
# STAKING PARAMETERS
# ==================================================================================
BPS_DENOMINATOR = 10_000
# reward = amount * rate_bps * elapsed / REWARD_DENOMINATOR
REWARD_DENOMINATOR = DAYS_PER_YEAR * SECONDS_PER_DAY * BPS_DENOMINATOR

STAKING_DEFAULT_REWARD_RATE_BPS = 10
STAKING_DEFAULT_MIN_DURATION_SECONDS = 30 * SECONDS_PER_DAY
STAKING_DEFAULT_MAX_DURATION_SECONDS = 365 * SECONDS_PER_DAY

# (minimum lock in seconds, reputation boost %, voting multiplier numerator, denominator)
# Ordered from the highest tier down; the first tier whose minimum is met wins.
STAKE_DURATION_TIERS = (
    (365 * SECONDS_PER_DAY, 50, 3, 1),
    (180 * SECONDS_PER_DAY, 30, 2, 1),
    (90 * SECONDS_PER_DAY,  20, 3, 2),
    (30 * SECONDS_PER_DAY,  10, 1, 1),
)
# Applied below the lowest breakpoint
STAKE_BASE_TIER = (0, 10, 1, 1)


# ==================================================================================
# GOVERNANCE PARAMETERS
# ==================================================================================
GOVERNANCE_DEFAULT_MIN_PROPOSAL_TOKENS = 1_000 * VOTING_POWER_DIVISOR
GOVERNANCE_DEFAULT_VOTING_PERIOD_SECONDS = 7 * SECONDS_PER_DAY
GOVERNANCE_DEFAULT_EXECUTION_DELAY_SECONDS = 2 * SECONDS_PER_DAY
GOVERNANCE_DEFAULT_QUORUM_PERCENTAGE = 20
GOVERNANCE_MAX_QUORUM_PERCENTAGE = 100

# Capacity of the proposal record (UTF-8 bytes)
PROPOSAL_MAX_TITLE_BYTES = 96
PROPOSAL_MAX_DESCRIPTION_BYTES = 996
PROPOSAL_MAX_PAYLOAD_BYTES = 196


# ==================================================================================
# RECORD SEEDS
# ==================================================================================
SEED_STAKING_POOL = b"staking_pool"
SEED_USER_STAKE = b"user_stake"
SEED_STAKING_VAULT = b"staking_vault"
SEED_STAKING_TREASURY = b"staking_treasury"
SEED_GOVERNANCE = b"governance"
SEED_VOTING_POWER_REGISTRY = b"voting_power_registry"
SEED_VOTER_POWER = b"voter_power"
SEED_PROPOSAL = b"proposal"
SEED_VOTER_VOTE = b"voter_vote"
SEED_TOKEN_MINT = b"mint"
SEED_TOKEN_ACCOUNT = b"token_account"


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    def __hash__(self):
        return hash(bool(self))


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
DEFAULTS = dict(LOGGER_DEFAULTS)
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    # Case-insensitive membership check
    if s.casefold() in {"true", "false"}:
        # ast.literal_eval expects "True"/"False"
        return ast.literal_eval(s.title())
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    # Parses only boolean-literals. Leaves other values untouched.
    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    # Wraps based on parsed value type.
    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        # Preserves the original raw string for ConfigString storage.
        namespace[key] = ConfigString(value_raw, default_val)
