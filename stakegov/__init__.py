"""
stakegov Package

Staking and governance ledgers over a deterministic record store.

Core imports are lazily loaded. For direct module access, import from
submodules:

    from stakegov.engine import LedgerEngine
    from stakegov.governance import GovernanceProgram, Vote
    from stakegov.staking import StakingProgram
"""

__version__ = "0.1.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'LedgerEngine':
        from .engine import LedgerEngine
        return LedgerEngine
    elif name == 'LedgerConfig':
        from .config import LedgerConfig
        return LedgerConfig
    elif name == 'ManualClock':
        from .clock import ManualClock
        return ManualClock
    elif name == 'LedgerException':
        from .exceptions import LedgerException
        return LedgerException
    raise AttributeError(f"module 'stakegov' has no attribute {name!r}")

__all__ = ['LedgerEngine', 'LedgerConfig', 'ManualClock', 'LedgerException']
