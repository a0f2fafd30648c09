"""
stakegov Exceptions

Base exception classes shared by the staking ledger, the voting power
registry and the governance ledger. Subsystem errors inherit from both their
subsystem base and one of the categories below, so callers can catch either
"anything governance" or "anything caller-fixable".
"""


class LedgerException(Exception):
    """Base exception for stakegov."""
    pass


class ValidationError(LedgerException):
    """Bad parameter range or shape; rejected before any mutation."""
    pass


class StatePreconditionError(LedgerException):
    """The state machine rejected an out-of-order call."""
    pass


class AuthorizationError(LedgerException):
    """The acting identity is not allowed to perform the operation."""
    pass


class UnauthorizedError(AuthorizationError):
    """Actor does not match the record's authority."""
    pass


class ArithmeticInvariantError(LedgerException):
    """Checked arithmetic failed; ledger state would become inconsistent."""
    pass


class ArithmeticOverflowError(ArithmeticInvariantError):
    """Result exceeds the fixed integer width."""
    pass


class ArithmeticUnderflowError(ArithmeticInvariantError):
    """Result would drop below zero."""
    pass


class RecordError(LedgerException):
    """Record store error."""
    pass


class RecordNotFoundError(RecordError):
    """No record at the derived address."""
    pass


class RecordExistsError(RecordError):
    """A record already lives at the derived address."""
    pass


class ConfigurationError(LedgerException):
    """Configuration error."""
    pass
