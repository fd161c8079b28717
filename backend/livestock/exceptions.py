"""
Errors raised by the livestock registry and the LiveStake ledger.

Every mutating operation validates its preconditions before touching state,
so catching one of these means the call had no effect.
"""


class LedgerError(Exception):
    """Base class for registry and staking ledger errors."""
    pass


class Unauthorized(LedgerError):
    """Caller lacks the required role or transfer authorization."""
    pass


class NotFound(LedgerError):
    """Token id was never minted."""
    pass


class NotStaked(LedgerError):
    """Token has no active stake record."""
    pass


class AlreadyStaked(LedgerError):
    """Token already has an active stake record."""
    pass


class InvalidAddress(LedgerError):
    """Address is malformed or is the zero address where one is not allowed."""
    pass


class InvalidReceiver(LedgerError):
    """Receiving component did not acknowledge a safe transfer."""
    pass


class InvalidMetadata(LedgerError):
    """Livestock metadata failed validation."""
    pass
