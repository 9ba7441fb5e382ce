"""Exception taxonomy for the lock and fee ledgers.

Every failure leaves ledger state untouched: operations validate and perform
collaborator calls before their first write.
"""


class LedgerError(Exception):
    """Base class for all ledger failures."""


class PreconditionError(LedgerError, ValueError):
    """Caller supplied arguments that can never succeed."""


class InvalidAmountError(PreconditionError):
    """Amount must be strictly positive."""


class InvalidDurationError(PreconditionError):
    """Lock duration is zero, above the maximum, or not increasing."""


class TokenError(LedgerError):
    """Token collaborator refused a transfer."""


class InsufficientBalanceError(TokenError):
    pass


class InsufficientAllowanceError(TokenError):
    pass


class BucketUnderflowError(LedgerError):
    """Extension amount exceeds what is scheduled to unlock at the source epoch."""


class NothingToWithdrawError(LedgerError):
    """No matured principal is available for an exit stream."""


class ClockError(LedgerError):
    """Timestamp lies before genesis."""


class NotConfiguredError(LedgerError):
    pass


class AlreadyConfiguredError(LedgerError):
    pass


class UnauthorizedError(LedgerError):
    pass
