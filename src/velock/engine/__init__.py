"""Lock-weight accounting and fee-streaming engine."""

from .clock import WEEK, EpochClock, ManualTime
from .errors import (
    AlreadyConfiguredError,
    BucketUnderflowError,
    ClockError,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidDurationError,
    LedgerError,
    NotConfiguredError,
    NothingToWithdrawError,
    PreconditionError,
    TokenError,
    UnauthorizedError,
)
from .events import (
    EventLog,
    ExitStreamInitiated,
    ExitStreamWithdrawn,
    FeeClaimed,
    FeeReceived,
    LockCreated,
    LockExtended,
)
from .fee_ledger import FeeLedger, UserFeeStream
from .lock_ledger import MAX_LOCK_EPOCHS, ExitStream, LockLedger
from .series import SparseSeries
from .system import LedgerSystem, Lifecycle
from .tokens import Token

__all__ = [
    # Time
    "WEEK",
    "EpochClock",
    "ManualTime",
    # Ledgers
    "LockLedger",
    "ExitStream",
    "MAX_LOCK_EPOCHS",
    "FeeLedger",
    "UserFeeStream",
    "SparseSeries",
    "LedgerSystem",
    "Lifecycle",
    "Token",
    # Events
    "EventLog",
    "LockCreated",
    "LockExtended",
    "ExitStreamInitiated",
    "ExitStreamWithdrawn",
    "FeeReceived",
    "FeeClaimed",
    # Errors
    "LedgerError",
    "PreconditionError",
    "InvalidAmountError",
    "InvalidDurationError",
    "TokenError",
    "InsufficientBalanceError",
    "InsufficientAllowanceError",
    "BucketUnderflowError",
    "NothingToWithdrawError",
    "ClockError",
    "NotConfiguredError",
    "AlreadyConfiguredError",
    "UnauthorizedError",
]
