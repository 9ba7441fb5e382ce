"""One-time wiring of the lock and fee ledgers."""

import logging
from enum import Enum
from typing import Callable, Optional

from .clock import EpochClock
from .errors import AlreadyConfiguredError, NotConfiguredError, UnauthorizedError
from .events import EventLog
from .fee_ledger import FeeLedger
from .lock_ledger import MAX_LOCK_EPOCHS, LockLedger
from .tokens import Token

logger = logging.getLogger(__name__)


class Lifecycle(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONFIGURED = "configured"


class LedgerSystem:
    """Owns the ledgers and the irreversible UNINITIALIZED -> CONFIGURED transition.

    The owner may call `configure` exactly once. Ownership is dropped in the
    same step, after which nothing is privileged.
    """

    def __init__(
        self,
        owner: str,
        genesis: int,
        epoch_duration: int,
        max_lock_epochs: int = MAX_LOCK_EPOCHS,
        time_source: Optional[Callable[[], int]] = None
    ):
        self.owner: Optional[str] = owner
        self.max_lock_epochs = max_lock_epochs
        self.clock = EpochClock(genesis, epoch_duration, time_source)
        self.events = EventLog()
        self.state = Lifecycle.UNINITIALIZED
        self._lock_ledger: Optional[LockLedger] = None
        self._fee_ledger: Optional[FeeLedger] = None

    @classmethod
    def from_config(cls, owner: str, config, time_source: Optional[Callable[[], int]] = None) -> 'LedgerSystem':
        """Create an unconfigured system from a `velock.config.schema.Config`."""
        return cls(
            owner=owner,
            genesis=config.epochs.genesis_timestamp,
            epoch_duration=config.epochs.duration_seconds,
            max_lock_epochs=config.locking.max_lock_epochs,
            time_source=time_source,
        )

    @property
    def configured(self) -> bool:
        return self.state is Lifecycle.CONFIGURED

    @property
    def lock_ledger(self) -> LockLedger:
        if self._lock_ledger is None:
            raise NotConfiguredError("Lock ledger is not wired yet; call configure() first")
        return self._lock_ledger

    @property
    def fee_ledger(self) -> FeeLedger:
        if self._fee_ledger is None:
            raise NotConfiguredError("Fee ledger is not wired yet; call configure() first")
        return self._fee_ledger

    def configure(self, caller: str, stake_token: Token) -> None:
        """
        Wire both ledgers around `stake_token` and renounce ownership.

        Raises:
            AlreadyConfiguredError: configure already ran
            UnauthorizedError: caller is not the owner
        """
        if self.state is Lifecycle.CONFIGURED:
            raise AlreadyConfiguredError("System is already configured")
        if caller != self.owner:
            raise UnauthorizedError(f"{caller} is not the owner")

        self._lock_ledger = LockLedger(
            stake_token=stake_token,
            clock=self.clock,
            max_lock_epochs=self.max_lock_epochs,
            events=self.events,
        )
        self._fee_ledger = FeeLedger(self._lock_ledger, events=self.events)
        self.state = Lifecycle.CONFIGURED
        self.owner = None
        logger.info(
            "configured: stake=%s genesis=%d epoch_duration=%d max_lock_epochs=%d",
            stake_token.symbol, self.clock.genesis, self.clock.epoch_duration, self.max_lock_epochs
        )
