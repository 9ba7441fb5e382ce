"""Lock Ledger - Duration-weighted lock accounting with epoch decay.

Key Concepts:
- A lock of `amount` for `n` epochs contributes amount * (n - i) weight at
  offset i, reaching zero at expiry (a triangular ramp)
- Only aggregate series are kept per user; individual locks have no identity
- Matured principal leaves through an exit stream vesting over one epoch
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .clock import EpochClock
from .errors import (
    BucketUnderflowError,
    InvalidAmountError,
    InvalidDurationError,
    NothingToWithdrawError,
)
from .events import EventLog, ExitStreamInitiated, ExitStreamWithdrawn, LockCreated, LockExtended
from .series import SparseSeries
from .tokens import Token

logger = logging.getLogger(__name__)

MAX_LOCK_EPOCHS = 52


@dataclass
class ExitStream:
    """Matured principal vesting linearly over one epoch from `start`."""
    start: int  # Timestamp
    amount: int
    claimed: int = 0

    @property
    def remaining(self) -> int:
        return self.amount - self.claimed


class LockLedger:
    """Per-user and aggregate weight, unlock and exit-stream bookkeeping."""

    def __init__(
        self,
        stake_token: Token,
        clock: EpochClock,
        max_lock_epochs: int = MAX_LOCK_EPOCHS,
        events: Optional[EventLog] = None,
        address: str = "lock_ledger"
    ):
        """
        Initialize lock ledger.

        Args:
            stake_token: Token users lock
            clock: Epoch clock; shared with any fee ledger built on top
            max_lock_epochs: Longest permitted lock duration
            events: Event log to emit into (a private one if omitted)
            address: Account holding locked principal on the token
        """
        if max_lock_epochs < 1:
            raise ValueError(f"max_lock_epochs must be at least 1, got {max_lock_epochs}")
        self.stake_token = stake_token
        self.clock = clock
        self.max_lock_epochs = max_lock_epochs
        self.events = events if events is not None else EventLog()
        self.address = address

        self._total_weight = SparseSeries()
        self._user_weights: Dict[str, SparseSeries] = {}
        self._user_unlocks: Dict[str, SparseSeries] = {}
        self._withdrawn_until: Dict[str, int] = {}
        self._exit_streams: Dict[str, ExitStream] = {}

    @property
    def genesis(self) -> int:
        return self.clock.genesis

    @property
    def current_epoch(self) -> int:
        return self.clock.current_epoch()

    @property
    def users(self) -> List[str]:
        return sorted(self._user_unlocks)

    def lock(self, user: str, amount: int, epochs: int) -> None:
        """
        Lock `amount` of the stake token for `epochs` epochs.

        Args:
            user: Locking account (must have approved this ledger)
            amount: Principal to lock
            epochs: Duration in epochs, 1..max_lock_epochs

        Raises:
            InvalidAmountError: amount is not positive
            InvalidDurationError: epochs out of range
            TokenError: principal could not be pulled from the user
        """
        if amount <= 0:
            raise InvalidAmountError(f"Lock amount must be positive, got {amount}")
        if not 1 <= epochs <= self.max_lock_epochs:
            raise InvalidDurationError(
                f"Lock duration must be in [1, {self.max_lock_epochs}], got {epochs}"
            )
        current = self.current_epoch

        self.stake_token.transfer_from(self.address, user, self.address, amount)

        self._apply_weight_change(user, current, amount, epochs, 0)
        self._unlocks(user).add(current + epochs, amount)

        logger.debug("lock user=%s amount=%d epochs=%d epoch=%d", user, amount, epochs, current)
        self.events.emit(LockCreated(user=user, amount=amount, epochs=epochs, epoch=current))

    def extend_lock(self, user: str, amount: int, from_epochs: int, to_epochs: int) -> None:
        """
        Move `amount` from the bucket unlocking in `from_epochs` to `to_epochs`.

        The source bucket is the only guard: locks carry no identity, so the
        caller must only extend principal actually scheduled there.

        Raises:
            InvalidAmountError: amount is not positive
            InvalidDurationError: durations out of range or not increasing
            BucketUnderflowError: source bucket holds less than `amount`
        """
        if amount <= 0:
            raise InvalidAmountError(f"Extension amount must be positive, got {amount}")
        if from_epochs <= 0:
            raise InvalidDurationError(f"from_epochs must be positive, got {from_epochs}")
        if to_epochs > self.max_lock_epochs:
            raise InvalidDurationError(
                f"to_epochs must be at most {self.max_lock_epochs}, got {to_epochs}"
            )
        if to_epochs <= from_epochs:
            raise InvalidDurationError(
                f"to_epochs ({to_epochs}) must exceed from_epochs ({from_epochs})"
            )
        current = self.current_epoch
        unlocks = self._user_unlocks.get(user)
        scheduled = unlocks[current + from_epochs] if unlocks is not None else 0
        if scheduled < amount:
            raise BucketUnderflowError(
                f"{user} has {scheduled} unlocking at epoch {current + from_epochs}, "
                f"cannot extend {amount}"
            )

        unlocks.add(current + from_epochs, -amount)
        unlocks.add(current + to_epochs, amount)
        self._apply_weight_change(user, current, amount, to_epochs, from_epochs)

        logger.debug(
            "extend user=%s amount=%d %d->%d epoch=%d",
            user, amount, from_epochs, to_epochs, current
        )
        self.events.emit(LockExtended(
            user=user, amount=amount, from_epochs=from_epochs, to_epochs=to_epochs, epoch=current
        ))

    def initiate_exit_stream(self, user: str) -> ExitStream:
        """
        Sweep matured principal into a fresh exit stream anchored at now.

        Any unclaimed remainder of an existing stream is merged in and
        restarts vesting with the new principal.

        Raises:
            NothingToWithdrawError: nothing matured since the last sweep
        """
        now = self.clock.now()
        current = self.clock.epoch_at(now)
        withdrawn_until = self._withdrawn_until.get(user, -1)
        unlocks = self._user_unlocks.get(user)
        matured = unlocks.sum_between(withdrawn_until + 1, current + 1) if unlocks is not None else 0
        if matured == 0:
            raise NothingToWithdrawError(f"{user} has no matured principal at epoch {current}")

        previous = self._exit_streams.get(user)
        carried = previous.remaining if previous is not None else 0
        stream = ExitStream(start=now, amount=matured + carried)
        self._exit_streams[user] = stream
        self._withdrawn_until[user] = current

        logger.debug("exit stream user=%s matured=%d carried=%d", user, matured, carried)
        self.events.emit(ExitStreamInitiated(
            user=user, amount=stream.amount, matured=matured, start=now
        ))
        return stream

    def withdraw_exit_stream(self, user: str) -> int:
        """
        Pay out the vested part of the user's exit stream.

        Returns:
            Amount transferred (0 when nothing new has vested)
        """
        stream = self._exit_streams.get(user)
        if stream is None:
            return 0
        duration = self.clock.epoch_duration
        elapsed = self.clock.now() - stream.start
        if elapsed >= duration:
            vested = stream.amount
        else:
            vested = stream.amount * elapsed // duration
        payable = vested - stream.claimed
        if payable > 0:
            self.stake_token.transfer(self.address, user, payable)

        if vested == stream.amount:
            del self._exit_streams[user]
        else:
            stream.claimed = vested

        if payable > 0:
            self.events.emit(ExitStreamWithdrawn(
                user=user, amount=payable, remaining=stream.amount - vested
            ))
        return payable

    def exit_stream(self, user: str) -> Optional[ExitStream]:
        return self._exit_streams.get(user)

    def weight_of(self, user: str) -> int:
        """User weight at the current epoch."""
        return self.weight_at(user, self.current_epoch)[0]

    def total_weight(self) -> int:
        """Aggregate weight at the current epoch."""
        return self._total_weight[self.current_epoch]

    def weight_at(self, user: str, epoch: int) -> Tuple[int, int]:
        """(user weight, total weight) scheduled at `epoch`."""
        series = self._user_weights.get(user)
        user_weight = series[epoch] if series is not None else 0
        return user_weight, self._total_weight[epoch]

    def total_weight_at(self, epoch: int) -> int:
        return self._total_weight[epoch]

    def unlock_at(self, user: str, epoch: int) -> int:
        unlocks = self._user_unlocks.get(user)
        return unlocks[epoch] if unlocks is not None else 0

    def withdrawn_until(self, user: str) -> int:
        """Last epoch swept into an exit stream, -1 if never."""
        return self._withdrawn_until.get(user, -1)

    def unwithdrawn_balance(self, user: str) -> int:
        """Principal still locked or matured but not yet swept."""
        unlocks = self._user_unlocks.get(user)
        if unlocks is None:
            return 0
        return unlocks.sum_between(self.withdrawn_until(user) + 1, self._schedule_end())

    def active_locks(self, user: str) -> List[Tuple[int, int]]:
        """(epochs until unlock, amount) for every bucket still in the future."""
        unlocks = self._user_unlocks.get(user)
        if unlocks is None:
            return []
        current = self.current_epoch
        return [
            (epoch - current, amount)
            for epoch, amount in unlocks.items_between(current + 1, self._schedule_end())
        ]

    def weight_series(self, user: Optional[str] = None) -> Dict[int, int]:
        """Snapshot of a user's (or the aggregate) weight series."""
        if user is None:
            return self._total_weight.to_dict()
        series = self._user_weights.get(user)
        return series.to_dict() if series is not None else {}

    def _schedule_end(self) -> int:
        # No bucket is ever scheduled further out than the longest lock from now
        return self.current_epoch + self.max_lock_epochs + 1

    def _unlocks(self, user: str) -> SparseSeries:
        if user not in self._user_unlocks:
            self._user_unlocks[user] = SparseSeries()
        return self._user_unlocks[user]

    def _apply_weight_change(
        self,
        user: str,
        start: int,
        amount: int,
        new_epochs: int,
        old_epochs: int
    ) -> None:
        """
        Replace a triangular weight ramp of `old_epochs` by one of `new_epochs`.

        Formula at epoch i: amount * (start + n - i) while i < start + n, else 0

        Args:
            user: Account whose series changes along with the aggregate
            start: First epoch affected
            amount: Principal carried by the ramp
            new_epochs: Duration of the new ramp
            old_epochs: Duration of the replaced ramp (0 for a fresh lock)
        """
        if user not in self._user_weights:
            self._user_weights[user] = SparseSeries()
        user_series = self._user_weights[user]
        new_end = start + new_epochs
        old_end = start + old_epochs
        for epoch in range(start, max(new_end, old_end)):
            new = amount * (new_end - epoch) if epoch < new_end else 0
            old = amount * (old_end - epoch) if epoch < old_end else 0
            delta = new - old
            if delta:
                user_series.add(epoch, delta)
                self._total_weight.add(epoch, delta)
