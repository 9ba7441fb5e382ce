"""Epoch clock - maps timestamps to epoch indices."""

import time
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import ClockError

WEEK = 7 * 86400


@dataclass
class ManualTime:
    """Settable time source for simulations and tests."""
    now: int = 0

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now

    def set(self, timestamp: int) -> int:
        self.now = timestamp
        return self.now


def wall_time() -> int:
    return int(time.time())


class EpochClock:
    """Fixed-duration epochs counted from an aligned genesis.

    Genesis is floored to a multiple of the epoch duration, so epoch
    boundaries are the same for every component sharing the clock.
    """

    def __init__(
        self,
        genesis: int,
        epoch_duration: int = WEEK,
        time_source: Optional[Callable[[], int]] = None
    ):
        """
        Initialize epoch clock.

        Args:
            genesis: Any timestamp inside epoch 0
            epoch_duration: Epoch length in seconds
            time_source: Callable returning the current timestamp (defaults to wall clock)
        """
        if epoch_duration <= 0:
            raise ValueError(f"epoch_duration must be positive, got {epoch_duration}")
        self.epoch_duration = epoch_duration
        self.genesis = (genesis // epoch_duration) * epoch_duration
        self.time_source = time_source or wall_time

    def now(self) -> int:
        return int(self.time_source())

    def epoch_at(self, timestamp: int) -> int:
        """Epoch containing `timestamp`."""
        if timestamp < self.genesis:
            raise ClockError(f"Timestamp {timestamp} precedes genesis {self.genesis}")
        return (timestamp - self.genesis) // self.epoch_duration

    def current_epoch(self) -> int:
        return self.epoch_at(self.now())

    def epoch_start(self, epoch: int) -> int:
        """Boundary timestamp at which `epoch` begins."""
        return self.genesis + epoch * self.epoch_duration
