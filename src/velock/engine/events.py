"""Events emitted by the ledgers for external indexing."""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Type, TypeVar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockCreated:
    user: str
    amount: int
    epochs: int
    epoch: int  # Epoch the lock was created in


@dataclass(frozen=True)
class LockExtended:
    user: str
    amount: int
    from_epochs: int
    to_epochs: int
    epoch: int


@dataclass(frozen=True)
class ExitStreamInitiated:
    user: str
    amount: int  # Total streamed, including any merged remainder
    matured: int  # Newly swept principal
    start: int  # Timestamp the stream vests from


@dataclass(frozen=True)
class ExitStreamWithdrawn:
    user: str
    amount: int
    remaining: int


@dataclass(frozen=True)
class FeeReceived:
    caller: str
    token: str
    epoch: int
    amount: int  # Actually received, net of transfer fees


@dataclass(frozen=True)
class FeeClaimed:
    user: str
    token: str
    amount: int


E = TypeVar("E")


class EventLog:
    """Append-only event record shared by the ledgers."""

    def __init__(self):
        self.events: List[Any] = []

    def __len__(self) -> int:
        return len(self.events)

    def emit(self, event: Any) -> None:
        self.events.append(event)
        logger.debug("%s %s", type(event).__name__, asdict(event))

    def of_type(self, event_type: Type[E]) -> List[E]:
        return [e for e in self.events if isinstance(e, event_type)]

    def to_records(self) -> List[Dict[str, Any]]:
        """Flatten events to dicts tagged with their event name."""
        return [{"event": type(e).__name__, **asdict(e)} for e in self.events]
