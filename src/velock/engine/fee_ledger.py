"""Fee Ledger - Pro-rata fee distribution over historical lock weight.

Key Concepts:
- Fees deposited during epoch e are shared by weight snapshot at e
- Epoch e's share starts vesting at the start of e+1 and is fully vested at
  the start of e+2 (one epoch delay, one epoch of linear vesting)
- A per-user per-token checkpoint caches the partially vested epoch so that
  repeated claims only add what vested since
- Epochs with zero total weight distribute nothing; their fees stay stranded
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .errors import InsufficientBalanceError, InvalidAmountError
from .events import EventLog, FeeClaimed, FeeReceived
from .lock_ledger import LockLedger
from .series import SparseSeries
from .tokens import Token

logger = logging.getLogger(__name__)


@dataclass
class UserFeeStream:
    """Claim checkpoint for one user and token."""
    epoch: int  # Most recent epoch whose share is cached
    amount: int  # Full share of that epoch
    claimed: int  # Part of `amount` already paid


class FeeLedger:
    """Per-token fee deposits and per-user claim checkpoints."""

    def __init__(
        self,
        lock_ledger: LockLedger,
        events: Optional[EventLog] = None,
        address: str = "fee_ledger"
    ):
        """
        Initialize fee ledger.

        Args:
            lock_ledger: Source of weight snapshots; its clock fixes epoch alignment
            events: Event log to emit into (the lock ledger's if omitted)
            address: Account holding deposited fees on each token
        """
        self.lock_ledger = lock_ledger
        self.clock = lock_ledger.clock
        self.events = events if events is not None else lock_ledger.events
        self.address = address

        self._tokens: Dict[str, Token] = {}
        self._fees: Dict[str, SparseSeries] = {}
        self._streams: Dict[Tuple[str, str], UserFeeStream] = {}

    @property
    def genesis(self) -> int:
        return self.clock.genesis

    def registered_tokens(self) -> List[Token]:
        return list(self._tokens.values())

    def fee_at(self, token: Token, epoch: int) -> int:
        fees = self._fees.get(token.address)
        return fees[epoch] if fees is not None else 0

    def stream_of(self, user: str, token: Token) -> Optional[UserFeeStream]:
        return self._streams.get((user, token.address))

    def deposit_fee(self, caller: str, token: Token, amount: int) -> int:
        """
        Pull `amount` of `token` from `caller` into the current epoch's fees.

        Only the balance delta actually received is credited, which covers
        tokens that take a cut on transfer.

        Returns:
            Amount credited
        """
        if amount <= 0:
            raise InvalidAmountError(f"Fee amount must be positive, got {amount}")
        epoch = self.clock.current_epoch()
        before = token.balance_of(self.address)
        token.transfer_from(self.address, caller, self.address, amount)
        received = token.balance_of(self.address) - before

        if token.address not in self._tokens:
            self._tokens[token.address] = token
            self._fees[token.address] = SparseSeries()
            logger.info("registered fee token %s", token.symbol)
        self._fees[token.address].add(epoch, received)

        logger.debug("fee %s epoch=%d sent=%d received=%d", token.symbol, epoch, amount, received)
        self.events.emit(FeeReceived(caller=caller, token=token.address, epoch=epoch, amount=received))
        return received

    def claimable(self, user: str, tokens: Sequence[Token]) -> List[int]:
        """Amounts `claim` would pay right now, one per token."""
        now = self.clock.now()
        amounts = []
        seen = set()
        for token in tokens:
            if token.address in seen:
                amounts.append(0)
                continue
            seen.add(token.address)
            amounts.append(self._compute_claim(user, token.address, now)[0])
        return amounts

    def claim(self, user: str, tokens: Sequence[Token]) -> List[int]:
        """
        Pay the user's vested fees for each token and advance its checkpoint.

        Returns:
            Amounts paid, one per token
        """
        now = self.clock.now()
        computed = []
        seen = set()
        for token in tokens:
            if token.address in seen:
                computed.append((token, 0, None))
                continue
            seen.add(token.address)
            payable, checkpoint = self._compute_claim(user, token.address, now)
            held = token.balance_of(self.address)
            if held < payable:
                raise InsufficientBalanceError(
                    f"Fee ledger holds {held} {token.symbol}, owes {user} {payable}"
                )
            computed.append((token, payable, checkpoint))

        for token, payable, checkpoint in computed:
            if checkpoint is not None:
                self._streams[(user, token.address)] = checkpoint
        for token, payable, _ in computed:
            if payable > 0:
                token.transfer(self.address, user, payable)
                logger.debug("claim user=%s token=%s amount=%d", user, token.symbol, payable)
                self.events.emit(FeeClaimed(user=user, token=token.address, amount=payable))
        return [payable for _, payable, _ in computed]

    def share_of(self, user: str, token: Token, epoch: int) -> int:
        """User's full pro-rata share of the fees deposited in `epoch`."""
        fees = self._fees.get(token.address)
        if fees is None:
            return 0
        return self._share(user, fees[epoch], epoch)

    def _share(self, user: str, fee: int, epoch: int) -> int:
        if fee == 0:
            return 0
        user_weight, total_weight = self.lock_ledger.weight_at(user, epoch)
        if total_weight == 0:
            return 0
        return fee * user_weight // total_weight

    def _compute_claim(self, user: str, token_address: str, now: int) -> Tuple[int, Optional[UserFeeStream]]:
        """
        Payable amount and replacement checkpoint at timestamp `now`.

        The checkpoint is None when no epoch has fully elapsed yet.
        """
        latest = self.clock.epoch_at(now) - 1
        if latest < 0:
            return 0, None
        fees = self._fees.get(token_address)
        if fees is None:
            fees = SparseSeries()
        previous = self._streams.get((user, token_address))
        last = previous.epoch if previous is not None else -1

        payable = 0
        already_claimed = 0
        if last == latest:
            already_claimed = previous.claimed
        else:
            if previous is not None:
                payable += previous.amount - previous.claimed
            for epoch, fee in fees.items_between(last + 1, latest):
                payable += self._share(user, fee, epoch)

        duration = self.clock.epoch_duration
        share = self._share(user, fees[latest], latest)
        elapsed = now - duration - self.clock.epoch_start(latest)
        vested = share * elapsed // duration
        payable += vested - already_claimed

        return payable, UserFeeStream(epoch=latest, amount=share, claimed=vested)
