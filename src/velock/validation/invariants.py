"""Invariant checks over lock and fee ledger state."""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..engine.events import FeeClaimed
from ..engine.fee_ledger import FeeLedger
from ..engine.lock_ledger import LockLedger


@dataclass
class ValidationWarning:
    """A validation warning with severity and message."""
    severity: str  # "warning" or "error"
    category: str  # e.g., "weight", "principal", "fees"
    message: str
    details: Optional[str] = None


class InvariantChecker:
    """Run invariant checks on live ledgers."""

    def __init__(self, lock_ledger: LockLedger, fee_ledger: Optional[FeeLedger] = None):
        """Initialize with the ledgers to inspect."""
        self.lock_ledger = lock_ledger
        self.fee_ledger = fee_ledger

    def check_weight_totals(self, epochs: Iterable[int]) -> List[ValidationWarning]:
        """
        Aggregate weight must equal the sum of user weights, and no weight is negative.

        Args:
            epochs: Epochs to inspect

        Returns:
            List of validation warnings
        """
        warnings = []
        users = self.lock_ledger.users
        for epoch in epochs:
            user_weights = [self.lock_ledger.weight_at(user, epoch)[0] for user in users]
            total = self.lock_ledger.total_weight_at(epoch)
            if total != sum(user_weights):
                warnings.append(ValidationWarning(
                    severity="error",
                    category="weight",
                    message=f"Aggregate weight at epoch {epoch} differs from user sum",
                    details=f"Total: {total}, Sum: {sum(user_weights)}"
                ))
            negative = [u for u, w in zip(users, user_weights) if w < 0]
            if negative or total < 0:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="weight",
                    message=f"Negative weight at epoch {epoch}",
                    details=f"Users: {negative}, Total: {total}"
                ))
        return warnings

    def check_schedule(self) -> List[ValidationWarning]:
        """
        From the current epoch on, each user's weight is fully determined by the
        unlock buckets: weight[e] = sum(amount * (unlock_epoch - e)) over buckets
        after e, and it is zero from the last bucket onward.

        Returns:
            List of validation warnings
        """
        warnings = []
        current = self.lock_ledger.current_epoch
        for user in self.lock_ledger.users:
            buckets = [(current + offset, amount) for offset, amount in self.lock_ledger.active_locks(user)]
            expected = sum(amount * (unlock - current) for unlock, amount in buckets)
            actual = self.lock_ledger.weight_at(user, current)[0]
            if actual != expected:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="weight",
                    message=f"Weight of {user} does not match its unlock schedule",
                    details=f"Epoch {current}: weight {actual}, schedule implies {expected}"
                ))
            if buckets:
                last_unlock = buckets[-1][0]
                residual = self.lock_ledger.weight_at(user, last_unlock)[0]
                if residual != 0:
                    warnings.append(ValidationWarning(
                        severity="error",
                        category="weight",
                        message=f"Weight of {user} survives expiry",
                        details=f"Epoch {last_unlock}: weight {residual}"
                    ))
        return warnings

    def check_principal(self) -> List[ValidationWarning]:
        """
        Stake token held by the lock ledger covers every unwithdrawn balance
        plus every open exit stream.

        Returns:
            List of validation warnings
        """
        ledger = self.lock_ledger
        owed = 0
        for user in ledger.users:
            owed += ledger.unwithdrawn_balance(user)
            stream = ledger.exit_stream(user)
            if stream is not None:
                owed += stream.remaining
        held = ledger.stake_token.balance_of(ledger.address)
        if held != owed:
            return [ValidationWarning(
                severity="error",
                category="principal",
                message="Locked principal does not match stake token balance",
                details=f"Held: {held}, Owed: {owed}, Diff: {held - owed:+d}"
            )]
        return []

    def check_fee_balances(self) -> List[ValidationWarning]:
        """
        Each fee token balance equals credited deposits minus claims paid.

        Returns:
            List of validation warnings
        """
        if self.fee_ledger is None:
            return []
        warnings = []
        claimed = {}
        for event in self.fee_ledger.events.of_type(FeeClaimed):
            claimed[event.token] = claimed.get(event.token, 0) + event.amount

        current = self.lock_ledger.current_epoch
        for token in self.fee_ledger.registered_tokens():
            deposited = sum(self.fee_ledger.fee_at(token, epoch) for epoch in range(current + 1))
            expected = deposited - claimed.get(token.address, 0)
            held = token.balance_of(self.fee_ledger.address)
            if held != expected:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="fees",
                    message=f"{token.symbol} balance does not match deposits minus claims",
                    details=f"Held: {held}, Expected: {expected}"
                ))
        return warnings

    def check_distribution(self, epoch: int) -> List[ValidationWarning]:
        """
        Shares of one epoch's fees never exceed the deposit, and lose at most
        one base unit per user to rounding.

        Args:
            epoch: Epoch whose fees are inspected

        Returns:
            List of validation warnings
        """
        if self.fee_ledger is None:
            return []
        warnings = []
        users = self.lock_ledger.users
        for token in self.fee_ledger.registered_tokens():
            fee = self.fee_ledger.fee_at(token, epoch)
            if fee == 0 or self.lock_ledger.total_weight_at(epoch) == 0:
                continue
            distributed = sum(self.fee_ledger.share_of(user, token, epoch) for user in users)
            if distributed > fee or fee - distributed >= max(1, len(users)):
                warnings.append(ValidationWarning(
                    severity="error",
                    category="fees",
                    message=f"{token.symbol} shares at epoch {epoch} do not add up to the deposit",
                    details=f"Deposited: {fee}, Distributed: {distributed}, Users: {len(users)}"
                ))
        return warnings


def validate_ledgers(
    lock_ledger: LockLedger,
    fee_ledger: Optional[FeeLedger] = None,
    epochs: Optional[Iterable[int]] = None
) -> List[ValidationWarning]:
    """
    Run every invariant check.

    Args:
        lock_ledger: Lock ledger to inspect
        fee_ledger: Fee ledger to inspect, if any
        epochs: Epochs for the per-epoch checks (defaults to genesis..current+max lock)

    Returns:
        List of all validation warnings
    """
    checker = InvariantChecker(lock_ledger, fee_ledger)
    current = lock_ledger.current_epoch
    if epochs is None:
        epochs = range(current + lock_ledger.max_lock_epochs + 1)
    epochs = list(epochs)

    warnings = []
    warnings.extend(checker.check_weight_totals(epochs))
    warnings.extend(checker.check_schedule())
    warnings.extend(checker.check_principal())
    warnings.extend(checker.check_fee_balances())
    for epoch in epochs:
        if epoch <= current:
            warnings.extend(checker.check_distribution(epoch))
    return warnings
