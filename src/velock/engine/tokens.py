"""In-memory fungible token used as the transfer collaborator."""

import logging
from typing import Dict, Optional, Tuple

from .errors import InsufficientAllowanceError, InsufficientBalanceError, InvalidAmountError

logger = logging.getLogger(__name__)

BPS = 10_000


class Token:
    """Fungible token with balances, allowances and an optional transfer fee.

    A non-zero `transfer_fee_bps` burns that share of every transfer, so the
    recipient receives less than the sent amount.
    """

    def __init__(self, address: str, symbol: Optional[str] = None, decimals: int = 18, transfer_fee_bps: int = 0):
        if not 0 <= transfer_fee_bps < BPS:
            raise ValueError(f"transfer_fee_bps must be in [0, {BPS}), got {transfer_fee_bps}")
        self.address = address
        self.symbol = symbol or address
        self.decimals = decimals
        self.transfer_fee_bps = transfer_fee_bps
        self.total_supply = 0
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}

    def __repr__(self) -> str:
        return f"Token({self.symbol!r})"

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def mint(self, to: str, amount: int) -> None:
        if amount <= 0:
            raise InvalidAmountError(f"Mint amount must be positive, got {amount}")
        self._balances[to] = self.balance_of(to) + amount
        self.total_supply += amount

    def approve(self, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise InvalidAmountError(f"Allowance cannot be negative, got {amount}")
        self._allowances[(owner, spender)] = amount

    def transfer(self, sender: str, to: str, amount: int) -> int:
        """Move `amount` from `sender` to `to`; returns the amount received."""
        return self._move(sender, to, amount)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> int:
        """Move `amount` from `owner` to `to` against `spender`'s allowance."""
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            raise InsufficientAllowanceError(
                f"{spender} may spend {allowed} {self.symbol} of {owner}, needs {amount}"
            )
        received = self._move(owner, to, amount)
        self._allowances[(owner, spender)] = allowed - amount
        return received

    def _move(self, sender: str, to: str, amount: int) -> int:
        if amount < 0:
            raise InvalidAmountError(f"Transfer amount cannot be negative, got {amount}")
        balance = self.balance_of(sender)
        if balance < amount:
            raise InsufficientBalanceError(
                f"{sender} holds {balance} {self.symbol}, needs {amount}"
            )
        fee = amount * self.transfer_fee_bps // BPS
        received = amount - fee
        self._balances[sender] = balance - amount
        self._balances[to] = self.balance_of(to) + received
        self.total_supply -= fee
        logger.debug("transfer %s %s -> %s: %d (fee %d)", self.symbol, sender, to, amount, fee)
        return received
