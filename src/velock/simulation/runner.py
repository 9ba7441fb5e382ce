"""Simulation runner - Drive the ledgers with a random user population.

Key Features:
- Seeded numpy randomness for reproducible runs
- Users lock, extend, exit and claim at random offsets inside each epoch
- A treasury deposits fees in every configured token once per epoch
- Invariants are checked after every epoch and violations collected
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

import numpy as np

from ..config.schema import Config
from ..engine.clock import ManualTime
from ..engine.errors import LedgerError
from ..engine.events import ExitStreamWithdrawn, FeeClaimed, FeeReceived, LockCreated, LockExtended
from ..engine.system import LedgerSystem
from ..engine.tokens import Token
from ..validation.invariants import InvariantChecker

logger = logging.getLogger(__name__)

DEPLOYER = "deployer"
TREASURY = "treasury"
STAKE_SYMBOL = "VLK"


@dataclass
class SimulationResult:
    """Complete simulation result."""
    config: Config
    metrics_over_time: List[Dict[str, Any]]
    final_metrics: Dict[str, Any]
    events: List[Dict[str, Any]] = field(default_factory=list)
    conservation_errors: List[str] = field(default_factory=list)


class SimulationRunner:
    """Run a random population of lockers against a fresh ledger system."""

    def __init__(self, config: Config):
        """
        Initialize simulation runner.

        Args:
            config: Simulation configuration
        """
        self.config = config
        self.unit = 10 ** config.simulation.token_decimals
        self._setup()

    def _setup(self):
        """Build a fresh, configured system with funded users and treasury."""
        sim = self.config.simulation
        self.time = ManualTime()
        self.system = LedgerSystem.from_config(DEPLOYER, self.config, time_source=self.time)
        self.time.set(self.system.clock.genesis)

        self.stake_token = Token(STAKE_SYMBOL, decimals=sim.token_decimals)
        self.system.configure(DEPLOYER, self.stake_token)
        self.lock_ledger = self.system.lock_ledger
        self.fee_ledger = self.system.fee_ledger

        self.fee_tokens = [
            Token(t.symbol, decimals=sim.token_decimals, transfer_fee_bps=t.transfer_fee_bps)
            for t in sim.fee_tokens
        ]
        self.users = [f"user_{i:03d}" for i in range(sim.num_users)]

        initial = sim.initial_balance * self.unit
        for user in self.users:
            self.stake_token.mint(user, initial)
            self.stake_token.approve(user, self.lock_ledger.address, initial * 10)
        # Treasury funding covers the whole horizon at ten times the mean deposit
        for token, settings in zip(self.fee_tokens, sim.fee_tokens):
            budget = settings.mean_deposit * self.unit * sim.horizon_epochs * 10
            token.mint(TREASURY, budget)
            token.approve(TREASURY, self.fee_ledger.address, budget)

        self._rejected = 0

    def run(self, random_seed: int = None) -> SimulationResult:
        """
        Run the simulation.

        Args:
            random_seed: Random seed for reproducibility

        Returns:
            Simulation result
        """
        if random_seed is not None:
            np.random.seed(random_seed)
        else:
            np.random.seed(self.config.simulation.random_seed)
        self._setup()

        clock = self.system.clock
        duration = clock.epoch_duration
        metrics_over_time = []
        conservation_errors = []

        for epoch in range(self.config.simulation.horizon_epochs):
            start = clock.epoch_start(epoch)
            events_before = len(self.system.events)
            rejected_before = self._rejected

            # One slot per user plus one for the treasury deposit
            offsets = np.sort(np.random.randint(0, duration, size=len(self.users) + 1))
            actors = list(self.users) + [TREASURY]
            order = np.random.permutation(len(actors))
            for slot, index in enumerate(order):
                self.time.set(start + int(offsets[slot]))
                actor = actors[index]
                if actor == TREASURY:
                    self._deposit_fees()
                else:
                    self._act(actor)

            self.time.set(start + duration - 1)
            epoch_events = self.system.events.events[events_before:]
            metrics_over_time.append(
                self._compute_metrics(epoch, epoch_events, self._rejected - rejected_before)
            )

            checker = InvariantChecker(self.lock_ledger, self.fee_ledger)
            warnings = (
                checker.check_weight_totals([epoch, epoch + 1])
                + checker.check_schedule()
                + checker.check_principal()
                + checker.check_fee_balances()
                + checker.check_distribution(epoch)
            )
            for warning in warnings:
                message = f"epoch {epoch}: {warning.message} ({warning.details})"
                logger.warning(message)
                conservation_errors.append(message)

        final_metrics = self._compute_final_metrics(metrics_over_time)

        return SimulationResult(
            config=self.config,
            metrics_over_time=metrics_over_time,
            final_metrics=final_metrics,
            events=self.system.events.to_records(),
            conservation_errors=conservation_errors
        )

    def _act(self, user: str):
        """Random actions of one user at the current timestamp."""
        sim = self.config.simulation
        try:
            if np.random.random() < sim.exit_probability:
                if self.lock_ledger.exit_stream(user) is None:
                    self.lock_ledger.initiate_exit_stream(user)
                self.lock_ledger.withdraw_exit_stream(user)
        except LedgerError as exc:
            self._reject(user, "exit", exc)

        try:
            if np.random.random() < sim.lock_probability:
                amount = int(np.random.randint(sim.min_lock_amount, sim.max_lock_amount + 1)) * self.unit
                epochs = int(np.random.randint(1, self.lock_ledger.max_lock_epochs + 1))
                self.lock_ledger.lock(user, amount, epochs)
        except LedgerError as exc:
            self._reject(user, "lock", exc)

        try:
            if np.random.random() < sim.extend_probability:
                buckets = [
                    (offset, amount) for offset, amount in self.lock_ledger.active_locks(user)
                    if offset < self.lock_ledger.max_lock_epochs
                ]
                if buckets:
                    offset, amount = buckets[np.random.randint(len(buckets))]
                    target = int(np.random.randint(offset + 1, self.lock_ledger.max_lock_epochs + 1))
                    self.lock_ledger.extend_lock(user, amount, offset, target)
        except LedgerError as exc:
            self._reject(user, "extend", exc)

        try:
            if np.random.random() < sim.claim_probability:
                self.fee_ledger.claim(user, self.fee_tokens)
        except LedgerError as exc:
            self._reject(user, "claim", exc)

    def _deposit_fees(self):
        for token, settings in zip(self.fee_tokens, self.config.simulation.fee_tokens):
            whole = max(1, int(np.random.exponential(settings.mean_deposit)))
            try:
                self.fee_ledger.deposit_fee(TREASURY, token, whole * self.unit)
            except LedgerError as exc:
                self._reject(TREASURY, "deposit", exc)

    def _reject(self, actor: str, action: str, exc: LedgerError):
        self._rejected += 1
        logger.debug("%s rejected for %s: %s", action, actor, exc)

    def _compute_metrics(self, epoch: int, events: List[Any], rejected: int) -> Dict[str, Any]:
        """Compute metrics for an epoch."""
        metrics = {
            'epoch': epoch,
            't': self.system.clock.epoch_start(epoch),
            'total_weight': self.lock_ledger.total_weight_at(epoch),
            'locked_principal': self.stake_token.balance_of(self.lock_ledger.address),
            'active_users': sum(1 for u in self.users if self.lock_ledger.weight_at(u, epoch)[0] > 0),
            'new_locks': sum(e.amount for e in events if isinstance(e, LockCreated)),
            'extended': sum(e.amount for e in events if isinstance(e, LockExtended)),
            'exit_withdrawn': sum(e.amount for e in events if isinstance(e, ExitStreamWithdrawn)),
            'rejected_actions': rejected,
        }
        for token in self.fee_tokens:
            metrics[f'fees_deposited_{token.symbol}'] = sum(
                e.amount for e in events if isinstance(e, FeeReceived) and e.token == token.address
            )
            metrics[f'fees_claimed_{token.symbol}'] = sum(
                e.amount for e in events if isinstance(e, FeeClaimed) and e.token == token.address
            )
        return metrics

    def _compute_final_metrics(self, metrics_over_time: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Compute final summary metrics."""
        horizon = len(metrics_over_time)
        final = {
            'epochs': horizon,
            'final_total_weight': metrics_over_time[-1]['total_weight'] if metrics_over_time else 0,
            'final_locked_principal': self.stake_token.balance_of(self.lock_ledger.address),
            'total_locked': sum(m['new_locks'] for m in metrics_over_time),
            'total_exit_withdrawn': sum(m['exit_withdrawn'] for m in metrics_over_time),
            'rejected_actions': sum(m['rejected_actions'] for m in metrics_over_time),
            'events_count': len(self.system.events),
        }
        for token in self.fee_tokens:
            deposited = sum(m[f'fees_deposited_{token.symbol}'] for m in metrics_over_time)
            claimed = sum(m[f'fees_claimed_{token.symbol}'] for m in metrics_over_time)
            stranded = sum(
                self.fee_ledger.fee_at(token, epoch) for epoch in range(horizon)
                if self.lock_ledger.total_weight_at(epoch) == 0
            )
            final[f'fees_deposited_{token.symbol}'] = deposited
            final[f'fees_claimed_{token.symbol}'] = claimed
            final[f'fees_unclaimed_{token.symbol}'] = deposited - claimed
            final[f'fees_stranded_{token.symbol}'] = stranded
        return final
