"""Unit tests for the fee ledger.

Tests verify:
- Pro-rata shares of each epoch's deposits by weight snapshot
- One-epoch delay followed by one epoch of linear vesting
- Checkpointed claims pay only what vested since the last claim
- Catch-up over many unvisited epochs, skipping zero-weight epochs
- Received-delta accounting for tokens that charge on transfer
"""

import pytest
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from velock.engine.clock import WEEK, EpochClock, ManualTime
from velock.engine.errors import InsufficientAllowanceError, InsufficientBalanceError, InvalidAmountError
from velock.engine.events import FeeClaimed, FeeReceived
from velock.engine.fee_ledger import FeeLedger
from velock.engine.lock_ledger import LockLedger
from velock.engine.tokens import Token

GENESIS = 1_704_326_400
FUNDS = 10 ** 24


def make_ledgers(fee_token: Token = None):
    """Lock and fee ledgers at genesis; alice and bob can lock, treasury can pay fees."""
    time = ManualTime(GENESIS)
    clock = EpochClock(GENESIS, WEEK, time)
    stake = Token("VLK")
    lock_ledger = LockLedger(stake, clock)
    fee_ledger = FeeLedger(lock_ledger)
    for user in ("alice", "bob"):
        stake.mint(user, FUNDS)
        stake.approve(user, lock_ledger.address, FUNDS)
    fee_token = fee_token or Token("USDV")
    fee_token.mint("treasury", FUNDS)
    fee_token.approve("treasury", fee_ledger.address, FUNDS)
    return lock_ledger, fee_ledger, fee_token, time


def at_epoch(time: ManualTime, epoch: int, fraction: float = 0.0):
    """Move time to `fraction` of the way through `epoch`."""
    time.set(GENESIS + epoch * WEEK + int(WEEK * fraction))


class TestDepositFee:
    """Tests for recording fee income."""

    def test_deposit_credits_current_epoch(self):
        lock_ledger, fee_ledger, usdv, time = make_ledgers()
        at_epoch(time, 3, 0.5)
        assert fee_ledger.deposit_fee("treasury", usdv, 700) == 700
        fee_ledger.deposit_fee("treasury", usdv, 300)

        assert fee_ledger.fee_at(usdv, 3) == 1000
        assert fee_ledger.fee_at(usdv, 2) == 0
        assert usdv.balance_of(fee_ledger.address) == 1000
        assert fee_ledger.registered_tokens() == [usdv]
        assert fee_ledger.events.of_type(FeeReceived)[0] == FeeReceived(
            caller="treasury", token="USDV", epoch=3, amount=700
        )

    def test_transfer_fee_token_credits_received_amount(self):
        feex = Token("FEEX", transfer_fee_bps=100)
        _, fee_ledger, _, _ = make_ledgers(fee_token=feex)

        assert fee_ledger.deposit_fee("treasury", feex, 1000) == 990
        assert fee_ledger.fee_at(feex, 0) == 990
        assert feex.balance_of(fee_ledger.address) == 990

    def test_zero_amount_rejected(self):
        _, fee_ledger, usdv, _ = make_ledgers()
        with pytest.raises(InvalidAmountError):
            fee_ledger.deposit_fee("treasury", usdv, 0)
        assert fee_ledger.registered_tokens() == []

    def test_missing_allowance_aborts(self):
        _, fee_ledger, _, _ = make_ledgers()
        other = Token("OTHR")
        other.mint("mallory", 1000)
        with pytest.raises(InsufficientAllowanceError):
            fee_ledger.deposit_fee("mallory", other, 1000)
        assert fee_ledger.registered_tokens() == []
        assert fee_ledger.fee_at(other, 0) == 0


class TestClaimStreaming:
    """Tests for the delayed linear vesting of an epoch's share."""

    def setup_scenario(self):
        """Fee 700 at epoch 5; alice holds weight 100 of 1000 there."""
        lock_ledger, fee_ledger, usdv, time = make_ledgers()
        at_epoch(time, 5)
        lock_ledger.lock("alice", 100, 1)
        lock_ledger.lock("bob", 900, 1)
        fee_ledger.deposit_fee("treasury", usdv, 700)
        assert lock_ledger.weight_at("alice", 5) == (100, 1000)
        return lock_ledger, fee_ledger, usdv, time

    def test_nothing_claimable_before_first_epoch_ends(self):
        lock_ledger, fee_ledger, usdv, time = make_ledgers()
        lock_ledger.lock("alice", 100, 4)
        fee_ledger.deposit_fee("treasury", usdv, 700)
        at_epoch(time, 0, 0.99)

        assert fee_ledger.claimable("alice", [usdv]) == [0]
        assert fee_ledger.claim("alice", [usdv]) == [0]
        assert fee_ledger.stream_of("alice", usdv) is None
        assert fee_ledger.events.of_type(FeeClaimed) == []

    def test_share_vests_from_next_epoch_start(self):
        _, fee_ledger, usdv, time = self.setup_scenario()
        assert fee_ledger.share_of("alice", usdv, 5) == 70

        at_epoch(time, 5, 0.99)
        assert fee_ledger.claimable("alice", [usdv]) == [0]

        observed = []
        for fraction in (0.0, 0.25, 0.5, 0.75):
            at_epoch(time, 6, fraction)
            observed.append(fee_ledger.claimable("alice", [usdv])[0])
        assert observed == [0, 17, 35, 52]

        at_epoch(time, 7)
        assert fee_ledger.claimable("alice", [usdv]) == [70]
        at_epoch(time, 9)
        assert fee_ledger.claimable("alice", [usdv]) == [70]

    def test_claims_pay_increments(self):
        _, fee_ledger, usdv, time = self.setup_scenario()

        at_epoch(time, 6, 0.5)
        assert fee_ledger.claim("alice", [usdv]) == [35]
        assert fee_ledger.claim("alice", [usdv]) == [0]
        checkpoint = fee_ledger.stream_of("alice", usdv)
        assert (checkpoint.epoch, checkpoint.amount, checkpoint.claimed) == (5, 70, 35)

        at_epoch(time, 7)
        assert fee_ledger.claim("alice", [usdv]) == [35]
        assert usdv.balance_of("alice") == 70
        assert fee_ledger.claim("alice", [usdv]) == [0]

        at_epoch(time, 8)
        assert fee_ledger.claim("bob", [usdv]) == [630]
        assert usdv.balance_of(fee_ledger.address) == 0

    def test_claimable_does_not_mutate(self):
        _, fee_ledger, usdv, time = self.setup_scenario()
        at_epoch(time, 6, 0.5)
        fee_ledger.claimable("alice", [usdv])
        assert fee_ledger.stream_of("alice", usdv) is None
        assert usdv.balance_of("alice") == 0


class TestClaimCatchUp:
    """Tests for claims spanning epochs that were never visited."""

    def test_historical_epochs_fully_payable(self):
        lock_ledger, fee_ledger, usdv, time = make_ledgers()
        lock_ledger.lock("alice", 1000, 10)
        for epoch, fee in enumerate((100, 200, 300)):
            at_epoch(time, epoch, 0.5)
            fee_ledger.deposit_fee("treasury", usdv, fee)

        at_epoch(time, 5)
        assert fee_ledger.claim("alice", [usdv]) == [600]
        assert fee_ledger.stream_of("alice", usdv).epoch == 4

    def test_previous_checkpoint_remainder_paid(self):
        lock_ledger, fee_ledger, usdv, time = make_ledgers()
        lock_ledger.lock("alice", 1000, 10)
        fee_ledger.deposit_fee("treasury", usdv, 400)

        at_epoch(time, 1, 0.5)
        assert fee_ledger.claim("alice", [usdv]) == [200]
        at_epoch(time, 3)
        assert fee_ledger.claim("alice", [usdv]) == [200]

    def test_zero_weight_epochs_are_stranded(self):
        lock_ledger, fee_ledger, usdv, time = make_ledgers()
        fee_ledger.deposit_fee("treasury", usdv, 100)
        at_epoch(time, 1)
        lock_ledger.lock("alice", 1000, 5)
        fee_ledger.deposit_fee("treasury", usdv, 100)

        at_epoch(time, 3)
        assert fee_ledger.claim("alice", [usdv]) == [100]
        assert usdv.balance_of(fee_ledger.address) == 100

    def test_weight_changes_after_epoch_do_not_alter_share(self):
        lock_ledger, fee_ledger, usdv, time = make_ledgers()
        lock_ledger.lock("alice", 1000, 4)
        fee_ledger.deposit_fee("treasury", usdv, 1000)

        at_epoch(time, 1, 0.5)
        assert fee_ledger.claim("alice", [usdv]) == [500]
        lock_ledger.lock("bob", 10_000, 4)
        at_epoch(time, 2)
        assert fee_ledger.claim("alice", [usdv]) == [500]


class TestProRata:
    """Tests for splitting an epoch's deposit among lockers."""

    def test_shares_sum_to_deposit_within_rounding(self):
        lock_ledger, fee_ledger, usdv, time = make_ledgers()
        lock_ledger.lock("alice", 1, 1)
        lock_ledger.lock("bob", 2, 1)
        fee_ledger.deposit_fee("treasury", usdv, 100)

        at_epoch(time, 2)
        alice = fee_ledger.claim("alice", [usdv])[0]
        bob = fee_ledger.claim("bob", [usdv])[0]
        assert (alice, bob) == (33, 66)
        assert 0 <= 100 - (alice + bob) < 2

    def test_multiple_tokens_claimed_together(self):
        lock_ledger, fee_ledger, usdv, time = make_ledgers()
        eurv = Token("EURV")
        eurv.mint("treasury", 5000)
        eurv.approve("treasury", fee_ledger.address, 5000)
        lock_ledger.lock("alice", 300, 4)
        lock_ledger.lock("bob", 100, 4)
        fee_ledger.deposit_fee("treasury", usdv, 800)
        fee_ledger.deposit_fee("treasury", eurv, 4000)

        at_epoch(time, 2)
        assert fee_ledger.claim("alice", [usdv, eurv]) == [600, 3000]
        assert [e.token for e in fee_ledger.events.of_type(FeeClaimed)] == ["USDV", "EURV"]

    def test_duplicate_token_paid_once(self):
        lock_ledger, fee_ledger, usdv, time = make_ledgers()
        lock_ledger.lock("alice", 100, 4)
        fee_ledger.deposit_fee("treasury", usdv, 800)

        at_epoch(time, 2)
        assert fee_ledger.claimable("alice", [usdv, usdv]) == [800, 0]
        assert fee_ledger.claim("alice", [usdv, usdv]) == [800, 0]
        assert usdv.balance_of("alice") == 800


class TestSharedGenesis:
    """Both ledgers agree on epoch boundaries."""

    def test_fee_ledger_uses_lock_ledger_clock(self):
        lock_ledger, fee_ledger, usdv, time = make_ledgers()
        assert fee_ledger.genesis == lock_ledger.genesis == GENESIS
        for epoch in (0, 1, 17, 400):
            assert fee_ledger.clock.epoch_start(epoch) == lock_ledger.clock.epoch_start(epoch)

    def test_deposit_epoch_matches_lock_epoch(self):
        lock_ledger, fee_ledger, usdv, time = make_ledgers()
        for timestamp in (GENESIS + WEEK - 1, GENESIS + WEEK, GENESIS + 9 * WEEK + 5):
            time.set(timestamp)
            fee_ledger.deposit_fee("treasury", usdv, 1)
            assert fee_ledger.events.of_type(FeeReceived)[-1].epoch == lock_ledger.current_epoch


class CountingDict(dict):
    """Dict that counts key lookups."""

    def __init__(self, *args):
        super().__init__(*args)
        self.lookups = 0

    def get(self, key, default=None):
        self.lookups += 1
        return super().get(key, default)

    def items(self):
        for item in super().items():
            self.lookups += 1
            yield item


class TestClaimCost:
    """A claim only looks at epochs elapsed since the previous claim."""

    def test_frequent_claims_read_recent_epochs_only(self):
        lock_ledger, fee_ledger, usdv, time = make_ledgers()
        for epoch in range(300):
            at_epoch(time, epoch, 0.5)
            lock_ledger.lock("alice", 1, 1)
            fee_ledger.deposit_fee("treasury", usdv, 10)

        at_epoch(time, 300)
        assert fee_ledger.claim("alice", [usdv]) == [2990]

        at_epoch(time, 300, 0.5)
        lock_ledger.lock("alice", 1, 1)
        fee_ledger.deposit_fee("treasury", usdv, 10)
        at_epoch(time, 301)
        fees = fee_ledger._fees[usdv.address]
        fees._values = CountingDict(fees._values)

        assert fee_ledger.claim("alice", [usdv]) == [10]
        assert fees._values.lookups <= 2


class TestClaimAtomicity:
    """A claim that cannot be paid in full changes nothing."""

    def test_insolvent_token_aborts_whole_claim(self):
        lock_ledger, fee_ledger, usdv, time = make_ledgers()
        eurv = Token("EURV")
        eurv.mint("treasury", 5000)
        eurv.approve("treasury", fee_ledger.address, 5000)
        lock_ledger.lock("alice", 300, 4)
        lock_ledger.lock("bob", 100, 4)
        fee_ledger.deposit_fee("treasury", usdv, 800)
        fee_ledger.deposit_fee("treasury", eurv, 4000)
        # EURV leaves the fee ledger outside of any claim
        eurv.transfer(fee_ledger.address, "mallory", 4000)

        at_epoch(time, 2)
        assert fee_ledger.claimable("alice", [usdv, eurv]) == [600, 3000]
        with pytest.raises(InsufficientBalanceError):
            fee_ledger.claim("alice", [usdv, eurv])

        assert fee_ledger.stream_of("alice", usdv) is None
        assert fee_ledger.stream_of("alice", eurv) is None
        assert usdv.balance_of("alice") == 0
        assert usdv.balance_of(fee_ledger.address) == 800
        assert fee_ledger.events.of_type(FeeClaimed) == []

        assert fee_ledger.claim("alice", [usdv]) == [600]
