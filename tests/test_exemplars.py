"""Tests for the exemplar programs against their attack scenarios.

Each default scenario must:
  - Compromise the vulnerable program
  - Leave the secure program Safe or Rejected
"""

import os
import sys
import time

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from catalog.exemplars import Outcome
from catalog.exemplars.runtime import (
    U64_MAX,
    ArithmeticOverflow,
    AuthorizationError,
    BoundsViolation,
    ComputeBudgetExceeded,
    ComputeMeter,
    InvalidInput,
    InvalidState,
    checked_add,
    wrapping_add,
    wrapping_sub,
)
from catalog.registry import build_registry
from catalog.scenarios import default_scenario_table
from harness.engine import VerificationHarness

REGISTRY = build_registry()
TABLE = default_scenario_table()


def run_scenario(kind, ordinal=1):
    harness = VerificationHarness(REGISTRY, TABLE)
    return harness.verify_scenario(REGISTRY.get(kind), TABLE.get(kind, ordinal))


class TestRuntime:
    """u64 arithmetic and the compute meter."""

    def test_wrapping(self):
        assert wrapping_add(U64_MAX, 1) == 0
        assert wrapping_sub(0, 1) == U64_MAX

    def test_checked(self):
        with pytest.raises(ArithmeticOverflow):
            checked_add(U64_MAX, 1)

    def test_out_of_range_operand(self):
        with pytest.raises(InvalidInput):
            wrapping_add(-1, 1)

    def test_meter_units(self):
        meter = ComputeMeter(max_units=3)
        meter.consume(3)
        assert meter.remaining == 0
        with pytest.raises(ComputeBudgetExceeded):
            meter.consume()

    def test_meter_deadline_without_units(self):
        meter = ComputeMeter(timeout=0.001)
        time.sleep(0.01)
        with pytest.raises(ComputeBudgetExceeded, match="deadline"):
            meter.check_deadline()
        assert meter.consumed == 0

    def test_meter_unbounded(self):
        meter = ComputeMeter.unbounded()
        meter.consume(10_000)
        assert meter.remaining is None
        assert meter.consumed == 10_000


class TestDefaultScenarios:
    """Every default scenario separates the vulnerable and secure programs."""

    def test_every_kind_covered(self):
        assert set(TABLE.kinds()) == set(REGISTRY.kinds())

    @pytest.mark.parametrize("scenario", list(TABLE), ids=lambda s: f"{s.kind}:{s.ordinal}")
    def test_scenario_passes(self, scenario):
        harness = VerificationHarness(REGISTRY, TABLE)
        result = harness.verify_scenario(REGISTRY.get(scenario.kind), scenario)
        assert result.vulnerable_outcome is Outcome.COMPROMISED, result.vulnerable_detail
        assert result.secure_outcome is not Outcome.COMPROMISED, result.secure_detail
        assert result.passed


class TestKnownOutcomes:
    """Outcomes of specific scenarios."""

    def test_overflow_at_max_balance(self):
        result = run_scenario("IntegerOverflow", 1)
        assert result.vulnerable_outcome is Outcome.COMPROMISED
        assert result.secure_outcome is Outcome.REJECTED
        assert "ArithmeticOverflow" in result.secure_detail

    def test_access_control_fee_change(self):
        result = run_scenario("AccessControl", 1)
        assert result.vulnerable_outcome is Outcome.COMPROMISED
        assert result.secure_outcome is Outcome.REJECTED
        assert "AuthorizationError" in result.secure_detail

    def test_dos_refund_loop_hits_budget(self):
        """The unbounded refund loop is cut off by the compute budget."""
        result = run_scenario("DenialOfService", 1)
        assert result.vulnerable_outcome is Outcome.COMPROMISED
        assert "compute budget exhausted" in result.vulnerable_detail
        assert result.secure_outcome is Outcome.SAFE

    def test_repeated_reward_claim_secure_is_safe(self):
        result = run_scenario("LogicError", 3)
        assert result.secure_outcome is Outcome.SAFE

    def test_front_running_secure_is_safe(self):
        result = run_scenario("FrontRunning", 1)
        assert result.secure_outcome is Outcome.SAFE

    def test_storage_capacity_rejected(self):
        result = run_scenario("StorageManagement", 2)
        assert result.secure_outcome is Outcome.REJECTED
        assert "BoundsViolation" in result.secure_detail


class TestPrograms:
    """Direct checks on individual programs."""

    def test_sandwich_profit(self):
        from catalog.scenarios.defaults import sandwich_attack
        from catalog.exemplars.front_running import VulnerableExchange

        obs = sandwich_attack(VulnerableExchange(), dict(TABLE.get("FrontRunning").setup))
        assert obs["attacker_profit"] == 18032
        assert obs["victim_received"] == 75757

    def test_reentrancy_double_withdrawal(self):
        from catalog.scenarios.defaults import reentrant_withdrawal
        from catalog.exemplars.reentrancy import VulnerableVault

        obs = reentrant_withdrawal(VulnerableVault(), {"deposit": 100, "vault_reserves": 1000, "reentries": 1})
        assert obs["withdrawn"] == 200

    def test_secure_vault_blocks_reentry(self):
        from catalog.scenarios.defaults import reentrant_withdrawal
        from catalog.exemplars.reentrancy import SecureVault

        with pytest.raises(InvalidState):
            reentrant_withdrawal(SecureVault(), {"deposit": 100, "vault_reserves": 1000, "reentries": 1})

    def test_secure_vault_plain_withdrawal(self):
        from catalog.exemplars.reentrancy import SecureVault

        vault = SecureVault()
        vault.deposit("alice", 50)
        vault.withdraw("alice", 50)
        assert vault.balances["alice"] == 0
        assert vault.paid_out["alice"] == 50

    def test_fee_underflow_wraps(self):
        from catalog.exemplars.overflow import VulnerableToken

        token = VulnerableToken()
        token.open_account("a", 1000)
        assert token.remove_tokens("a", 1000) == U64_MAX - 9

    def test_secure_lottery_rejects_bad_reveal(self):
        from catalog.exemplars.random_manipulation import SecureLottery, commitment_for

        lottery = SecureLottery()
        lottery_id = lottery.open_lottery(["a", "b"], commitment_for(b"\x01", b"\x02"))
        with pytest.raises(AuthorizationError):
            lottery.draw_winner(lottery_id, {"seed": "03", "salt": "02"})
        assert lottery.draw_winner(lottery_id, {"seed": "01", "salt": "02"}) == "b"

    def test_storage_capacity(self):
        from catalog.exemplars.storage_management import SecureStorageProgram, capacity

        program = SecureStorageProgram()
        program.allocate("d", 48)
        for value in range(capacity(48)):
            program.append_item("d", value)
        assert program.read_items("d") == [0, 1, 2, 3]
        with pytest.raises(BoundsViolation):
            program.append_item("d", 99)

    def test_signed_transfer_with_nonce(self):
        from catalog.exemplars.signature_verification import SecureSignedTransfers, sign_payload

        program = SecureSignedTransfers()
        program.register_account("alice", b"k", 100)
        program.register_account("bob", b"j")
        for nonce in range(2):
            sig = sign_payload(b"k", program.signing_payload("alice", "bob", 10, nonce))
            program.transfer("alice", "bob", 10, nonce, sig)
        assert program.balances["bob"] == 20
        assert program.nonces["alice"] == 2

    def test_dos_secure_pull_refund(self):
        from catalog.exemplars.denial_of_service import SecureAuction

        auction = SecureAuction()
        auction.place_bid("alice", 10)
        auction.place_bid("bob", 20)
        auction.end_auction()
        assert auction.winner == "bob"
        assert auction.claim_refund("alice") == 10
        with pytest.raises(InvalidInput):
            auction.claim_refund("alice")

    def test_dos_refund_batch_skips_rejecting_receiver(self):
        from catalog.exemplars.denial_of_service import SecureAuction

        auction = SecureAuction()
        for bidder, amount in (("alice", 10), ("mallory", 15), ("bob", 20)):
            auction.place_bid(bidder, amount)
        auction.reject_refunds("mallory")
        auction.end_auction()
        assert auction.process_refund_batch() == 2
        assert auction.pending_refunds == {"mallory": 15}
        assert auction.refunded == {"alice": 10}

    def test_fee_changes_require_fee_admin(self):
        from catalog.exemplars.illicit_fee_collection import SecureSwapPool

        pool = SecureSwapPool()
        pool.initialize("treasury", 1000, 1000)
        with pytest.raises(AuthorizationError):
            pool.set_fee("attacker", 10)
        with pytest.raises(InvalidInput):
            pool.set_fee("treasury", 500)
        pool.set_fee("treasury", 50)
        assert pool.fee_bps == 50
