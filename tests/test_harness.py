"""Tests for the exploit/verification harness."""

import json
import os
import sys
import time

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from catalog.exemplars import Outcome, VulnerabilityKind
from catalog.exemplars.access_control import AccessControlExemplar, SecureProtocol, VulnerableProtocol
from catalog.exemplars.overflow import IntegerOverflowExemplar, SecureToken
from catalog.exemplars.reentrancy import ReentrancyExemplar
from catalog.exemplars.runtime import ContractProgram
from catalog.registry import Registry, build_registry
from catalog.scenarios import AttackScenario, ScenarioTable, default_scenario_table
from harness.engine import (
    DEFAULT_MAX_UNITS,
    HarnessFailure,
    VerificationHarness,
    VerificationReport,
    VerificationResult,
)


class BrokenSecureAccessControl(AccessControlExemplar):
    """Secure side accidentally ships the vulnerable program."""

    secure_program = VulnerableProtocol


class AlreadyFixedAccessControl(AccessControlExemplar):
    """Vulnerable side accidentally ships the secure program."""

    vulnerable_program = SecureProtocol


class AlreadyFixedOverflow(IntegerOverflowExemplar):
    vulnerable_program = SecureToken


class CrashingProgram(ContractProgram):
    def add_tokens(self, account, amount):
        raise RuntimeError("unexpected crash")

    def open_account(self, account, balance=0):
        pass


class UndeclaredFailureOverflow(IntegerOverflowExemplar):
    """Secure side raises an exception nobody declared."""

    secure_program = CrashingProgram


class SpinningProgram(SecureToken):
    def add_tokens(self, account, amount):
        while True:
            self.meter.consume()


class SpinningSecureOverflow(IntegerOverflowExemplar):
    secure_program = SpinningProgram


def registry_of(*exemplars):
    registry = Registry()
    for exemplar in exemplars:
        registry.register(exemplar)
    registry.freeze()
    return registry


class TestVerificationResult:
    """passed is derived from the two outcomes."""

    @pytest.mark.parametrize("vulnerable,secure,passed", [
        (Outcome.COMPROMISED, Outcome.SAFE, True),
        (Outcome.COMPROMISED, Outcome.REJECTED, True),
        (Outcome.COMPROMISED, Outcome.COMPROMISED, False),
        (Outcome.SAFE, Outcome.SAFE, False),
        (Outcome.REJECTED, Outcome.REJECTED, False),
    ])
    def test_passed(self, vulnerable, secure, passed):
        result = VerificationResult(VulnerabilityKind.REENTRANCY, "s", 1, vulnerable, secure)
        assert result.passed is passed

    def test_passed_not_settable(self):
        with pytest.raises(TypeError):
            VerificationResult(VulnerabilityKind.REENTRANCY, "s", 1, Outcome.SAFE, Outcome.SAFE, passed=True)


class TestHarness:
    """Classification and error containment."""

    def test_full_catalog_verifies(self):
        report = VerificationHarness(build_registry()).run()
        assert report.ok, report.to_json()
        assert report.exemplars_checked == 15
        assert report.scenarios_run == len(default_scenario_table())
        assert report.summary["harness_errors"] == 0

    def test_broken_secure_is_failed_result_not_crash(self):
        harness = VerificationHarness(registry_of(BrokenSecureAccessControl()))
        report = harness.run()
        first = report.results[0]
        assert first.secure_outcome is Outcome.COMPROMISED
        assert first.passed is False
        assert report.failures == []
        assert not report.ok
        assert report.summary["by_kind"]["AccessControl"]["status"] == "failed"

    def test_already_safe_vulnerable_is_failed_result(self):
        """A vulnerable program that refuses the attack does not count as compromised."""
        report = VerificationHarness(registry_of(AlreadyFixedAccessControl())).run()
        assert len(report.results) == 2
        for result in report.results:
            assert result.vulnerable_outcome is Outcome.SAFE
            assert "AuthorizationError" in result.vulnerable_detail
            assert result.secure_outcome is Outcome.REJECTED
            assert result.passed is False
        assert report.failures == []
        assert report.summary["by_kind"]["AccessControl"]["status"] == "failed"

    def test_rejection_on_vulnerable_side_is_safe(self):
        harness = VerificationHarness(registry_of(AlreadyFixedOverflow()))
        result = harness.verify_scenario(AlreadyFixedOverflow(), default_scenario_table().get("IntegerOverflow", 2))
        assert result.vulnerable_outcome is Outcome.SAFE
        assert "InsufficientFunds" in result.vulnerable_detail
        assert result.passed is False

    def test_compromise_failure_on_secure_side_is_rejected(self):
        result = VerificationHarness(build_registry()).verify_scenario(
            IntegerOverflowExemplar(), default_scenario_table().get("IntegerOverflow", 1)
        )
        assert result.secure_outcome is Outcome.REJECTED
        assert "ArithmeticOverflow" in result.secure_detail

    def test_unmetered_overrun_is_budget_exhaustion(self):
        """Work that never consumes units still hits the deadline once it returns."""

        def stall(program, setup):
            time.sleep(0.05)
            return {}

        table = ScenarioTable([
            AttackScenario(VulnerabilityKind.REENTRANCY, 1, "stall", {}, stall, lambda obs: False),
        ])
        harness = VerificationHarness(registry_of(ReentrancyExemplar()), table, timeout=0.01)
        outcome, detail = harness._invoke(ReentrancyExemplar(), table.get("reentrancy"), vulnerable=True)
        assert outcome is Outcome.COMPROMISED
        assert "deadline" in detail
        results, failure = harness.verify_exemplar(ReentrancyExemplar())
        assert results == []
        assert failure.error_type == "BudgetViolation"

    def test_uncontained_failure_is_harness_error(self):
        """An undeclared exception is a harness error and other exemplars still verify."""
        harness = VerificationHarness(registry_of(UndeclaredFailureOverflow(), ReentrancyExemplar()))
        report = harness.run()
        assert len(report.failures) == 1
        failure = report.failures[0]
        assert failure.error_type == "UncontainedFailure"
        assert failure.kind is VulnerabilityKind.INTEGER_OVERFLOW
        assert "RuntimeError" in failure.message
        assert [r.kind for r in report.results] == [VulnerabilityKind.REENTRANCY]
        assert report.results[0].passed

    def test_secure_budget_violation(self):
        harness = VerificationHarness(registry_of(SpinningSecureOverflow()), max_units=500)
        results, failure = harness.verify_exemplar(SpinningSecureOverflow())
        assert results == []
        assert failure.error_type == "BudgetViolation"

    def test_fatal_error_keeps_completed_scenarios(self):
        table = default_scenario_table()

        def explode(program, setup):
            raise KeyError("not declared")

        broken = AttackScenario(VulnerabilityKind.INTEGER_OVERFLOW, 2, "explodes", {}, explode, lambda o: True)
        table.add(broken)
        harness = VerificationHarness(registry_of(IntegerOverflowExemplar()), table)
        results, failure = harness.verify_exemplar(IntegerOverflowExemplar())
        assert len(results) == 1
        assert failure.scenario == "explodes"

    def test_predicate_error_is_uncontained(self):
        table = ScenarioTable([
            AttackScenario(VulnerabilityKind.REENTRANCY, 1, "bad-predicate", {},
                           lambda program, setup: {}, lambda obs: obs["missing"]),
        ])
        report = VerificationHarness(registry_of(ReentrancyExemplar()), table).run()
        assert report.failures[0].error_type == "UncontainedFailure"
        assert "predicate" in report.failures[0].message

    def test_missing_scenario(self):
        table = ScenarioTable(default_scenario_table().for_kind("reentrancy"))
        registry = registry_of(ReentrancyExemplar(), IntegerOverflowExemplar())
        report = VerificationHarness(registry, table).run()
        assert len(report.results) == 1
        assert report.failures[0].error_type == "MissingScenario"
        assert report.summary["by_kind"]["IntegerOverflow"]["status"] == "error"

    def test_run_selected_kinds(self):
        report = VerificationHarness(build_registry()).run(kinds=["overflow", "dos"])
        assert report.exemplars_checked == 2
        assert {r.kind for r in report.results} == {
            VulnerabilityKind.INTEGER_OVERFLOW, VulnerabilityKind.DENIAL_OF_SERVICE,
        }

    def test_workers_keep_registration_order(self):
        registry = build_registry()
        serial = VerificationHarness(registry, workers=1).run()
        parallel = VerificationHarness(registry, workers=4).run()
        assert [(r.kind, r.ordinal) for r in parallel.results] == [(r.kind, r.ordinal) for r in serial.results]
        assert parallel.ok


class TestConfiguration:
    """Settings resolve from arguments, then environment, then defaults."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("EXEMPLARS_MAX_UNITS", raising=False)
        harness = VerificationHarness(build_registry())
        assert harness.max_units == DEFAULT_MAX_UNITS

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("EXEMPLARS_MAX_UNITS", "1234")
        monkeypatch.setenv("EXEMPLARS_WORKERS", "3")
        harness = VerificationHarness(build_registry())
        assert harness.max_units == 1234
        assert harness.workers == 3

    def test_argument_beats_environment(self, monkeypatch):
        monkeypatch.setenv("EXEMPLARS_MAX_UNITS", "1234")
        assert VerificationHarness(build_registry(), max_units=99).max_units == 99

    @pytest.mark.parametrize("setting", ["max_units", "timeout", "workers"])
    def test_explicit_zero_is_rejected(self, monkeypatch, setting):
        monkeypatch.setenv("EXEMPLARS_MAX_UNITS", "1234")
        with pytest.raises(ValueError):
            VerificationHarness(build_registry(), **{setting: 0})

    def test_bad_environment_value(self, monkeypatch):
        monkeypatch.setenv("EXEMPLARS_TIMEOUT", "soon")
        with pytest.raises(ValueError):
            VerificationHarness(build_registry())


class TestScenarioOverrides:
    """Structured overrides of scenario setups."""

    def test_override_changes_setup(self):
        table = default_scenario_table().with_overrides({"IntegerOverflow:1": {"deposit": 5}})
        assert table.get("IntegerOverflow", 1).setup["deposit"] == 5
        assert default_scenario_table().get("IntegerOverflow", 1).setup["deposit"] == 1

    def test_kind_override_applies_to_all(self):
        table = default_scenario_table().with_overrides({"overflow": {"balance": 7}})
        assert all(s.setup["balance"] == 7 for s in table.for_kind("IntegerOverflow"))

    def test_override_can_defeat_attack(self):
        """With a small balance the overflow scenario no longer compromises anything."""
        table = default_scenario_table().with_overrides({"IntegerOverflow:1": {"balance": 10}})
        report = VerificationHarness(build_registry(), table).run(kinds=["IntegerOverflow"])
        first = report.results[0]
        assert first.vulnerable_outcome is Outcome.SAFE
        assert not first.passed

    @pytest.mark.parametrize("key", ["NoSuchKind", "IntegerOverflow:9", "IntegerOverflow:x"])
    def test_unknown_key(self, key):
        with pytest.raises(ValueError):
            default_scenario_table().with_overrides({key: {}})

    def test_load_overrides(self, tmp_path):
        path = tmp_path / "overrides.json"
        path.write_text(json.dumps({"AccessControl:1": {"new_fee": 9000}}))
        table = default_scenario_table().load_overrides(path)
        assert table.get("access", 1).setup["new_fee"] == 9000


class TestReportModel:
    """Serialisation of the aggregate report."""

    def test_to_dict(self):
        report = VerificationReport(
            results=[VerificationResult(VulnerabilityKind.FLASH_LOAN, "s", 1, Outcome.COMPROMISED, Outcome.REJECTED)],
            failures=[HarnessFailure(VulnerabilityKind.REENTRANCY, None, "MissingScenario", "none")],
            exemplars_checked=2,
            scenarios_run=1,
        )
        data = json.loads(report.to_json())
        assert data["summary"]["passed"] == 1
        assert data["summary"]["harness_errors"] == 1
        assert data["results"][0]["secure_outcome"] == "Rejected"
        assert data["harness_failures"][0]["error_type"] == "MissingScenario"
        assert data["ok"] is False
