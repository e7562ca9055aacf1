"""Exploit/verification harness for the exemplar catalog."""

import json
import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional

from catalog.exemplars.base import Exemplar, Outcome, VulnerabilityKind
from catalog.exemplars.runtime import ComputeBudgetExceeded, ComputeMeter
from catalog.registry import Registry
from catalog.scenarios import AttackScenario, ScenarioTable, default_scenario_table

logger = logging.getLogger(__name__)

DEFAULT_MAX_UNITS = 200_000
DEFAULT_TIMEOUT = 5.0
DEFAULT_WORKERS = 1


class HarnessFatalError(Exception):
    """An error that aborts verification of one exemplar."""

    def __init__(self, kind: VulnerabilityKind, scenario: Optional[str], message: str):
        self.kind = kind
        self.scenario = scenario
        self.message = message
        super().__init__(f"{kind}" + (f" [{scenario}]" if scenario else "") + f": {message}")


class UncontainedFailure(HarnessFatalError):
    """A behaviour raised an exception its exemplar did not declare."""


class BudgetViolation(HarnessFatalError):
    """The secure behaviour exhausted its compute budget."""


class MissingScenario(HarnessFatalError):
    """No attack scenario exists for a registered exemplar."""


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of one scenario against both behaviours of an exemplar."""

    kind: VulnerabilityKind
    scenario: str
    ordinal: int
    vulnerable_outcome: Outcome
    secure_outcome: Outcome
    vulnerable_detail: str = ""
    secure_detail: str = ""
    passed: bool = field(init=False)

    def __post_init__(self):
        object.__setattr__(
            self,
            "passed",
            self.vulnerable_outcome is Outcome.COMPROMISED
            and self.secure_outcome is not Outcome.COMPROMISED,
        )

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "scenario": self.scenario,
            "ordinal": self.ordinal,
            "vulnerable_outcome": self.vulnerable_outcome.value,
            "secure_outcome": self.secure_outcome.value,
            "vulnerable_detail": self.vulnerable_detail,
            "secure_detail": self.secure_detail,
            "passed": self.passed,
        }


@dataclass(frozen=True)
class HarnessFailure:
    """Record of a harness-fatal error; never counted as a result."""

    kind: VulnerabilityKind
    scenario: Optional[str]
    error_type: str
    message: str

    @classmethod
    def from_error(cls, error: HarnessFatalError) -> "HarnessFailure":
        return cls(error.kind, error.scenario, type(error).__name__, error.message)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "scenario": self.scenario,
            "error_type": self.error_type,
            "message": self.message,
        }


@dataclass
class VerificationReport:
    """Aggregated verification results."""

    results: list = field(default_factory=list)
    failures: list = field(default_factory=list)
    exemplars_checked: int = 0
    scenarios_run: int = 0
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failures and all(r.passed for r in self.results)

    @property
    def summary(self) -> dict:
        by_kind = {}
        for result in self.results:
            entry = by_kind.setdefault(result.kind.value, {"passed": 0, "failed": 0, "harness_errors": 0})
            entry["passed" if result.passed else "failed"] += 1
        for failure in self.failures:
            entry = by_kind.setdefault(failure.kind.value, {"passed": 0, "failed": 0, "harness_errors": 0})
            entry["harness_errors"] += 1
        for entry in by_kind.values():
            if entry["harness_errors"]:
                entry["status"] = "error"
            elif entry["failed"]:
                entry["status"] = "failed"
            else:
                entry["status"] = "passed"
        passed = sum(1 for r in self.results if r.passed)
        return {
            "total": len(self.results),
            "passed": passed,
            "failed": len(self.results) - passed,
            "harness_errors": len(self.failures),
            "by_kind": by_kind,
        }

    def to_dict(self) -> dict:
        return {
            "elapsed_seconds": round(self.elapsed, 3),
            "exemplars_checked": self.exemplars_checked,
            "scenarios_run": self.scenarios_run,
            "ok": self.ok,
            "summary": self.summary,
            "results": [r.to_dict() for r in self.results],
            "harness_failures": [f.to_dict() for f in self.failures],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


def _env_number(name: str, cast, default):
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _setting(explicit, name: str, cast, default):
    if explicit is not None:
        return explicit
    return _env_number(name, cast, default)


class VerificationHarness:
    """Runs every attack scenario against the vulnerable and secure behaviours.

    Settings resolve as: explicit argument, then the ``EXEMPLARS_MAX_UNITS`` /
    ``EXEMPLARS_TIMEOUT`` / ``EXEMPLARS_WORKERS`` environment variables, then
    the module defaults.
    """

    def __init__(
        self,
        registry: Registry,
        scenarios: Optional[ScenarioTable] = None,
        max_units: Optional[int] = None,
        timeout: Optional[float] = None,
        workers: Optional[int] = None,
    ):
        self.registry = registry
        self.scenarios = scenarios if scenarios is not None else default_scenario_table()
        self.max_units = _setting(max_units, "EXEMPLARS_MAX_UNITS", int, DEFAULT_MAX_UNITS)
        self.timeout = _setting(timeout, "EXEMPLARS_TIMEOUT", float, DEFAULT_TIMEOUT)
        self.workers = _setting(workers, "EXEMPLARS_WORKERS", int, DEFAULT_WORKERS)
        if self.max_units <= 0 or self.timeout <= 0 or self.workers <= 0:
            raise ValueError("max_units, timeout and workers must be positive")

    def _meter(self, scenario: AttackScenario) -> ComputeMeter:
        return ComputeMeter(max_units=scenario.max_units or self.max_units, timeout=self.timeout)

    def _invoke(self, exemplar: Exemplar, scenario: AttackScenario, vulnerable: bool) -> tuple:
        """Run one behaviour and classify it as (Outcome, detail)."""
        side = "vulnerable" if vulnerable else "secure"
        behavior = exemplar.vulnerable_behavior if vulnerable else exemplar.secure_behavior
        meter = self._meter(scenario)
        try:
            observation = behavior(scenario, meter)
        except ComputeBudgetExceeded as e:
            if vulnerable:
                return Outcome.COMPROMISED, f"compute budget exhausted ({e})"
            raise BudgetViolation(exemplar.kind, scenario.name, f"secure behaviour: {e}") from e
        except exemplar.compromise_failures as e:
            outcome = Outcome.COMPROMISED if vulnerable else Outcome.REJECTED
            return outcome, f"{type(e).__name__}: {e}"
        except exemplar.rejection_failures as e:
            outcome = Outcome.SAFE if vulnerable else Outcome.REJECTED
            return outcome, f"{type(e).__name__}: {e}"
        except Exception as e:
            raise UncontainedFailure(
                exemplar.kind, scenario.name, f"{side} behaviour raised {type(e).__name__}: {e}"
            ) from e

        try:
            succeeded = bool(scenario.success_predicate(observation))
        except Exception as e:
            raise UncontainedFailure(
                exemplar.kind, scenario.name, f"success predicate raised {type(e).__name__}: {e}"
            ) from e
        detail = f"{meter.consumed} units, observed {observation}"
        return (Outcome.COMPROMISED if succeeded else Outcome.SAFE), detail

    def verify_scenario(self, exemplar: Exemplar, scenario: AttackScenario) -> VerificationResult:
        """Verify one scenario; raises HarnessFatalError on harness-fatal errors."""
        vulnerable_outcome, vulnerable_detail = self._invoke(exemplar, scenario, vulnerable=True)
        secure_outcome, secure_detail = self._invoke(exemplar, scenario, vulnerable=False)
        result = VerificationResult(
            kind=exemplar.kind,
            scenario=scenario.name,
            ordinal=scenario.ordinal,
            vulnerable_outcome=vulnerable_outcome,
            secure_outcome=secure_outcome,
            vulnerable_detail=vulnerable_detail,
            secure_detail=secure_detail,
        )
        logger.debug(
            "%s:%s vulnerable=%s secure=%s passed=%s",
            exemplar.kind, scenario.ordinal, vulnerable_outcome, secure_outcome, result.passed,
        )
        return result

    def verify_exemplar(self, exemplar: Exemplar) -> tuple:
        """Verify all scenarios of one exemplar.

        Returns ``(results, failure)``. A harness-fatal error stops the
        exemplar's remaining scenarios; results completed before it are kept.
        """
        results = []
        scenarios = self.scenarios.for_kind(exemplar.kind)
        try:
            if not scenarios:
                raise MissingScenario(exemplar.kind, None, "no attack scenario defined")
            for scenario in scenarios:
                results.append(self.verify_scenario(exemplar, scenario))
        except HarnessFatalError as e:
            logger.error("Harness error: %s", e)
            return results, HarnessFailure.from_error(e)
        return results, None

    def run(self, kinds=None) -> VerificationReport:
        """Verify every registered exemplar (or only ``kinds``) in registration order."""
        start = time.time()
        if kinds is None:
            exemplars = list(self.registry.all())
        else:
            exemplars = [self.registry.get(kind) for kind in kinds]

        if self.workers > 1 and len(exemplars) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                outcomes = list(pool.map(self.verify_exemplar, exemplars))
        else:
            outcomes = [self.verify_exemplar(e) for e in exemplars]

        report = VerificationReport(exemplars_checked=len(exemplars))
        for results, failure in outcomes:
            report.results.extend(results)
            if failure is not None:
                report.failures.append(failure)
        report.scenarios_run = len(report.results)
        report.elapsed = time.time() - start
        logger.info(
            "Verified %d exemplars: %d scenarios, %d harness errors",
            report.exemplars_checked, report.scenarios_run, len(report.failures),
        )
        return report
