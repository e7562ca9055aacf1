"""Base class for vulnerability exemplars."""

import copy
import enum
import inspect
import re

from catalog.annotations import SourceSinkAnnotation, collect_annotations
from catalog.exemplars.runtime import ComputeMeter, ContractProgram


class VulnerabilityKind(str, enum.Enum):
    """The vulnerability categories covered by the catalog."""

    REENTRANCY = "Reentrancy"
    INTEGER_OVERFLOW = "IntegerOverflow"
    UNCHECKED_INPUT = "UncheckedInput"
    ORACLE_MANIPULATION = "OracleManipulation"
    ACCESS_CONTROL = "AccessControl"
    DENIAL_OF_SERVICE = "DenialOfService"
    ILLICIT_FEE_COLLECTION = "IllicitFeeCollection"
    FLASH_LOAN = "FlashLoan"
    LOGIC_ERROR = "LogicError"
    RANDOM_MANIPULATION = "RandomManipulation"
    SIGNATURE_VERIFICATION = "SignatureVerification"
    ACCOUNT_CONFUSION = "AccountConfusion"
    FRONT_RUNNING = "FrontRunning"
    INADEQUATE_EVENTS = "InadequateEvents"
    STORAGE_MANAGEMENT = "StorageManagement"

    def __str__(self) -> str:
        return self.value

    @property
    def slug(self) -> str:
        """Kebab-case name, e.g. ``integer-overflow``."""
        return re.sub(r"(?<!^)(?=[A-Z])", "-", self.value).lower()

    @classmethod
    def parse(cls, text) -> "VulnerabilityKind":
        """Resolve a kind from its value, member name, slug or short alias."""
        if isinstance(text, cls):
            return text
        key = str(text).strip()
        lowered = key.lower().replace("_", "-")
        for kind in cls:
            if key == kind.value or key.upper() == kind.name or lowered in (kind.slug, kind.value.lower()):
                return kind
        if lowered in KIND_ALIASES:
            return KIND_ALIASES[lowered]
        raise ValueError(f"Unknown vulnerability kind: {text!r}")


KIND_ALIASES = {
    "reentrancy": VulnerabilityKind.REENTRANCY,
    "overflow": VulnerabilityKind.INTEGER_OVERFLOW,
    "unchecked": VulnerabilityKind.UNCHECKED_INPUT,
    "oracle": VulnerabilityKind.ORACLE_MANIPULATION,
    "access": VulnerabilityKind.ACCESS_CONTROL,
    "dos": VulnerabilityKind.DENIAL_OF_SERVICE,
    "fee": VulnerabilityKind.ILLICIT_FEE_COLLECTION,
    "flash": VulnerabilityKind.FLASH_LOAN,
    "logic": VulnerabilityKind.LOGIC_ERROR,
    "random": VulnerabilityKind.RANDOM_MANIPULATION,
    "signature": VulnerabilityKind.SIGNATURE_VERIFICATION,
    "confusion": VulnerabilityKind.ACCOUNT_CONFUSION,
    "frontrun": VulnerabilityKind.FRONT_RUNNING,
    "events": VulnerabilityKind.INADEQUATE_EVENTS,
    "storage": VulnerabilityKind.STORAGE_MANAGEMENT,
}


class Outcome(str, enum.Enum):
    """How one behaviour fared against an attack scenario."""

    COMPROMISED = "Compromised"
    SAFE = "Safe"
    REJECTED = "Rejected"

    def __str__(self) -> str:
        return self.value

    @property
    def is_compromised(self) -> bool:
        return self is Outcome.COMPROMISED


class Exemplar:
    """A vulnerable/secure program pair for one vulnerability kind.

    Subclasses set the class attributes; instances are immutable once
    constructed.
    """

    kind: VulnerabilityKind = None
    name: str = ""
    description: str = ""
    platforms: tuple = ()
    detection_methods: tuple = ()
    remediation: tuple = ()
    vulnerable_program: type = ContractProgram
    secure_program: type = ContractProgram
    # Uncontrolled failures that are the flaw itself on the vulnerable path.
    compromise_failures: tuple = ()
    # Controlled refusals of the attack; Safe when the vulnerable path raises them.
    rejection_failures: tuple = ()

    @property
    def contained_failures(self) -> tuple:
        """Every contract error the harness turns into an outcome."""
        return tuple(self.compromise_failures) + tuple(self.rejection_failures)

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __delattr__(self, name):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} kind={self.kind}>"

    def vulnerable_behavior(self, scenario, meter: ComputeMeter) -> dict:
        """Run ``scenario`` against a fresh vulnerable program."""
        return self._drive(self.vulnerable_program, scenario, meter)

    def secure_behavior(self, scenario, meter: ComputeMeter) -> dict:
        """Run ``scenario`` against a fresh secure program."""
        return self._drive(self.secure_program, scenario, meter)

    @staticmethod
    def _drive(program_cls, scenario, meter: ComputeMeter) -> dict:
        program = program_cls(meter)
        observation = scenario.action(program, copy.deepcopy(dict(scenario.setup)))
        meter.check_deadline()
        return observation

    def annotations(self) -> tuple[SourceSinkAnnotation, ...]:
        """Source/sink pairs marked in the module of the vulnerable program."""
        return collect_annotations(inspect.getsourcefile(self.vulnerable_program))

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "name": self.name,
            "description": self.description,
            "platforms": list(self.platforms),
            "detection_methods": list(self.detection_methods),
            "remediation": list(self.remediation),
            "contained_failures": [exc.__name__ for exc in self.contained_failures],
            "compromise_failures": [exc.__name__ for exc in self.compromise_failures],
            "rejection_failures": [exc.__name__ for exc in self.rejection_failures],
            "annotations": [a.to_dict() for a in self.annotations()],
        }
