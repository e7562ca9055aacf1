"""Vulnerable/secure exemplar programs, one module per vulnerability kind."""

from catalog.exemplars.base import Exemplar, Outcome, VulnerabilityKind
from catalog.exemplars.reentrancy import ReentrancyExemplar
from catalog.exemplars.overflow import IntegerOverflowExemplar
from catalog.exemplars.unchecked_inputs import UncheckedInputExemplar
from catalog.exemplars.oracle_manipulation import OracleManipulationExemplar
from catalog.exemplars.access_control import AccessControlExemplar
from catalog.exemplars.denial_of_service import DenialOfServiceExemplar
from catalog.exemplars.illicit_fee_collection import IllicitFeeCollectionExemplar
from catalog.exemplars.flash_loan import FlashLoanExemplar
from catalog.exemplars.logic_errors import LogicErrorExemplar
from catalog.exemplars.random_manipulation import RandomManipulationExemplar
from catalog.exemplars.signature_verification import SignatureVerificationExemplar
from catalog.exemplars.account_confusion import AccountConfusionExemplar
from catalog.exemplars.front_running import FrontRunningExemplar
from catalog.exemplars.inadequate_events import InadequateEventsExemplar
from catalog.exemplars.storage_management import StorageManagementExemplar

ALL_EXEMPLARS = [
    ReentrancyExemplar,
    IntegerOverflowExemplar,
    UncheckedInputExemplar,
    OracleManipulationExemplar,
    AccessControlExemplar,
    DenialOfServiceExemplar,
    IllicitFeeCollectionExemplar,
    FlashLoanExemplar,
    LogicErrorExemplar,
    RandomManipulationExemplar,
    SignatureVerificationExemplar,
    AccountConfusionExemplar,
    FrontRunningExemplar,
    InadequateEventsExemplar,
    StorageManagementExemplar,
]

__all__ = [
    "Exemplar",
    "Outcome",
    "VulnerabilityKind",
    "ALL_EXEMPLARS",
    "ReentrancyExemplar",
    "IntegerOverflowExemplar",
    "UncheckedInputExemplar",
    "OracleManipulationExemplar",
    "AccessControlExemplar",
    "DenialOfServiceExemplar",
    "IllicitFeeCollectionExemplar",
    "FlashLoanExemplar",
    "LogicErrorExemplar",
    "RandomManipulationExemplar",
    "SignatureVerificationExemplar",
    "AccountConfusionExemplar",
    "FrontRunningExemplar",
    "InadequateEventsExemplar",
    "StorageManagementExemplar",
]
