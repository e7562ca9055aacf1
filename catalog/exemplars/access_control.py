"""Missing access control on privileged protocol instructions."""

from catalog.exemplars.base import Exemplar, VulnerabilityKind
from catalog.exemplars.runtime import (
    AuthorizationError,
    ContractProgram,
    InvalidInput,
)

MAX_FEE_BPS = 10_000
ADMIN_ROLE = "admin"


class _Protocol(ContractProgram):
    def __init__(self, meter=None):
        super().__init__(meter)
        self.admin = None
        self.fee_bps = 30
        self.roles = {}
        self.accounts = {}

    def initialize(self, admin: str) -> None:
        self.admin = admin
        self.grant_role(admin, ADMIN_ROLE)

    def grant_role(self, member: str, role: str) -> None:
        self.roles.setdefault(role, set()).add(member)

    def has_role(self, member: str, role: str) -> bool:
        return member in self.roles.get(role, ())

    def create_account(self, account_id: str, owner: str, balance: int = 0) -> None:
        if account_id in self.accounts:
            raise InvalidInput(f"account {account_id} already exists")
        self.accounts[account_id] = {"owner": owner, "balance": balance}

    def _account(self, account_id: str) -> dict:
        try:
            return self.accounts[account_id]
        except KeyError:
            raise InvalidInput(f"account {account_id} not found") from None


class VulnerableProtocol(_Protocol):
    def set_fee_percentage(self, caller: str, fee_bps: int) -> None:
        self.meter.consume()
        if fee_bps > MAX_FEE_BPS:  # [source 1]
            raise InvalidInput("fee percentage too high")
        self.fee_bps = fee_bps  # [sink 1]

    def transfer_ownership(self, caller: str, account_id: str, claimed_owner: str, new_owner: str) -> None:
        self.meter.consume()
        account = self._account(account_id)
        # The claimed owner is instruction data, not a signer.
        if account["owner"] != claimed_owner:  # [source 2]
            raise AuthorizationError("not the account owner")
        account["owner"] = new_owner  # [sink 2]


class SecureProtocol(_Protocol):
    def set_fee_percentage(self, caller: str, fee_bps: int) -> None:
        self.meter.consume()
        if not self.has_role(caller, ADMIN_ROLE):
            raise AuthorizationError("only admin can change fee percentage")
        if fee_bps > MAX_FEE_BPS:
            raise InvalidInput("fee percentage too high")
        self.fee_bps = fee_bps

    def transfer_ownership(self, caller: str, account_id: str, claimed_owner: str, new_owner: str) -> None:
        self.meter.consume()
        account = self._account(account_id)
        if caller != claimed_owner or account["owner"] != caller:
            raise AuthorizationError("caller does not own the account")
        account["owner"] = new_owner


class AccessControlExemplar(Exemplar):
    kind = VulnerabilityKind.ACCESS_CONTROL
    name = "Access Control Vulnerability"
    description = (
        "Privileged instructions do not verify who is calling them, so any user can "
        "change protocol parameters, move funds or take over other users' accounts."
    )
    platforms = ("Solana", "NEAR", "Polkadot", "All Rust-based contracts")
    detection_methods = (
        "List privileged instructions and check each for an authority check",
        "Look for sensitive operations that never verify a signer",
        "Review account validation in instructions that modify state",
        "Check that ownership is enforced on cross-program operations",
    )
    remediation = (
        "Verify the signer of every sensitive instruction",
        "Use a well-defined role-based access control scheme",
        "Check the stored admin authority in every admin instruction",
        "Consider time-locks for critical parameter changes",
    )
    vulnerable_program = VulnerableProtocol
    secure_program = SecureProtocol
    rejection_failures = (AuthorizationError, InvalidInput)
