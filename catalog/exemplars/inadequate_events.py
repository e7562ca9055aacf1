"""Inadequate event emission for treasury and admin operations."""

from catalog.exemplars.base import Exemplar, VulnerabilityKind
from catalog.exemplars.runtime import (
    AuthorizationError,
    ContractProgram,
    InsufficientFunds,
    checked_add,
)


class _Treasury(ContractProgram):
    def __init__(self, meter=None):
        super().__init__(meter)
        self.admin = None
        self.treasury = 0
        self.wallets = {}
        self.events = []

    def initialize(self, admin: str, treasury: int) -> None:
        self.admin = admin
        self.treasury = treasury
        self.emit("Initialized", admin=admin, treasury=treasury)

    def emit(self, name: str, **fields) -> None:
        self.events.append({"event": name, **fields})

    def _require_admin(self, caller: str) -> None:
        if caller != self.admin:
            raise AuthorizationError("unauthorized")

    def _pay(self, recipient: str, amount: int) -> None:
        if amount > self.treasury:
            raise InsufficientFunds("insufficient funds")
        self.treasury -= amount
        self.wallets[recipient] = checked_add(self.wallets.get(recipient, 0), amount)


class VulnerableTreasury(_Treasury):
    def withdraw_treasury(self, caller: str, recipient: str, amount: int) -> None:
        self.meter.consume()
        self._require_admin(caller)
        self._pay(recipient, amount)  # [source 1] [sink 1]

    def change_admin(self, caller: str, new_admin: str) -> None:
        self.meter.consume()
        self._require_admin(caller)
        self.admin = new_admin  # [source 2] [sink 2]


class SecureTreasury(_Treasury):
    def withdraw_treasury(self, caller: str, recipient: str, amount: int) -> None:
        self.meter.consume()
        self._require_admin(caller)
        before = self.treasury
        self._pay(recipient, amount)
        self.emit(
            "TreasuryWithdrawal",
            authority=caller,
            recipient=recipient,
            amount=amount,
            balance_before=before,
            balance_after=self.treasury,
        )

    def change_admin(self, caller: str, new_admin: str) -> None:
        self.meter.consume()
        self._require_admin(caller)
        previous = self.admin
        self.admin = new_admin
        self.emit("AdminChanged", previous_admin=previous, new_admin=new_admin, changed_by=caller)


def monitor(events: list) -> dict:
    """What an off-chain indexer learns from the event log."""
    withdrawn = sum(e["amount"] for e in events if e["event"] == "TreasuryWithdrawal")
    admin_changes = [e for e in events if e["event"] == "AdminChanged"]
    return {"withdrawn": withdrawn, "admin_changes": len(admin_changes)}


class InadequateEventsExemplar(Exemplar):
    kind = VulnerabilityKind.INADEQUATE_EVENTS
    name = "Inadequate Event Emissions Vulnerability"
    description = (
        "Critical state changes happen without events, so off-chain monitoring never "
        "sees them. A compromised key can drain funds or hand over control while "
        "indexers and alerting stay silent."
    )
    platforms = ("Solana", "NEAR", "Polkadot", "CosmWasm")
    detection_methods = (
        "List critical state changes and check each emits an event",
        "Check role and authority changes emit detailed events",
        "Verify deposits, withdrawals and transfers are logged",
        "Check events carry enough context for monitoring",
    )
    remediation = (
        "Emit events for all critical state changes",
        "Include actors, amounts and before/after state in events",
        "Use a consistent event structure for similar operations",
    )
    vulnerable_program = VulnerableTreasury
    secure_program = SecureTreasury
    rejection_failures = (AuthorizationError, InsufficientFunds)
