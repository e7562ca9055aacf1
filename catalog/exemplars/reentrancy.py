"""Reentrancy: a withdrawal that pays out before it records the debit."""

from catalog.exemplars.base import Exemplar, VulnerabilityKind
from catalog.exemplars.runtime import (
    ContractProgram,
    InsufficientFunds,
    InvalidState,
    checked_add,
    checked_sub,
)


class _Vault(ContractProgram):
    """Shared vault state: per-owner balances plus the tokens held in reserve."""

    def __init__(self, meter=None):
        super().__init__(meter)
        self.balances = {}
        self.reserves = 0
        self.paid_out = {}
        self.receivers = {}

    def fund_reserves(self, amount: int) -> None:
        self.reserves = checked_add(self.reserves, amount)

    def deposit(self, owner: str, amount: int) -> None:
        self.meter.consume()
        self.balances[owner] = checked_add(self.balances.get(owner, 0), amount)
        self.reserves = checked_add(self.reserves, amount)

    def set_receiver(self, owner: str, callback) -> None:
        """Install the program invoked when ``owner`` receives tokens (a CPI target)."""
        self.receivers[owner] = callback

    def _transfer_out(self, owner: str, amount: int) -> None:
        if self.reserves < amount:
            raise InsufficientFunds("vault reserves exhausted")
        self.reserves -= amount
        self.paid_out[owner] = self.paid_out.get(owner, 0) + amount
        callback = self.receivers.get(owner)
        if callback is not None:
            callback(self, amount)


class VulnerableVault(_Vault):
    def withdraw(self, owner: str, amount: int) -> None:
        self.meter.consume()
        balance = self.balances.get(owner, 0)  # [source]
        if balance < amount:
            raise InsufficientFunds(f"{owner} holds {balance}, asked for {amount}")
        self._transfer_out(owner, amount)
        self.balances[owner] = balance - amount  # [sink]


class SecureVault(_Vault):
    def __init__(self, meter=None):
        super().__init__(meter)
        self._locked = False

    def withdraw(self, owner: str, amount: int) -> None:
        self.meter.consume()
        if self._locked:
            raise InvalidState("reentrant call detected")
        self._locked = True
        try:
            balance = self.balances.get(owner, 0)
            if balance < amount:
                raise InsufficientFunds(f"{owner} holds {balance}, asked for {amount}")
            self.balances[owner] = checked_sub(balance, amount)
            self._transfer_out(owner, amount)
        finally:
            self._locked = False


class ReentrancyExemplar(Exemplar):
    kind = VulnerabilityKind.REENTRANCY
    name = "Reentrancy Vulnerability"
    description = (
        "A program function is re-entered before its first invocation finishes, "
        "so the nested call observes state the outer call has not yet updated. "
        "In Rust contracts this usually happens through cross-program invocation."
    )
    platforms = ("Solana", "NEAR", "Polkadot")
    detection_methods = (
        "Look for state writes that happen after an external call or CPI",
        "Check whether the function is protected by a reentrancy guard",
        "Verify the checks-effects-interactions ordering",
        "Review which programs are allowed to invoke back into the contract",
    )
    remediation = (
        "Validate, update state, and only then call out (checks-effects-interactions)",
        "Hold a lock flag for the duration of sensitive instructions",
        "Keep cross-program invocations to the minimum required",
    )
    vulnerable_program = VulnerableVault
    secure_program = SecureVault
    rejection_failures = (InvalidState, InsufficientFunds)
