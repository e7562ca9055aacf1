"""Unchecked instruction inputs in a simple bank program."""

from catalog.exemplars.base import Exemplar, VulnerabilityKind
from catalog.exemplars.runtime import (
    ContractProgram,
    InsufficientFunds,
    InvalidInput,
    checked_add,
    checked_sub,
)

MAX_TRANSFER = 1_000_000_000_000
MAX_DELEGATES = 5


class _Bank(ContractProgram):
    def __init__(self, meter=None):
        super().__init__(meter)
        self.balances = {}
        self.delegates = {}
        self.transfer_log = []

    def open_account(self, owner: str, balance: int = 0) -> None:
        self.balances[owner] = balance
        self.delegates[owner] = []

    def _require_account(self, owner: str) -> None:
        if owner not in self.balances:
            raise InvalidInput(f"account {owner} not found")

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        balance = self.balances[sender]
        if balance < amount:
            raise InsufficientFunds(f"{sender} holds {balance}, asked for {amount}")
        self.balances[sender] = checked_sub(balance, amount)
        self.balances[recipient] = checked_add(self.balances.get(recipient, 0), amount)
        self.transfer_log.append((sender, recipient, amount))


class VulnerableBank(_Bank):
    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        self.meter.consume()
        self._require_account(sender)
        self._move(sender, recipient, amount)  # [source 1] [sink 1]

    def add_delegate(self, owner: str, delegate: str) -> None:
        self.meter.consume()
        self._require_account(owner)
        delegates = self.delegates[owner]  # [source 2]
        delegates.append(delegate)  # [sink 2]


class SecureBank(_Bank):
    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        self.meter.consume()
        if amount <= 0:
            raise InvalidInput("amount must be greater than zero")
        if amount > MAX_TRANSFER:
            raise InvalidInput("amount exceeds maximum transfer limit")
        if sender == recipient:
            raise InvalidInput("cannot transfer to self")
        self._require_account(sender)
        self._move(sender, recipient, amount)

    def add_delegate(self, owner: str, delegate: str) -> None:
        self.meter.consume()
        if delegate == owner:
            raise InvalidInput("cannot add self as delegate")
        self._require_account(owner)
        delegates = self.delegates[owner]
        if delegate in delegates:
            raise InvalidInput(f"{delegate} is already a delegate")
        if len(delegates) >= MAX_DELEGATES:
            raise InvalidInput("maximum number of delegates reached")
        delegates.append(delegate)


class UncheckedInputExemplar(Exemplar):
    kind = VulnerabilityKind.UNCHECKED_INPUT
    name = "Unchecked Inputs Vulnerability"
    description = (
        "Instruction arguments are used without validation, letting callers push "
        "the program into states its logic never anticipated: zero or oversized "
        "amounts, self-referencing accounts and unbounded lists."
    )
    platforms = ("Solana", "NEAR", "Polkadot", "All Rust-based contracts")
    detection_methods = (
        "Trace every instruction argument to the first place it is validated",
        "Check numeric inputs for missing lower and upper bounds",
        "Validate deserialized structures before they are trusted",
        "Look for type conversions that truncate values",
    )
    remediation = (
        "Validate all user-provided data at the instruction boundary",
        "Encode constraints in types where possible",
        "Add explicit bounds for amounts and collection sizes",
    )
    vulnerable_program = VulnerableBank
    secure_program = SecureBank
    rejection_failures = (InsufficientFunds, InvalidInput)
