"""Account confusion: trusting whichever vault account the caller passes in."""

from catalog.exemplars.base import Exemplar, VulnerabilityKind
from catalog.exemplars.runtime import (
    AuthorizationError,
    ContractProgram,
    InsufficientFunds,
    InvalidInput,
    checked_add,
)

PROGRAM_ID = "vault1111111111111111111111111111"


class _VaultProgram(ContractProgram):
    def __init__(self, meter=None):
        super().__init__(meter)
        self.program_id = PROGRAM_ID
        self.accounts = {}
        self.vaults = {}
        self.wallets = {}

    def create_account(self, address: str, owner_program: str, authority: str, balance: int = 0) -> None:
        if address in self.accounts:
            raise InvalidInput(f"account {address} already exists")
        self.accounts[address] = {
            "owner": owner_program,
            "authority": authority,
            "balance": balance,
        }

    def open_vault(self, user: str, address: str, balance: int = 0) -> None:
        self.create_account(address, self.program_id, user, balance)
        self.vaults[user] = address

    def _load(self, address: str) -> dict:
        account = self.accounts.get(address)
        if account is None:
            raise InvalidInput(f"account {address} not found")
        return account

    def _pay(self, vault: dict, recipient: str, amount: int) -> None:
        if vault["balance"] < amount:
            raise InsufficientFunds("insufficient funds in vault")
        vault["balance"] -= amount
        self.wallets[recipient] = checked_add(self.wallets.get(recipient, 0), amount)


class VulnerableVaultProgram(_VaultProgram):
    def withdraw(self, caller: str, vault_address: str, amount: int) -> None:
        self.meter.consume()
        vault = self._load(vault_address)  # [source]
        self._pay(vault, caller, amount)  # [sink]


class SecureVaultProgram(_VaultProgram):
    def withdraw(self, caller: str, vault_address: str, amount: int) -> None:
        self.meter.consume()
        if self.vaults.get(caller) != vault_address:
            raise AuthorizationError("vault does not belong to the caller")
        vault = self._load(vault_address)
        if vault["owner"] != self.program_id:
            raise AuthorizationError("vault account has invalid ownership")
        if vault["authority"] != caller:
            raise AuthorizationError("caller is not the vault authority")
        self._pay(vault, caller, amount)


class AccountConfusionExemplar(Exemplar):
    kind = VulnerabilityKind.ACCOUNT_CONFUSION
    name = "Account Confusion Vulnerability"
    description = (
        "The program does not validate the identity, owner or type of the accounts it "
        "is handed, so an attacker can substitute another user's account or a "
        "look-alike account owned by a different program. Solana programs are "
        "particularly exposed because transactions supply every account."
    )
    platforms = ("Solana", "NEAR")
    detection_methods = (
        "Verify ownership checks on every account the program reads",
        "Check PDA derivations include the expected seeds and bump",
        "Check that expected program ids are compared explicitly",
        "Verify the right account is used in each context",
    )
    remediation = (
        "Always validate account ownership",
        "Derive and check PDAs with the correct seeds and bump",
        "Validate program ids before cross-program invocations",
        "Check each account's type before use",
    )
    vulnerable_program = VulnerableVaultProgram
    secure_program = SecureVaultProgram
    rejection_failures = (AuthorizationError, InsufficientFunds, InvalidInput)
