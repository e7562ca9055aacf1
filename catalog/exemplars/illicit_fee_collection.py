"""Illicit fee collection in a constant-product swap pool."""

from catalog.exemplars.base import Exemplar, VulnerabilityKind
from catalog.exemplars.runtime import (
    AuthorizationError,
    ContractProgram,
    InsufficientFunds,
    InvalidInput,
    checked_add,
    checked_mul,
)

SWAP_FEE_BPS = 30
HIDDEN_FEE_BPS = 50
MAX_FEE_BPS = 100


class _SwapPool(ContractProgram):
    def __init__(self, meter=None):
        super().__init__(meter)
        self.reserve_a = 0
        self.reserve_b = 0
        self.fee_bps = SWAP_FEE_BPS
        self.fee_admin = None
        self.fee_recipient = None
        self.fee_balances = {}
        self.wallets = {}

    def initialize(self, fee_admin: str, reserve_a: int, reserve_b: int) -> None:
        self.fee_admin = fee_admin
        self.fee_recipient = fee_admin
        self.reserve_a = reserve_a
        self.reserve_b = reserve_b

    def fund(self, user: str, amount_a: int) -> None:
        wallet = self.wallets.setdefault(user, {"A": 0, "B": 0})
        wallet["A"] = checked_add(wallet["A"], amount_a)

    def _output_for(self, amount_in: int) -> tuple:
        """Split ``amount_in`` into (fee, output) for the documented swap fee."""
        fee = checked_mul(amount_in, self.fee_bps) // 10_000
        net_in = amount_in - fee
        out = self.reserve_b * net_in // (self.reserve_a + net_in)
        return fee, out

    def quote(self, amount_in: int) -> int:
        """Token B a user is told to expect for ``amount_in`` token A."""
        return self._output_for(amount_in)[1]

    def _debit_a(self, user: str, amount_in: int) -> dict:
        if amount_in <= 0:
            raise InvalidInput("swap amount must be positive")
        wallet = self.wallets.get(user)
        if wallet is None or wallet["A"] < amount_in:
            raise InsufficientFunds(f"{user} does not hold {amount_in} token A")
        wallet["A"] -= amount_in
        return wallet

    def _credit_fee(self, recipient: str, amount: int) -> None:
        self.fee_balances[recipient] = self.fee_balances.get(recipient, 0) + amount


class VulnerableSwapPool(_SwapPool):
    def set_fee_recipient(self, caller: str, recipient: str) -> None:
        self.meter.consume()
        self.fee_recipient = recipient  # [source 1]

    def swap(self, user: str, amount_in: int) -> int:
        self.meter.consume()
        wallet = self._debit_a(user, amount_in)
        fee, out = self._output_for(amount_in)
        hidden = out * HIDDEN_FEE_BPS // 10_000  # [source 2]
        self.reserve_a += amount_in - fee
        self.reserve_b -= out
        self._credit_fee(self.fee_recipient, fee)  # [sink 1]
        self._credit_fee(self.fee_admin, hidden)
        wallet["B"] += out - hidden  # [sink 2]
        return out - hidden


class SecureSwapPool(_SwapPool):
    def set_fee_recipient(self, caller: str, recipient: str) -> None:
        self.meter.consume()
        if caller != self.fee_admin:
            raise AuthorizationError("only the fee admin can change the fee recipient")
        self.fee_recipient = recipient

    def set_fee(self, caller: str, fee_bps: int) -> None:
        self.meter.consume()
        if caller != self.fee_admin:
            raise AuthorizationError("only the fee admin can change fees")
        if fee_bps > MAX_FEE_BPS:
            raise InvalidInput("fee too high (max 1%)")
        self.fee_bps = fee_bps

    def swap(self, user: str, amount_in: int) -> int:
        self.meter.consume()
        wallet = self._debit_a(user, amount_in)
        fee, out = self._output_for(amount_in)
        self.reserve_a += amount_in - fee
        self.reserve_b -= out
        self._credit_fee(self.fee_recipient, fee)
        wallet["B"] += out
        return out


class IllicitFeeCollectionExemplar(Exemplar):
    kind = VulnerabilityKind.ILLICIT_FEE_COLLECTION
    name = "Illicit Fee Collection Vulnerability"
    description = (
        "The program lets unauthorised or undisclosed fees be taken from users, "
        "either by letting anyone repoint fee parameters or by quietly skimming "
        "value towards an unintended recipient."
    )
    platforms = ("Solana", "NEAR", "Polkadot", "All DeFi platforms")
    detection_methods = (
        "Examine fee calculations for manipulation opportunities",
        "Check validation of fee recipient changes",
        "Compare the documented fees with what the code charges",
        "Trace token flows for value that leaks to unexpected accounts",
    )
    remediation = (
        "Restrict fee recipient and fee rate changes to the fee authority",
        "Cap fee parameters on chain",
        "Disclose every fee in the quote users sign against",
        "Put fee changes behind a time-lock or governance vote",
    )
    vulnerable_program = VulnerableSwapPool
    secure_program = SecureSwapPool
    rejection_failures = (AuthorizationError, InsufficientFunds, InvalidInput)
