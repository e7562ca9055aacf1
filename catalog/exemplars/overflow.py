"""Integer overflow/underflow in u64 token accounting."""

from catalog.exemplars.base import Exemplar, VulnerabilityKind
from catalog.exemplars.runtime import (
    ArithmeticOverflow,
    ContractProgram,
    InsufficientFunds,
    InvalidInput,
    checked_add,
    checked_mul,
    checked_sub,
    wrapping_add,
    wrapping_mul,
    wrapping_sub,
)

FEE_BPS = 100


class _TokenLedger(ContractProgram):
    def __init__(self, meter=None):
        super().__init__(meter)
        self.balances = {}

    def open_account(self, account: str, balance: int = 0) -> None:
        if account in self.balances:
            raise InvalidInput(f"account {account} already exists")
        self.balances[account] = balance

    def balance_of(self, account: str) -> int:
        try:
            return self.balances[account]
        except KeyError:
            raise InvalidInput(f"account {account} not found") from None


class VulnerableToken(_TokenLedger):
    """Arithmetic as compiled for release with overflow checks disabled."""

    def add_tokens(self, account: str, amount: int) -> int:
        self.meter.consume()
        balance = self.balance_of(account)  # [source 1]
        self.balances[account] = wrapping_add(balance, amount)  # [sink 1]
        return self.balances[account]

    def remove_tokens(self, account: str, amount: int) -> int:
        self.meter.consume()
        balance = self.balance_of(account)
        fee = wrapping_mul(amount, FEE_BPS) // 10_000  # [source 2]
        # Only the principal is checked; the fee is forgotten.
        if balance < amount:
            raise InsufficientFunds(f"{account} holds {balance}, asked for {amount}")
        self.balances[account] = wrapping_sub(wrapping_sub(balance, amount), fee)  # [sink 2]
        return self.balances[account]


class SecureToken(_TokenLedger):
    def add_tokens(self, account: str, amount: int) -> int:
        self.meter.consume()
        self.balances[account] = checked_add(self.balance_of(account), amount)
        return self.balances[account]

    def remove_tokens(self, account: str, amount: int) -> int:
        self.meter.consume()
        balance = self.balance_of(account)
        fee = checked_mul(amount, FEE_BPS) // 10_000
        total = checked_add(amount, fee)
        if balance < total:
            raise InsufficientFunds(f"{account} holds {balance}, needs {total} including fees")
        self.balances[account] = checked_sub(balance, total)
        return self.balances[account]


class IntegerOverflowExemplar(Exemplar):
    kind = VulnerabilityKind.INTEGER_OVERFLOW
    name = "Integer Overflow/Underflow Vulnerability"
    description = (
        "Arithmetic leaves the range of its integer type and silently wraps. "
        "Rust panics on overflow in debug builds, but release builds wrap unless "
        "overflow checks are explicitly kept on."
    )
    platforms = ("Solana", "NEAR", "Polkadot", "All Rust-based contracts")
    detection_methods = (
        "Find arithmetic on user-supplied amounts that could overflow or underflow",
        "Check whether checked_* arithmetic is used for balances and fees",
        "Verify bounds are validated before critical arithmetic",
        "Inspect build profiles for disabled overflow checks",
    )
    remediation = (
        "Use checked_add, checked_sub and checked_mul for all token math",
        "Validate bounds explicitly before arithmetic",
        "Use saturating arithmetic where clamping is the intended behaviour",
        "Keep overflow-checks enabled in release profiles",
    )
    vulnerable_program = VulnerableToken
    secure_program = SecureToken
    compromise_failures = (ArithmeticOverflow,)
    rejection_failures = (InsufficientFunds, InvalidInput)
