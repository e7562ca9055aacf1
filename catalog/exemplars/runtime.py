"""Execution runtime shared by every contract program in the catalog.

Programs model Solana-style on-chain programs: balances are unsigned 64-bit
integers, failures are typed errors instead of aborted transactions, and every
loop pays compute units to a meter so runaway work is cut off.
"""

import time
from typing import Optional

U64_MAX = (1 << 64) - 1


class ContractError(Exception):
    """A failure a contract program raises on purpose (a failed transaction)."""


class ArithmeticOverflow(ContractError):
    """u64 arithmetic left the representable range."""


class BoundsViolation(ContractError):
    """Data or an index exceeded the space allocated for it."""


class AuthorizationError(ContractError):
    """The caller is not allowed to perform the operation."""


class InvalidInput(ContractError):
    """An instruction argument failed validation."""


class InvalidState(ContractError):
    """The operation is not allowed in the program's current state."""


class InsufficientFunds(ContractError):
    """An account does not hold enough tokens for the operation."""


class ComputeBudgetExceeded(Exception):
    """Raised by a ComputeMeter once its unit or time budget is spent.

    Deliberately not a ContractError: exemplars cannot declare it as a
    contained failure, the harness classifies it on its own.
    """

    def __init__(self, consumed: int, max_units: Optional[int], reason: str):
        self.consumed = consumed
        self.max_units = max_units
        self.reason = reason
        super().__init__(f"{reason} after {consumed} compute units")


class ComputeMeter:
    """Counts compute units consumed by a program invocation.

    The meter is cooperative: units and the wall-clock deadline are only
    checked when a program calls ``consume`` or ``check_deadline``. Code that
    loops without doing either is not interrupted; an overrun is detected once
    control returns to ``Exemplar._drive``.
    """

    def __init__(self, max_units: Optional[int] = None, timeout: Optional[float] = None):
        self.max_units = max_units
        self.timeout = timeout
        self.consumed = 0
        self._deadline = time.monotonic() + timeout if timeout else None

    @classmethod
    def unbounded(cls) -> "ComputeMeter":
        return cls()

    def consume(self, units: int = 1) -> None:
        self.consumed += units
        if self.max_units is not None and self.consumed > self.max_units:
            raise ComputeBudgetExceeded(self.consumed, self.max_units, "compute unit limit reached")
        self.check_deadline()

    def check_deadline(self) -> None:
        if self._deadline is not None and time.monotonic() > self._deadline:
            raise ComputeBudgetExceeded(self.consumed, self.max_units, "execution deadline passed")

    @property
    def remaining(self) -> Optional[int]:
        if self.max_units is None:
            return None
        return max(0, self.max_units - self.consumed)


class ContractProgram:
    """Base class for the vulnerable and secure programs of an exemplar."""

    def __init__(self, meter: Optional[ComputeMeter] = None):
        self.meter = meter or ComputeMeter.unbounded()


def _check_u64(value: int) -> int:
    if value < 0 or value > U64_MAX:
        raise InvalidInput(f"{value} is not a u64")
    return value


def wrapping_add(a: int, b: int) -> int:
    """u64 addition as compiled without overflow checks."""
    return (_check_u64(a) + _check_u64(b)) & U64_MAX


def wrapping_sub(a: int, b: int) -> int:
    return (_check_u64(a) - _check_u64(b)) & U64_MAX


def wrapping_mul(a: int, b: int) -> int:
    return (_check_u64(a) * _check_u64(b)) & U64_MAX


def checked_add(a: int, b: int) -> int:
    result = _check_u64(a) + _check_u64(b)
    if result > U64_MAX:
        raise ArithmeticOverflow(f"{a} + {b} overflows u64")
    return result


def checked_sub(a: int, b: int) -> int:
    result = _check_u64(a) - _check_u64(b)
    if result < 0:
        raise ArithmeticOverflow(f"{a} - {b} underflows u64")
    return result


def checked_mul(a: int, b: int) -> int:
    result = _check_u64(a) * _check_u64(b)
    if result > U64_MAX:
        raise ArithmeticOverflow(f"{a} * {b} overflows u64")
    return result
