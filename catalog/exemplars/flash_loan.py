"""Flash-loan price manipulation against a lender that prices off a DEX pool.

Amounts are in two tokens: ``C`` (the collateral asset) and ``Q`` (the quote
asset debts are denominated in). The pool's spot price of C is
``reserve_q / reserve_c``.
"""

from catalog.exemplars.base import Exemplar, VulnerabilityKind
from catalog.exemplars.runtime import (
    ContractProgram,
    InsufficientFunds,
    InvalidInput,
    InvalidState,
    checked_add,
    checked_mul,
)

LIQUIDATION_THRESHOLD = 110
FLASH_FEE_BPS = 9
MAX_FLASH_SHARE_PCT = 50
MAX_DEVIATION_PCT = 10


class _LendingMarket(ContractProgram):
    def __init__(self, meter=None):
        super().__init__(meter)
        self.reserve_c = 0
        self.reserve_q = 0
        self.flash_liquidity = 0
        self.positions = {}
        self.wallets = {}
        self.price_history = []

    def initialize(self, reserve_c: int, reserve_q: int, flash_liquidity: int) -> None:
        self.reserve_c = reserve_c
        self.reserve_q = reserve_q
        self.flash_liquidity = flash_liquidity

    def wallet(self, user: str) -> dict:
        return self.wallets.setdefault(user, {"C": 0, "Q": 0})

    def fund(self, user: str, token: str, amount: int) -> None:
        wallet = self.wallet(user)
        wallet[token] = checked_add(wallet[token], amount)

    def open_position(self, owner: str, collateral: int, debt: int) -> None:
        if owner in self.positions:
            raise InvalidInput(f"{owner} already has a position")
        self.positions[owner] = {"collateral": collateral, "debt": debt}

    def spot_value(self, amount_c: int) -> int:
        """Value of ``amount_c`` collateral in Q at the pool's spot price."""
        return checked_mul(amount_c, self.reserve_q) // self.reserve_c

    def observe_price(self, timestamp: int) -> None:
        """Record the current spot price (per unit of C) for averaging."""
        self.meter.consume()
        self.price_history.append((timestamp, self.reserve_q // self.reserve_c))

    def _debit(self, user: str, token: str, amount: int) -> None:
        wallet = self.wallet(user)
        if wallet[token] < amount:
            raise InsufficientFunds(f"{user} holds {wallet[token]} {token}, needs {amount}")
        wallet[token] -= amount

    def swap_c_for_q(self, trader: str, amount_c: int) -> int:
        self.meter.consume()
        self._debit(trader, "C", amount_c)
        out = self.reserve_q * amount_c // (self.reserve_c + amount_c)
        self.reserve_c += amount_c
        self.reserve_q -= out
        self.wallet(trader)["Q"] += out
        return out

    def swap_q_for_c(self, trader: str, amount_q: int) -> int:
        self.meter.consume()
        self._debit(trader, "Q", amount_q)
        out = self.reserve_c * amount_q // (self.reserve_q + amount_q)
        self.reserve_q += amount_q
        self.reserve_c -= out
        self.wallet(trader)["C"] += out
        return out

    def _position(self, owner: str) -> dict:
        try:
            return self.positions[owner]
        except KeyError:
            raise InvalidInput(f"no position for {owner}") from None

    def _seize(self, owner: str, liquidator: str) -> int:
        position = self.positions[owner]
        self._debit(liquidator, "Q", position["debt"])
        del self.positions[owner]
        self.wallet(liquidator)["C"] += position["collateral"]
        return position["collateral"]

    @staticmethod
    def _undercollateralised(collateral_value: int, debt: int) -> bool:
        return collateral_value * 100 < debt * LIQUIDATION_THRESHOLD


class VulnerableLendingMarket(_LendingMarket):
    def flash_loan(self, borrower: str, amount: int, callback) -> None:
        self.meter.consume()
        if amount > self.flash_liquidity:
            raise InsufficientFunds("insufficient liquidity for flash loan")
        self.flash_liquidity -= amount
        self.wallet(borrower)["C"] += amount  # [source]
        callback(self, borrower, amount)
        self._debit(borrower, "C", amount)
        self.flash_liquidity += amount

    def liquidate(self, liquidator: str, owner: str) -> int:
        self.meter.consume()
        position = self._position(owner)
        value = self.spot_value(position["collateral"])  # [sink]
        if not self._undercollateralised(value, position["debt"]):
            raise InvalidState("position is not liquidatable")
        return self._seize(owner, liquidator)


class SecureLendingMarket(_LendingMarket):
    def flash_loan(self, borrower: str, amount: int, callback) -> None:
        self.meter.consume()
        if amount * 100 > self.flash_liquidity * MAX_FLASH_SHARE_PCT:
            raise InvalidInput("flash loan exceeds maximum allowed amount")
        fee = max(1, amount * FLASH_FEE_BPS // 10_000)
        self.flash_liquidity -= amount
        self.wallet(borrower)["C"] += amount
        callback(self, borrower, amount)
        self._debit(borrower, "C", amount + fee)
        self.flash_liquidity += amount + fee

    def twap(self) -> int:
        if not self.price_history:
            raise InvalidState("insufficient price data")
        total = 0
        for _, price in self.price_history:
            self.meter.consume()
            total += price
        return total // len(self.price_history)

    def liquidate(self, liquidator: str, owner: str) -> int:
        self.meter.consume()
        position = self._position(owner)
        average = self.twap()
        spot = self.reserve_q // self.reserve_c
        if abs(spot - average) * 100 > average * MAX_DEVIATION_PCT:
            raise InvalidState("suspicious price movement detected, liquidation blocked")
        value = checked_mul(position["collateral"], average)
        if not self._undercollateralised(value, position["debt"]):
            raise InvalidState("position is not liquidatable")
        return self._seize(owner, liquidator)


class FlashLoanExemplar(Exemplar):
    kind = VulnerabilityKind.FLASH_LOAN
    name = "Flash Loan Vulnerability"
    description = (
        "The program ignores that a single atomic transaction can borrow enormous "
        "amounts for free, move a market with them and repay before the end. "
        "Spot-price dependent logic then acts on a price that exists for one instruction."
    )
    platforms = ("Solana", "NEAR", "All DeFi platforms")
    detection_methods = (
        "Examine price sources for manipulation within one transaction",
        "Check for dependencies on a single pool's spot price",
        "Review collateralisation checks in lending instructions",
        "Analyse liquidation paths for abuse with borrowed capital",
    )
    remediation = (
        "Use time-weighted average prices instead of spot prices",
        "Aggregate several price sources",
        "Add circuit breakers for abnormal price movements",
        "Rate-limit or cap flash loan size",
    )
    vulnerable_program = VulnerableLendingMarket
    secure_program = SecureLendingMarket
    rejection_failures = (InvalidState, InsufficientFunds, InvalidInput)
