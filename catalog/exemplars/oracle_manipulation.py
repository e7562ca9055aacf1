"""Oracle manipulation in a lending protocol's liquidation check."""

from catalog.exemplars.base import Exemplar, VulnerabilityKind
from catalog.exemplars.runtime import (
    ContractProgram,
    InvalidInput,
    InvalidState,
    checked_mul,
)

# Positions are liquidatable below 110% collateralisation.
LIQUIDATION_THRESHOLD = 110
MAX_PRICE_CHANGE_PCT = 20
MAX_STALENESS = 300
TWAP_WINDOW = 3600


class _Lending(ContractProgram):
    def __init__(self, meter=None):
        super().__init__(meter)
        self.positions = {}
        self.price = None
        self.updated_at = None
        self.price_history = []

    def open_position(self, owner: str, collateral: int, loan: int) -> None:
        if owner in self.positions:
            raise InvalidInput(f"{owner} already has a position")
        self.positions[owner] = {"collateral": collateral, "loan": loan}

    def _position(self, owner: str) -> dict:
        try:
            return self.positions[owner]
        except KeyError:
            raise InvalidInput(f"no position for {owner}") from None

    @staticmethod
    def _is_undercollateralised(position: dict, price: int) -> bool:
        collateral_value = checked_mul(position["collateral"], price)
        return collateral_value * 100 < position["loan"] * LIQUIDATION_THRESHOLD

    def _seize(self, owner: str, liquidator: str) -> int:
        position = self.positions.pop(owner)
        return position["collateral"]


class VulnerableLending(_Lending):
    """Trusts whatever the single price feed last reported."""

    def update_price(self, price: int, timestamp: int) -> None:
        self.meter.consume()
        self.price = price  # [source]
        self.updated_at = timestamp
        self.price_history.append((timestamp, price))

    def liquidate(self, owner: str, liquidator: str, now: int) -> int:
        self.meter.consume()
        position = self._position(owner)
        if not self._is_undercollateralised(position, self.price):  # [sink]
            raise InvalidState("position is not eligible for liquidation")
        return self._seize(owner, liquidator)


class SecureLending(_Lending):
    """Bounds each update, rejects stale data and prices off a TWAP."""

    def update_price(self, price: int, timestamp: int) -> None:
        self.meter.consume()
        if price <= 0:
            raise InvalidInput("price must be positive")
        if self.price is not None:
            max_step = self.price * MAX_PRICE_CHANGE_PCT // 100
            price = max(self.price - max_step, min(self.price + max_step, price))
        self.price = price
        self.updated_at = timestamp
        self.price_history.append((timestamp, price))

    def twap(self, now: int) -> int:
        window = []
        for timestamp, price in self.price_history:
            self.meter.consume()
            if now - timestamp <= TWAP_WINDOW:
                window.append(price)
        if not window:
            raise InvalidState("insufficient historical price data")
        return sum(window) // len(window)

    def liquidate(self, owner: str, liquidator: str, now: int) -> int:
        self.meter.consume()
        position = self._position(owner)
        if self.updated_at is None or now - self.updated_at > MAX_STALENESS:
            raise InvalidState("oracle data is stale")
        if not self._is_undercollateralised(position, self.twap(now)):
            raise InvalidState("position is not eligible for liquidation")
        return self._seize(owner, liquidator)


class OracleManipulationExemplar(Exemplar):
    kind = VulnerabilityKind.ORACLE_MANIPULATION
    name = "Oracle Manipulation Vulnerability"
    description = (
        "The program relies on an external price source that an attacker can move, "
        "so liquidations, loans and swaps execute at a price the market never agreed on."
    )
    platforms = ("Solana", "NEAR", "Polkadot", "All DeFi platforms")
    detection_methods = (
        "Check whether critical decisions rely on a single oracle",
        "Look for time-weighted average price mechanisms",
        "Verify abnormal price movements are detected",
        "Check that oracle data freshness is enforced",
    )
    remediation = (
        "Aggregate several independent oracles (e.g. the median)",
        "Price critical operations off a TWAP instead of the spot value",
        "Bound how far a single update can move the price",
        "Reject stale oracle data",
    )
    vulnerable_program = VulnerableLending
    secure_program = SecureLending
    rejection_failures = (InvalidState, InvalidInput)
