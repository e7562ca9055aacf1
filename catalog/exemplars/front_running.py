"""Front-running of swaps whose parameters are visible while pending."""

import hashlib
import itertools

from catalog.exemplars.base import Exemplar, VulnerabilityKind
from catalog.exemplars.runtime import (
    ContractProgram,
    InsufficientFunds,
    InvalidInput,
    InvalidState,
    checked_add,
)

TOKENS = ("A", "B")


class _Exchange(ContractProgram):
    """Constant-product pool fed by a queue of pending swaps.

    ``process_block`` executes the queue ordered by priority fee, highest first;
    equal fees keep submission order.
    """

    def __init__(self, meter=None):
        super().__init__(meter)
        self.reserves = {"A": 0, "B": 0}
        self.wallets = {}
        self._queue = []
        self._sequence = itertools.count()

    def initialize(self, reserve_a: int, reserve_b: int) -> None:
        self.reserves = {"A": reserve_a, "B": reserve_b}

    def wallet(self, trader: str) -> dict:
        return self.wallets.setdefault(trader, {"A": 0, "B": 0})

    def fund(self, trader: str, token: str, amount: int) -> None:
        wallet = self.wallet(trader)
        wallet[token] = checked_add(wallet[token], amount)

    def quote(self, token_in: str, amount_in: int) -> int:
        token_out = self._other(token_in)
        reserve_in, reserve_out = self.reserves[token_in], self.reserves[token_out]
        return reserve_out * amount_in // (reserve_in + amount_in)

    @staticmethod
    def _other(token: str) -> str:
        if token not in TOKENS:
            raise InvalidInput(f"invalid token {token!r}")
        return "B" if token == "A" else "A"

    def submit_swap(self, trader: str, token_in: str, amount_in: int, min_out: int, priority_fee: int = 0) -> int:
        self.meter.consume()
        self._other(token_in)
        if amount_in <= 0:
            raise InvalidInput("swap amount must be positive")
        order = {
            "id": next(self._sequence),
            "trader": trader,
            "token_in": token_in,
            "amount_in": amount_in,
            "min_out": min_out,
            "priority_fee": priority_fee,
        }
        self._queue.append(order)
        return order["id"]

    def _execute(self, order: dict) -> int:
        self.meter.consume()
        token_in = order["token_in"]
        token_out = self._other(token_in)
        wallet = self.wallet(order["trader"])
        if wallet[token_in] < order["amount_in"]:
            raise InsufficientFunds(f"{order['trader']} cannot cover {order['amount_in']} {token_in}")
        out = self.quote(token_in, order["amount_in"])
        if out < order["min_out"]:
            raise InvalidState("slippage too high")
        wallet[token_in] -= order["amount_in"]
        wallet[token_out] += out
        self.reserves[token_in] += order["amount_in"]
        self.reserves[token_out] -= out
        return out

    def process_block(self) -> dict:
        """Execute every pending swap; returns output amounts keyed by order id."""
        queue = sorted(self._queue, key=lambda o: (-o["priority_fee"], o["id"]))
        self._queue = []
        return {order["id"]: self._execute(order) for order in queue}


class VulnerableExchange(_Exchange):
    def pending_orders(self) -> list:
        """The public view of the mempool."""
        return [dict(order) for order in self._queue]  # [source] [sink]


class SecureExchange(_Exchange):
    """Pending swaps are sealed; observers only see a commitment per order."""

    def pending_orders(self) -> list:
        views = []
        for order in self._queue:
            sealed = f"{order['trader']}:{order['token_in']}:{order['amount_in']}:{order['min_out']}:{order['id']}"
            views.append(
                {
                    "id": order["id"],
                    "trader": order["trader"],
                    "commitment": hashlib.sha256(sealed.encode("utf-8")).hexdigest(),
                }
            )
        return views


class FrontRunningExemplar(Exemplar):
    kind = VulnerabilityKind.FRONT_RUNNING
    name = "Front-Running Vulnerability"
    description = (
        "Pending transactions reveal enough for an observer to act on them first. "
        "A sandwich buys ahead of a victim's swap and sells right after it, pocketing "
        "the price impact the victim pays."
    )
    platforms = ("Solana", "NEAR", "Polkadot", "CosmWasm")
    detection_methods = (
        "Identify time-sensitive operations that affect prices",
        "Check whether sensitive parameters are visible before execution",
        "Evaluate exposure to transaction ordering manipulation (MEV)",
        "Check that swaps enforce a meaningful minimum output",
    )
    remediation = (
        "Use commit-reveal or sealed submission for sensitive operations",
        "Batch transactions so ordering inside a batch does not matter",
        "Require slippage limits on every swap",
        "Limit the information available to observers of pending transactions",
    )
    vulnerable_program = VulnerableExchange
    secure_program = SecureExchange
    rejection_failures = (InsufficientFunds, InvalidInput, InvalidState)
