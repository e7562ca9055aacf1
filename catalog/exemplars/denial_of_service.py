"""Denial of service in an auction that pushes refunds to every bidder."""

from catalog.exemplars.base import Exemplar, VulnerabilityKind
from catalog.exemplars.runtime import (
    ContractProgram,
    InvalidInput,
    InvalidState,
)

MAX_BIDDERS = 100
REFUND_BATCH = 10


class _Auction(ContractProgram):
    def __init__(self, meter=None):
        super().__init__(meter)
        self.bids = {}
        self.ended = False
        self.winner = None
        self.refunded = {}
        self.rejecting = set()

    def reject_refunds(self, bidder: str) -> None:
        """Make ``bidder``'s receiving account fail every incoming transfer."""
        self.rejecting.add(bidder)

    def _send(self, bidder: str, amount: int) -> bool:
        self.meter.consume()
        if bidder in self.rejecting:
            return False
        self.refunded[bidder] = self.refunded.get(bidder, 0) + amount
        return True

    def _settle_winner(self) -> dict:
        if not self.bids:
            raise InvalidState("no bids placed")
        self.winner = max(self.bids, key=self.bids.get)
        return {b: amount for b, amount in self.bids.items() if b != self.winner}


class VulnerableAuction(_Auction):
    def place_bid(self, bidder: str, amount: int) -> None:
        self.meter.consume()
        if self.ended:
            raise InvalidState("auction already ended")
        self.bids[bidder] = amount  # [source 2] [sink 2]

    def end_auction(self) -> dict:
        self.meter.consume()
        if self.ended:
            raise InvalidState("auction already ended")
        losers = self._settle_winner()
        queue = list(losers.items())  # [source 1]
        # Failed refunds go back on the queue until they succeed.
        while queue:
            bidder, amount = queue.pop(0)
            if not self._send(bidder, amount):  # [sink 1]
                queue.append((bidder, amount))
        self.ended = True
        return {"winner": self.winner, "pending_refunds": 0}


class SecureAuction(_Auction):
    def __init__(self, meter=None):
        super().__init__(meter)
        self.pending_refunds = {}

    def place_bid(self, bidder: str, amount: int) -> None:
        self.meter.consume()
        if self.ended:
            raise InvalidState("auction already ended")
        if bidder not in self.bids and len(self.bids) >= MAX_BIDDERS:
            raise InvalidInput("maximum number of bidders reached")
        self.bids[bidder] = amount

    def end_auction(self) -> dict:
        self.meter.consume()
        if self.ended:
            raise InvalidState("auction already ended")
        self.pending_refunds = self._settle_winner()
        self.ended = True
        return {"winner": self.winner, "pending_refunds": len(self.pending_refunds)}

    def claim_refund(self, bidder: str) -> int:
        self.meter.consume()
        if not self.ended:
            raise InvalidState("auction not ended yet")
        amount = self.pending_refunds.get(bidder)
        if amount is None:
            raise InvalidInput(f"no refund owed to {bidder}")
        if not self._send(bidder, amount):
            raise InvalidState(f"refund to {bidder} failed")
        del self.pending_refunds[bidder]
        return amount

    def process_refund_batch(self) -> int:
        """Push at most REFUND_BATCH refunds, skipping receivers that fail."""
        processed = 0
        for bidder in list(self.pending_refunds)[:REFUND_BATCH]:
            if self._send(bidder, self.pending_refunds[bidder]):
                del self.pending_refunds[bidder]
            processed += 1
        return processed


class DenialOfServiceExemplar(Exemplar):
    kind = VulnerabilityKind.DENIAL_OF_SERVICE
    name = "Denial of Service Vulnerability"
    description = (
        "An attacker can keep legitimate users from using the program, temporarily "
        "or permanently, by exhausting its compute budget, storage or by making a "
        "step every user depends on fail."
    )
    platforms = ("Solana", "NEAR", "Polkadot", "All Rust-based contracts")
    detection_methods = (
        "Look for loops over collections users can grow",
        "Check operations that process many accounts in one transaction",
        "Find critical steps that a single failed transfer can block",
        "Examine storage that can grow without bound",
    )
    remediation = (
        "Page through large collections across several transactions",
        "Cap the number of items processed or stored",
        "Prefer pull payments over pushing funds to many recipients",
        "Tolerate individual failures instead of retrying them inline",
    )
    vulnerable_program = VulnerableAuction
    secure_program = SecureAuction
    rejection_failures = (InvalidState, InvalidInput)
