"""Business logic errors in an auction house with staking rewards."""

import enum

from catalog.exemplars.base import Exemplar, VulnerabilityKind
from catalog.exemplars.runtime import (
    ContractProgram,
    InsufficientFunds,
    InvalidInput,
    InvalidState,
    checked_add,
    checked_mul,
    checked_sub,
)

# Reward accrual per second, in basis points of the stake.
REWARD_RATE_BPS = 10


class AuctionState(str, enum.Enum):
    INITIALIZED = "Initialized"
    ACTIVE = "Active"
    FINALIZED = "Finalized"


class _AuctionHouse(ContractProgram):
    def __init__(self, meter=None):
        super().__init__(meter)
        self.auctions = {}
        self.stakes = {}
        self.reward_pool = 0

    def create_auction(self, auction_id: str, start_time: int, end_time: int, reserve_price: int) -> None:
        self.meter.consume()
        if auction_id in self.auctions:
            raise InvalidInput(f"auction {auction_id} already exists")
        if end_time <= start_time:
            raise InvalidInput("auction must end after it starts")
        self.auctions[auction_id] = {
            "start_time": start_time,
            "end_time": end_time,
            "reserve_price": reserve_price,
            "state": AuctionState.INITIALIZED,
            "highest_bid": 0,
            "highest_bidder": None,
            "winner": None,
        }

    def _auction(self, auction_id: str) -> dict:
        try:
            return self.auctions[auction_id]
        except KeyError:
            raise InvalidInput(f"auction {auction_id} not found") from None

    def fund_rewards(self, amount: int) -> None:
        self.reward_pool = checked_add(self.reward_pool, amount)

    def stake(self, staker: str, amount: int, now: int) -> None:
        self.meter.consume()
        self.stakes[staker] = {"amount": amount, "last_claim_time": now}

    def _accrued(self, stake: dict, now: int) -> int:
        elapsed = max(0, now - stake["last_claim_time"])
        return checked_mul(checked_mul(stake["amount"], elapsed), REWARD_RATE_BPS) // 10_000

    def _pay_reward(self, reward: int) -> int:
        if reward > self.reward_pool:
            raise InsufficientFunds("insufficient rewards in pool")
        self.reward_pool = checked_sub(self.reward_pool, reward)
        return reward

    def _stake(self, staker: str) -> dict:
        try:
            return self.stakes[staker]
        except KeyError:
            raise InvalidInput(f"no stake for {staker}") from None

    @staticmethod
    def _record_bid(auction: dict, bidder: str, amount: int) -> None:
        if amount < auction["reserve_price"]:
            raise InvalidInput("bid below reserve price")
        if amount <= auction["highest_bid"]:
            raise InvalidInput("bid does not beat the current highest bid")
        auction["highest_bid"] = amount
        auction["highest_bidder"] = bidder


class VulnerableAuctionHouse(_AuctionHouse):
    def start_auction(self, auction_id: str, now: int) -> None:
        self.meter.consume()
        auction = self._auction(auction_id)
        if auction["state"] != AuctionState.INITIALIZED:
            raise InvalidState("auction not in initialized state")
        auction["state"] = AuctionState.ACTIVE  # [source 1] [sink 1]

    def place_bid(self, auction_id: str, bidder: str, amount: int, now: int) -> None:
        self.meter.consume()
        auction = self._auction(auction_id)
        if auction["state"] != AuctionState.ACTIVE:  # [source 2]
            raise InvalidState("auction is not active")
        self._record_bid(auction, bidder, amount)  # [sink 2]

    def claim_rewards(self, staker: str, now: int) -> int:
        self.meter.consume()
        stake = self._stake(staker)
        reward = self._accrued(stake, now)  # [source 3]
        return self._pay_reward(reward)  # [sink 3]

    def finalize_auction(self, auction_id: str, now: int):
        self.meter.consume()
        auction = self._auction(auction_id)
        if auction["state"] == AuctionState.FINALIZED:  # [source 4]
            raise InvalidState("auction already finalized")
        if auction["highest_bidder"] is None:
            raise InvalidState("no bids placed")
        auction["state"] = AuctionState.FINALIZED
        auction["winner"] = auction["highest_bidder"]  # [sink 4]
        return auction["winner"]


class SecureAuctionHouse(_AuctionHouse):
    def start_auction(self, auction_id: str, now: int) -> None:
        self.meter.consume()
        auction = self._auction(auction_id)
        if auction["state"] != AuctionState.INITIALIZED:
            raise InvalidState("auction not in initialized state")
        if now < auction["start_time"]:
            raise InvalidState("auction start time not reached")
        if now >= auction["end_time"]:
            raise InvalidState("auction end time already passed")
        auction["state"] = AuctionState.ACTIVE

    def place_bid(self, auction_id: str, bidder: str, amount: int, now: int) -> None:
        self.meter.consume()
        auction = self._auction(auction_id)
        if auction["state"] != AuctionState.ACTIVE:
            raise InvalidState("auction is not active")
        if now >= auction["end_time"]:
            raise InvalidState("auction has ended")
        self._record_bid(auction, bidder, amount)

    def claim_rewards(self, staker: str, now: int) -> int:
        self.meter.consume()
        stake = self._stake(staker)
        reward = self._accrued(stake, now)
        stake["last_claim_time"] = max(now, stake["last_claim_time"])
        if reward == 0:
            return 0
        return self._pay_reward(reward)

    def finalize_auction(self, auction_id: str, now: int):
        self.meter.consume()
        auction = self._auction(auction_id)
        if auction["state"] == AuctionState.INITIALIZED:
            raise InvalidState("auction not started")
        if auction["state"] == AuctionState.FINALIZED:
            raise InvalidState("auction already finalized")
        if now < auction["end_time"]:
            raise InvalidState("auction still active")
        auction["state"] = AuctionState.FINALIZED
        auction["winner"] = auction["highest_bidder"]
        return auction["winner"]


class LogicErrorExemplar(Exemplar):
    kind = VulnerabilityKind.LOGIC_ERROR
    name = "Business Logic Vulnerability"
    description = (
        "The program's business rules are wrong even though every line executes as "
        "written: state transitions happen at the wrong time, bookkeeping is never "
        "updated, or a calculation rewards the same action twice."
    )
    platforms = ("Solana", "NEAR", "Polkadot", "All Rust-based contracts")
    detection_methods = (
        "Review business logic against the functional requirements",
        "Model the state machine and check every transition guard",
        "Check for missing or incorrect state updates",
        "Verify financial calculations with edge-case scenarios",
    )
    remediation = (
        "Validate state explicitly on every instruction",
        "Implement state machines with explicit transitions",
        "Update bookkeeping in the same instruction that pays out",
        "Test every execution path, including timing boundaries",
    )
    vulnerable_program = VulnerableAuctionHouse
    secure_program = SecureAuctionHouse
    rejection_failures = (InvalidState, InvalidInput, InsufficientFunds)
