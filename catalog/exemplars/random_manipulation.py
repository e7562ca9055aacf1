"""Manipulable randomness in an on-chain lottery."""

import hashlib
import hmac

from catalog.exemplars.base import Exemplar, VulnerabilityKind
from catalog.exemplars.runtime import (
    AuthorizationError,
    ContractProgram,
    InvalidInput,
    InvalidState,
)

GENESIS_TIMESTAMP = 1_700_000_000
SECONDS_PER_BLOCK = 2


def commitment_for(seed: bytes, salt: bytes) -> str:
    return hashlib.sha256(seed + salt).hexdigest()


class _Lottery(ContractProgram):
    def __init__(self, meter=None):
        super().__init__(meter)
        self.block = 0
        self.timestamp = GENESIS_TIMESTAMP
        self.lotteries = {}

    def clock(self) -> dict:
        return {"block": self.block, "timestamp": self.timestamp}

    def advance_block(self) -> None:
        """Let the chain produce one block (a validator can choose when to stop)."""
        self.meter.consume()
        self.block += 1
        self.timestamp += SECONDS_PER_BLOCK

    def open_lottery(self, participants: list, commitment: str) -> int:
        self.meter.consume()
        if not participants:
            raise InvalidInput("no participants in lottery")
        lottery_id = len(self.lotteries)
        self.lotteries[lottery_id] = {
            "participants": list(participants),
            "commitment": commitment,
            "winner": None,
        }
        return lottery_id

    def _open(self, lottery_id: int) -> dict:
        lottery = self.lotteries.get(lottery_id)
        if lottery is None:
            raise InvalidInput(f"lottery {lottery_id} not found")
        if lottery["winner"] is not None:
            raise InvalidState("lottery already completed")
        return lottery


class VulnerableLottery(_Lottery):
    def draw_winner(self, lottery_id: int, reveal: dict) -> str:
        self.meter.consume()
        lottery = self._open(lottery_id)
        participants = lottery["participants"]
        seed = self.timestamp ^ self.block  # [source]
        lottery["winner"] = participants[seed % len(participants)]  # [sink]
        return lottery["winner"]


class SecureLottery(_Lottery):
    """Commit-reveal: the seed is fixed before participants can act on it."""

    def draw_winner(self, lottery_id: int, reveal: dict) -> str:
        self.meter.consume()
        lottery = self._open(lottery_id)
        try:
            seed = bytes.fromhex(reveal["seed"])
            salt = bytes.fromhex(reveal["salt"])
        except (KeyError, TypeError, ValueError):
            raise InvalidInput("malformed reveal") from None
        if not seed:
            raise InvalidInput("empty seed")
        if not hmac.compare_digest(commitment_for(seed, salt), lottery["commitment"]):
            raise AuthorizationError("reveal does not match commitment")
        participants = lottery["participants"]
        lottery["winner"] = participants[seed[0] % len(participants)]
        return lottery["winner"]


class RandomManipulationExemplar(Exemplar):
    kind = VulnerabilityKind.RANDOM_MANIPULATION
    name = "Random Number Manipulation Vulnerability"
    description = (
        "The program draws randomness from values an attacker can predict or "
        "influence, such as block timestamps or slot numbers, so games and "
        "lotteries can be steered to a chosen outcome."
    )
    platforms = ("Solana", "NEAR", "Polkadot", "All blockchain platforms")
    detection_methods = (
        "Identify every source of randomness in the program",
        "Check whether randomness comes from block data or timestamps",
        "Look for randomness derived from user-controlled inputs",
        "Consider what a validator could bias by choosing block timing",
    )
    remediation = (
        "Use a verifiable random function service where available",
        "Use commit-reveal schemes for randomness",
        "Combine entropy sources no single party controls",
    )
    vulnerable_program = VulnerableLottery
    secure_program = SecureLottery
    rejection_failures = (AuthorizationError, InvalidInput, InvalidState)
