"""Signature verification bypass in signed transfer instructions.

Signatures are HMAC-SHA256 tags over the signing payload, keyed with the
account's secret.
"""

import hashlib
import hmac
import struct

from catalog.exemplars.base import Exemplar, VulnerabilityKind
from catalog.exemplars.runtime import (
    AuthorizationError,
    ContractProgram,
    InsufficientFunds,
    InvalidInput,
    checked_add,
)

PROGRAM_ID = b"sigtransfer111111111111111111111"


def sign_payload(key: bytes, payload: bytes) -> str:
    return hmac.new(key, payload, hashlib.sha256).hexdigest()


class _SignedTransfers(ContractProgram):
    def __init__(self, meter=None):
        super().__init__(meter)
        self.keys = {}
        self.balances = {}
        self.nonces = {}

    def register_account(self, owner: str, key: bytes, balance: int = 0) -> None:
        if owner in self.keys:
            raise InvalidInput(f"account {owner} already registered")
        self.keys[owner] = key
        self.balances[owner] = balance
        self.nonces[owner] = 0

    def _verify(self, sender: str, payload: bytes, signature: str) -> None:
        key = self.keys.get(sender)
        if key is None:
            raise InvalidInput(f"account {sender} not found")
        if not hmac.compare_digest(sign_payload(key, payload), signature):
            raise AuthorizationError("invalid signature")

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        if self.balances[sender] < amount:
            raise InsufficientFunds(f"{sender} cannot cover {amount}")
        self.balances[sender] -= amount
        self.balances[recipient] = checked_add(self.balances.get(recipient, 0), amount)


class VulnerableSignedTransfers(_SignedTransfers):
    def signing_payload(self, sender: str, recipient: str, amount: int, nonce: int) -> bytes:
        return struct.pack("<Q", amount)  # [source]

    def transfer(self, sender: str, recipient: str, amount: int, nonce: int, signature: str) -> None:
        self.meter.consume()
        payload = self.signing_payload(sender, recipient, amount, nonce)
        self._verify(sender, payload, signature)
        self._move(sender, recipient, amount)  # [sink]


class SecureSignedTransfers(_SignedTransfers):
    def signing_payload(self, sender: str, recipient: str, amount: int, nonce: int) -> bytes:
        # Domain-separated: program id, both parties, amount and nonce.
        return b"|".join(
            (
                PROGRAM_ID,
                b"transfer",
                sender.encode("utf-8"),
                recipient.encode("utf-8"),
                struct.pack("<QQ", amount, nonce),
            )
        )

    def transfer(self, sender: str, recipient: str, amount: int, nonce: int, signature: str) -> None:
        self.meter.consume()
        if sender not in self.nonces:
            raise InvalidInput(f"account {sender} not found")
        if nonce != self.nonces[sender]:
            raise AuthorizationError("invalid nonce, possible replay")
        payload = self.signing_payload(sender, recipient, amount, nonce)
        self._verify(sender, payload, signature)
        self._move(sender, recipient, amount)
        self.nonces[sender] += 1


class SignatureVerificationExemplar(Exemplar):
    kind = VulnerabilityKind.SIGNATURE_VERIFICATION
    name = "Signature Verification Bypass Vulnerability"
    description = (
        "The program accepts signatures that do not bind everything the instruction "
        "does, or accepts the same signature more than once, letting attackers "
        "redirect or replay authorisations they observed."
    )
    platforms = ("Solana", "NEAR", "Polkadot", "CosmWasm")
    detection_methods = (
        "Check that the signed message covers amount, recipient and nonce",
        "Verify signatures cannot be reused in a different context",
        "Check nonce handling for replay protection",
        "Review which cryptographic primitives the verification uses",
    )
    remediation = (
        "Sign every field that affects the instruction's effect",
        "Track and enforce per-account nonces",
        "Add domain separation (program id, instruction type) to signed messages",
        "Rely on established cryptographic libraries",
    )
    vulnerable_program = VulnerableSignedTransfers
    secure_program = SecureSignedTransfers
    rejection_failures = (AuthorizationError, InsufficientFunds, InvalidInput)
