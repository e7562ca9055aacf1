"""Storage management for fixed-size, program-owned data accounts.

Account layout (little endian): ``u64 counter | u32 item_count | u64 items[]``.
"""

import struct

from catalog.exemplars.base import Exemplar, VulnerabilityKind
from catalog.exemplars.runtime import (
    AuthorizationError,
    BoundsViolation,
    ContractProgram,
    InvalidInput,
)

PROGRAM_ID = "store11111111111111111111111111111"
HEADER = struct.Struct("<QI")
ITEM = struct.Struct("<Q")


def capacity(size: int) -> int:
    """Number of items an account of ``size`` bytes can hold."""
    return max(0, (size - HEADER.size) // ITEM.size)


class _StorageProgram(ContractProgram):
    def __init__(self, meter=None):
        super().__init__(meter)
        self.program_id = PROGRAM_ID
        self.accounts = {}

    def allocate(self, address: str, size: int, owner: str = None) -> None:
        if address in self.accounts:
            raise InvalidInput(f"account {address} already exists")
        if size < HEADER.size:
            raise InvalidInput("account size too small for initial state")
        data = bytearray(size)
        HEADER.pack_into(data, 0, 0, 0)
        self.accounts[address] = {
            "owner": owner or self.program_id,
            "size": size,
            "data": data,
        }

    def _load(self, address: str) -> dict:
        account = self.accounts.get(address)
        if account is None:
            raise InvalidInput(f"account {address} not found")
        return account

    @staticmethod
    def read_header(data: bytes) -> tuple:
        if len(data) < HEADER.size:
            raise InvalidInput("data too small to deserialize")
        return HEADER.unpack_from(data, 0)

    def read_items(self, address: str) -> list:
        data = self._load(address)["data"]
        _, count = self.read_header(data)
        if len(data) < HEADER.size + count * ITEM.size:
            raise InvalidInput("data too small to deserialize all values")
        return [ITEM.unpack_from(data, HEADER.size + i * ITEM.size)[0] for i in range(count)]


class VulnerableStorageProgram(_StorageProgram):
    def increment(self, address: str) -> int:
        self.meter.consume()
        account = self._load(address)  # [source 1]
        counter, count = self.read_header(account["data"])
        HEADER.pack_into(account["data"], 0, counter + 1, count)  # [sink 1]
        return counter + 1

    def append_item(self, address: str, value: int) -> None:
        self.meter.consume()
        account = self._load(address)
        data = account["data"]
        counter, count = self.read_header(data)
        offset = HEADER.size + count * ITEM.size  # [source 2]
        if offset + ITEM.size > len(data):
            data.extend(bytes(offset + ITEM.size - len(data)))  # [sink 2]
        ITEM.pack_into(data, offset, value)
        HEADER.pack_into(data, 0, counter, count + 1)


class SecureStorageProgram(_StorageProgram):
    def _load_owned(self, address: str) -> dict:
        account = self._load(address)
        if account["owner"] != self.program_id:
            raise AuthorizationError("account not owned by this program")
        return account

    def increment(self, address: str) -> int:
        self.meter.consume()
        account = self._load_owned(address)
        counter, count = self.read_header(account["data"])
        HEADER.pack_into(account["data"], 0, counter + 1, count)
        return counter + 1

    def append_item(self, address: str, value: int) -> None:
        self.meter.consume()
        account = self._load_owned(address)
        data = account["data"]
        counter, count = self.read_header(data)
        if count >= capacity(account["size"]):
            raise BoundsViolation("account capacity exceeded")
        offset = HEADER.size + count * ITEM.size
        ITEM.pack_into(data, offset, value)
        HEADER.pack_into(data, 0, counter, count + 1)


class StorageManagementExemplar(Exemplar):
    kind = VulnerabilityKind.STORAGE_MANAGEMENT
    name = "Storage Management Vulnerability"
    description = (
        "The program mishandles on-chain storage: it writes to accounts it does not "
        "own, grows data past the space that was allocated and paid for, or "
        "deserialises data without checking its length."
    )
    platforms = ("Solana", "NEAR", "Polkadot", "CosmWasm")
    detection_methods = (
        "Check account size validation before every write",
        "Verify ownership checks on accounts the program mutates",
        "Look for error handling around serialization and deserialization",
        "Check bounds when extending dynamic data structures",
    )
    remediation = (
        "Validate account size before operations",
        "Only mutate accounts owned by the program",
        "Handle serialization errors explicitly",
        "Bound dynamic structures by the allocated capacity",
    )
    vulnerable_program = VulnerableStorageProgram
    secure_program = SecureStorageProgram
    compromise_failures = (BoundsViolation,)
    rejection_failures = (AuthorizationError, InvalidInput)
