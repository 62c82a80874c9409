"""
Block implementation for the land record ledger.

A block records one state of one land parcel (its owner, size and price at
that point in history) together with its position in the chain. Blocks are
immutable once constructed: the hash is computed over every other field,
including a freshly drawn nonce, and any later change to a stored block is
detected by recomputing it.
"""

from typing import Any

from landledger.config.settings import settings
from landledger.core.utils import (
    canonical_block_payload,
    current_timestamp_ms,
    generate_hash,
    generate_nonce,
)


_FIELDS = (
    "index",
    "timestamp",
    "owner",
    "owner_id",
    "reference_number",
    "size",
    "price",
    "previous_hash",
    "hash",
    "nonce",
)


class Block:
    """
    One append-only ledger entry for a land parcel.

    Constructing a block from a parcel descriptor alone yields an unowned,
    unlinked block (index 0, previous hash "0"); the hash chain supplies
    index and previous hash when the block is linked after a tail.
    """

    __slots__ = _FIELDS + ("_sealed",)

    def __init__(
        self,
        reference_number: str,
        size: str,
        price: int,
        index: int = 0,
        previous_hash: str = settings.GENESIS_PREVIOUS_HASH,
        owner: str | None = None,
        owner_id: str | None = None,
        timestamp: int | None = None,
        nonce: int | None = None,
        block_hash: str | None = None
    ):
        """
        Initialize a new block.

        Args:
            reference_number: Parcel identifier, shared by the parcel's whole history
            size: Descriptive parcel size (e.g. "10Ha")
            price: Parcel price at the time of this block
            index: Position in the chain
            previous_hash: Hash of the preceding block ("0" for genesis)
            owner: Display name of the current holder, None if never transferred
            owner_id: Account id of the current holder, None if never transferred
            timestamp: Creation instant in ms since the epoch (defaults to now)
            nonce: Decorative entropy (drawn at random when omitted)
            block_hash: Stored hash when loading a persisted block; computed when omitted
        """
        setter = object.__setattr__
        setter(self, "_sealed", False)
        setter(self, "index", index)
        setter(self, "timestamp", current_timestamp_ms() if timestamp is None else timestamp)
        setter(self, "owner", owner)
        setter(self, "owner_id", owner_id)
        setter(self, "reference_number", reference_number)
        setter(self, "size", size)
        setter(self, "price", price)
        setter(self, "previous_hash", previous_hash)
        setter(self, "nonce", generate_nonce(settings.NONCE_UPPER_BOUND) if nonce is None else nonce)
        setter(self, "hash", self.calculate_hash() if block_hash is None else block_hash)
        setter(self, "_sealed", True)

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, "_sealed", False):
            raise AttributeError(f"Block is immutable, cannot set '{name}'")
        object.__setattr__(self, name, value)

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"Block is immutable, cannot delete '{name}'")

    def calculate_hash(self) -> str:
        """
        Calculate the hash of the block.

        Returns:
            SHA-256 hash over the canonical field tuple (the stored hash excluded)
        """
        payload = canonical_block_payload(
            settings.HASH_SCHEMA_VERSION,
            self.index,
            self.previous_hash,
            self.timestamp,
            self.owner,
            self.owner_id,
            self.reference_number,
            self.size,
            self.price,
            self.nonce
        )
        return generate_hash(payload)

    def has_valid_hash(self) -> bool:
        """Check whether the stored hash matches the block's fields."""
        return self.hash == self.calculate_hash()

    @property
    def is_owned(self) -> bool:
        return self.owner_id is not None

    def to_dict(self) -> dict[str, Any]:
        """
        Convert block to dictionary representation.

        Returns:
            Dictionary representation of the block
        """
        return {field: getattr(self, field) for field in _FIELDS}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'Block':
        """
        Create a Block instance from dictionary data.

        The stored hash is kept as-is so that verification can detect
        documents altered after they were written.

        Args:
            data: Dictionary containing block data

        Returns:
            Block instance
        """
        return cls(
            reference_number=data["reference_number"],
            size=data["size"],
            price=data["price"],
            index=data["index"],
            previous_hash=data["previous_hash"],
            owner=data.get("owner"),
            owner_id=data.get("owner_id"),
            timestamp=data["timestamp"],
            nonce=data["nonce"],
            block_hash=data["hash"]
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Block):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash(self.hash)

    def __str__(self) -> str:
        """String representation of the block."""
        return f"Block(index={self.index}, ref={self.reference_number}, hash={self.hash[:10]}...)"

    def __repr__(self) -> str:
        """Detailed string representation of the block."""
        return (f"Block(index={self.index}, reference_number={self.reference_number!r}, "
                f"owner_id={self.owner_id!r}, price={self.price}, hash={self.hash})")
