"""
Hash-chain rules for the land record ledger.

This module defines what makes a sequence of blocks a valid chain,
independently of where the blocks are stored:
- Append rule: a block linked after a tail takes index tail.index + 1 and
  previous_hash tail.hash, then computes its own hash
- Verification rule: every adjacent pair must be linked, consecutively
  indexed and carry an untampered hash; the first offending index is reported
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from landledger.config.settings import Settings, settings as default_settings
from landledger.core.block import Block
from landledger.core.exceptions import LedgerCompromisedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainVerification:
    """Outcome of verifying a block sequence."""

    valid: bool
    length: int
    failed_index: int | None = None
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "length": self.length,
            "failed_index": self.failed_index,
            "reason": self.reason
        }


class HashChain:
    """
    Construction and verification rules over an ordered block sequence.

    The chain itself is not held here; callers pass the blocks they read
    from a ledger store.
    """

    def __init__(self, config: Settings | None = None):
        self.config = config or default_settings
        self.genesis_index = self.config.GENESIS_INDEX
        self.genesis_previous_hash = self.config.GENESIS_PREVIOUS_HASH

    def create_genesis(self) -> Block:
        """Create the genesis block anchoring a new chain."""
        return Block(
            reference_number=self.config.GENESIS_REFERENCE,
            size="0",
            price=0,
            index=self.genesis_index,
            previous_hash=self.genesis_previous_hash
        )

    def is_genesis(self, block: Block) -> bool:
        return block.index == self.genesis_index and block.previous_hash == self.genesis_previous_hash

    @staticmethod
    def next_block(
        tail: Block,
        reference_number: str,
        size: str,
        price: int,
        owner: str | None = None,
        owner_id: str | None = None
    ) -> Block:
        """
        Build the block that extends the chain after the given tail.

        Args:
            tail: Current last block of the chain
            reference_number: Parcel identifier
            size: Parcel size
            price: Parcel price
            owner: New holder's display name (None for a fresh record)
            owner_id: New holder's account id (None for a fresh record)

        Returns:
            New block linked to the tail
        """
        return Block(
            reference_number=reference_number,
            size=size,
            price=price,
            index=tail.index + 1,
            previous_hash=tail.hash,
            owner=owner,
            owner_id=owner_id
        )

    def build(self, descriptors: Iterable[dict[str, Any]]) -> list[Block]:
        """
        Build a linear chain from genesis through each parcel descriptor.

        Args:
            descriptors: Parcel descriptors with reference_number, size and price, in chain order

        Returns:
            Genesis block followed by one linked, unowned block per descriptor
        """
        blocks = [self.create_genesis()]
        for descriptor in descriptors:
            blocks.append(self.next_block(
                blocks[-1],
                reference_number=descriptor["reference_number"],
                size=descriptor["size"],
                price=descriptor["price"]
            ))
        return blocks

    def verify(self, blocks: Sequence[Block]) -> ChainVerification:
        """
        Verify an ordered block sequence.

        Stops at the first offending block and never attempts repair.

        Args:
            blocks: Blocks in chain order, genesis first

        Returns:
            ChainVerification describing the outcome
        """
        length = len(blocks)
        if not blocks:
            return ChainVerification(valid=True, length=0)

        genesis = blocks[0]
        if genesis.index != self.genesis_index:
            return self._failure(length, self.genesis_index, f"genesis index is {genesis.index}")
        if genesis.previous_hash != self.genesis_previous_hash:
            return self._failure(length, self.genesis_index, "genesis block has a predecessor link")
        if not genesis.has_valid_hash():
            return self._failure(length, self.genesis_index, "invalid hash")

        for i in range(1, length):
            current_block = blocks[i]
            previous_block = blocks[i - 1]
            position = self.genesis_index + i

            if current_block.previous_hash != previous_block.hash:
                return self._failure(length, position, "previous hash is invalid")

            if current_block.index != previous_block.index + 1:
                return self._failure(
                    length, position,
                    f"index does not follow predecessor index {previous_block.index}"
                )

            if not current_block.has_valid_hash():
                return self._failure(length, position, "invalid hash")

        return ChainVerification(valid=True, length=length)

    def ensure_valid(self, blocks: Sequence[Block]) -> ChainVerification:
        """
        Verify the blocks and raise if the chain is compromised.

        Raises:
            LedgerCompromisedError: If verification fails
        """
        result = self.verify(blocks)
        if not result.valid:
            raise LedgerCompromisedError(result.failed_index, result.reason)
        return result

    @staticmethod
    def _failure(length: int, index: int, reason: str) -> ChainVerification:
        logger.error(f"Block {index} failed verification: {reason}")
        return ChainVerification(valid=False, length=length, failed_index=index, reason=reason)
