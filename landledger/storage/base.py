"""
Storage contracts for the land record ledger.

The ledger engine depends on three abstractions:
- LedgerStore: durable, ordered, append-only block collection
- AccountStore: balance-holding accounts
- StorageBackend: bundles both stores and offers a unit of work so a
  transfer's debit, credit and block append are published together or not
  at all
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

from landledger.config.settings import settings
from landledger.core.account import Account
from landledger.core.block import Block
from landledger.core.exceptions import ConcurrentAppendError


class LedgerStore(ABC):
    """Ordered collection of blocks with atomic append and snapshot reads."""

    @abstractmethod
    def append_one(self, block: Block) -> Block:
        """
        Durably append a block after the current tail.

        The block's previous hash must equal the current tail hash, or the
        store must be empty.

        Raises:
            ConcurrentAppendError: If the block no longer extends the tail
            StorageError: If the write fails
        """

    @abstractmethod
    def append_many(self, blocks: Sequence[Block]) -> int:
        """Append blocks in order (bulk seeding). Returns the number written."""

    @abstractmethod
    def tail(self) -> Block | None:
        """Most recently appended block, None for an empty ledger."""

    @abstractmethod
    def all(self) -> list[Block]:
        """Snapshot of every block in chain order."""

    @abstractmethod
    def find_by_reference(self, reference_number: str) -> list[Block]:
        """All blocks of one parcel, in chain order."""

    @abstractmethod
    def count(self) -> int:
        """Number of stored blocks."""


class AccountStore(ABC):
    """Accounts referenced by parcel ownership."""

    @abstractmethod
    def create(self, name: str, credit: int) -> str:
        """Create an account and return its id."""

    @abstractmethod
    def create_many(self, accounts: Sequence[dict[str, Any]]) -> list[str]:
        """Create several accounts, returning their ids in input order."""

    @abstractmethod
    def get(self, account_id: str) -> Account | None:
        """Fetch one account, None if unknown."""

    @abstractmethod
    def list(self) -> list[Account]:
        """All accounts in creation order."""

    @abstractmethod
    def count(self) -> int:
        """Number of accounts."""


class UnitOfWork(ABC):
    """
    Staged ledger changes published together.

    Nothing staged here is visible to any reader until the enclosing
    StorageBackend.atomic() block exits cleanly.
    """

    @abstractmethod
    def append_block(self, block: Block) -> None:
        """Stage a block append."""

    @abstractmethod
    def adjust_credit(self, account_id: str, delta: int) -> None:
        """Stage a credit change for an account."""


class StorageBackend(ABC):
    """A ledger store and an account store sharing one transaction scope."""

    name = "abstract"

    ledger: LedgerStore
    accounts: AccountStore

    @abstractmethod
    def begin(self) -> UnitOfWork:
        """Start a unit of work."""

    @abstractmethod
    def commit(self, unit: UnitOfWork) -> None:
        """
        Publish every change staged in the unit of work.

        Raises:
            ConcurrentAppendError: If staged blocks no longer extend the tail
            StorageError: If an account is unknown, a balance would go negative
                or the write fails
        """

    @abstractmethod
    def rollback(self, unit: UnitOfWork) -> None:
        """Discard every change staged in the unit of work."""

    @contextmanager
    def atomic(self) -> Iterator[UnitOfWork]:
        """
        Run a block of staged changes as one unit.

        Commits on clean exit; rolls back and re-raises on any exception.
        """
        unit = self.begin()
        try:
            yield unit
        except BaseException:
            self.rollback(unit)
            raise
        try:
            self.commit(unit)
        except BaseException:
            self.rollback(unit)
            raise

    def close(self) -> None:
        """Release backend resources."""


def check_extends(blocks: Sequence[Block], tail_hash: str | None) -> None:
    """
    Check that blocks form a run starting right after the given tail.

    An empty store only accepts a run that begins with a genesis link.

    Raises:
        ConcurrentAppendError: If a block does not link to its predecessor
    """
    expected = tail_hash
    for block in blocks:
        if expected is None:
            if block.previous_hash != settings.GENESIS_PREVIOUS_HASH:
                raise ConcurrentAppendError(block.previous_hash, None)
        elif block.previous_hash != expected:
            raise ConcurrentAppendError(block.previous_hash, expected)
        expected = block.hash
