"""
Ledger facade for the land record ledger.

A Ledger is an explicitly constructed instance bound to one storage backend.
It owns the write lock that serializes every "read tail, link, append"
sequence, runs integrity verification in front of every read, and exposes the
seeding, record-creation, query and transfer operations.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, TypeVar

from landledger.config.settings import Settings, settings as default_settings
from landledger.core.account import Account
from landledger.core.block import Block
from landledger.core.exceptions import (
    AccountNotFoundError,
    AlreadySeededError,
    ConcurrentAppendError,
    DuplicateReferenceError,
    ParcelNotFoundError,
)
from landledger.core.hash_chain import ChainVerification, HashChain
from landledger.core.schemas import AccountCreateRequest, ParcelRecordRequest, SeedRequest, parse_request
from landledger.core.transfer_engine import TransferEngine, TransferReceipt
from landledger.storage import StorageBackend, create_backend

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class SeedResult:
    """Accounts and blocks written by a seeding run."""

    account_ids: list[str] = field(default_factory=list)
    blocks: list[Block] = field(default_factory=list)


class Ledger:
    """
    Land record ledger bound to a storage backend.

    Writers (seeding, record creation, transfers) are serialized through
    write_lock; readers take a snapshot from the store and verify it.
    """

    def __init__(
        self,
        backend: StorageBackend,
        hash_chain: HashChain | None = None,
        config: Settings | None = None
    ):
        """
        Initialize the ledger.

        Args:
            backend: Storage backend holding blocks and accounts
            hash_chain: Chain rules (defaults to rules built from config)
            config: Settings (defaults to the global settings)
        """
        self.backend = backend
        self.config = config or default_settings
        self.hash_chain = hash_chain or HashChain(self.config)
        self.write_lock = threading.RLock()
        self.transfer_engine = TransferEngine(self)

    @classmethod
    def from_settings(cls, config: Settings | None = None, database_url: str | None = None) -> 'Ledger':
        """
        Build a ledger over the backend named by the configuration.

        Raises:
            ValueError: If the configuration is invalid
        """
        config = config or default_settings
        errors = config.validate_config()
        if errors:
            logger.error(f"Invalid configuration: {'; '.join(errors)}")
            raise ValueError(f"Invalid configuration: {'; '.join(errors)}")
        return cls(create_backend(config, database_url), config=config)

    def run_serialized(self, description: str, operation: Callable[[], T]) -> T:
        """
        Run a write operation under the write lock.

        The whole operation, validation included, is re-run when the store
        reports that another writer moved the tail in between.

        Raises:
            ConcurrentAppendError: If every attempt lost the race
        """
        attempts = self.config.APPEND_RETRY_LIMIT
        for attempt in range(1, attempts):
            with self.write_lock:
                try:
                    return operation()
                except ConcurrentAppendError as e:
                    logger.warning(f"{description} attempt {attempt}/{attempts} lost a race: {e}")

        with self.write_lock:
            try:
                return operation()
            except ConcurrentAppendError as e:
                logger.error(f"{description} failed after {attempts} attempts: {e}")
                raise

    # Integrity

    def verify_chain(self) -> ChainVerification:
        """Verify the stored chain without raising."""
        return self.hash_chain.verify(self.backend.ledger.all())

    def verified_blocks(self) -> list[Block]:
        """
        Snapshot of the chain after full verification.

        Raises:
            LedgerCompromisedError: If the stored chain fails verification
        """
        blocks = self.backend.ledger.all()
        self.hash_chain.ensure_valid(blocks)
        return blocks

    # Seeding

    def seed(self, accounts: Iterable[Any], records: Iterable[Any]) -> SeedResult:
        """
        Initialize an empty ledger with accounts and parcel records.

        Args:
            accounts: Account descriptors ({"name", "credit"})
            records: Parcel descriptors ({"referenceNumber" or "reference_number", "size", "price"})

        Returns:
            SeedResult with the created account ids and the written chain

        Raises:
            AlreadySeededError: If the ledger already holds blocks
            DuplicateReferenceError: If the records repeat a reference number
            InvalidRequestError: If a descriptor is malformed
        """
        request = parse_request(SeedRequest, {"users": list(accounts), "records": list(records)})

        seen: set[str] = {self.config.GENESIS_REFERENCE}
        for record in request.records:
            if record.reference_number in seen:
                raise DuplicateReferenceError(record.reference_number)
            seen.add(record.reference_number)

        with self.write_lock:
            existing = self.backend.ledger.count()
            if existing > 0:
                logger.warning(f"Refusing to seed a ledger holding {existing} blocks")
                raise AlreadySeededError(existing)

            account_ids = self.backend.accounts.create_many(
                [account.model_dump() for account in request.accounts]
            )
            blocks = self.hash_chain.build(record.model_dump() for record in request.records)
            try:
                self.backend.ledger.append_many(blocks)
            except ConcurrentAppendError as e:
                # Another process seeded the store first
                raise AlreadySeededError(self.backend.ledger.count()) from e

        logger.info(f"Ledger seeded with {len(account_ids)} accounts and {len(blocks)} blocks")
        return SeedResult(account_ids=account_ids, blocks=blocks)

    # Accounts

    def create_account(self, name: str, credit: int = 0) -> str:
        """Create an account and return its id."""
        request = parse_request(AccountCreateRequest, {"name": name, "credit": credit})
        account_id = self.backend.accounts.create(request.name, request.credit)
        logger.info(f"Created account {account_id} ({request.name})")
        return account_id

    def get_account(self, account_id: str) -> Account:
        """
        Fetch one account.

        Raises:
            AccountNotFoundError: If the account does not exist
        """
        account = self.backend.accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    def list_accounts(self) -> list[Account]:
        return self.backend.accounts.list()

    # Parcel records

    def create_parcel_record(self, reference_number: str, size: str, price: int) -> Block:
        """
        Record a new, unowned parcel at the end of the chain.

        On an empty ledger the genesis block is written in the same unit of
        work, so the new record gets index 1.

        Raises:
            DuplicateReferenceError: If any block already carries the reference number
            InvalidRequestError: If the descriptor is malformed
        """
        request = parse_request(
            ParcelRecordRequest,
            {"reference_number": reference_number, "size": size, "price": price}
        )
        if request.reference_number == self.config.GENESIS_REFERENCE:
            raise DuplicateReferenceError(request.reference_number)

        def operation() -> Block:
            if self.backend.ledger.find_by_reference(request.reference_number):
                logger.warning(f"Record {request.reference_number} already exists")
                raise DuplicateReferenceError(request.reference_number)

            tail = self.backend.ledger.tail()
            with self.backend.atomic() as unit:
                if tail is None:
                    tail = self.hash_chain.create_genesis()
                    unit.append_block(tail)
                block = self.hash_chain.next_block(
                    tail,
                    reference_number=request.reference_number,
                    size=request.size,
                    price=request.price
                )
                unit.append_block(block)
            return block

        block = self.run_serialized(f"Record {request.reference_number}", operation)
        logger.info(f"Recorded parcel {block.reference_number} as block #{block.index}")
        return block

    def list_parcel_records(self, reference_number: str | None = None) -> list[Block]:
        """
        List blocks in chain order, optionally for one parcel.

        Raises:
            LedgerCompromisedError: If the stored chain fails verification
        """
        blocks = self.verified_blocks()
        if reference_number is None:
            return blocks
        return [block for block in blocks if block.reference_number == reference_number]

    def parcel_history(self, reference_number: str, blocks: list[Block] | None = None) -> list[Block]:
        """
        Ownership history of one parcel, oldest first.

        Args:
            reference_number: Parcel identifier
            blocks: Verified snapshot to search (read and verified when omitted)

        Raises:
            LedgerCompromisedError: If the stored chain fails verification
            ParcelNotFoundError: If no block carries the reference number
        """
        if blocks is None:
            blocks = self.verified_blocks()
        history = [
            block for block in blocks
            if block.reference_number == reference_number and not self.hash_chain.is_genesis(block)
        ]
        if not history:
            raise ParcelNotFoundError(reference_number)
        return history

    def current_owner(self, reference_number: str) -> tuple[str | None, str | None]:
        """
        Current holder of a parcel as (owner_id, owner).

        Both are None for a parcel that has never been transferred.
        """
        latest = self.parcel_history(reference_number)[-1]
        return latest.owner_id, latest.owner

    # Transfers

    def transfer_parcel(self, reference_number: str, account_id: str) -> TransferReceipt:
        """Transfer a parcel to an account; see TransferEngine.transfer."""
        return self.transfer_engine.transfer(reference_number, account_id)

    def close(self):
        self.backend.close()
