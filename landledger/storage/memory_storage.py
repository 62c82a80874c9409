"""
Memory Storage Module for the land record ledger.

This module provides an in-memory document store with secondary indexes, and
the in-memory ledger, account and backend implementations built on it. All
writes go through one backend lock; reads return copies so callers always
work on a consistent snapshot and can never mutate stored documents.
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Sequence

from landledger.core.account import Account
from landledger.core.block import Block
from landledger.core.exceptions import StorageError
from landledger.core.utils import generate_account_id
from landledger.storage.base import AccountStore, LedgerStore, StorageBackend, UnitOfWork, check_extends

logger = logging.getLogger(__name__)


class MemoryStorage:
    """Simple thread-safe in-memory document store"""

    def __init__(self, lock: threading.RLock | None = None):
        self.data: dict[str, dict[str, Any]] = {}
        self.indexes: dict[str, dict[Any, list[str]]] = {}
        self.lock = lock or threading.RLock()

    def create_index(self, field_name: str):
        """Create index for field, covering documents already stored"""
        with self.lock:
            if field_name in self.indexes:
                return
            self.indexes[field_name] = {}
            for key, value in self.data.items():
                self._index_document(field_name, key, value)

    def get(self, key: str) -> dict[str, Any] | None:
        """Get a copy of the document stored under key"""
        with self.lock:
            value = self.data.get(key)
            return copy.deepcopy(value) if value is not None else None

    def insert(self, key: str, value: dict[str, Any]):
        """Insert a new document; keys are never reused"""
        with self.lock:
            if key in self.data:
                raise StorageError(f"Document '{key}' already exists")
            self.data[key] = copy.deepcopy(value)

            # Update indexes
            for field_name in self.indexes:
                self._index_document(field_name, key, value)

    def update(self, key: str, changes: dict[str, Any]):
        """Apply changes to a single document in one step"""
        with self.lock:
            if key not in self.data:
                raise StorageError(f"Document '{key}' does not exist")
            document = self.data[key]
            for field_name in self.indexes:
                if field_name in changes:
                    self._unindex_document(field_name, key, document)
            document.update(copy.deepcopy(changes))
            for field_name in self.indexes:
                if field_name in changes:
                    self._index_document(field_name, key, document)

    def query_by_index(self, index_name: str, value: Any) -> list[str]:
        """Query using index; keys come back in insertion order"""
        with self.lock:
            if index_name not in self.indexes:
                return []
            return list(self.indexes[index_name].get(value, []))

    def get_all_values(self) -> list[dict[str, Any]]:
        """Get copies of all documents in insertion order"""
        with self.lock:
            return copy.deepcopy(list(self.data.values()))

    def last_value(self) -> dict[str, Any] | None:
        """Copy of the most recently inserted document"""
        with self.lock:
            if not self.data:
                return None
            return copy.deepcopy(next(reversed(self.data.values())))

    def size(self) -> int:
        """Get number of documents in storage"""
        with self.lock:
            return len(self.data)

    def _index_document(self, field_name: str, key: str, value: dict[str, Any]):
        if field_name in value:
            field_value = value[field_name]
            if field_value not in self.indexes[field_name]:
                self.indexes[field_name][field_value] = []
            if key not in self.indexes[field_name][field_value]:
                self.indexes[field_name][field_value].append(key)

    def _unindex_document(self, field_name: str, key: str, value: dict[str, Any]):
        if field_name in value:
            field_value = value[field_name]
            keys = self.indexes[field_name].get(field_value, [])
            if key in keys:
                keys.remove(key)
            if not keys:
                self.indexes[field_name].pop(field_value, None)


class MemoryLedgerStore(LedgerStore):
    """Block collection kept in insertion (chain) order"""

    def __init__(self, lock: threading.RLock | None = None):
        self.storage = MemoryStorage(lock)
        self.storage.create_index("reference_number")

    @property
    def lock(self) -> threading.RLock:
        return self.storage.lock

    def append_one(self, block: Block) -> Block:
        with self.lock:
            check_extends([block], self.tail_hash())
            self.insert_block(block)
        return block

    def append_many(self, blocks: Sequence[Block]) -> int:
        with self.lock:
            check_extends(blocks, self.tail_hash())
            for block in blocks:
                self.insert_block(block)
        logger.debug(f"Appended {len(blocks)} blocks in bulk")
        return len(blocks)

    def tail(self) -> Block | None:
        document = self.storage.last_value()
        return Block.from_dict(document) if document is not None else None

    def all(self) -> list[Block]:
        return [Block.from_dict(document) for document in self.storage.get_all_values()]

    def find_by_reference(self, reference_number: str) -> list[Block]:
        with self.lock:
            keys = self.storage.query_by_index("reference_number", reference_number)
            return [Block.from_dict(self.storage.get(key)) for key in keys]

    def count(self) -> int:
        return self.storage.size()

    def tail_hash(self) -> str | None:
        document = self.storage.last_value()
        return document["hash"] if document is not None else None

    def insert_block(self, block: Block):
        """Write a block without linkage checks; callers hold the lock"""
        key = f"{self.storage.size():012d}"
        self.storage.insert(key, block.to_dict())
        logger.debug(f"Stored block #{block.index} under key {key}")


class MemoryAccountStore(AccountStore):
    """Accounts keyed by id"""

    def __init__(self, lock: threading.RLock | None = None):
        self.storage = MemoryStorage(lock)

    @property
    def lock(self) -> threading.RLock:
        return self.storage.lock

    def create(self, name: str, credit: int) -> str:
        account_id = generate_account_id()
        self.storage.insert(account_id, {"id": account_id, "name": name, "credit": credit})
        return account_id

    def create_many(self, accounts: Sequence[dict[str, Any]]) -> list[str]:
        with self.lock:
            return [self.create(account["name"], account["credit"]) for account in accounts]

    def get(self, account_id: str) -> Account | None:
        document = self.storage.get(account_id)
        return Account.from_dict(document) if document is not None else None

    def list(self) -> list[Account]:
        return [Account.from_dict(document) for document in self.storage.get_all_values()]

    def count(self) -> int:
        return self.storage.size()

    def apply_credit_changes(self, deltas: dict[str, int]):
        """Apply balance changes, all or none"""
        with self.lock:
            updated = {}
            for account_id, delta in deltas.items():
                document = self.storage.get(account_id)
                if document is None:
                    raise StorageError(f"Account '{account_id}' does not exist")
                new_credit = document["credit"] + delta
                if new_credit < 0:
                    raise StorageError(
                        f"Account '{account_id}' would be overdrawn: {document['credit']} + ({delta})"
                    )
                updated[account_id] = new_credit
            for account_id, new_credit in updated.items():
                self.storage.update(account_id, {"credit": new_credit})


class MemoryUnitOfWork(UnitOfWork):
    """Changes staged in process memory until commit"""

    def __init__(self):
        self.blocks: list[Block] = []
        self.credit_deltas: dict[str, int] = {}

    def append_block(self, block: Block) -> None:
        self.blocks.append(block)

    def adjust_credit(self, account_id: str, delta: int) -> None:
        self.credit_deltas[account_id] = self.credit_deltas.get(account_id, 0) + delta

    def clear(self):
        self.blocks.clear()
        self.credit_deltas.clear()


class MemoryBackend(StorageBackend):
    """In-memory backend; one lock guards both stores"""

    name = "memory"

    def __init__(self):
        self.lock = threading.RLock()
        self.ledger = MemoryLedgerStore(self.lock)
        self.accounts = MemoryAccountStore(self.lock)
        logger.info("MemoryBackend initialized")

    def begin(self) -> MemoryUnitOfWork:
        return MemoryUnitOfWork()

    def commit(self, unit: MemoryUnitOfWork) -> None:
        with self.lock:
            # Everything is checked before anything is written
            check_extends(unit.blocks, self.ledger.tail_hash())
            self.accounts.apply_credit_changes(unit.credit_deltas)
            for block in unit.blocks:
                self.ledger.insert_block(block)
        logger.debug(
            f"Committed {len(unit.blocks)} block(s) and {len(unit.credit_deltas)} credit change(s)"
        )
        unit.clear()

    def rollback(self, unit: MemoryUnitOfWork) -> None:
        unit.clear()
