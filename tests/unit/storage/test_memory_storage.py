"""
Test suite for the in-memory storage backend

Covers the document store, the ledger and account stores, and the
all-or-nothing unit of work.
"""

import threading

import pytest

from landledger.core.exceptions import ConcurrentAppendError, StorageError
from landledger.core.hash_chain import HashChain
from landledger.storage.memory_storage import MemoryBackend, MemoryStorage


def test_memory_storage_index_and_copies():
    """Test indexing and that reads return copies"""
    storage = MemoryStorage()
    storage.create_index("reference_number")
    storage.insert("a", {"reference_number": "R1", "price": 1})
    storage.insert("b", {"reference_number": "R2", "price": 2})
    storage.insert("c", {"reference_number": "R1", "price": 3})

    assert storage.query_by_index("reference_number", "R1") == ["a", "c"]
    assert storage.query_by_index("missing_index", "R1") == []

    document = storage.get("a")
    document["price"] = 99
    assert storage.get("a")["price"] == 1
    assert storage.last_value()["price"] == 3
    assert storage.size() == 3


def test_memory_storage_update_reindexes():
    """Test that single-document updates keep indexes current"""
    storage = MemoryStorage()
    storage.create_index("owner")
    storage.insert("a", {"owner": "x"})

    storage.update("a", {"owner": "y"})

    assert storage.query_by_index("owner", "x") == []
    assert storage.query_by_index("owner", "y") == ["a"]
    with pytest.raises(StorageError):
        storage.update("missing", {"owner": "z"})


def test_memory_storage_rejects_key_reuse():
    """Test that documents are never overwritten"""
    storage = MemoryStorage()
    storage.insert("a", {"v": 1})

    with pytest.raises(StorageError):
        storage.insert("a", {"v": 2})


def test_ledger_store_append_and_read():
    """Test append_one, tail, find_by_reference and count"""
    backend = MemoryBackend()
    chain = HashChain()
    genesis = chain.create_genesis()
    first = chain.next_block(genesis, "R1", "1Ha", 100)

    backend.ledger.append_one(genesis)
    backend.ledger.append_one(first)

    assert backend.ledger.count() == 2
    assert backend.ledger.tail() == first
    assert backend.ledger.all() == [genesis, first]
    assert backend.ledger.find_by_reference("R1") == [first]
    assert backend.ledger.find_by_reference("R9") == []


def test_ledger_store_rejects_stale_append():
    """Test that an append must extend the current tail"""
    backend = MemoryBackend()
    chain = HashChain()
    genesis = chain.create_genesis()
    backend.ledger.append_one(genesis)
    backend.ledger.append_one(chain.next_block(genesis, "R1", "1Ha", 100))

    with pytest.raises(ConcurrentAppendError):
        backend.ledger.append_one(chain.next_block(genesis, "R2", "1Ha", 100))
    assert backend.ledger.count() == 2


def test_ledger_store_rejects_non_genesis_on_empty_store():
    """Test that an empty store only accepts a genesis-linked block"""
    backend = MemoryBackend()
    chain = HashChain()
    orphan = chain.next_block(chain.create_genesis(), "R1", "1Ha", 100)

    with pytest.raises(ConcurrentAppendError):
        backend.ledger.append_one(orphan)


def test_append_many_preserves_order():
    """Test bulk append keeps input order"""
    backend = MemoryBackend()
    blocks = HashChain().build([
        {"reference_number": f"R{i}", "size": "1Ha", "price": i} for i in range(5)
    ])

    assert backend.ledger.append_many(blocks) == 6
    assert backend.ledger.all() == blocks


def test_account_store():
    """Test account creation and lookup"""
    backend = MemoryBackend()
    alice = backend.accounts.create("Alice", 1000)
    ids = backend.accounts.create_many([{"name": "Bob", "credit": 0}, {"name": "Eve", "credit": 5}])

    assert backend.accounts.get(alice).credit == 1000
    assert backend.accounts.get("unknown") is None
    assert [a.name for a in backend.accounts.list()] == ["Alice", "Bob", "Eve"]
    assert backend.accounts.count() == 3
    assert len(ids) == 2


def test_unit_of_work_commits_everything():
    """Test that staged credit changes and blocks publish together"""
    backend = MemoryBackend()
    chain = HashChain()
    genesis = chain.create_genesis()
    backend.ledger.append_one(genesis)
    buyer = backend.accounts.create("Buyer", 500)
    seller = backend.accounts.create("Seller", 0)

    with backend.atomic() as unit:
        unit.adjust_credit(buyer, -200)
        unit.adjust_credit(seller, 200)
        unit.append_block(chain.next_block(genesis, "R1", "1Ha", 200, owner="Buyer", owner_id=buyer))

    assert backend.accounts.get(buyer).credit == 300
    assert backend.accounts.get(seller).credit == 200
    assert backend.ledger.count() == 2


def test_unit_of_work_overdraw_leaves_no_effect():
    """Test that an overdraw rejects the whole unit"""
    backend = MemoryBackend()
    chain = HashChain()
    genesis = chain.create_genesis()
    backend.ledger.append_one(genesis)
    buyer = backend.accounts.create("Buyer", 50)
    seller = backend.accounts.create("Seller", 0)

    with pytest.raises(StorageError):
        with backend.atomic() as unit:
            unit.adjust_credit(seller, 100)
            unit.adjust_credit(buyer, -100)
            unit.append_block(chain.next_block(genesis, "R1", "1Ha", 100))

    assert backend.accounts.get(buyer).credit == 50
    assert backend.accounts.get(seller).credit == 0
    assert backend.ledger.count() == 1


def test_unit_of_work_discarded_on_exception():
    """Test that an exception inside the block discards staged changes"""
    backend = MemoryBackend()
    account = backend.accounts.create("Alice", 10)

    with pytest.raises(RuntimeError):
        with backend.atomic() as unit:
            unit.adjust_credit(account, -10)
            raise RuntimeError("boom")

    assert backend.accounts.get(account).credit == 10


def test_unit_of_work_unknown_account():
    """Test that a credit change for an unknown account fails the unit"""
    backend = MemoryBackend()
    chain = HashChain()

    with pytest.raises(StorageError):
        with backend.atomic() as unit:
            unit.append_block(chain.create_genesis())
            unit.adjust_credit("ghost", 10)

    assert backend.ledger.count() == 0


def test_backend_stores_share_one_lock():
    """Test both stores and the commit path use the backend lock"""
    backend = MemoryBackend()

    assert backend.ledger.lock is backend.lock
    assert backend.accounts.lock is backend.lock

    lock = threading.RLock()
    storage = MemoryStorage(lock)
    assert storage.lock is lock
