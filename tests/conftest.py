"""
Pytest configuration for the land record ledger.

Ensures the project root is on sys.path so `import landledger` resolves when
the package is not installed, and provides backend and ledger fixtures.
"""

import os
import sys
import pytest

# Compute project root (parent of this tests directory)
_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

from landledger.core.ledger import Ledger
from landledger.storage.memory_storage import MemoryBackend
from landledger.storage.models import BlockModel
from landledger.storage.sql_backend import SqlStorageBackend


@pytest.fixture
def memory_backend():
    return MemoryBackend()


@pytest.fixture
def sql_backend(tmp_path):
    backend = SqlStorageBackend(f"sqlite:///{tmp_path / 'ledger.db'}")
    yield backend
    backend.close()


@pytest.fixture(params=["memory", "sql"])
def backend(request, tmp_path):
    """Every storage backend, so ledger behaviour is checked against each"""
    if request.param == "memory":
        yield MemoryBackend()
    else:
        sql = SqlStorageBackend(f"sqlite:///{tmp_path / 'ledger.db'}")
        yield sql
        sql.close()


@pytest.fixture
def ledger(backend):
    return Ledger(backend)


@pytest.fixture
def seeded(ledger):
    """Ledger seeded with Alice (1000), Bob (0) and parcel R1 priced 100"""
    result = ledger.seed(
        [{"name": "Alice", "credit": 1000}, {"name": "Bob", "credit": 0}],
        [{"referenceNumber": "R1", "size": "1Ha", "price": 100}]
    )
    alice_id, bob_id = result.account_ids
    return ledger, alice_id, bob_id


@pytest.fixture
def tamper():
    """Rewrite a stored block in place, bypassing the ledger"""
    def _tamper(backend, index, **changes):
        if backend.name == "memory":
            backend.ledger.storage.data[f"{index:012d}"].update(changes)
        else:
            with backend.Session() as session:
                session.query(BlockModel).filter_by(index=index).update(changes)
                session.commit()
    return _tamper
