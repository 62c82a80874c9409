"""
Storage backends for the land record ledger.
"""

import logging

from landledger.config.settings import Settings, settings as default_settings
from landledger.storage.base import AccountStore, LedgerStore, StorageBackend, UnitOfWork
from landledger.storage.memory_storage import MemoryBackend
from landledger.storage.sql_backend import SqlStorageBackend

logger = logging.getLogger(__name__)


def create_backend(config: Settings | None = None, database_url: str | None = None) -> StorageBackend:
    """
    Build the storage backend named by the configuration.

    Args:
        config: Settings to read the backend choice from
        database_url: Overrides the configured database URL (sql backend only)

    Returns:
        A ready-to-use storage backend
    """
    config = config or default_settings
    storage_config = config.get_storage_config()
    backend = storage_config["backend"]
    logger.debug(f"Creating {backend} storage backend")

    if backend == "memory":
        return MemoryBackend()
    if backend == "sql":
        return SqlStorageBackend(database_url or storage_config["database_url"], echo=storage_config["echo"])

    raise ValueError(f"Unknown storage backend '{backend}'")


__all__ = [
    "AccountStore",
    "LedgerStore",
    "StorageBackend",
    "UnitOfWork",
    "MemoryBackend",
    "SqlStorageBackend",
    "create_backend",
]
