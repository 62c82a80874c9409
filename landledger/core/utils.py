"""
Utility functions for the land record ledger.

This module provides the hashing primitives, the canonical block
serialization, and the entropy and identifier helpers used by the ledger
engine and its storage backends.
"""

import hashlib
import json
import secrets
import time
import uuid
from typing import Any

BLOCK_SERIALIZATION_TAG = "landledger-block"


def compute_hash_standalone(data_string: str) -> str:
    """Pure function to compute a SHA-256 hex digest."""
    return hashlib.sha256(data_string.encode("utf-8")).hexdigest()


def generate_hash(data: str | dict[str, Any] | list[Any]) -> str:
    """
    Generate SHA-256 hash for given data.

    Args:
        data: Data to hash (string, dictionary or list)

    Returns:
        SHA-256 hash as hexadecimal string
    """
    if isinstance(data, (dict, list)):
        # Sorted keys and compact separators for a stable encoding
        data_string = json.dumps(data, sort_keys=True, separators=(',', ':'))
    else:
        data_string = str(data)

    return compute_hash_standalone(data_string)


def canonical_block_payload(
    version: int,
    index: int,
    previous_hash: str,
    timestamp: int,
    owner: str | None,
    owner_id: str | None,
    reference_number: str,
    size: str,
    price: int,
    nonce: int
) -> list[Any]:
    """
    Build the versioned, positional field tuple a block hash is computed over.

    A list keeps every field at a fixed position and encodes None as null,
    so a missing owner can never collide with an empty-string owner.
    """
    return [
        BLOCK_SERIALIZATION_TAG,
        version,
        index,
        previous_hash,
        timestamp,
        owner,
        owner_id,
        reference_number,
        size,
        price,
        nonce,
    ]


def generate_nonce(upper_bound: int) -> int:
    """Draw a random nonce in [0, upper_bound)."""
    return secrets.randbelow(upper_bound)


def current_timestamp_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def generate_account_id() -> str:
    """Generate a unique 32-character account identifier."""
    return uuid.uuid4().hex


def generate_transfer_id() -> str:
    """Generate a unique transfer identifier."""
    return str(uuid.uuid4())
