"""
Exception hierarchy for the land record ledger.

Three families of failures are kept apart so callers can react to each:
integrity errors (the stored chain failed verification), validation errors
(expected business conditions) and storage errors (infrastructure failures).
"""

from typing import Any


class LedgerError(Exception):
    """Base class for every ledger failure"""


class LedgerCompromisedError(LedgerError):
    """Raised when the stored chain fails integrity verification"""

    def __init__(self, index: int | None, reason: str):
        self.index = index
        self.reason = reason
        super().__init__(f"Ledger compromised at block {index}: {reason}")


class LedgerValidationError(LedgerError):
    """Raised when a request violates a business rule"""


class ParcelNotFoundError(LedgerValidationError):
    """Raised when no block carries the requested reference number"""

    def __init__(self, reference_number: str):
        self.reference_number = reference_number
        super().__init__(f"Land not found: {reference_number}")


class AccountNotFoundError(LedgerValidationError):
    """Raised when the requested account does not exist"""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"User not found: {account_id}")


class NoOpTransferError(LedgerValidationError):
    """Raised when a parcel would be transferred to its current owner"""

    def __init__(self, reference_number: str, account_id: str):
        self.reference_number = reference_number
        self.account_id = account_id
        super().__init__(
            f"Cannot transfer land {reference_number} to its existing owner {account_id}"
        )


class InsufficientCreditError(LedgerValidationError):
    """Raised when the buyer cannot afford the parcel"""

    def __init__(self, account_id: str, credit: int, price: int):
        self.account_id = account_id
        self.credit = credit
        self.price = price
        super().__init__(
            f"Account {account_id} has credit {credit}, which is less than the price {price}"
        )


class DuplicateReferenceError(LedgerValidationError):
    """Raised when a reference number is already recorded on the chain"""

    def __init__(self, reference_number: str):
        self.reference_number = reference_number
        super().__init__(f"The record {reference_number} exists in the ledger")


class AlreadySeededError(LedgerValidationError):
    """Raised when seeding is attempted against a non-empty ledger"""

    def __init__(self, block_count: int):
        self.block_count = block_count
        super().__init__(f"Ledger already holds {block_count} blocks")


class InvalidRequestError(LedgerValidationError):
    """Raised when request input fails schema validation"""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        self.errors = errors or []
        super().__init__(message)


class StorageError(LedgerError):
    """Raised when the storage backend fails to read or write"""


class ConcurrentAppendError(StorageError):
    """Raised when an append no longer extends the current tail"""

    def __init__(self, expected_previous_hash: str, actual_tail_hash: str | None):
        self.expected_previous_hash = expected_previous_hash
        self.actual_tail_hash = actual_tail_hash
        super().__init__(
            f"Chain tail moved: block links to {expected_previous_hash[:10]}..., "
            f"tail is {actual_tail_hash[:10] + '...' if actual_tail_hash else None}"
        )
