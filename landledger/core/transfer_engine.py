"""
Parcel Transfer Engine for the land record ledger.

This module moves a parcel's ownership and the matching credit balance
between accounts as one logically atomic unit:
- Validating: chain integrity, parcel, buyer, self-transfer and solvency checks
- Authorized: every check passed, the new block is linked to the tail
- Committing: debit, credit and append staged in one unit of work
- Committed: all three effects published together
A failing check moves the transfer to Rejected and raises the matching error.
"""

import time
import logging
import threading
from collections import OrderedDict
from enum import Enum
from typing import Any, TYPE_CHECKING
from dataclasses import dataclass, field

from landledger.core.block import Block
from landledger.core.exceptions import (
    AccountNotFoundError,
    InsufficientCreditError,
    LedgerError,
    NoOpTransferError,
)
from landledger.core.schemas import TransferRequest, parse_request
from landledger.core.utils import generate_transfer_id

if TYPE_CHECKING:
    from landledger.core.ledger import Ledger

logger = logging.getLogger(__name__)


class TransferState(str, Enum):
    """States of a parcel transfer."""

    VALIDATING = "validating"
    AUTHORIZED = "authorized"
    COMMITTING = "committing"
    COMMITTED = "committed"
    REJECTED = "rejected"


@dataclass
class TransferReceipt:
    """Represents one transfer request and its outcome."""

    transfer_id: str
    reference_number: str
    buyer_id: str
    state: TransferState = TransferState.VALIDATING
    seller_id: str | None = None
    price: int | None = None
    block: Block | None = None
    message: str | None = None
    error_message: str | None = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    def advance(self, state: TransferState) -> None:
        self.state = state
        self.updated_at = time.time()

    def to_dict(self) -> dict[str, Any]:
        return {
            "transfer_id": self.transfer_id,
            "reference_number": self.reference_number,
            "buyer_id": self.buyer_id,
            "seller_id": self.seller_id,
            "price": self.price,
            "state": self.state.value,
            "block": self.block.to_dict() if self.block else None,
            "message": self.message,
            "error_message": self.error_message,
            "created_at": self.created_at,
            "updated_at": self.updated_at
        }


class TransferEngine:
    """
    Orchestrates validation, balance movement and block append for transfers.
    """

    def __init__(self, ledger: 'Ledger') -> None:
        """
        Initialize the Transfer Engine.

        Only the most recent TRANSFER_RECEIPT_LIMIT receipts are kept.

        Args:
            ledger: Ledger whose store, chain rules and write lock are used
        """
        self.ledger = ledger
        self.transfers: OrderedDict[str, TransferReceipt] = OrderedDict()
        self.receipt_limit = ledger.config.TRANSFER_RECEIPT_LIMIT
        self.registry_lock = threading.Lock()

    def transfer(self, reference_number: str, account_id: str) -> TransferReceipt:
        """
        Transfer a parcel to an account.

        Checks run in order and the first failure wins: chain integrity,
        parcel existence, account existence, self-transfer, solvency.

        Args:
            reference_number: Parcel to transfer
            account_id: Account receiving the parcel and paying its price

        Returns:
            Committed TransferReceipt

        Raises:
            LedgerCompromisedError: If the stored chain fails verification
            ParcelNotFoundError: If the parcel is unknown
            AccountNotFoundError: If the account is unknown
            NoOpTransferError: If the account already owns the parcel
            InsufficientCreditError: If the account cannot pay the price
            InvalidRequestError: If either identifier is blank
        """
        request = parse_request(
            TransferRequest,
            {"reference_number": reference_number, "account_id": account_id}
        )
        receipt = TransferReceipt(
            transfer_id=generate_transfer_id(),
            reference_number=request.reference_number,
            buyer_id=request.account_id
        )
        self._register(receipt)

        try:
            self.ledger.run_serialized(
                f"Transfer {receipt.transfer_id}",
                lambda: self._execute(receipt)
            )
        except LedgerError as e:
            receipt.error_message = str(e)
            receipt.advance(TransferState.REJECTED)
            logger.warning(f"Transfer of {reference_number} to {account_id} rejected: {e}")
            raise

        logger.info(receipt.message)
        return receipt

    def get_transfer(self, transfer_id: str) -> TransferReceipt | None:
        """Get transfer details, None once the receipt has been evicted."""
        with self.registry_lock:
            return self.transfers.get(transfer_id)

    def _register(self, receipt: TransferReceipt) -> None:
        with self.registry_lock:
            self.transfers[receipt.transfer_id] = receipt
            while len(self.transfers) > self.receipt_limit:
                evicted_id, _ = self.transfers.popitem(last=False)
                logger.debug(f"Evicted transfer receipt {evicted_id}")

    def _execute(self, receipt: TransferReceipt) -> TransferReceipt:
        """Validate and commit one transfer; runs under the ledger write lock."""
        receipt.advance(TransferState.VALIDATING)

        blocks = self.ledger.verified_blocks()
        latest = self.ledger.parcel_history(receipt.reference_number, blocks)[-1]

        buyer = self.ledger.backend.accounts.get(receipt.buyer_id)
        if buyer is None:
            raise AccountNotFoundError(receipt.buyer_id)

        if latest.owner_id is not None and latest.owner_id == buyer.id:
            raise NoOpTransferError(receipt.reference_number, buyer.id)

        if buyer.credit < latest.price:
            raise InsufficientCreditError(buyer.id, buyer.credit, latest.price)

        receipt.seller_id = latest.owner_id
        receipt.price = latest.price
        new_block = self.ledger.hash_chain.next_block(
            blocks[-1],
            reference_number=latest.reference_number,
            size=latest.size,
            price=latest.price,
            owner=buyer.name,
            owner_id=buyer.id
        )
        receipt.advance(TransferState.AUTHORIZED)

        receipt.advance(TransferState.COMMITTING)
        with self.ledger.backend.atomic() as unit:
            unit.adjust_credit(buyer.id, -latest.price)
            # A first claim of an unowned parcel has no seller to pay
            if latest.owner_id is not None:
                unit.adjust_credit(latest.owner_id, latest.price)
            unit.append_block(new_block)

        receipt.block = new_block
        receipt.message = (
            f"Transfer complete. {buyer.name} is now the new owner of land {latest.reference_number}"
        )
        receipt.advance(TransferState.COMMITTED)
        return receipt
