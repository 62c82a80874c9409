"""
Test suite for the Ledger facade

Every test runs against both the memory and the SQL backend.
"""

import pytest

from landledger.config.settings import TestingSettings
from landledger.core.exceptions import (
    AccountNotFoundError,
    AlreadySeededError,
    ConcurrentAppendError,
    DuplicateReferenceError,
    InvalidRequestError,
    LedgerCompromisedError,
    ParcelNotFoundError,
)
from landledger.core.hash_chain import HashChain
from landledger.core.ledger import Ledger
from landledger.storage.memory_storage import MemoryBackend


def test_seed_writes_accounts_and_chain(seeded):
    """Test seeding creates accounts, genesis and records"""
    ledger, alice_id, bob_id = seeded

    blocks = ledger.list_parcel_records()
    assert [block.index for block in blocks] == [0, 1]
    assert blocks[0].reference_number == "0"
    assert blocks[1].reference_number == "R1"
    assert blocks[1].owner is None and blocks[1].owner_id is None
    assert ledger.get_account(alice_id).credit == 1000
    assert ledger.get_account(bob_id).credit == 0
    assert [a.name for a in ledger.list_accounts()] == ["Alice", "Bob"]


def test_seed_accepts_snake_case_records(ledger):
    """Test seed records may use either field naming"""
    result = ledger.seed([], [{"reference_number": "R7", "size": 12, "price": 5}])

    assert result.blocks[1].reference_number == "R7"
    assert result.blocks[1].size == "12"


def test_seed_twice_rejected(seeded):
    """Test a non-empty ledger refuses to seed"""
    ledger, _, _ = seeded

    with pytest.raises(AlreadySeededError) as exc_info:
        ledger.seed([{"name": "Eve", "credit": 1}], [])

    assert exc_info.value.block_count == 2
    assert len(ledger.list_accounts()) == 2


def test_seed_duplicate_references_rejected(ledger):
    """Test seed records must carry distinct reference numbers"""
    records = [
        {"referenceNumber": "R1", "size": "1Ha", "price": 1},
        {"referenceNumber": "R1", "size": "2Ha", "price": 2},
    ]

    with pytest.raises(DuplicateReferenceError):
        ledger.seed([], records)
    assert ledger.backend.ledger.count() == 0


def test_seed_invalid_descriptor_rejected(ledger):
    """Test malformed seed data never reaches storage"""
    with pytest.raises(InvalidRequestError) as exc_info:
        ledger.seed([{"name": "Alice", "credit": -1}], [])

    assert exc_info.value.errors
    assert ledger.backend.accounts.count() == 0


def test_create_record_on_empty_ledger_writes_genesis(ledger):
    """Test the first record on an empty ledger lands at index 1"""
    block = ledger.create_parcel_record("R1", "1Ha", 100)

    assert block.index == 1
    blocks = ledger.list_parcel_records()
    assert len(blocks) == 2
    assert ledger.hash_chain.is_genesis(blocks[0])
    assert block.previous_hash == blocks[0].hash


def test_create_record_links_to_tail(seeded):
    """Test a new record extends the current tail"""
    ledger, _, _ = seeded
    tail = ledger.list_parcel_records()[-1]

    block = ledger.create_parcel_record("R2", "2Ha", 300)

    assert block.index == tail.index + 1
    assert block.previous_hash == tail.hash
    assert ledger.verify_chain().valid


def test_create_record_duplicate_rejected(seeded):
    """Test a reference number already on the chain is rejected"""
    ledger, _, _ = seeded

    with pytest.raises(DuplicateReferenceError):
        ledger.create_parcel_record("R1", "9Ha", 1)
    with pytest.raises(DuplicateReferenceError):
        ledger.create_parcel_record("0", "9Ha", 1)
    assert len(ledger.list_parcel_records()) == 2


@pytest.mark.parametrize("reference_number,size,price", [
    ("", "1Ha", 1),
    ("   ", "1Ha", 1),
    ("R2", "1Ha", -5),
])
def test_create_record_invalid_input(seeded, reference_number, size, price):
    """Test malformed record input is rejected"""
    ledger, _, _ = seeded

    with pytest.raises(InvalidRequestError):
        ledger.create_parcel_record(reference_number, size, price)


def test_list_records_filter(seeded):
    """Test filtering records by reference number"""
    ledger, alice_id, _ = seeded
    ledger.create_parcel_record("R2", "2Ha", 300)
    ledger.transfer_parcel("R1", alice_id)

    history = ledger.list_parcel_records("R1")

    assert [block.index for block in history] == [1, 3]
    assert ledger.list_parcel_records("missing") == []


def test_parcel_history_and_owner(seeded):
    """Test history excludes genesis and owner follows the latest block"""
    ledger, alice_id, _ = seeded

    assert ledger.current_owner("R1") == (None, None)
    ledger.transfer_parcel("R1", alice_id)

    assert ledger.current_owner("R1") == (alice_id, "Alice")
    assert len(ledger.parcel_history("R1")) == 2
    with pytest.raises(ParcelNotFoundError):
        ledger.parcel_history("0")
    with pytest.raises(ParcelNotFoundError):
        ledger.current_owner("missing")


def test_get_account_unknown(ledger):
    """Test looking up a missing account"""
    with pytest.raises(AccountNotFoundError):
        ledger.get_account("nobody")


def test_create_account(ledger):
    """Test account creation through the ledger"""
    account_id = ledger.create_account("Carol", 250)

    assert ledger.get_account(account_id).credit == 250
    with pytest.raises(InvalidRequestError):
        ledger.create_account("", 10)


def test_reads_refuse_tampered_chain(seeded, tamper):
    """Test every read fails once a stored block is altered"""
    ledger, alice_id, _ = seeded
    tamper(ledger.backend, 1, owner="Mallory")

    result = ledger.verify_chain()
    assert not result.valid
    assert result.failed_index == 1

    with pytest.raises(LedgerCompromisedError) as exc_info:
        ledger.list_parcel_records()
    assert exc_info.value.index == 1

    with pytest.raises(LedgerCompromisedError):
        ledger.current_owner("R1")
    with pytest.raises(LedgerCompromisedError):
        ledger.transfer_parcel("R1", alice_id)


def test_tampered_price_detected(seeded, tamper):
    """Test altering a price is detected"""
    ledger, _, _ = seeded
    tamper(ledger.backend, 1, price=1)

    with pytest.raises(LedgerCompromisedError):
        ledger.list_parcel_records("R1")


def test_from_settings_uses_configured_backend():
    """Test building a ledger from configuration"""
    ledger = Ledger.from_settings(TestingSettings())

    assert isinstance(ledger.backend, MemoryBackend)
    ledger.close()


def test_oversized_amounts_rejected(ledger):
    """Test amounts beyond the storable range never reach a backend"""
    with pytest.raises(InvalidRequestError):
        ledger.create_parcel_record("BIG", "1Ha", 2**63)
    with pytest.raises(InvalidRequestError):
        ledger.create_account("Whale", 2**63)

    assert ledger.backend.ledger.count() == 0
    assert ledger.backend.accounts.count() == 0


class RacingHashChain(HashChain):
    """Lets a competing writer commit each time a block is linked, a set number of times"""

    def __init__(self, competing_write, races):
        super().__init__()
        self.competing_write = competing_write
        self.races = races
        self.links = 0

    def next_block(self, tail, *args, **kwargs):
        self.links += 1
        if self.races > 0:
            self.races -= 1
            self.competing_write()
        return super().next_block(tail, *args, **kwargs)


class LimitedRetrySettings(TestingSettings):
    APPEND_RETRY_LIMIT = 2


def test_lost_transfer_race_is_revalidated(seeded):
    """Test a transfer that loses the tail re-reads the chain and pays the new owner"""
    ledger, alice_id, _ = seeded
    carol_id = ledger.create_account("Carol", 500)

    racing = RacingHashChain(lambda: ledger.transfer_parcel("R1", alice_id), races=1)
    rival = Ledger(ledger.backend, hash_chain=racing)

    receipt = rival.transfer_parcel("R1", carol_id)

    assert racing.links == 2
    assert receipt.seller_id == alice_id
    assert ledger.get_account(alice_id).credit == 1000
    assert ledger.get_account(carol_id).credit == 400
    assert [block.owner_id for block in ledger.parcel_history("R1")] == [None, alice_id, carol_id]
    assert ledger.verify_chain().valid


def test_lost_record_race_is_retried(ledger):
    """Test record creation retries after another writer moved the tail"""
    racing = RacingHashChain(lambda: ledger.create_parcel_record("R1", "1Ha", 100), races=1)
    rival = Ledger(ledger.backend, hash_chain=racing)

    block = rival.create_parcel_record("R2", "2Ha", 200)

    assert block.index == 2
    assert [b.reference_number for b in ledger.list_parcel_records()] == ["0", "R1", "R2"]


def test_retry_gives_up_after_limit(seeded):
    """Test a writer that keeps losing fails after APPEND_RETRY_LIMIT attempts"""
    ledger, _, _ = seeded
    counter = iter(range(100))
    racing = RacingHashChain(
        lambda: ledger.create_parcel_record(f"X{next(counter)}", "1Ha", 1),
        races=100
    )
    rival = Ledger(ledger.backend, hash_chain=racing, config=LimitedRetrySettings())

    with pytest.raises(ConcurrentAppendError):
        rival.create_parcel_record("R9", "1Ha", 1)

    assert racing.links == LimitedRetrySettings.APPEND_RETRY_LIMIT
    assert ledger.list_parcel_records("R9") == []
    assert len(ledger.list_parcel_records()) == 2 + LimitedRetrySettings.APPEND_RETRY_LIMIT
    assert ledger.verify_chain().valid
