"""
SQL Storage Backend for the land record ledger.

This module implements the persistent storage layer using SQLAlchemy. Each
unit of work runs in one database transaction, so a transfer's debit, credit
and block append either all commit or all roll back.
"""

import logging
import time
from typing import Any, Sequence
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from landledger.config.settings import settings
from landledger.core.account import Account
from landledger.core.block import Block
from landledger.core.exceptions import ConcurrentAppendError, StorageError
from landledger.core.utils import generate_account_id
from landledger.storage.base import AccountStore, LedgerStore, StorageBackend, UnitOfWork, check_extends
from landledger.storage.models import Base, BlockModel, AccountModel

logger = logging.getLogger(__name__)

_CHAIN_CONSTRAINT_MARKERS = ("previous_hash", "blocks.index", "blocks_index")
_LOCK_BUSY_MARKERS = ("database is locked", "database table is locked")


def block_to_model(block: Block) -> BlockModel:
    """Convert a Block to its ORM row"""
    return BlockModel(
        index=block.index,
        hash=block.hash,
        previous_hash=block.previous_hash,
        timestamp=block.timestamp,
        nonce=block.nonce,
        reference_number=block.reference_number,
        size=block.size,
        price=block.price,
        owner=block.owner,
        owner_id=block.owner_id
    )


def model_to_block(model: BlockModel) -> Block:
    """Convert an ORM row back to a Block, keeping the stored hash"""
    return Block(
        reference_number=model.reference_number,
        size=model.size,
        price=model.price,
        index=model.index,
        previous_hash=model.previous_hash,
        owner=model.owner,
        owner_id=model.owner_id,
        timestamp=model.timestamp,
        nonce=model.nonce,
        block_hash=model.hash
    )


def model_to_account(model: AccountModel) -> Account:
    return Account(id=model.id, name=model.name, credit=model.credit)


class SqlLedgerStore(LedgerStore):
    """Block chain persisted in the blocks table, ordered by append id"""

    def __init__(self, backend: 'SqlStorageBackend'):
        self.backend = backend

    def append_one(self, block: Block) -> Block:
        with self.backend.atomic() as unit:
            unit.append_block(block)
        return block

    def append_many(self, blocks: Sequence[Block]) -> int:
        with self.backend.atomic() as unit:
            for block in blocks:
                unit.append_block(block)
        logger.debug(f"Appended {len(blocks)} blocks in bulk")
        return len(blocks)

    def tail(self) -> Block | None:
        with self.backend.read_session() as session:
            model = session.query(BlockModel).order_by(BlockModel.id.desc()).first()
            return model_to_block(model) if model else None

    def all(self) -> list[Block]:
        with self.backend.read_session() as session:
            return [model_to_block(m) for m in session.query(BlockModel).order_by(BlockModel.id).all()]

    def find_by_reference(self, reference_number: str) -> list[Block]:
        with self.backend.read_session() as session:
            models = (
                session.query(BlockModel)
                .filter_by(reference_number=reference_number)
                .order_by(BlockModel.id)
                .all()
            )
            return [model_to_block(m) for m in models]

    def count(self) -> int:
        with self.backend.read_session() as session:
            return session.query(BlockModel).count()


class SqlAccountStore(AccountStore):
    """Accounts persisted in the accounts table"""

    def __init__(self, backend: 'SqlStorageBackend'):
        self.backend = backend

    def create(self, name: str, credit: int) -> str:
        return self.create_many([{"name": name, "credit": credit}])[0]

    def create_many(self, accounts: Sequence[dict[str, Any]]) -> list[str]:
        session = self.backend.Session()
        try:
            ids = []
            created_at = time.time()
            for offset, account in enumerate(accounts):
                account_id = generate_account_id()
                session.add(AccountModel(
                    id=account_id,
                    name=account["name"],
                    credit=account["credit"],
                    # distinct timestamps keep creation order within a batch
                    created_at=created_at + offset * 1e-6
                ))
                ids.append(account_id)
            session.commit()
            logger.debug(f"Created {len(ids)} account(s)")
            return ids
        except (SQLAlchemyError, OverflowError) as e:
            session.rollback()
            logger.error(f"Failed to create accounts: {e}")
            raise StorageError(f"Failed to create accounts: {e}") from e
        finally:
            session.close()

    def get(self, account_id: str) -> Account | None:
        with self.backend.read_session() as session:
            model = session.get(AccountModel, account_id)
            return model_to_account(model) if model else None

    def list(self) -> list[Account]:
        with self.backend.read_session() as session:
            models = session.query(AccountModel).order_by(AccountModel.created_at, AccountModel.id).all()
            return [model_to_account(m) for m in models]

    def count(self) -> int:
        with self.backend.read_session() as session:
            return session.query(AccountModel).count()


class SqlUnitOfWork(UnitOfWork):
    """Changes staged for one database transaction"""

    def __init__(self, session: Session):
        self.session = session
        self.blocks: list[Block] = []
        self.credit_deltas: dict[str, int] = {}

    def append_block(self, block: Block) -> None:
        self.blocks.append(block)

    def adjust_credit(self, account_id: str, delta: int) -> None:
        self.credit_deltas[account_id] = self.credit_deltas.get(account_id, 0) + delta


class SqlStorageBackend(StorageBackend):
    """
    Persistent storage backend using a SQL database.
    """

    name = "sql"

    def __init__(
        self,
        connection_string: str | None = None,
        echo: bool | None = None,
        busy_timeout: float | None = None
    ):
        """
        Initialize the SQL Storage Backend.

        Args:
            connection_string: SQL connection string (e.g., sqlite:///land_records.db)
                               Defaults to settings.DATABASE_URL
            echo: Log emitted SQL, defaults to settings.DATABASE_ECHO
            busy_timeout: Seconds a SQLite writer waits for another process's lock,
                          defaults to settings.SQLITE_BUSY_TIMEOUT
        """
        self.db_url = connection_string or settings.DATABASE_URL
        engine_kwargs: dict[str, Any] = {
            "echo": settings.DATABASE_ECHO if echo is None else echo
        }
        if self.db_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {
                "check_same_thread": False,
                "timeout": settings.SQLITE_BUSY_TIMEOUT if busy_timeout is None else busy_timeout
            }
            if ":memory:" in self.db_url or self.db_url in ("sqlite://", "sqlite:///"):
                # One shared connection, otherwise every session sees an empty database
                engine_kwargs["poolclass"] = StaticPool
        self.engine = create_engine(self.db_url, **engine_kwargs)

        # Create all tables (if they don't exist)
        Base.metadata.create_all(self.engine)

        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)
        self.ledger = SqlLedgerStore(self)
        self.accounts = SqlAccountStore(self)

        logger.info(f"SqlStorageBackend initialized with {self.engine.url.render_as_string(hide_password=True)}")

    def read_session(self) -> '_ReadSession':
        return _ReadSession(self)

    def begin(self) -> SqlUnitOfWork:
        return SqlUnitOfWork(self.Session())

    def commit(self, unit: SqlUnitOfWork) -> None:
        session = unit.session
        try:
            tail = session.query(BlockModel).order_by(BlockModel.id.desc()).first()
            check_extends(unit.blocks, tail.hash if tail else None)

            for account_id, delta in unit.credit_deltas.items():
                account = session.get(AccountModel, account_id)
                if account is None:
                    raise StorageError(f"Account '{account_id}' does not exist")
                if account.credit + delta < 0:
                    raise StorageError(
                        f"Account '{account_id}' would be overdrawn: {account.credit} + ({delta})"
                    )
                session.query(AccountModel).filter_by(id=account_id).update(
                    {AccountModel.credit: AccountModel.credit + delta},
                    synchronize_session=False
                )

            session.add_all([block_to_model(block) for block in unit.blocks])
            session.commit()
            logger.debug(
                f"Committed {len(unit.blocks)} block(s) and {len(unit.credit_deltas)} credit change(s)"
            )
        except IntegrityError as e:
            session.rollback()
            message = str(e.orig)
            if unit.blocks and any(marker in message for marker in _CHAIN_CONSTRAINT_MARKERS):
                logger.warning(f"Append lost a race with another writer: {message}")
                raise ConcurrentAppendError(unit.blocks[0].previous_hash, None) from e
            logger.error(f"Failed to commit unit of work: {message}")
            raise StorageError(f"Failed to commit unit of work: {message}") from e
        except OperationalError as e:
            session.rollback()
            message = str(e.orig)
            if unit.blocks and any(marker in message for marker in _LOCK_BUSY_MARKERS):
                # Another process holds the SQLite write lock
                logger.warning(f"Append blocked by another writer: {message}")
                raise ConcurrentAppendError(unit.blocks[0].previous_hash, None) from e
            logger.error(f"Failed to commit unit of work: {message}")
            raise StorageError(f"Failed to commit unit of work: {message}") from e
        except (SQLAlchemyError, OverflowError) as e:
            session.rollback()
            logger.error(f"Failed to commit unit of work: {e}")
            raise StorageError(f"Failed to commit unit of work: {e}") from e
        finally:
            session.close()

    def rollback(self, unit: SqlUnitOfWork) -> None:
        unit.session.rollback()
        unit.session.close()

    def close(self):
        """Close connection pool."""
        self.engine.dispose()


class _ReadSession:
    """Short-lived session for one read; store errors surface as StorageError"""

    def __init__(self, backend: SqlStorageBackend):
        self.session = backend.Session()

    def __enter__(self) -> Session:
        return self.session

    def __exit__(self, exc_type, exc, tb):
        self.session.close()
        if exc_type is not None and issubclass(exc_type, SQLAlchemyError):
            logger.error(f"Storage read failed: {exc}")
            raise StorageError(f"Storage read failed: {exc}") from exc
        return False
