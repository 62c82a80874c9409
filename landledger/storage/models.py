"""
SQLAlchemy Models for ledger storage.

This module defines the database schema for the land record ledger: the
ordered block chain and the account set.
"""

import time
from sqlalchemy import BigInteger, CheckConstraint, Column, Float, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class BlockModel(Base):
    """
    Represents one block of the chain.

    The autoincrement id records append order; the unique constraints on
    index and previous_hash make a fork impossible to persist.
    """
    __tablename__ = 'blocks'

    id = Column(Integer, primary_key=True, autoincrement=True)

    index = Column(Integer, nullable=False, unique=True)
    hash = Column(String(64), nullable=False, index=True)
    previous_hash = Column(String(64), nullable=False, unique=True)
    timestamp = Column(BigInteger, nullable=False)
    nonce = Column(Integer, nullable=False)

    # Parcel state
    reference_number = Column(String(128), nullable=False, index=True)
    size = Column(String(64), nullable=False)
    price = Column(BigInteger, nullable=False)
    owner = Column(String(255), nullable=True)
    owner_id = Column(String(64), nullable=True)

    def __repr__(self):
        return f"<Block(index={self.index}, hash='{self.hash[:8]}...')>"


class AccountModel(Base):
    """
    Represents an account holder and its credit balance.
    """
    __tablename__ = 'accounts'
    __table_args__ = (
        CheckConstraint('credit >= 0', name='ck_accounts_credit_non_negative'),
    )

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    credit = Column(BigInteger, nullable=False, default=0)
    created_at = Column(Float, nullable=False, default=time.time)

    def __repr__(self):
        return f"<Account(id='{self.id}', name='{self.name}')>"
