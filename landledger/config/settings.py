"""
Configuration settings for the land record ledger.

This module provides configuration management for the ledger engine: chain
construction constants, hashing parameters, write-retry policy, storage backend
selection and logging. Values can be overridden through environment variables
and the active environment (development, production, testing) is picked with
LANDLEDGER_ENV.
"""

import os
from typing import Any


class Settings:
    """Ledger configuration settings"""

    # Chain settings
    GENESIS_INDEX = 0
    GENESIS_REFERENCE = "0"
    GENESIS_PREVIOUS_HASH = "0"
    NONCE_UPPER_BOUND = 1_000_000  # nonce drawn from [0, NONCE_UPPER_BOUND)
    HASH_SCHEMA_VERSION = 1

    # Write settings
    APPEND_RETRY_LIMIT = int(os.getenv("LANDLEDGER_APPEND_RETRY_LIMIT", "3"))
    TRANSFER_RECEIPT_LIMIT = int(os.getenv("LANDLEDGER_TRANSFER_RECEIPT_LIMIT", "1000"))

    # Storage settings
    DEFAULT_STORAGE_BACKEND = os.getenv("LANDLEDGER_STORAGE_BACKEND", "memory")  # memory, sql
    DATABASE_URL = os.getenv("LANDLEDGER_DATABASE_URL", "sqlite:///land_records.db")
    DATABASE_ECHO = False
    SQLITE_BUSY_TIMEOUT = 5.0  # seconds a writer waits on a locked SQLite file

    # CLI settings
    CLI_OUTPUT_INDENT = 2

    # Logging settings
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @classmethod
    def get_storage_config(cls) -> dict[str, Any]:
        """Get storage configuration"""
        return {
            "backend": cls.DEFAULT_STORAGE_BACKEND,
            "database_url": cls.DATABASE_URL,
            "echo": cls.DATABASE_ECHO
        }

    @classmethod
    def validate_config(cls) -> list[str]:
        """Validate configuration and return list of errors"""
        errors = []

        if cls.GENESIS_INDEX < 0:
            errors.append("GENESIS_INDEX must not be negative")

        if cls.NONCE_UPPER_BOUND <= 0:
            errors.append("NONCE_UPPER_BOUND must be positive")

        if cls.TRANSFER_RECEIPT_LIMIT <= 0:
            errors.append("TRANSFER_RECEIPT_LIMIT must be positive")

        if cls.APPEND_RETRY_LIMIT <= 0:
            errors.append("APPEND_RETRY_LIMIT must be positive")

        if cls.DEFAULT_STORAGE_BACKEND not in ["memory", "sql"]:
            errors.append("DEFAULT_STORAGE_BACKEND must be one of: memory, sql")

        return errors


# Environment-specific settings
class DevelopmentSettings(Settings):
    """Development environment settings"""
    LOG_LEVEL = "DEBUG"


class ProductionSettings(Settings):
    """Production environment settings"""
    LOG_LEVEL = "WARNING"
    DEFAULT_STORAGE_BACKEND = "sql"


class TestingSettings(Settings):
    """Testing environment settings"""
    LOG_LEVEL = "DEBUG"
    DEFAULT_STORAGE_BACKEND = "memory"
    DATABASE_URL = "sqlite:///:memory:"


def get_settings() -> Settings:
    """Get settings based on environment variable"""
    env = os.getenv("LANDLEDGER_ENV", "development").lower()

    if env == "production":
        return ProductionSettings()
    elif env == "testing":
        return TestingSettings()
    else:
        return DevelopmentSettings()


# Global settings instance
settings = get_settings()
