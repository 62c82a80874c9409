"""
Land Record Ledger
==================

An append-only, tamper-evident ledger of land-ownership records with an atomic
transfer protocol that moves a parcel's ownership and the matching credit
balance between account holders.
"""

VERSION = (0, 1, 0, "final", 0)

from landledger.units.version import get_version


__version__ = get_version(VERSION)

__author__ = "Nguyễn Lê Văn Dũng"

__all__ = ["VERSION", "__version__"]
