"""
Version utility functions for the land record ledger.

This module renders the package VERSION tuple as a PEP 440 version string.
"""

from typing import Tuple


def get_version(version: Tuple[int, int, int, str, int]) -> str:
    """
    Return a PEP 440-compliant version number from a version tuple.

    Args:
        version: Version tuple (major, minor, micro, releaselevel, serial)

    Returns:
        PEP 440-compliant version string
    """
    major, minor, micro, releaselevel, serial = version

    version_str = f"{major}.{minor}"
    if micro is not None:
        version_str += f".{micro}"

    # Add release level if not final
    if releaselevel != "final":
        if releaselevel == "dev":
            version_str += ".dev"
        else:
            version_str += f"-{releaselevel}"
        if serial > 0:
            version_str += str(serial)

    return version_str
