"""
Account records referenced by parcel ownership.
"""

from dataclasses import dataclass, asdict
from typing import Any


@dataclass(frozen=True)
class Account:
    """An account holder with a credit balance."""

    id: str
    name: str
    credit: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'Account':
        return cls(id=data["id"], name=data["name"], credit=data["credit"])
