"""
Data models for the record store.
"""

from dataclasses import dataclass, field
from typing import Any, Dict

# Store-owned field holding the optimistic concurrency stamp
VERSION_FIELD = "_version"


@dataclass
class StoredDocument:
    """One user document as held by the store.

    ``fields`` is an open mapping: the store never interprets field names,
    so slot keys can vary per user and per tier.
    """
    email: str
    fields: Dict[str, Any] = field(default_factory=dict)
    version: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted dictionary, version stamp included."""
        data = dict(self.fields)
        data["email"] = self.email
        data[VERSION_FIELD] = self.version
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredDocument":
        fields = {k: v for k, v in data.items() if k != VERSION_FIELD}
        return cls(
            email=data["email"],
            fields=fields,
            version=int(data.get(VERSION_FIELD, 0))
        )
