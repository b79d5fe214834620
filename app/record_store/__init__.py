"""
Record store module: one versioned, open-mapping document per user email.
"""

from .models import StoredDocument, VERSION_FIELD
from .store import RecordStore, InMemoryRecordStore, JsonFileRecordStore
from .factory import create_record_store

__all__ = [
    "StoredDocument",
    "VERSION_FIELD",
    "RecordStore",
    "InMemoryRecordStore",
    "JsonFileRecordStore",
    "create_record_store",
]
