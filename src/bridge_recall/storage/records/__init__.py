"""Record store implementations."""

from bridge_recall.storage.records.json_store import JSONRecordStore
from bridge_recall.storage.records.memory import InMemoryRecordStore

__all__ = ["InMemoryRecordStore", "JSONRecordStore"]
