"""Persistence - durable key-value mirror of lockout state.

Components:
- KeyValueStore: Abstract backend (get/set/delete/keys)
- InMemoryKeyValueStore / FileKeyValueStore: Local backends
- DynamoDBKeyValueStore: Shared backend for multi-process deployments
- BackgroundStoreWriter: Non-blocking write-behind wrapper
- PersistenceAdapter: Status/history (de)serialization with fail-open reads
"""

from pin_lockout.persistence.adapter import PersistenceAdapter
from pin_lockout.persistence.background_writer import BackgroundStoreWriter
from pin_lockout.persistence.kv_store import (
    FileKeyValueStore,
    InMemoryKeyValueStore,
    KeyValueStore,
)

__all__ = [
    "PersistenceAdapter",
    "BackgroundStoreWriter",
    "FileKeyValueStore",
    "InMemoryKeyValueStore",
    "KeyValueStore",
]
