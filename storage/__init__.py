"""
Durable storage for configuration and session state
"""

from .kv_store import JsonFileKeyValueStore
from .persistence import (
    CONFIG_KEY,
    SESSION_KEY,
    PersistentStore,
    StorageAlreadyInitializedError,
    StorageError,
    StorageNotInitializedError,
)

__all__ = [
    "CONFIG_KEY",
    "SESSION_KEY",
    "JsonFileKeyValueStore",
    "PersistentStore",
    "StorageAlreadyInitializedError",
    "StorageError",
    "StorageNotInitializedError",
]
