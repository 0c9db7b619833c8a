"""Store abstraction: pluggable access to the remote record store."""

from shared.store.memory import InMemoryStore
from shared.store.port import RecordNotFound, Store, StoreError, StoreTimeout, Table
from shared.store.repository import Record, Repository, repository_for
from shared.store.timeouts import TimeoutStore

__all__ = [
    "InMemoryStore",
    "Record",
    "RecordNotFound",
    "Repository",
    "Store",
    "StoreError",
    "StoreTimeout",
    "Table",
    "TimeoutStore",
    "repository_for",
]
