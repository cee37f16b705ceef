from dbaas_operator.store.base import ADDED, DELETED, MODIFIED, ResourceStore, WatchEvent
from dbaas_operator.store.memory import InMemoryStore

__all__ = [
    "ADDED",
    "DELETED",
    "MODIFIED",
    "InMemoryStore",
    "ResourceStore",
    "WatchEvent",
]
