"""Storage backends for the mock relay."""

from .memory import InMemoryEventStore, InsertResult, InsertStatus, StoredEvent

__all__ = ["InMemoryEventStore", "InsertResult", "InsertStatus", "StoredEvent"]
