"""
Repository Pattern - Storage abstraction layer

Repositories hide storage details from business logic. Consumers work with
domain models, not storage-specific types.

Architecture:
- MemoryStore: single in-process owner of every entity, with per-type id
  counters and maintained secondary indexes (usernames, compute providers,
  contribution status counts, CIDs)

A persistent store can replace MemoryStore as long as it keeps ids
monotonic and applies contribution status + reward credit as one step.
"""
from .memory_store import MemoryStore, StoreStats

__all__ = [
    'MemoryStore',
    'StoreStats',
]
