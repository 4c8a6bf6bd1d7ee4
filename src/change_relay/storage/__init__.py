"""Record store adapters for the change relay.

This package provides the record store interface the state machine writes
through, and an in-process implementation. All adapters implement the
RecordStore protocol defined in base.py.

Available Adapters:
    - MemoryRecordStore: In-memory documents with asyncio concurrency
"""

from change_relay.storage.base import Patch, PatchFn, RecordStore, TransactionResult
from change_relay.storage.memory import MemoryRecordStore

__all__ = [
    "Patch",
    "PatchFn",
    "RecordStore",
    "TransactionResult",
    "MemoryRecordStore",
]
