"""In-memory record store with asyncio concurrency control.

This module provides an in-process implementation of the RecordStore
interface using asyncio.Lock for concurrency control.

The MemoryRecordStore is suitable for:
    - Single-process deployments
    - Development and testing
    - The demo application

Concurrency:
    - Each record has its own asyncio.Lock
    - A global lock protects the _locks dictionary
    - The record lock is held for the whole read-patch-write cycle, so a
      transactional update never interleaves with another one on the
      same record

Snapshots:
    - Snapshots and subscriber payloads are deep copies; mutating them
      never changes stored data

Examples:
    Seeding and updating a record::

        from change_relay.storage.memory import MemoryRecordStore

        store = MemoryRecordStore()
        await store.put("requests/abc", {"input": "hello"})

        result = await store.transactional_update(
            "requests/abc",
            lambda snapshot: {"metadata.status": "unprocessed"},
        )
        assert result.applied
"""

import asyncio
import copy
from typing import Any

from change_relay.exceptions import StorageError
from change_relay.models import DELETE_FIELD, RecordSnapshot
from change_relay.observability.logging import get_logger
from change_relay.storage.base import (
    Patch,
    PatchFn,
    RecordStore,
    SnapshotCallback,
    TransactionResult,
    Unsubscribe,
)

logger = get_logger(__name__)


def apply_patch(data: dict[str, Any], patch: Patch) -> dict[str, Any]:
    """Return a copy of ``data`` with ``patch`` applied.

    Keys are dotted field paths. ``DELETE_FIELD`` removes the field;
    intermediate mappings are created as needed.

    Args:
        data: Current document fields.
        patch: Field paths mapped to new values.

    Returns:
        The patched document.

    Examples:
        >>> apply_patch({"a": 1}, {"b.c": 2})
        {'a': 1, 'b': {'c': 2}}
        >>> apply_patch({"a": 1, "b": 2}, {"a": DELETE_FIELD})
        {'b': 2}
    """
    result = copy.deepcopy(data)
    for path, value in patch.items():
        *parents, leaf = path.split(".")
        target = result
        for segment in parents:
            child = target.get(segment)
            if not isinstance(child, dict):
                if value is DELETE_FIELD:
                    break
                child = {}
                target[segment] = child
            target = child
        else:
            if value is DELETE_FIELD:
                target.pop(leaf, None)
            else:
                target[leaf] = copy.deepcopy(value)
    return result


class MemoryRecordStore(RecordStore):
    """In-memory record store with asyncio concurrency control.

    Attributes:
        _documents: Mapping of record ids to document fields.
        _locks: Mapping of record ids to asyncio.Lock objects.
        _global_lock: Lock protecting the _locks dictionary.
        _subscribers: Mapping of document paths to snapshot callbacks.
    """

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._documents: dict[str, dict[str, Any]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._global_lock = asyncio.Lock()
        self._subscribers: dict[str, list[SnapshotCallback]] = {}

    def _snapshot(self, record_id: str) -> RecordSnapshot:
        data = self._documents.get(record_id)
        if data is None:
            return RecordSnapshot.missing(record_id)
        return RecordSnapshot(record_id=record_id, exists=True, data=copy.deepcopy(data))

    async def _lock_for(self, record_id: str) -> asyncio.Lock:
        async with self._global_lock:
            if record_id not in self._locks:
                self._locks[record_id] = asyncio.Lock()
            return self._locks[record_id]

    def _notify(self, record_id: str) -> None:
        for callback in list(self._subscribers.get(record_id, ())):
            callback(self._snapshot(record_id))

    async def get(self, record_id: str) -> RecordSnapshot:
        """Read a record.

        Args:
            record_id: Path or identifier of the record.

        Returns:
            A deep-copied snapshot, missing if the record is absent.
        """
        return self._snapshot(record_id)

    async def put(self, record_id: str, data: dict[str, Any]) -> RecordSnapshot:
        """Create or replace a whole record and notify subscribers.

        Args:
            record_id: Path or identifier of the record.
            data: The new document fields.

        Returns:
            The stored snapshot.
        """
        lock = await self._lock_for(record_id)
        async with lock:
            self._documents[record_id] = copy.deepcopy(data)
            snapshot = self._snapshot(record_id)
        self._notify(record_id)
        return snapshot

    async def delete(self, record_id: str) -> bool:
        """Remove a record and notify subscribers.

        Args:
            record_id: Path or identifier of the record.

        Returns:
            True if the record existed.
        """
        lock = await self._lock_for(record_id)
        async with lock:
            existed = self._documents.pop(record_id, None) is not None
        if existed:
            self._notify(record_id)
        return existed

    async def transactional_update(self, record_id: str, patch_fn: PatchFn) -> TransactionResult:
        """Read a record and apply a patch to it atomically.

        The record lock is held from the read until the write, so the
        snapshot passed to ``patch_fn`` is exactly the state the patch
        lands on.

        Args:
            record_id: Path or identifier of the record.
            patch_fn: Receives the current snapshot, returns a patch or None.

        Returns:
            Whether the patch was applied, and the resulting snapshot.

        Raises:
            StorageError: If a patch was returned for a missing record.
        """
        lock = await self._lock_for(record_id)
        async with lock:
            current = self._snapshot(record_id)
            patch = patch_fn(current)
            if patch is None:
                return TransactionResult(applied=False, snapshot=current)
            if not current.exists:
                raise StorageError(f"Cannot update missing record {record_id}")

            self._documents[record_id] = apply_patch(self._documents[record_id], patch)
            updated = self._snapshot(record_id)

        logger.debug("store.updated", record_id=record_id, fields=sorted(patch))
        self._notify(record_id)
        return TransactionResult(applied=True, snapshot=updated)

    def subscribe(self, document_path: str, callback: SnapshotCallback) -> Unsubscribe:
        """Watch one document for changes.

        The callback fires immediately with the current state, then after
        every put, delete or applied update of the document.

        Args:
            document_path: Path of the watched document.
            callback: Called with each new snapshot.

        Returns:
            A function that cancels the subscription.
        """
        callbacks = self._subscribers.setdefault(document_path, [])
        callbacks.append(callback)
        callback(self._snapshot(document_path))

        def unsubscribe() -> None:
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe
