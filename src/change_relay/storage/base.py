"""Record store protocol for the change relay.

This module defines the interface a document store must offer to host the
relay: reading a record, updating it atomically, and subscribing to live
changes of a single document (used for the template).

Every status transition is a compare-and-set. Instead of a separate read
followed by a write, callers hand ``transactional_update`` a patch function.
The store reads the record inside its transaction, passes the snapshot to
the patch function, and applies the returned patch atomically. Returning
None from the patch function aborts without writing, which is how a
precondition that no longer holds is expressed.

Examples:
    Moving a record from unprocessed to pending::

        from change_relay.models import ProcessingStatus

        def to_pending(snapshot):
            metadata = snapshot.metadata
            if metadata.status is not ProcessingStatus.UNPROCESSED:
                return None
            metadata.status = ProcessingStatus.PENDING
            return {"metadata": metadata.to_document()}

        result = await store.transactional_update("requests/abc", to_pending)
        if not result.applied:
            # Someone else advanced the record first
            ...

    Subscribing to a template document::

        def on_change(snapshot):
            print(snapshot.exists, snapshot.data)

        unsubscribe = store.subscribe("config/template", on_change)
        ...
        unsubscribe()

Atomicity Requirements:
    All RecordStore implementations MUST guarantee:

    1. **Atomic patches**: every field in one patch is applied, or none is.

    2. **Read inside the transaction**: the snapshot handed to the patch
       function is the state the patch is applied on top of. No write may
       land between the read and the write.

    3. **Retries are safe**: a backend may call the patch function more than
       once when it retries a contended transaction, so patch functions must
       be free of side effects.

    4. **Field removal**: a patch value of ``DELETE_FIELD`` removes the field.

    5. **Dotted paths**: patch keys may address nested fields with ``.``.
"""

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from change_relay.models import RecordSnapshot

Patch = dict[str, Any]
PatchFn = Callable[[RecordSnapshot], Patch | None]
SnapshotCallback = Callable[[RecordSnapshot], None]
Unsubscribe = Callable[[], None]


class TransactionResult(BaseModel):
    """Result of a transactional update.

    Attributes:
        applied: Whether the patch function returned a patch that was written.
        snapshot: The record after the transaction (unchanged if not applied).
    """

    applied: bool = Field(
        ...,
        description="Whether a patch was written",
        examples=[True, False],
    )
    snapshot: RecordSnapshot = Field(
        ...,
        description="Record state after the transaction",
    )


@runtime_checkable
class RecordStore(Protocol):
    """Protocol defining the interface for document store backends.

    All methods must be safe to call concurrently from multiple asyncio
    tasks. Implementations wrap backend failures in StorageError and must
    not leak backend-specific exceptions.
    """

    async def get(self, record_id: str) -> RecordSnapshot:
        """Read a record.

        Args:
            record_id: Path or identifier of the record.

        Returns:
            The snapshot; ``exists`` is False if the record is absent.
        """
        ...

    async def transactional_update(self, record_id: str, patch_fn: PatchFn) -> TransactionResult:
        """Read a record and apply a patch to it atomically.

        Args:
            record_id: Path or identifier of the record.
            patch_fn: Receives the snapshot read inside the transaction and
                returns a patch, or None to abort.

        Returns:
            Whether the patch was applied, and the resulting snapshot.

        Raises:
            StorageError: If the record does not exist and a patch was
                returned, or the backend fails.
        """
        ...

    def subscribe(self, document_path: str, callback: SnapshotCallback) -> Unsubscribe:
        """Watch one document for changes.

        The callback fires once with the current state (which may be a
        missing snapshot) and again after every write or deletion.

        Args:
            document_path: Path of the watched document.
            callback: Called with each new snapshot.

        Returns:
            A function that cancels the subscription.
        """
        ...
