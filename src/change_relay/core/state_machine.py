"""State machine for record processing.

This module drives one record through its processing states:

    (absent) -> unprocessed -> pending -> processed

Each transition is a compare-and-set run through
``RecordStore.transactional_update``: the patch function inspects the record
as read inside the transaction and only writes if the precondition still
holds. The ``unprocessed -> pending`` write is the idempotency boundary:
exactly one invocation wins it, and only the winner calls the endpoint.

Every status is paired with ``metadata.inputFingerprint``, the fingerprint of
the input it refers to. That pairing is what separates the cases:

- status pending/processed, same fingerprint: a re-delivery, nothing to do
- status pending/processed, other fingerprint: a new change, start over
- status pending, other fingerprint at completion: the result is stale and
  is dropped, a newer change owns the record

Once this invocation has moved the record to pending it never writes an
earlier status again; on failure the record simply stays pending.

Examples:
    Processing a record::

        from change_relay.core.state_machine import process_record

        result = await process_record(
            store=store,
            endpoint=endpoint,
            record_id="requests/abc",
            input_field="input",
            output_field="output",
        )
        result.outcome  # Outcome.PROCESSED
"""

import time
from enum import Enum
from typing import Any

from change_relay.classifier import ChangeType
from change_relay.endpoint import EndpointClient
from change_relay.exceptions import EndpointError
from change_relay.fingerprint import compute_input_fingerprint
from change_relay.models import DELETE_FIELD, METADATA_FIELD, ProcessingStatus, RecordSnapshot, get_field
from change_relay.observability.logging import get_logger
from change_relay.storage.base import Patch, RecordStore
from change_relay.templates import TemplateStore

logger = get_logger(__name__)

_MISSING = object()

INPUT_FINGERPRINT_FIELD = f"{METADATA_FIELD}.inputFingerprint"


class Outcome(str, Enum):
    """How one event ended.

    Attributes:
        SKIPPED: Nothing to do for this change.
        DELETED: The record was deleted; nothing written.
        CLEARED: The input was removed and the output cleared.
        PROCESSED: The endpoint was called and the output written.
        ALREADY_HANDLED: Another delivery owns or finished this change.
        SUPERSEDED: The result was dropped because the input changed meanwhile.
        FAILED: Processing stopped on an error; the record stays pending.
    """

    SKIPPED = "skipped"
    DELETED = "deleted"
    CLEARED = "cleared"
    PROCESSED = "processed"
    ALREADY_HANDLED = "already_handled"
    SUPERSEDED = "superseded"
    FAILED = "failed"


class ProcessResult:
    """Result of handling one event.

    Attributes:
        outcome: How the event ended
        change_type: CREATE, UPDATE or DELETE, None if not classified
        error: The error that stopped processing, if any
        execution_time_ms: Time spent on the event in milliseconds
    """

    def __init__(
        self,
        outcome: Outcome,
        change_type: ChangeType | None = None,
        error: Exception | None = None,
        execution_time_ms: int | None = None,
    ) -> None:
        """Initialize a process result.

        Args:
            outcome: How the event ended
            change_type: Classified change type
            error: The error that stopped processing
            execution_time_ms: Time spent on the event
        """
        self.outcome = outcome
        self.change_type = change_type
        self.error = error
        self.execution_time_ms = execution_time_ms

    def __repr__(self) -> str:
        return (
            f"ProcessResult(outcome={self.outcome.value}, change_type={self.change_type}, "
            f"error={self.error!r})"
        )


def _input_fingerprint(snapshot: RecordSnapshot, input_field: str) -> str | None:
    value = snapshot.get(input_field)
    if value is None:
        return None
    return compute_input_fingerprint(value)


async def mark_unprocessed(
    store: RecordStore,
    record_id: str,
    input_field: str,
    change_type: ChangeType | None = None,
) -> str | None:
    """Open a processing attempt for the record's current input.

    Writes ``unprocessed`` when the record has no status, or when its status
    refers to a different input than the current one. A status that refers
    to the current input is left alone.

    A pending or processed status with no recorded input is only trusted
    for a re-delivered CREATE. An UPDATE that changed the input starts over.

    Args:
        store: Record store
        record_id: Record to update
        input_field: Watched input field
        change_type: Classified change type of the triggering event

    Returns:
        The fingerprint of the input now awaiting processing, or None if
        the current input is already pending or processed.
    """

    def patch_fn(snapshot: RecordSnapshot) -> Patch | None:
        fingerprint = _input_fingerprint(snapshot, input_field)
        if not snapshot.exists or fingerprint is None:
            return None

        metadata = snapshot.metadata
        if metadata.status is ProcessingStatus.UNPROCESSED:
            if metadata.input_fingerprint == fingerprint:
                return None
        elif metadata.status is not None:
            # pending or processed: only a different input starts over
            if metadata.input_fingerprint == fingerprint:
                return None
            if metadata.input_fingerprint is None and change_type is not ChangeType.UPDATE:
                return None

        metadata.status = ProcessingStatus.UNPROCESSED
        metadata.input_fingerprint = fingerprint
        return {METADATA_FIELD: metadata.to_document()}

    result = await store.transactional_update(record_id, patch_fn)
    metadata = result.snapshot.metadata

    if result.applied:
        logger.info("record.status_changed", status=ProcessingStatus.UNPROCESSED.value)

    if metadata.status is ProcessingStatus.UNPROCESSED and metadata.input_fingerprint is not None:
        return metadata.input_fingerprint

    logger.info(
        "record.already_handled",
        status=metadata.status.value if metadata.status else None,
    )
    return None


async def mark_pending(
    store: RecordStore,
    record_id: str,
    input_field: str,
    fingerprint: str,
) -> RecordSnapshot | None:
    """Move the record from unprocessed to pending for one input.

    This must succeed before the endpoint is called. When several
    deliveries race here, exactly one wins.

    Args:
        store: Record store
        record_id: Record to update
        input_field: Watched input field
        fingerprint: Fingerprint returned by ``mark_unprocessed``

    Returns:
        The record as written, or None if another delivery won or the
        input changed in between.
    """

    def patch_fn(snapshot: RecordSnapshot) -> Patch | None:
        metadata = snapshot.metadata
        if (
            not snapshot.exists
            or metadata.status is not ProcessingStatus.UNPROCESSED
            or metadata.input_fingerprint != fingerprint
            or _input_fingerprint(snapshot, input_field) != fingerprint
        ):
            return None

        metadata.status = ProcessingStatus.PENDING
        return {METADATA_FIELD: metadata.to_document()}

    result = await store.transactional_update(record_id, patch_fn)
    if not result.applied:
        logger.info("record.already_handled", status=_status_value(result.snapshot))
        return None

    logger.info("record.status_changed", status=ProcessingStatus.PENDING.value)
    return result.snapshot


async def mark_processed(
    store: RecordStore,
    record_id: str,
    input_field: str,
    output_field: str,
    fingerprint: str,
    output: Any,
    current_version: int | None = None,
) -> bool:
    """Write the output and move the record from pending to processed.

    Both fields land in one transaction. The write only happens if the
    record is still pending for the same input and still holds that input.

    Args:
        store: Record store
        record_id: Record to update
        input_field: Watched input field
        output_field: Field the output is written to
        fingerprint: Fingerprint of the input the output was computed from
        output: Value to store
        current_version: Template version used, None if no template

    Returns:
        True if written, False if the result was superseded.
    """

    def patch_fn(snapshot: RecordSnapshot) -> Patch | None:
        metadata = snapshot.metadata
        if (
            not snapshot.exists
            or metadata.status is not ProcessingStatus.PENDING
            or metadata.input_fingerprint != fingerprint
            or _input_fingerprint(snapshot, input_field) != fingerprint
        ):
            return None

        metadata.status = ProcessingStatus.PROCESSED
        if current_version is not None:
            metadata.current_version = current_version
        return {
            output_field: output,
            METADATA_FIELD: metadata.to_document(),
        }

    logger.info("record.updating", output_field=output_field)
    result = await store.transactional_update(record_id, patch_fn)
    if not result.applied:
        logger.warning("record.superseded", status=_status_value(result.snapshot))
        return False

    logger.info(
        "record.updated",
        status=ProcessingStatus.PROCESSED.value,
        current_version=current_version,
    )
    return True


async def clear_output(
    store: RecordStore,
    record_id: str,
    input_field: str,
    output_field: str,
) -> bool:
    """Remove the output field after the input was removed.

    Bypasses the status machine but forgets the input fingerprint, so the
    same value written back later is processed again. Nothing is written
    if the input has been set again in the meantime.

    Args:
        store: Record store
        record_id: Record to update
        input_field: Watched input field
        output_field: Field to remove

    Returns:
        True if the output was removed.
    """

    def patch_fn(snapshot: RecordSnapshot) -> Patch | None:
        if not snapshot.exists or snapshot.get(input_field) is not None:
            return None
        return {
            output_field: DELETE_FIELD,
            INPUT_FINGERPRINT_FIELD: DELETE_FIELD,
        }

    result = await store.transactional_update(record_id, patch_fn)
    if result.applied:
        logger.info("record.output_cleared", output_field=output_field)
    return result.applied


def extract_response(response: Any, response_field: str | None) -> Any:
    """Select the configured part of an endpoint response.

    Args:
        response: Decoded response body
        response_field: Dotted path into the body, None for the whole body

    Returns:
        The selected value.

    Raises:
        EndpointError: If the response lacks the configured field.
    """
    if response_field is None:
        return response
    value = get_field(response, response_field, default=_MISSING)
    if value is _MISSING:
        raise EndpointError(f"Endpoint response has no field '{response_field}'")
    return value


async def process_record(
    store: RecordStore,
    endpoint: EndpointClient,
    record_id: str,
    input_field: str,
    output_field: str,
    templates: TemplateStore | None = None,
    response_field: str | None = None,
    change_type: ChangeType | None = None,
) -> ProcessResult:
    """Run one processing attempt for a record's current input.

    Flow:
        1. Mark the record unprocessed for its current input
        2. Move it to pending (only one concurrent delivery wins)
        3. Post the input to the endpoint
        4. Select the configured response field
        5. Render through the template, if one is configured
        6. Write output and processed status together

    Any error in steps 3-6 propagates; the record stays pending.

    Args:
        store: Record store
        endpoint: External endpoint client
        record_id: Record to process
        input_field: Watched input field
        output_field: Field the output is written to
        templates: Template store, None to store the raw response
        response_field: Dotted path selecting part of the response
        change_type: Classified change type, carried into the result

    Returns:
        ProcessResult with PROCESSED, ALREADY_HANDLED or SUPERSEDED

    Raises:
        EndpointError: If the call fails
        TemplateMissingError: If no template document exists
        VersionMismatchError: If the record's template version is stale
        RenderError: If the template cannot be rendered
        StorageError: If the record store fails
    """
    start_time = time.time()

    fingerprint = await mark_unprocessed(store, record_id, input_field, change_type)
    if fingerprint is None:
        return ProcessResult(Outcome.ALREADY_HANDLED, change_type)

    snapshot = await mark_pending(store, record_id, input_field, fingerprint)
    if snapshot is None:
        return ProcessResult(Outcome.ALREADY_HANDLED, change_type)

    payload = snapshot.get(input_field)
    response = await endpoint.post(payload)
    output = extract_response(response, response_field)

    current_version: int | None = None
    if templates is not None:
        rendered = await templates.render(output, snapshot.metadata.current_version)
        output = rendered.data
        current_version = rendered.current_version

    written = await mark_processed(
        store,
        record_id,
        input_field,
        output_field,
        fingerprint,
        output,
        current_version=current_version,
    )

    execution_time_ms = int((time.time() - start_time) * 1000)
    outcome = Outcome.PROCESSED if written else Outcome.SUPERSEDED
    return ProcessResult(outcome, change_type, execution_time_ms=execution_time_ms)


def _status_value(snapshot: RecordSnapshot) -> str | None:
    status = snapshot.metadata.status
    return status.value if status is not None else None
