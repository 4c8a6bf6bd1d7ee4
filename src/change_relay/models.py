"""Core type definitions for the change relay.

This module provides the data structures shared by the classifier, the
template store, the state machine and the record store: processing status,
record metadata, record snapshots, change events and templates.

Records are plain dictionaries as the document store hands them out. Only
the ``metadata`` section is parsed into a model; the input and output fields
are kept as opaque values.

Examples:
    Building a change event::

        from change_relay.models import Change, RecordSnapshot

        change = Change(
            record_id="requests/abc",
            before=RecordSnapshot.missing("requests/abc"),
            after=RecordSnapshot(record_id="requests/abc", data={"input": "hi"}),
        )

    Reading the metadata section::

        snapshot.metadata.status  # ProcessingStatus.PENDING or None
        snapshot.metadata.current_version  # int or None
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

METADATA_FIELD = "metadata"


class _DeleteField:
    """Sentinel patch value that removes a field instead of setting it."""

    _instance: "_DeleteField | None" = None

    def __new__(cls) -> "_DeleteField":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DELETE_FIELD"


DELETE_FIELD = _DeleteField()


def get_field(data: Any, path: str, default: Any = None) -> Any:
    """Look up a dotted field path in nested mappings.

    Args:
        data: Mapping to search.
        path: Field path, segments separated by ``.``.
        default: Value returned when any segment is missing.

    Returns:
        The value at ``path`` or ``default``.

    Examples:
        >>> get_field({"a": {"b": 1}}, "a.b")
        1
        >>> get_field({"a": 1}, "a.b") is None
        True
    """
    current = data
    for segment in path.split("."):
        if not isinstance(current, dict) or segment not in current:
            return default
        current = current[segment]
    return current


class ProcessingStatus(str, Enum):
    """Processing stage of a record.

    Attributes:
        UNPROCESSED: A triggering change was observed, nothing sent yet.
        PENDING: The external call is about to be issued or is in flight.
        PROCESSED: The output for the current input has been written.
    """

    UNPROCESSED = "unprocessed"
    PENDING = "pending"
    PROCESSED = "processed"


class RecordMetadata(BaseModel):
    """The ``metadata`` section of a record.

    Field names are persisted in camelCase. Keys this package does not know
    about are kept so that writing metadata back never drops them.

    Attributes:
        status: Processing stage, None if never observed.
        current_version: Template version the output was rendered with.
        input_fingerprint: Fingerprint of the input the status refers to.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    status: ProcessingStatus | None = Field(
        default=None,
        description="Processing stage of the record",
        examples=[ProcessingStatus.PENDING, None],
    )
    current_version: int | None = Field(
        default=None,
        alias="currentVersion",
        ge=0,
        description="Template version the stored output was rendered with",
        examples=[0, 3],
    )
    input_fingerprint: str | None = Field(
        default=None,
        alias="inputFingerprint",
        description="SHA-256 of the input value the status refers to",
    )

    def to_document(self) -> dict[str, Any]:
        """Serialize for storage, camelCase keys, unset values omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RecordSnapshot(BaseModel):
    """A point-in-time view of one record.

    Attributes:
        record_id: Path or identifier of the record.
        exists: False when the record does not exist (created or deleted).
        data: Document fields, empty when the record does not exist.
    """

    record_id: str = Field(..., min_length=1)
    exists: bool = True
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def missing(cls, record_id: str) -> "RecordSnapshot":
        """Snapshot of a record that does not exist."""
        return cls(record_id=record_id, exists=False, data={})

    def get(self, path: str) -> Any:
        """Return the value at ``path``, None if absent."""
        return get_field(self.data, path)

    @property
    def metadata(self) -> RecordMetadata:
        raw = self.data.get(METADATA_FIELD)
        if not isinstance(raw, dict):
            return RecordMetadata()
        return RecordMetadata.model_validate(raw)


class Change(BaseModel):
    """A ``(before, after)`` pair delivered for one write.

    Attributes:
        record_id: Path or identifier of the written record.
        before: Snapshot before the write.
        after: Snapshot after the write.
        event_id: Delivery identifier from the trigger source, if any.
    """

    record_id: str = Field(..., min_length=1)
    before: RecordSnapshot
    after: RecordSnapshot
    event_id: str | None = None


class TemplateData(BaseModel):
    """A versioned template document.

    Attributes:
        body: Mapping of keys to literal or placeholder values.
        version: Increases every time ``body`` is replaced.
    """

    model_config = ConfigDict(populate_by_name=True)

    body: dict[str, Any] = Field(..., alias="template")
    version: int = Field(default=0, ge=0)


class RenderedOutput(BaseModel):
    """Result of rendering a template.

    Attributes:
        data: The rendered body.
        current_version: Version of the template that produced ``data``.
    """

    data: Any
    current_version: int = Field(..., ge=0)
