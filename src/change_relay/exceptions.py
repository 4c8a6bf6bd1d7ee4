"""Custom exceptions for the change relay.

This module defines the exception hierarchy raised while processing record
writes. Every error is caught at the per-event boundary in
``RecordProcessor.on_record_write`` and logged, so none of them crash the
process; they only decide which outcome is reported for the event.

Examples:
    Handling a version skew::

        from change_relay.exceptions import VersionMismatchError

        try:
            rendered = await templates.render(data, current_version=3)
        except VersionMismatchError as e:
            logger.warning(
                "template.version_mismatch",
                record_version=e.record_version,
                template_version=e.template_version,
            )

    Handling an endpoint failure::

        from change_relay.exceptions import EndpointError

        try:
            response = await endpoint.post(payload)
        except EndpointError as e:
            logger.error("endpoint.failed", status_code=e.status_code)
"""


class RelayError(Exception):
    """Base exception for all relay errors.

    Attributes:
        message: Human-readable error description.

    Examples:
        Catching all relay errors raised by a processing attempt::

            from change_relay.core.state_machine import process_record

            try:
                await process_record(store, endpoint, record_id, "input", "output")
            except RelayError as e:
                logger.error("record.failed", error=e.message)
    """

    def __init__(self, message: str) -> None:
        """Initialize the exception with a message.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(RelayError):
    """The relay was configured in a way that can never work.

    Raised once at setup, for example when the input and output field names
    are identical (every output write would retrigger processing).
    """


class TemplateMissingError(RelayError):
    """A render was requested but the template document does not exist.

    Attributes:
        message: Human-readable error description.
        template_path: Path of the template document that was looked up.
    """

    def __init__(self, message: str, template_path: str | None = None) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error description.
            template_path: Path of the missing template document.
        """
        super().__init__(message)
        self.template_path = template_path


class VersionMismatchError(RelayError):
    """The record's template version disagrees with the cached template.

    The record was last rendered against ``record_version`` but the template
    store now holds ``template_version``. The skew may go either way. There
    is no default resolution; the caller decides what to do.

    Attributes:
        message: Human-readable error description.
        record_version: Version stored on the record.
        template_version: Version of the cached template.

    Examples:
        Telling the two skew directions apart::

            except VersionMismatchError as e:
                if e.template_version > e.record_version:
                    ...  # template moved ahead of the record
                else:
                    ...  # record references a newer template than cached
    """

    def __init__(self, message: str, record_version: int, template_version: int) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error description.
            record_version: Version stored on the record.
            template_version: Version of the cached template.
        """
        super().__init__(message)
        self.record_version = record_version
        self.template_version = template_version


class EndpointError(RelayError):
    """The external HTTP call failed or answered with an error status.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code, None for transport failures.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error description.
            status_code: HTTP status code, None for transport failures.
            cause: The underlying exception, if any.
        """
        super().__init__(message)
        self.status_code = status_code
        self.cause = cause


class RenderError(RelayError):
    """A template could not be rendered against the given data.

    Raised when a placeholder has no value in strict mode, or when the
    template uses anything beyond plain variable substitution.

    Attributes:
        message: Human-readable error description.
        placeholder: Name of the offending placeholder, if known.
    """

    def __init__(self, message: str, placeholder: str | None = None) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error description.
            placeholder: Name of the offending placeholder, if known.
        """
        super().__init__(message)
        self.placeholder = placeholder


class StorageError(RelayError):
    """Record store operation failed.

    Backends wrap their own exceptions in this error so the processor never
    has to know about backend-specific types.

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception that caused the storage error.

    Examples:
        Raising a storage error::

            try:
                snapshot = await client.document(path).get()
            except GoogleAPICallError as e:
                raise StorageError(
                    message=f"Failed to read {path}: {e}",
                    cause=e,
                ) from e
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        """Initialize the storage error with details.

        Args:
            message: Human-readable error description.
            cause: The underlying exception that caused the storage error.
        """
        super().__init__(message)
        self.cause = cause
