"""Per-event entry point of the change relay.

The processor receives every ``(before, after)`` pair the trigger source
delivers for the watched collection, classifies it, and hands triggering
changes to the state machine.

It is also the error boundary: whatever goes wrong while handling one event
is logged and reported in the returned ProcessResult, never raised. A failing
record must not stop other records from being processed, nor a later
re-delivery of the same event.

Examples:
    Wiring a processor from configuration::

        from change_relay.config import RelayConfig
        from change_relay.core.processor import RecordProcessor
        from change_relay.storage.memory import MemoryRecordStore

        config = RelayConfig.from_env()
        processor = RecordProcessor.from_config(config, MemoryRecordStore())
        processor.start()

        result = await processor.on_record_write(change)
"""

import time

from change_relay.classifier import Action, ChangeType, decide
from change_relay.config import RelayConfig
from change_relay.core.state_machine import Outcome, ProcessResult, clear_output, process_record
from change_relay.endpoint import EndpointClient, HttpEndpointClient
from change_relay.exceptions import (
    ConfigurationError,
    EndpointError,
    RelayError,
    RenderError,
    StorageError,
    TemplateMissingError,
    VersionMismatchError,
)
from change_relay.models import Change
from change_relay.observability.logging import bind_event_context, get_logger
from change_relay.observability.metrics import record_outcome
from change_relay.storage.base import RecordStore
from change_relay.templates import TemplateStore

logger = get_logger(__name__)

# Log event per error type; the first matching class wins
_ERROR_EVENTS: tuple[tuple[type[Exception], str], ...] = (
    (VersionMismatchError, "template.version_mismatch"),
    (TemplateMissingError, "template.missing"),
    (RenderError, "template.render_failed"),
    (EndpointError, "endpoint.failed"),
    (StorageError, "store.failed"),
)


class RecordProcessor:
    """Classifies record writes and drives triggering ones to completion.

    Attributes:
        store: Record store the records live in
        endpoint: External endpoint client
        input_field_name: Watched input field
        output_field_name: Field the result is written to
        templates: Template store, None when templating is off
        response_field: Dotted path selecting part of the response
        collection_path: Collection records must belong to, None for any
    """

    def __init__(
        self,
        store: RecordStore,
        endpoint: EndpointClient,
        input_field_name: str,
        output_field_name: str,
        templates: TemplateStore | None = None,
        response_field: str | None = None,
        collection_path: str | None = None,
    ) -> None:
        """Initialize the processor.

        Args:
            store: Record store the records live in
            endpoint: External endpoint client
            input_field_name: Watched input field
            output_field_name: Field the result is written to
            templates: Template store, None when templating is off
            response_field: Dotted path selecting part of the response
            collection_path: Only records directly inside this collection
                are handled; writes elsewhere are skipped

        Raises:
            ConfigurationError: If the input and output field names are the
                same; every output write would then look like a new input.
        """
        if input_field_name == output_field_name:
            logger.error(
                "config.field_names_not_different",
                input_field_name=input_field_name,
                output_field_name=output_field_name,
            )
            raise ConfigurationError(
                f"Input and output field names must differ, both are '{input_field_name}'"
            )

        self.store = store
        self.endpoint = endpoint
        self.input_field_name = input_field_name
        self.output_field_name = output_field_name
        self.templates = templates
        self.response_field = response_field
        self.collection_path = collection_path.strip("/") if collection_path else None

    @classmethod
    def from_config(
        cls,
        config: RelayConfig,
        store: RecordStore,
        endpoint: EndpointClient | None = None,
    ) -> "RecordProcessor":
        """Build a processor, its endpoint client and template store.

        Args:
            config: Relay configuration
            store: Record store the records and template live in
            endpoint: Endpoint client; an HttpEndpointClient for
                ``config.api_url`` is created if omitted

        Returns:
            A processor; call ``start()`` to subscribe to the template.
        """
        if endpoint is None:
            endpoint = HttpEndpointClient(
                config.api_url,
                bearer_token=config.bearer_access_token,
                timeout=float(config.request_timeout_seconds),
            )

        templates = None
        if config.template_path is not None:
            templates = TemplateStore(
                store,
                config.template_path,
                strict=config.strict_rendering,
            )

        return cls(
            store=store,
            endpoint=endpoint,
            input_field_name=config.input_field_name,
            output_field_name=config.output_field_name,
            templates=templates,
            response_field=config.response_field,
            collection_path=config.collection_path,
        )

    def start(self) -> None:
        """Start the live template subscription, if templating is on."""
        if self.templates is not None and self.templates.template_path is not None:
            self.templates.start()
        logger.info(
            "relay.initialized",
            input_field_name=self.input_field_name,
            output_field_name=self.output_field_name,
            template_path=self.templates.template_path if self.templates else None,
        )

    def close(self) -> None:
        """Stop the template subscription."""
        if self.templates is not None:
            self.templates.close()

    async def on_record_write(self, change: Change) -> ProcessResult:
        """Handle one write event.

        Never raises; failures are logged and reported as FAILED.

        Args:
            change: The ``(before, after)`` pair for the written record

        Returns:
            ProcessResult describing how the event ended
        """
        start_time = time.time()

        with bind_event_context(change.record_id, change.event_id):
            logger.info("relay.started")
            try:
                result = await self._handle(change)
            except RelayError as e:
                result = self._failed(e)
            except Exception as e:
                logger.error(
                    "record.failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                result = ProcessResult(Outcome.FAILED, error=e)

            if result.execution_time_ms is None:
                result.execution_time_ms = int((time.time() - start_time) * 1000)

            record_outcome(result.outcome.value)
            logger.info(
                "relay.completed",
                outcome=result.outcome.value,
                execution_time_ms=result.execution_time_ms,
            )
            return result

    def in_collection(self, record_id: str) -> bool:
        """Whether a record id lies directly inside the watched collection."""
        if self.collection_path is None:
            return True
        parent, _, name = record_id.strip("/").rpartition("/")
        return bool(name) and parent == self.collection_path

    async def _handle(self, change: Change) -> ProcessResult:
        if not self.in_collection(change.record_id):
            logger.info("record.outside_collection", collection_path=self.collection_path)
            return ProcessResult(Outcome.SKIPPED)

        decision = decide(change, self.input_field_name)
        logger.info(decision.event, change_type=decision.change_type.value)

        if decision.change_type is ChangeType.DELETE:
            return ProcessResult(Outcome.DELETED, decision.change_type)

        if decision.action is Action.SKIP:
            return ProcessResult(Outcome.SKIPPED, decision.change_type)

        if decision.action is Action.CLEAR_OUTPUT:
            cleared = await clear_output(
                self.store,
                change.record_id,
                self.input_field_name,
                self.output_field_name,
            )
            outcome = Outcome.CLEARED if cleared else Outcome.SKIPPED
            return ProcessResult(outcome, decision.change_type)

        return await process_record(
            store=self.store,
            endpoint=self.endpoint,
            record_id=change.record_id,
            input_field=self.input_field_name,
            output_field=self.output_field_name,
            templates=self.templates,
            response_field=self.response_field,
            change_type=decision.change_type,
        )

    def _failed(self, error: RelayError) -> ProcessResult:
        event = next(
            (name for error_type, name in _ERROR_EVENTS if isinstance(error, error_type)),
            "record.failed",
        )
        fields: dict[str, object] = {
            "error": error.message,
            "error_type": type(error).__name__,
        }
        if isinstance(error, VersionMismatchError):
            fields["record_version"] = error.record_version
            fields["template_version"] = error.template_version
        elif isinstance(error, EndpointError):
            fields["status_code"] = error.status_code
        elif isinstance(error, RenderError):
            fields["placeholder"] = error.placeholder

        logger.error(event, **fields)
        return ProcessResult(Outcome.FAILED, error=error)
