"""ASGI trigger adapter built on FastAPI.

Document store triggers are commonly delivered as HTTP pushes. This module
exposes a FastAPI application that turns each pushed write event into a
``Change`` and hands it to a RecordProcessor.

Routes:
    POST /events   one write event, answered with the ProcessResult
    GET  /healthz  liveness plus template readiness
    GET  /metrics  Prometheus exposition

Event payload::

    {
        "recordId": "requests/abc",
        "eventId": "evt-1",
        "before": null,
        "after": {"input": "hello"}
    }

A null or missing snapshot means the record did not exist on that side of
the write. Events are always answered with 200, even when processing
failed: the failure is already logged and the record left pending, and a
5xx would only make the platform retry an event this relay has handled.

Examples:
    Serving a processor::

        import uvicorn
        from change_relay.adapters.asgi import create_app

        app = create_app(processor)
        uvicorn.run(app, host="0.0.0.0", port=8080)
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, ConfigDict, Field
from starlette.responses import Response

from change_relay import __version__
from change_relay.core.processor import RecordProcessor
from change_relay.core.state_machine import ProcessResult
from change_relay.endpoint import HttpEndpointClient
from change_relay.models import Change, RecordSnapshot
from change_relay.observability.logging import get_logger

logger = get_logger(__name__)


class ChangeEvent(BaseModel):
    """Wire format of one pushed write event."""

    model_config = ConfigDict(populate_by_name=True)

    record_id: str = Field(..., alias="recordId", min_length=1)
    event_id: str | None = Field(default=None, alias="eventId")
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None

    def to_change(self) -> Change:
        """Convert to the internal change representation."""
        return Change(
            record_id=self.record_id,
            event_id=self.event_id,
            before=_snapshot(self.record_id, self.before),
            after=_snapshot(self.record_id, self.after),
        )


class EventResponse(BaseModel):
    """Wire format of the answer to a pushed event."""

    model_config = ConfigDict(populate_by_name=True)

    outcome: str
    change_type: str | None = Field(default=None, alias="changeType")
    error: str | None = None
    execution_time_ms: int | None = Field(default=None, alias="executionTimeMs")

    @classmethod
    def from_result(cls, result: ProcessResult) -> "EventResponse":
        return cls(
            outcome=result.outcome.value,
            change_type=result.change_type.value if result.change_type else None,
            error=str(result.error) if result.error is not None else None,
            execution_time_ms=result.execution_time_ms,
        )


def _snapshot(record_id: str, data: dict[str, Any] | None) -> RecordSnapshot:
    if data is None:
        return RecordSnapshot.missing(record_id)
    return RecordSnapshot(record_id=record_id, exists=True, data=data)


def create_app(processor: RecordProcessor) -> FastAPI:
    """Create the FastAPI application serving one processor.

    The processor's template subscription is started on application startup
    and stopped on shutdown, together with the endpoint client's
    connection pool.

    Args:
        processor: The processor events are handed to

    Returns:
        The configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        processor.start()
        try:
            yield
        finally:
            processor.close()
            if isinstance(processor.endpoint, HttpEndpointClient):
                await processor.endpoint.aclose()
            logger.info("relay.stopped")

    app = FastAPI(
        title="Change Relay",
        description="Relays record input changes to an external endpoint",
        version=__version__,
        lifespan=lifespan,
    )

    @app.post("/events", response_model=EventResponse, response_model_by_alias=True)
    async def receive_event(event: ChangeEvent) -> EventResponse:
        result = await processor.on_record_write(event.to_change())
        return EventResponse.from_result(result)

    @app.get("/healthz")
    async def healthz() -> dict[str, Any]:
        templates = processor.templates
        return {
            "status": "ok",
            "templateReady": templates.ready if templates is not None else None,
            "templateVersion": templates.version if templates is not None else None,
        }

    @app.get("/metrics")
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app
