"""
Pytest configuration and shared fixtures for change_relay tests.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import pytest

from change_relay.models import Change, RecordSnapshot
from change_relay.storage.memory import MemoryRecordStore


class RecordingEndpoint:
    """Endpoint stand-in that records every payload it receives.

    Attributes:
        calls: Payloads in the order they were posted.
    """

    def __init__(
        self,
        response: Any = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.response = response
        self.error = error
        self.delay = delay
        self.calls: list[Any] = []

    async def post(self, payload: Any) -> Any:
        self.calls.append(payload)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if callable(self.response):
            return self.response(payload)
        return self.response


def make_change(
    record_id: str,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
    event_id: str | None = None,
) -> Change:
    """Build a change; None on either side means the record did not exist."""

    def snapshot(data: dict[str, Any] | None) -> RecordSnapshot:
        if data is None:
            return RecordSnapshot.missing(record_id)
        return RecordSnapshot(record_id=record_id, data=data)

    return Change(record_id=record_id, before=snapshot(before), after=snapshot(after), event_id=event_id)


@pytest.fixture
def store() -> MemoryRecordStore:
    """Create a fresh in-memory record store for each test."""
    return MemoryRecordStore()


@pytest.fixture
def endpoint() -> RecordingEndpoint:
    """Endpoint that echoes the payload back wrapped in a result object."""
    return RecordingEndpoint(response=lambda payload: {"result": payload})


@pytest.fixture
def write_record(
    store: MemoryRecordStore,
) -> Callable[[str, dict[str, Any]], Awaitable[Change]]:
    """Write a record to the store and return the change it produced."""

    async def write(record_id: str, data: dict[str, Any]) -> Change:
        before = await store.get(record_id)
        after = await store.put(record_id, data)
        return Change(record_id=record_id, before=before, after=after)

    return write


@pytest.fixture
def sample_record_id() -> str:
    """Provide a sample record path for tests."""
    return "requests/abc"


@pytest.fixture
def change_factory() -> Callable[..., Change]:
    """Provide make_change to tests."""
    return make_change


@pytest.fixture
def endpoint_factory() -> type[RecordingEndpoint]:
    """Provide RecordingEndpoint to tests that need a custom response."""
    return RecordingEndpoint
