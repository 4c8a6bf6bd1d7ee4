"""Core processing logic for the change relay.

This package contains the part of the relay with real invariants:
- State machine: record status transitions (unprocessed -> pending -> processed)
- Processor: per-event classification and error boundary

The core is independent of the document store and HTTP stack; both are
injected through the RecordStore and EndpointClient protocols.
"""

from change_relay.core.processor import RecordProcessor
from change_relay.core.state_machine import Outcome, ProcessResult

__all__ = ["RecordProcessor", "Outcome", "ProcessResult"]
