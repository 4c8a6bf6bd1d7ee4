"""Trigger source adapters for the change relay.

This package provides adapters that deliver document store write events to
the framework-agnostic RecordProcessor:
- ASGI: FastAPI application receiving pushed write events
"""

from change_relay.adapters.asgi import create_app

__all__ = ["create_app"]
