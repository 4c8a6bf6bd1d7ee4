"""End-to-end scenario tests for the change relay.

This package contains scenario tests that drive the RecordProcessor against
the in-memory record store, each covering one aspect of exactly-once
processing under at-least-once delivery.
"""
