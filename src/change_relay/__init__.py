"""
Write-triggered HTTP relay for document store records.

This package watches an input field on records, posts its value to an
external endpoint, optionally reshapes the response through a versioned
template, and writes the result back to the record exactly once per change.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
