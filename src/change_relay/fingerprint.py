"""Input fingerprinting for change detection.

A record's processing status only means something relative to the input it
was computed for. The state machine stores a fingerprint of that input next
to the status, so a re-delivered event (same input) can be told apart from a
new logical change (different input) even when both find the record already
``pending`` or ``processed``.

The fingerprint is the SHA-256 of a canonical JSON encoding: mapping keys
sorted, no insignificant whitespace, so logically equal inputs always hash
the same regardless of key order.
"""

import hashlib
import json
from typing import Any


def canonical_json(value: Any) -> str:
    """Encode a value as canonical JSON.

    Args:
        value: Any JSON-compatible value. Other values fall back to ``str``.

    Returns:
        Compact JSON with sorted keys.

    Examples:
        >>> canonical_json({"b": 1, "a": [1, 2]})
        '{"a":[1,2],"b":1}'
    """
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def compute_input_fingerprint(value: Any) -> str:
    """Compute a deterministic fingerprint for an input value.

    Args:
        value: The watched input field's value.

    Returns:
        Hexadecimal SHA-256 hash string (64 characters)

    Examples:
        >>> compute_input_fingerprint({"a": 1, "b": 2}) == compute_input_fingerprint({"b": 2, "a": 1})
        True
    """
    return hashlib.sha256(canonical_json(value).encode("utf-8")).hexdigest()
