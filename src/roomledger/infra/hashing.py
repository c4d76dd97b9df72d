"""Hashing utilities for idempotent request fingerprints.

A booking request is fingerprinted so that a retry carrying the same
idempotency key can be told apart from a different request that reuses it.
"""

import hashlib
import json
from typing import Any


def _canonical(value: Any) -> Any:
    """Normalise values so equal payloads serialise identically."""
    if isinstance(value, dict):
        return {str(k): _canonical(v) for k, v in sorted(value.items())}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


def hash_request(payload: dict[str, Any]) -> str:
    """Return a hex SHA-256 fingerprint of a request payload.

    Args:
        payload: JSON-like dict; dates are serialised as ISO strings and
                 dict keys are sorted. List order is significant.

    Returns:
        64-char lowercase hex digest.
    """
    encoded = json.dumps(_canonical(payload), separators=(",", ":"), sort_keys=True)
    return hashlib.sha256(encoded.encode()).hexdigest()
