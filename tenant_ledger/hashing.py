"""
Deterministic hashing for snapshots.

A snapshot hash must come out identical every time the same
balance set is hashed, on any machine, so the payload is first
rendered as canonical JSON: sorted keys, no whitespace, and
fixed representations for Decimal, date and UUID values.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        # Fixed two-place rendering: "80.00" and "80.0000" hash the same
        return f"{obj:.2f}"
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonical_json(data: Any) -> str:
    """Render data as canonical JSON (sorted keys, compact separators)."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_default,
    )


def sha256_hex(data: Any) -> str:
    """SHA-256 of the canonical JSON form of data, hex encoded."""
    return hashlib.sha256(canonical_json(data).encode("utf-8")).hexdigest()
