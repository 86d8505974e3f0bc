"""
Canonical JSON encoding

Produces one byte representation for semantically identical values, used
for key ID derivation and as the default signed-message encoding.

Rules:
- Object keys sorted lexicographically (Unicode code point order)
- Compact separators, UTF-8, no BOM
- bytes become standard base64 strings
- datetimes become ISO-8601 UTC with a trailing "Z"
- Arrays keep their order
"""

import base64
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Union


def canonicalize(obj: Any) -> bytes:
    """Return the canonical UTF-8 JSON bytes for obj."""
    canonical = _canonicalize_value(obj)
    return json.dumps(canonical, separators=(',', ':'), ensure_ascii=False).encode('utf-8')


def _canonicalize_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    elif isinstance(value, float):
        # Floats have no single canonical textual form
        raise ValueError("Cannot canonicalize float values")
    elif isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode('ascii')
    elif isinstance(value, datetime):
        return format_timestamp(value)
    elif isinstance(value, dict):
        return _canonicalize_object(value)
    elif isinstance(value, (list, tuple)):
        return _canonicalize_array(value)
    else:
        raise ValueError(f"Cannot canonicalize type: {type(value)}")


def _canonicalize_object(obj: Dict[str, Any]) -> Dict[str, Any]:
    for key in obj:
        if not isinstance(key, str):
            raise ValueError(f"Object keys must be strings, got {type(key)}")
    return {k: _canonicalize_value(obj[k]) for k in sorted(obj.keys())}


def _canonicalize_array(arr: Union[List, tuple]) -> List:
    return [_canonicalize_value(item) for item in arr]


def as_utc(ts: datetime) -> datetime:
    """Interpret naive datetimes as UTC and convert aware ones to UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def format_timestamp(ts: datetime) -> str:
    return as_utc(ts).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing Z."""
    return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
