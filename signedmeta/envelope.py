"""
Default JSON envelope

A ready-made encoding for callers that have none of their own:

    {"signed": {"_type": <role>, "version": N, "expires": "<ISO-8601>", "body": {...}},
     "signatures": [{"keyid": "...", "sig": "<base64>"}]}

The signed bytes are the canonical JSON of the "signed" object, so role,
version and expiry are covered by the signatures.
"""

import json
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from .canonical import canonicalize, format_timestamp, parse_timestamp
from .document import MetadataDocument, SignatureRecord


def encode_signed(role: str, version: int, expires_at: datetime, body: Optional[Dict[str, Any]] = None) -> bytes:
    return canonicalize({
        "_type": role,
        "version": version,
        "expires": format_timestamp(expires_at),
        "body": body or {},
    })


def build_document(
    role: str,
    version: int,
    expires_at: datetime,
    body: Optional[Dict[str, Any]] = None,
    signatures: Iterable[SignatureRecord] = (),
) -> MetadataDocument:
    return MetadataDocument(
        role=role,
        version=version,
        expires_at=expires_at,
        signed=encode_signed(role, version, expires_at, body),
        signatures=list(signatures),
    )


def to_envelope(document: MetadataDocument) -> Dict[str, Any]:
    return {
        "signed": json.loads(document.signed.decode('utf-8')),
        "signatures": [s.to_dict() for s in document.signatures],
    }


def from_envelope(data: Dict[str, Any]) -> MetadataDocument:
    """
    Decode an envelope.

    Raises:
        ValueError: the envelope is malformed
    """
    try:
        signed = data["signed"]
        return MetadataDocument(
            role=signed["_type"],
            version=signed["version"],
            expires_at=parse_timestamp(signed["expires"]),
            signed=canonicalize(signed),
            signatures=[SignatureRecord.from_dict(s) for s in data.get("signatures", [])],
        )
    except (KeyError, TypeError, AttributeError) as e:
        raise ValueError(f"Malformed envelope: {e}") from e
