"""
Metadata documents and signature records

Callers own documents; the engine only reads them. Encoding the signed
portion is the caller's job: `signed` holds the exact bytes the signatures
cover.
"""

import base64
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .canonical import as_utc
from .errors import SignatureStateError


@dataclass
class SignatureRecord:
    """
    One candidate signature.

    verified stays None until the signature verifier has looked at it and
    can be set exactly once.
    """
    key_id: str
    signature: bytes
    verified: Optional[bool] = None

    def mark_verified(self, result: bool) -> None:
        if self.verified is not None:
            raise SignatureStateError(f"signature by {self.key_id} already marked")
        self.verified = bool(result)

    def is_valid(self) -> bool:
        return self.verified is True

    def fresh_copy(self) -> 'SignatureRecord':
        """Copy with the verification mark cleared."""
        return SignatureRecord(key_id=self.key_id, signature=self.signature)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keyid": self.key_id,
            "sig": base64.b64encode(self.signature).decode('ascii'),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SignatureRecord':
        return cls(key_id=data["keyid"], signature=base64.b64decode(data["sig"]))


@dataclass
class MetadataDocument:
    """
    A signed metadata document for one role.

    Attributes:
        role: Role name the document belongs to
        version: Version number, >= 1
        expires_at: End of the validity window (naive values are UTC)
        signed: Bytes covered by the signatures
        signatures: Candidate signatures, in the order received
    """
    role: str
    version: int
    expires_at: datetime
    signed: bytes
    signatures: List[SignatureRecord] = field(default_factory=list)

    def __post_init__(self):
        if isinstance(self.version, bool) or not isinstance(self.version, int) or self.version < 1:
            raise ValueError(f"Invalid version {self.version!r}: must be an integer >= 1")
        if not self.role:
            raise ValueError("Document role must not be empty")
        self.expires_at = as_utc(self.expires_at)

