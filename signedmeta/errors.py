"""
signedmeta Error Taxonomy

Every rejection produced by the decision engine is one of the conditions
below. Each carries structured fields so callers can choose between retry
and hard failure without parsing messages.

Checks return these inside an Outcome; they are only raised when a caller
asks for it (Outcome.raise_for_reason) or on configuration errors.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from .canonical import format_timestamp


class ErrorKind(str, Enum):
    """Tag identifying each rejection condition."""
    INSUFFICIENT_SIGNATURES = "INSUFFICIENT_SIGNATURES"
    EXPIRED = "EXPIRED"
    LOW_VERSION = "LOW_VERSION"
    ROLE_THRESHOLD = "ROLE_THRESHOLD"
    INVALID_KEY_TYPE = "INVALID_KEY_TYPE"
    INVALID_KEY_ID = "INVALID_KEY_ID"
    INVALID_KEY_LENGTH = "INVALID_KEY_LENGTH"
    NO_KEYS = "NO_KEYS"


class MetadataError(Exception):
    """Base class for all rejection reasons."""

    kind: ErrorKind

    def __init__(self):
        super().__init__(self.message())

    def message(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.message()

    def fields(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        d = {"kind": self.kind.value, "message": self.message()}
        d.update(self.fields())
        return d

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.fields() == other.fields()

    def __hash__(self) -> int:
        return hash((self.kind, repr(sorted(self.fields().items()))))

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v!r}" for k, v in self.fields().items())
        return f"{type(self).__name__}({args})"


class InsufficientSignatures(MetadataError):
    """
    Fewer distinct valid (or available) keys than the role threshold.

    candidate_keys counts the role's keys that were offered at all, valid or
    not. When even that is below the threshold the set can never be
    satisfied by re-verifying, only by bringing other keys.
    """
    kind = ErrorKind.INSUFFICIENT_SIGNATURES

    def __init__(
        self,
        found_keys: int,
        needed_keys: int,
        missing_key_ids: Iterable[str] = (),
        candidate_keys: Optional[int] = None,
    ):
        self.found_keys = found_keys
        self.needed_keys = needed_keys
        self.missing_key_ids: List[str] = list(missing_key_ids)
        self.candidate_keys = found_keys if candidate_keys is None else candidate_keys
        super().__init__()

    @property
    def unsatisfiable(self) -> bool:
        return self.candidate_keys < self.needed_keys

    def message(self) -> str:
        candidates = ", ".join(self.missing_key_ids)
        if self.unsatisfiable and self.candidate_keys > 0:
            return (
                f"cannot sign because while {self.needed_keys} signatures are needed, an "
                f"insufficient number of valid signing keys have been specified"
            )
        if self.found_keys == 0:
            return f"signing keys not available, need {self.needed_keys} keys from: {candidates}"
        return (
            f"not enough signing keys: got {self.found_keys} of {self.needed_keys} "
            f"needed keys, other candidates: {candidates}"
        )

    def fields(self) -> Dict[str, Any]:
        return {
            "found_keys": self.found_keys,
            "needed_keys": self.needed_keys,
            "missing_key_ids": list(self.missing_key_ids),
            "candidate_keys": self.candidate_keys,
            "unsatisfiable": self.unsatisfiable,
        }


class Expired(MetadataError):
    """A document's validity window has closed."""
    kind = ErrorKind.EXPIRED

    def __init__(self, role: str, expires_at: datetime):
        self.role = role
        self.expires_at = expires_at
        super().__init__()

    def message(self) -> str:
        return f"{self.role} expired at {format_timestamp(self.expires_at)}"

    def fields(self) -> Dict[str, Any]:
        return {"role": self.role, "expires_at": format_timestamp(self.expires_at)}


class LowVersion(MetadataError):
    """Candidate version does not exceed the version already trusted for the role."""
    kind = ErrorKind.LOW_VERSION

    def __init__(self, actual: int, current: int):
        self.actual = actual
        self.current = current
        super().__init__()

    def message(self) -> str:
        return f"version {self.actual} is lower than current version {self.current}"

    def fields(self) -> Dict[str, Any]:
        return {"actual": self.actual, "current": self.current}


class RoleThreshold(MetadataError):
    """Threshold not met, without detailed counts."""
    kind = ErrorKind.ROLE_THRESHOLD

    def __init__(self, msg: str = ""):
        self.msg = msg
        super().__init__()

    def message(self) -> str:
        return self.msg or "valid signatures did not meet threshold"

    def fields(self) -> Dict[str, Any]:
        return {"msg": self.msg}


class InvalidKeyType(MetadataError):
    """Key material belongs to a different algorithm family than declared."""
    kind = ErrorKind.INVALID_KEY_TYPE

    def message(self) -> str:
        return "key type is not valid for signature"


class InvalidKeyID(MetadataError):
    """Declared key ID does not derive from the key material."""
    kind = ErrorKind.INVALID_KEY_ID

    def message(self) -> str:
        return "key ID is not valid for key content"


class InvalidKeyLength(MetadataError):
    """Supported algorithm, unsupported length (e.g. RSA-1024)."""
    kind = ErrorKind.INVALID_KEY_LENGTH

    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__()

    def message(self) -> str:
        return f"key length is not supported: {self.detail}"

    def fields(self) -> Dict[str, Any]:
        return {"detail": self.detail}


class NoKeys(MetadataError):
    """None of the role's keys is available for signing."""
    kind = ErrorKind.NO_KEYS

    def __init__(self, key_ids: Iterable[str] = ()):
        self.key_ids: List[str] = list(key_ids)
        super().__init__()

    def message(self) -> str:
        return (
            "could not find necessary signing keys, at least one of these keys "
            f"must be available: {', '.join(self.key_ids)}"
        )

    def fields(self) -> Dict[str, Any]:
        return {"key_ids": list(self.key_ids)}


# Raised (never returned) on misuse or misconfiguration

class RoleConfigurationError(ValueError):
    """A role definition that can never be satisfied or is malformed."""


class SignatureStateError(RuntimeError):
    """A signature record was marked verified more than once."""


class KeyNotFoundError(KeyError):
    """The key store has no entry for the requested key ID."""

    def __init__(self, key_id: str):
        self.key_id = key_id
        super().__init__(key_id)

    def __str__(self) -> str:
        return f"key not found: {self.key_id}"


class SigningError(RuntimeError):
    """The external signer failed to produce a signature."""


@dataclass
class Outcome:
    """
    Result of a single check.

    accepted is True or the outcome carries exactly one reason.
    key_ids is filled by the key adequacy check with the usable keys.
    """
    accepted: bool
    reason: Optional[MetadataError] = None
    key_ids: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.accepted

    @classmethod
    def accept(cls, key_ids: Optional[Iterable[str]] = None) -> 'Outcome':
        return cls(accepted=True, key_ids=list(key_ids or []))

    @classmethod
    def reject(cls, reason: MetadataError) -> 'Outcome':
        return cls(accepted=False, reason=reason)

    def raise_for_reason(self) -> None:
        if self.reason is not None:
            raise self.reason

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"accepted": self.accepted}
        if self.reason is not None:
            d["reason"] = self.reason.to_dict()
        if self.key_ids:
            d["key_ids"] = list(self.key_ids)
        return d
