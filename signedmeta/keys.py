"""
Key Descriptors

A key descriptor names a public key by algorithm family, bit length and an
ID derived from the key material. Descriptors are only used for
compatibility checks and lookups; the cryptographic math lives behind the
interfaces in crypto.py.
"""

import base64
import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from .canonical import canonicalize
from .errors import InvalidKeyID, InvalidKeyLength, InvalidKeyType, Outcome


class KeyType(str, Enum):
    """Supported algorithm families."""
    ED25519 = "ed25519"
    ECDSA = "ecdsa"
    RSA = "rsa"


SUPPORTED_LENGTHS: Dict[KeyType, FrozenSet[int]] = {
    KeyType.ED25519: frozenset({256}),
    KeyType.ECDSA: frozenset({256, 384}),
    KeyType.RSA: frozenset({2048, 3072, 4096}),
}


def derive_key_id(key_type: KeyType, public: bytes) -> str:
    """
    Compute the key ID for public key material.

    key_id = hex(SHA-256(canonical({"keytype": type, "keyval": {"public": b64}})))
    """
    payload = {
        "keytype": KeyType(key_type).value,
        "keyval": {"public": base64.b64encode(public).decode('ascii')},
    }
    return hashlib.sha256(canonicalize(payload)).hexdigest()


@dataclass(frozen=True)
class KeyDescriptor:
    """
    Public description of a key.

    public holds the raw Ed25519 key or the DER SubjectPublicKeyInfo for
    ECDSA and RSA.
    """
    key_id: str
    key_type: KeyType
    length_class: int
    public: bytes

    @classmethod
    def from_public(cls, key_type: KeyType, public: bytes, inspector=None) -> 'KeyDescriptor':
        """Build a descriptor whose ID and length class come from the key material."""
        if inspector is None:
            from .crypto import DefaultInspector
            inspector = DefaultInspector()
        key_type = KeyType(key_type)
        _, bits = inspector.inspect(public)
        return cls(
            key_id=derive_key_id(key_type, public),
            key_type=key_type,
            length_class=bits,
            public=public,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key_id": self.key_id,
            "key_type": self.key_type.value,
            "length_class": self.length_class,
            "public": base64.b64encode(self.public).decode('ascii'),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'KeyDescriptor':
        return cls(
            key_id=data["key_id"],
            key_type=KeyType(data["key_type"]),
            length_class=int(data["length_class"]),
            public=base64.b64decode(data["public"]),
        )


def validate_key(descriptor: KeyDescriptor, inspector=None) -> Outcome:
    """
    Check a descriptor against the key material it describes.

    Order: family (InvalidKeyType), then derived ID (InvalidKeyID), then
    length (InvalidKeyLength). The inspector is the external crypto layer's
    classifier; it returns (None, 0) for material it cannot parse.
    """
    if inspector is None:
        from .crypto import DefaultInspector
        inspector = DefaultInspector()

    family, bits = inspector.inspect(descriptor.public)
    if family is None or family != descriptor.key_type:
        return Outcome.reject(InvalidKeyType())

    if descriptor.key_id != derive_key_id(descriptor.key_type, descriptor.public):
        return Outcome.reject(InvalidKeyID())

    supported = SUPPORTED_LENGTHS[descriptor.key_type]
    if bits not in supported:
        return Outcome.reject(InvalidKeyLength(
            f"{descriptor.key_type.value} keys of {bits} bits are not supported "
            f"(supported: {', '.join(str(b) for b in sorted(supported))})"
        ))
    if descriptor.length_class != bits:
        return Outcome.reject(InvalidKeyLength(
            f"declared {descriptor.length_class} bits but key material is {bits} bits"
        ))

    return Outcome.accept()


def supported_length(key_type: KeyType, bits: Optional[int]) -> bool:
    return bits in SUPPORTED_LENGTHS.get(KeyType(key_type), frozenset())
