"""
Cryptographic collaborators

The decision engine never does signature math itself. It talks to the
interfaces below:

- KeyInspector: classifies public key material into (family, bits)
- SignatureVerifier: VerifySignature(descriptor, message, signature) -> bool
- Signer: Sign(descriptor, message) -> signature
- KeyStore: key ID -> descriptor (and private material for signing)

Default implementations use Ed25519 (RFC 8032) through PyNaCl, and ECDSA
(P-256/P-384) and RSA-PSS through the cryptography package.
"""

import base64
import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Set, Tuple

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from .errors import KeyNotFoundError, SigningError
from .keys import KeyDescriptor, KeyType, supported_length

logger = logging.getLogger(__name__)


ED25519_KEY_SIZE = 32

_CURVES = {
    256: ec.SECP256R1,
    384: ec.SECP384R1,
}

_ECDSA_HASHES = {
    256: hashes.SHA256,
    384: hashes.SHA384,
}


def _rsa_pss() -> padding.PSS:
    return padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=padding.PSS.DIGEST_LENGTH)


class KeyInspector(ABC):
    """Classifies public key material independently of what a descriptor claims."""

    @abstractmethod
    def inspect(self, public: bytes) -> Tuple[Optional[KeyType], int]:
        """Return (family, bits), or (None, 0) if the material is not a usable key."""
        pass


class SignatureVerifier(ABC):

    @abstractmethod
    def verify(self, descriptor: KeyDescriptor, message: bytes, signature: bytes) -> bool:
        """Must be deterministic and free of side effects; never raise on a bad signature."""
        pass


class Signer(ABC):

    @abstractmethod
    def sign(self, descriptor: KeyDescriptor, message: bytes) -> bytes:
        """
        Sign message with the private key behind descriptor.

        Raises:
            KeyNotFoundError: no private key for descriptor.key_id
            SigningError: the signing operation failed
        """
        pass


class KeyStore(ABC):

    @abstractmethod
    def get_descriptor(self, key_id: str) -> KeyDescriptor:
        """Raises KeyNotFoundError when the key is unknown."""
        pass

    @abstractmethod
    def private_key_ids(self) -> Set[str]:
        """IDs of keys whose private material is held."""
        pass


class DefaultInspector(KeyInspector):

    def inspect(self, public: bytes) -> Tuple[Optional[KeyType], int]:
        if len(public) == ED25519_KEY_SIZE:
            try:
                VerifyKey(public)
                return KeyType.ED25519, ED25519_KEY_SIZE * 8
            except ValueError:
                return None, 0

        try:
            key = serialization.load_der_public_key(public)
        except (ValueError, UnsupportedAlgorithm):
            return None, 0

        if isinstance(key, ec.EllipticCurvePublicKey):
            return KeyType.ECDSA, key.curve.key_size
        if isinstance(key, rsa.RSAPublicKey):
            return KeyType.RSA, key.key_size
        # Ed25519 is accepted in raw 32-byte form only
        return None, 0


class DefaultVerifier(SignatureVerifier):
    """Verifies Ed25519, ECDSA and RSA-PSS signatures."""

    def verify(self, descriptor: KeyDescriptor, message: bytes, signature: bytes) -> bool:
        try:
            if descriptor.key_type == KeyType.ED25519:
                VerifyKey(descriptor.public).verify(message, signature)
                return True

            key = serialization.load_der_public_key(descriptor.public)
            if descriptor.key_type == KeyType.ECDSA:
                if not isinstance(key, ec.EllipticCurvePublicKey):
                    return False
                hash_cls = _ECDSA_HASHES.get(key.curve.key_size)
                if hash_cls is None:
                    return False
                key.verify(signature, message, ec.ECDSA(hash_cls()))
                return True

            if descriptor.key_type == KeyType.RSA:
                if not isinstance(key, rsa.RSAPublicKey):
                    return False
                key.verify(signature, message, _rsa_pss(), hashes.SHA256())
                return True
        except (BadSignatureError, InvalidSignature):
            return False
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            logger.debug("Unusable key material for %s: %s", descriptor.key_id, e)
            return False

        return False


def generate_key(key_type: KeyType = KeyType.ED25519, bits: Optional[int] = None) -> Tuple[KeyDescriptor, bytes]:
    """
    Generate a key pair.

    Returns:
        Tuple of (descriptor, private_key_bytes). Private bytes are the raw
        Ed25519 seed or unencrypted PKCS#8 DER.
    """
    key_type = KeyType(key_type)

    if key_type == KeyType.ED25519:
        signing_key = SigningKey.generate()
        return KeyDescriptor.from_public(key_type, bytes(signing_key.verify_key)), bytes(signing_key)

    if key_type == KeyType.ECDSA:
        bits = bits or 256
        if bits not in _CURVES:
            raise ValueError(f"Unsupported ECDSA curve size: {bits}")
        private = ec.generate_private_key(_CURVES[bits]())
    elif key_type == KeyType.RSA:
        bits = bits or 3072
        if not supported_length(key_type, bits):
            raise ValueError(f"Unsupported RSA key size: {bits}")
        private = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    else:
        raise ValueError(f"Unknown key type: {key_type}")

    public_der = private.public_key().public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    private_der = private.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    return KeyDescriptor.from_public(key_type, public_der), private_der


def sign_with_private(key_type: KeyType, private: bytes, message: bytes) -> bytes:
    """Sign message with private key bytes as produced by generate_key."""
    if key_type == KeyType.ED25519:
        return SigningKey(private).sign(message).signature

    key = serialization.load_der_private_key(private, password=None)
    if key_type == KeyType.ECDSA:
        if not isinstance(key, ec.EllipticCurvePrivateKey):
            raise ValueError("private key is not an ECDSA key")
        return key.sign(message, ec.ECDSA(_ECDSA_HASHES[key.curve.key_size]()))
    if key_type == KeyType.RSA:
        if not isinstance(key, rsa.RSAPrivateKey):
            raise ValueError("private key is not an RSA key")
        return key.sign(message, _rsa_pss(), hashes.SHA256())
    raise ValueError(f"Unknown key type: {key_type}")


class InMemoryKeyStore(KeyStore, Signer):
    """
    Key store holding descriptors and, optionally, private key material.

    Also acts as the Signer for the keys it holds. Thread-safe.
    """

    def __init__(self):
        self._descriptors: Dict[str, KeyDescriptor] = {}
        self._private: Dict[str, bytes] = {}
        self._lock = threading.RLock()

    def add(self, descriptor: KeyDescriptor, private: Optional[bytes] = None) -> None:
        with self._lock:
            self._descriptors[descriptor.key_id] = descriptor
            if private is not None:
                self._private[descriptor.key_id] = private

    def remove(self, key_id: str) -> None:
        with self._lock:
            self._descriptors.pop(key_id, None)
            self._private.pop(key_id, None)

    def generate(self, key_type: KeyType = KeyType.ED25519, bits: Optional[int] = None) -> KeyDescriptor:
        """Generate a key pair and keep both halves."""
        descriptor, private = generate_key(key_type, bits)
        self.add(descriptor, private)
        return descriptor

    def get_descriptor(self, key_id: str) -> KeyDescriptor:
        with self._lock:
            descriptor = self._descriptors.get(key_id)
        if descriptor is None:
            raise KeyNotFoundError(key_id)
        return descriptor

    def private_key_ids(self) -> Set[str]:
        with self._lock:
            return set(self._private)

    def sign(self, descriptor: KeyDescriptor, message: bytes) -> bytes:
        with self._lock:
            private = self._private.get(descriptor.key_id)
        if private is None:
            raise KeyNotFoundError(descriptor.key_id)
        try:
            return sign_with_private(descriptor.key_type, private, message)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise SigningError(f"signing with {descriptor.key_id} failed: {e}") from e

    def to_dict(self, include_private: bool = True) -> Dict[str, Any]:
        with self._lock:
            keys = []
            for key_id, descriptor in sorted(self._descriptors.items()):
                entry = descriptor.to_dict()
                if include_private and key_id in self._private:
                    entry["private"] = base64.b64encode(self._private[key_id]).decode('ascii')
                keys.append(entry)
        return {"keys": keys}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InMemoryKeyStore':
        store = cls()
        for entry in data.get("keys", []):
            private = entry.get("private")
            store.add(
                KeyDescriptor.from_dict(entry),
                base64.b64decode(private) if private else None,
            )
        return store

    @classmethod
    def load(cls, path: str) -> 'InMemoryKeyStore':
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    def save(self, path: str, include_private: bool = True) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(include_private=include_private), f, indent=2)
