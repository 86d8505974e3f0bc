"""
Key Descriptor Validation Test Suite

Checks descriptors against their key material: family, derived ID, length.
"""

import dataclasses
import os
import tempfile
import unittest

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from signedmeta import (
    DefaultInspector,
    DefaultVerifier,
    ErrorKind,
    InMemoryKeyStore,
    InvalidKeyID,
    InvalidKeyLength,
    InvalidKeyType,
    KeyDescriptor,
    KeyNotFoundError,
    KeyType,
    derive_key_id,
    generate_key,
    validate_key,
)


def _public_der(private_key):
    return private_key.public_key().public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


class TestValidKeys(unittest.TestCase):

    def test_ed25519(self):
        descriptor, _ = generate_key(KeyType.ED25519)

        self.assertEqual(descriptor.length_class, 256)
        self.assertTrue(validate_key(descriptor).accepted)

    def test_ecdsa_p256_and_p384(self):
        for bits in (256, 384):
            descriptor, _ = generate_key(KeyType.ECDSA, bits)
            self.assertEqual(descriptor.length_class, bits)
            self.assertTrue(validate_key(descriptor).accepted, bits)

    def test_rsa_2048(self):
        descriptor, _ = generate_key(KeyType.RSA, 2048)
        self.assertTrue(validate_key(descriptor).accepted)

    def test_key_id_is_derived_from_material(self):
        descriptor, _ = generate_key()
        self.assertEqual(descriptor.key_id, derive_key_id(KeyType.ED25519, descriptor.public))
        self.assertEqual(len(descriptor.key_id), 64)


class TestInvalidKeys(unittest.TestCase):

    def test_rsa_1024_unsupported_length(self):
        public = _public_der(rsa.generate_private_key(public_exponent=65537, key_size=1024))
        descriptor = KeyDescriptor.from_public(KeyType.RSA, public)

        outcome = validate_key(descriptor)

        self.assertIsInstance(outcome.reason, InvalidKeyLength)
        self.assertIn("1024", str(outcome.reason))

    def test_p521_unsupported_length(self):
        public = _public_der(ec.generate_private_key(ec.SECP521R1()))
        descriptor = KeyDescriptor.from_public(KeyType.ECDSA, public)

        outcome = validate_key(descriptor)

        self.assertEqual(outcome.reason.kind, ErrorKind.INVALID_KEY_LENGTH)

    def test_declared_length_must_match_material(self):
        descriptor, _ = generate_key(KeyType.ECDSA, 256)
        lying = dataclasses.replace(descriptor, length_class=384)

        self.assertIsInstance(validate_key(lying).reason, InvalidKeyLength)

    def test_tampered_key_id(self):
        descriptor, _ = generate_key()
        tampered = dataclasses.replace(descriptor, key_id="0" * 64)

        outcome = validate_key(tampered)

        self.assertEqual(outcome.reason, InvalidKeyID())
        self.assertEqual(str(outcome.reason), "key ID is not valid for key content")

    def test_family_mismatch(self):
        """Ed25519 material declared as RSA."""
        descriptor, _ = generate_key(KeyType.ED25519)
        mismatched = KeyDescriptor(
            key_id=derive_key_id(KeyType.RSA, descriptor.public),
            key_type=KeyType.RSA,
            length_class=256,
            public=descriptor.public,
        )

        self.assertIsInstance(validate_key(mismatched).reason, InvalidKeyType)

    def test_garbage_material(self):
        garbage = b"definitely not a key"
        descriptor = KeyDescriptor(
            key_id=derive_key_id(KeyType.ECDSA, garbage),
            key_type=KeyType.ECDSA,
            length_class=256,
            public=garbage,
        )

        self.assertIsInstance(validate_key(descriptor).reason, InvalidKeyType)

    def test_type_checked_before_id(self):
        descriptor, _ = generate_key(KeyType.ED25519)
        both_wrong = KeyDescriptor("0" * 64, KeyType.ECDSA, 256, descriptor.public)

        self.assertIsInstance(validate_key(both_wrong).reason, InvalidKeyType)


class TestInspector(unittest.TestCase):

    def test_classifies_generated_keys(self):
        inspector = DefaultInspector()
        for key_type, bits in ((KeyType.ED25519, None), (KeyType.ECDSA, 384), (KeyType.RSA, 2048)):
            descriptor, _ = generate_key(key_type, bits)
            family, observed = inspector.inspect(descriptor.public)
            self.assertEqual(family, key_type)
            self.assertEqual(observed, descriptor.length_class)

    def test_unparseable(self):
        self.assertEqual(DefaultInspector().inspect(b"\x00\x01"), (None, 0))

    def test_der_wrapped_ed25519_rejected(self):
        """Descriptors carry raw Ed25519 keys; a DER-wrapped one never verifies, so it is not a valid key."""
        public = _public_der(ed25519.Ed25519PrivateKey.generate())
        descriptor = KeyDescriptor(
            key_id=derive_key_id(KeyType.ED25519, public),
            key_type=KeyType.ED25519,
            length_class=256,
            public=public,
        )

        self.assertEqual(DefaultInspector().inspect(public), (None, 0))
        self.assertIsInstance(validate_key(descriptor).reason, InvalidKeyType)


class TestKeyStore(unittest.TestCase):

    def test_sign_and_verify_each_family(self):
        store = InMemoryKeyStore()
        verifier = DefaultVerifier()
        for key_type, bits in ((KeyType.ED25519, None), (KeyType.ECDSA, 256), (KeyType.RSA, 2048)):
            descriptor = store.generate(key_type, bits)
            signature = store.sign(descriptor, b"payload")
            self.assertTrue(verifier.verify(descriptor, b"payload", signature), key_type)
            self.assertFalse(verifier.verify(descriptor, b"other", signature), key_type)

    def test_unknown_key(self):
        store = InMemoryKeyStore()
        with self.assertRaises(KeyNotFoundError):
            store.get_descriptor("missing")

    def test_sign_without_private_key(self):
        descriptor, _ = generate_key()
        store = InMemoryKeyStore()
        store.add(descriptor)

        with self.assertRaises(KeyNotFoundError):
            store.sign(descriptor, b"payload")
        self.assertEqual(store.private_key_ids(), set())

    def test_serialization_keeps_private_material(self):
        store = InMemoryKeyStore()
        descriptor = store.generate()

        restored = InMemoryKeyStore.from_dict(store.to_dict())
        public_only = InMemoryKeyStore.from_dict(store.to_dict(include_private=False))

        self.assertEqual(restored.get_descriptor(descriptor.key_id), descriptor)
        self.assertEqual(restored.private_key_ids(), {descriptor.key_id})
        self.assertEqual(public_only.private_key_ids(), set())

    def test_file_round_trip(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "keys.json")
            store = InMemoryKeyStore()
            descriptor = store.generate(KeyType.ECDSA, 384)
            store.save(path)

            restored = InMemoryKeyStore.load(path)

        self.assertEqual(restored.private_key_ids(), {descriptor.key_id})
        signature = restored.sign(descriptor, b"payload")
        self.assertTrue(DefaultVerifier().verify(descriptor, b"payload", signature))


if __name__ == "__main__":
    unittest.main()
