"""
Error Taxonomy Test Suite

Messages, structured fields and Outcome helpers.
"""

import unittest
from datetime import datetime, timezone

from signedmeta import (
    ErrorKind,
    Expired,
    InsufficientSignatures,
    InvalidKeyLength,
    LowVersion,
    MetadataError,
    NoKeys,
    Outcome,
    RoleThreshold,
)


class TestMessages(unittest.TestCase):

    def test_insufficient_none_found(self):
        err = InsufficientSignatures(found_keys=0, needed_keys=2, missing_key_ids=["K1", "K2"], candidate_keys=2)
        self.assertEqual(str(err), "signing keys not available, need 2 keys from: K1, K2")

    def test_insufficient_some_found(self):
        err = InsufficientSignatures(found_keys=1, needed_keys=2, missing_key_ids=["K2", "K3"], candidate_keys=3)
        self.assertEqual(
            str(err),
            "not enough signing keys: got 1 of 2 needed keys, other candidates: K2, K3",
        )

    def test_insufficient_unsatisfiable(self):
        err = InsufficientSignatures(found_keys=1, needed_keys=3, candidate_keys=1)
        self.assertTrue(err.unsatisfiable)
        self.assertEqual(
            str(err),
            "cannot sign because while 3 signatures are needed, an insufficient "
            "number of valid signing keys have been specified",
        )

    def test_candidate_keys_default_to_found(self):
        err = InsufficientSignatures(found_keys=1, needed_keys=2)
        self.assertEqual(err.candidate_keys, 1)

    def test_role_threshold_default(self):
        self.assertEqual(str(RoleThreshold()), "valid signatures did not meet threshold")
        self.assertEqual(str(RoleThreshold("custom")), "custom")

    def test_expired(self):
        err = Expired("timestamp", datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc))
        self.assertEqual(str(err), "timestamp expired at 2026-01-02T03:04:05Z")

    def test_invalid_key_length(self):
        self.assertEqual(str(InvalidKeyLength("rsa 1024")), "key length is not supported: rsa 1024")


class TestStructure(unittest.TestCase):

    def test_all_are_metadata_errors(self):
        for err in (LowVersion(1, 2), NoKeys(["K1"]), RoleThreshold()):
            self.assertIsInstance(err, MetadataError)
            self.assertIsInstance(err, Exception)

    def test_to_dict(self):
        data = InsufficientSignatures(1, 2, ["K2"], candidate_keys=2).to_dict()

        self.assertEqual(data["kind"], "INSUFFICIENT_SIGNATURES")
        self.assertEqual(data["found_keys"], 1)
        self.assertEqual(data["needed_keys"], 2)
        self.assertEqual(data["missing_key_ids"], ["K2"])
        self.assertFalse(data["unsatisfiable"])
        self.assertIn("message", data)

    def test_equality_by_fields(self):
        self.assertEqual(LowVersion(5, 5), LowVersion(5, 5))
        self.assertNotEqual(LowVersion(5, 5), LowVersion(4, 5))
        self.assertEqual(len({LowVersion(1, 1), LowVersion(1, 1)}), 1)

    def test_kind_tags(self):
        self.assertEqual(NoKeys().kind, ErrorKind.NO_KEYS)
        self.assertEqual(LowVersion(1, 1).kind, ErrorKind.LOW_VERSION)


class TestOutcome(unittest.TestCase):

    def test_accept(self):
        outcome = Outcome.accept(["K1"])

        self.assertTrue(outcome)
        self.assertEqual(outcome.to_dict(), {"accepted": True, "key_ids": ["K1"]})
        outcome.raise_for_reason()

    def test_reject(self):
        outcome = Outcome.reject(LowVersion(1, 2))

        self.assertFalse(outcome)
        self.assertEqual(outcome.to_dict()["reason"]["kind"], "LOW_VERSION")
        with self.assertRaises(LowVersion):
            outcome.raise_for_reason()


if __name__ == "__main__":
    unittest.main()
