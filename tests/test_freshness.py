"""
Freshness Checker Test Suite

Expiry boundary and anti-rollback version checks.
"""

import unittest
from datetime import datetime, timedelta, timezone

from signedmeta import (
    Expired,
    InMemoryLedgerStore,
    LowVersion,
    VersionLedger,
    check_expiry,
    check_version,
)


class TestExpiry(unittest.TestCase):

    def setUp(self):
        self.expires = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)

    def test_before_expiry_accepted(self):
        outcome = check_expiry(self.expires - timedelta(seconds=1), self.expires)
        self.assertTrue(outcome.accepted)

    def test_expiry_instant_is_expired(self):
        """now == expires_at is already expired."""
        outcome = check_expiry(self.expires, self.expires, role="root")

        self.assertFalse(outcome.accepted)
        self.assertIsInstance(outcome.reason, Expired)
        self.assertEqual(outcome.reason.role, "root")
        self.assertEqual(str(outcome.reason), "root expired at 2026-06-01T12:00:00Z")

    def test_after_expiry_rejected(self):
        outcome = check_expiry(self.expires + timedelta(days=1), self.expires)
        self.assertFalse(outcome.accepted)
        self.assertEqual(outcome.reason.role, "metadata")

    def test_repeatable(self):
        """Same inputs, same decision."""
        now = self.expires - timedelta(microseconds=1)
        results = {check_expiry(now, self.expires).accepted for _ in range(10)}
        self.assertEqual(results, {True})

    def test_naive_timestamps_treated_as_utc(self):
        naive = datetime(2026, 6, 1, 12, 0)
        outcome = check_expiry(naive, self.expires)
        self.assertFalse(outcome.accepted)

    def test_other_timezone_compared_as_instant(self):
        plus_two = timezone(timedelta(hours=2))
        now = datetime(2026, 6, 1, 13, 59, tzinfo=plus_two)
        self.assertTrue(check_expiry(now, self.expires).accepted)


class TestVersion(unittest.TestCase):

    def test_equal_version_rejected(self):
        """ledger at 5, candidate 5 is a replay."""
        ledger = VersionLedger(InMemoryLedgerStore({"roleX": 5}))

        outcome = check_version("roleX", 5, ledger)

        self.assertFalse(outcome.accepted)
        self.assertEqual(outcome.reason, LowVersion(actual=5, current=5))
        self.assertEqual(str(outcome.reason), "version 5 is lower than current version 5")

    def test_lower_version_rejected(self):
        ledger = VersionLedger(InMemoryLedgerStore({"roleX": 5}))
        outcome = check_version("roleX", 3, ledger)
        self.assertEqual(outcome.reason.actual, 3)

    def test_higher_version_accepted(self):
        ledger = VersionLedger(InMemoryLedgerStore({"roleX": 5}))
        self.assertTrue(check_version("roleX", 6, ledger).accepted)

    def test_unknown_role_starts_at_zero(self):
        ledger = VersionLedger()
        self.assertEqual(ledger.current("fresh"), 0)
        self.assertTrue(check_version("fresh", 1, ledger).accepted)

    def test_check_does_not_commit(self):
        ledger = VersionLedger()
        check_version("root", 7, ledger)
        self.assertEqual(ledger.current("root"), 0)


if __name__ == "__main__":
    unittest.main()
