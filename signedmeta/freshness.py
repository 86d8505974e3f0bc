"""
Freshness Checker

Two independent checks:
- expiry: a document is unusable from its expiry instant onwards
- version: a document must carry a version strictly above the highest one
  already accepted for its role (rollback and replay protection)

check_version is read-only. Committing an accepted version goes through
VersionLedger.compare_and_commit, which repeats the comparison under the
role's lock.
"""

from datetime import datetime
from typing import Optional

from .canonical import as_utc
from .errors import Expired, LowVersion, Outcome
from .ledger import VersionLedger


def check_expiry(now: datetime, expires_at: datetime, role: Optional[str] = None) -> Outcome:
    """Rejected(Expired) if now >= expires_at; the boundary instant counts as expired."""
    if as_utc(now) >= as_utc(expires_at):
        return Outcome.reject(Expired(role=role or "metadata", expires_at=as_utc(expires_at)))
    return Outcome.accept()


def check_version(role: str, candidate_version: int, ledger: VersionLedger) -> Outcome:
    """
    Rejected(LowVersion) if candidate_version <= the ledger's version for role.

    A role the ledger has never seen has current version 0, so its first
    document always passes this check.
    """
    current = ledger.current(role)
    if candidate_version <= current:
        return Outcome.reject(LowVersion(actual=candidate_version, current=current))
    return Outcome.accept()
