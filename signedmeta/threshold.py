"""
Threshold Policy Evaluator

Decides whether the verified signatures on a document satisfy its role:
at least `threshold` distinct keys from the role must have produced a
verified signature. A key that signed twice counts once.

Pure function of its inputs; no logging, no side effects.
"""

from typing import Iterable, Set

from .document import SignatureRecord
from .errors import InsufficientSignatures, Outcome
from .roles import Role


def valid_key_ids(role: Role, records: Iterable[SignatureRecord]) -> Set[str]:
    """Distinct role keys with at least one verified signature."""
    return {r.key_id for r in records if r.key_id in role.key_ids and r.is_valid()}


def candidate_key_ids(role: Role, records: Iterable[SignatureRecord]) -> Set[str]:
    """Distinct role keys that offered a signature, verified or not."""
    return {r.key_id for r in records if r.key_id in role.key_ids}


def evaluate_threshold(role: Role, records: Iterable[SignatureRecord]) -> Outcome:
    """
    Evaluate a role's threshold against already-verified signature records.

    Args:
        role: The role whose keys and threshold apply
        records: Signature records, each marked by the signature verifier

    Returns:
        Accepted if the number of distinct valid role keys reaches the
        threshold, otherwise Rejected(InsufficientSignatures). The rejection's
        candidate_keys / unsatisfiable fields tell apart "too few of the
        role's keys even signed" from "signed, but not enough verified".
    """
    records = list(records)
    valid = valid_key_ids(role, records)

    if len(valid) >= role.threshold:
        return Outcome.accept(sorted(valid))

    return Outcome.reject(InsufficientSignatures(
        found_keys=len(valid),
        needed_keys=role.threshold,
        missing_key_ids=sorted(role.key_ids - valid),
        candidate_keys=len(candidate_key_ids(role, records)),
    ))
