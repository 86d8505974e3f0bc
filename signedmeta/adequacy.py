"""
Key Adequacy Checker

Before any signing call, decide whether the keys at hand could possibly
produce enough signatures for the role. Failing here avoids spending
signing operations (possibly on hardware or remote signers) on a set that
can never meet the threshold.
"""

from typing import Iterable

from .errors import InsufficientSignatures, NoKeys, Outcome
from .roles import Role


def can_sign(role: Role, available_key_ids: Iterable[str]) -> Outcome:
    """
    Check available signing keys against a role.

    Returns:
        Rejected(NoKeys) if none of the role's keys is available,
        Rejected(InsufficientSignatures) if some but fewer than threshold are,
        otherwise Accepted with key_ids set to the usable keys.
    """
    available = set(available_key_ids)
    usable = role.key_ids & available

    if not usable:
        return Outcome.reject(NoKeys(key_ids=sorted(role.key_ids)))

    if len(usable) < role.threshold:
        return Outcome.reject(InsufficientSignatures(
            found_keys=len(usable),
            needed_keys=role.threshold,
            missing_key_ids=sorted(role.key_ids - available),
            candidate_keys=len(usable),
        ))

    return Outcome.accept(sorted(usable))
