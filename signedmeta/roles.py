"""
Roles and role policy

A role names the keys allowed to sign its documents and how many of them
must. Roles are validated when they are built or loaded, so a role that can
never be satisfied is rejected as configuration, not during verification.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from .errors import RoleConfigurationError
from .keys import KeyDescriptor


ROLE_NAME_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_./-]*$')


@dataclass(frozen=True)
class Role:
    """
    Threshold policy for one role.

    Invariant: 1 <= threshold <= len(key_ids).
    """
    name: str
    key_ids: FrozenSet[str]
    threshold: int

    def __post_init__(self):
        object.__setattr__(self, "key_ids", frozenset(self.key_ids))
        self._validate()

    def _validate(self):
        if not self.name or not ROLE_NAME_PATTERN.match(self.name):
            raise RoleConfigurationError(f"Invalid role name {self.name!r}")

        if isinstance(self.threshold, bool) or not isinstance(self.threshold, int):
            raise RoleConfigurationError(f"Role {self.name}: threshold must be an integer")

        if self.threshold < 1:
            raise RoleConfigurationError(f"Role {self.name}: threshold must be at least 1, got {self.threshold}")

        if not self.key_ids:
            raise RoleConfigurationError(f"Role {self.name}: at least one key is required")

        if self.threshold > len(self.key_ids):
            raise RoleConfigurationError(
                f"Role {self.name}: threshold {self.threshold} exceeds its {len(self.key_ids)} keys"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "keyids": sorted(self.key_ids),
            "threshold": self.threshold,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Role':
        if isinstance(data.get("keyids"), str):
            raise RoleConfigurationError(f"Role {data.get('name')}: keyids must be a list")
        try:
            return cls(
                name=data["name"],
                key_ids=frozenset(data["keyids"]),
                threshold=data["threshold"],
            )
        except (KeyError, TypeError) as e:
            raise RoleConfigurationError(f"Malformed role definition: {e}") from e


class RolePolicy:
    """
    Read-only set of roles, plus the public keys they reference.

    Every load re-validates each role.
    """

    def __init__(self, roles: Iterable[Role] = (), keys: Iterable[KeyDescriptor] = ()):
        self._roles: Dict[str, Role] = {}
        self._keys: Dict[str, KeyDescriptor] = {}
        for role in roles:
            if role.name in self._roles:
                raise RoleConfigurationError(f"Duplicate role: {role.name}")
            self._roles[role.name] = role
        for key in keys:
            self._keys[key.key_id] = key

    def get(self, name: str) -> Optional[Role]:
        return self._roles.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._roles

    def list_roles(self) -> List[str]:
        return sorted(self._roles)

    def keys(self) -> Dict[str, KeyDescriptor]:
        return dict(self._keys)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "roles": [self._roles[n].to_dict() for n in self.list_roles()],
            "keys": [self._keys[k].to_dict() for k in sorted(self._keys)],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RolePolicy':
        """
        Build a policy from {"roles": [...], "keys": [...]}.

        "keys" is optional and holds public key descriptors.
        """
        if not isinstance(data, dict) or not isinstance(data.get("roles"), list):
            raise RoleConfigurationError("Role policy must contain a 'roles' list")
        roles = [Role.from_dict(r) for r in data["roles"]]
        try:
            keys = [KeyDescriptor.from_dict(k) for k in data.get("keys", [])]
        except (KeyError, TypeError, ValueError) as e:
            raise RoleConfigurationError(f"Malformed key descriptor: {e}") from e
        return cls(roles=roles, keys=keys)


def load_role_policy(path: str) -> RolePolicy:
    """Load and validate a role policy JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return RolePolicy.from_dict(json.load(f))
