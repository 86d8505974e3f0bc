"""
Configuration module for signedmeta.

Environment-variable driven settings, and a thread-safe TTL cache of the
validated role policies the CLI loads.
"""

import os
import threading
import time
from typing import Dict, Optional, Tuple

from .roles import RolePolicy, load_role_policy

# ============================================================
# Environment Configuration
# ============================================================

# Paths
ROLES_PATH = os.getenv("SIGNEDMETA_ROLES_PATH", "trust/roles.json")
KEYSTORE_PATH = os.getenv("SIGNEDMETA_KEYSTORE_PATH", "secrets/keystore.json")
LEDGER_PATH = os.getenv("SIGNEDMETA_LEDGER_PATH", "data/ledger.db")

# Logging
LOG_LEVEL = os.getenv("SIGNEDMETA_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("SIGNEDMETA_LOG_JSON", "1").lower() in ("1", "true", "yes")
LOG_FILE = os.getenv("SIGNEDMETA_LOG_FILE") or None

# Role policy cache TTL (seconds)
CONFIG_CACHE_TTL = int(os.getenv("SIGNEDMETA_CONFIG_CACHE_TTL", "60"))


# ============================================================
# Role Policy Cache
# ============================================================

class PolicyCache:
    """
    Thread-safe cache of role policies keyed by file path.

    Only policies that passed validation are cached; a file that fails to
    load raises on every call until it is fixed.
    """

    def __init__(self, ttl_seconds: int = 60):
        self._entries: Dict[str, Tuple[float, RolePolicy]] = {}
        self._lock = threading.RLock()
        self._ttl = ttl_seconds

    def get(self, path: str, force_reload: bool = False) -> RolePolicy:
        with self._lock:
            entry = self._entries.get(path)
            if entry is not None and not force_reload and time.monotonic() - entry[0] <= self._ttl:
                return entry[1]

            policy = load_role_policy(path)
            self._entries[path] = (time.monotonic(), policy)
            return policy

    def invalidate(self, path: Optional[str] = None) -> None:
        with self._lock:
            if path:
                self._entries.pop(path, None)
            else:
                self._entries.clear()


_policy_cache = PolicyCache(ttl_seconds=CONFIG_CACHE_TTL)


def load_roles_cached(path: Optional[str] = None) -> RolePolicy:
    return _policy_cache.get(path or ROLES_PATH)


def invalidate_config_cache() -> None:
    _policy_cache.invalidate()


# ============================================================
# Feature Flags
# ============================================================

def is_debug() -> bool:
    return os.getenv("SIGNEDMETA_DEBUG", "").lower() in ("1", "true", "yes")
