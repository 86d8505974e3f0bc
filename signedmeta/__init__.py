"""
signedmeta: threshold-signed metadata verification and signing

Version: 1.0.0
License: Apache 2.0

Decides whether a signed metadata document may be trusted:

- enough distinct keys of its role produced verified signatures (threshold)
- it has not expired (the expiry instant itself counts as expired)
- its version is strictly above the last accepted version for the role

and whether a set of signing keys can satisfy a role before any signing.

Usage:
    from signedmeta import (
        InMemoryKeyStore,
        Role,
        RolePolicy,
        VerificationOrchestrator,
        VersionLedger,
        build_document,
    )

    store = InMemoryKeyStore()
    k1, k2, k3 = (store.generate() for _ in range(3))
    policy = RolePolicy([Role("root", {k1.key_id, k2.key_id, k3.key_id}, threshold=2)])

    orchestrator = VerificationOrchestrator(policy, VersionLedger(), key_store=store)

    document = build_document("root", 1, expires_at, {"targets": {...}})
    result = orchestrator.sign("root", document.signed)
    document.signatures = result.signatures

    decision = orchestrator.verify(document)
    if not decision.accepted():
        decision.raise_for_reason()
"""

__version__ = "1.0.0"
__license__ = "Apache-2.0"

# Errors
from .errors import (
    ErrorKind,
    MetadataError,
    InsufficientSignatures,
    Expired,
    LowVersion,
    RoleThreshold,
    InvalidKeyType,
    InvalidKeyID,
    InvalidKeyLength,
    NoKeys,
    RoleConfigurationError,
    SignatureStateError,
    KeyNotFoundError,
    SigningError,
    Outcome,
)

# Keys
from .keys import (
    KeyType,
    KeyDescriptor,
    SUPPORTED_LENGTHS,
    derive_key_id,
    validate_key,
)

# Crypto collaborators
from .crypto import (
    KeyInspector,
    SignatureVerifier,
    Signer,
    KeyStore,
    DefaultInspector,
    DefaultVerifier,
    InMemoryKeyStore,
    generate_key,
)

# Documents and roles
from .document import SignatureRecord, MetadataDocument
from .roles import Role, RolePolicy, load_role_policy
from .envelope import build_document, encode_signed, to_envelope, from_envelope

# Decision components
from .threshold import evaluate_threshold
from .freshness import check_expiry, check_version
from .adequacy import can_sign
from .ledger import VersionLedger, LedgerStore, InMemoryLedgerStore, SQLiteLedgerStore

# Orchestrator
from .orchestrator import (
    VerificationOrchestrator,
    VerificationState,
    SigningState,
    Decision,
    SigningResult,
)


__all__ = [
    "__version__",

    # Errors
    "ErrorKind",
    "MetadataError",
    "InsufficientSignatures",
    "Expired",
    "LowVersion",
    "RoleThreshold",
    "InvalidKeyType",
    "InvalidKeyID",
    "InvalidKeyLength",
    "NoKeys",
    "RoleConfigurationError",
    "SignatureStateError",
    "KeyNotFoundError",
    "SigningError",
    "Outcome",

    # Keys
    "KeyType",
    "KeyDescriptor",
    "SUPPORTED_LENGTHS",
    "derive_key_id",
    "validate_key",

    # Crypto
    "KeyInspector",
    "SignatureVerifier",
    "Signer",
    "KeyStore",
    "DefaultInspector",
    "DefaultVerifier",
    "InMemoryKeyStore",
    "generate_key",

    # Documents and roles
    "SignatureRecord",
    "MetadataDocument",
    "Role",
    "RolePolicy",
    "load_role_policy",
    "build_document",
    "encode_signed",
    "to_envelope",
    "from_envelope",

    # Decisions
    "evaluate_threshold",
    "check_expiry",
    "check_version",
    "can_sign",
    "VersionLedger",
    "LedgerStore",
    "InMemoryLedgerStore",
    "SQLiteLedgerStore",

    # Orchestrator
    "VerificationOrchestrator",
    "VerificationState",
    "SigningState",
    "Decision",
    "SigningResult",
]
