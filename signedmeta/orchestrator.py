"""
Verification Orchestrator

Composes the key, threshold, freshness and adequacy checks into two flows.

Verification of an incoming document:

    RECEIVED -> SIGNATURES_VERIFIED -> THRESHOLD_CHECKED -> FRESHNESS_CHECKED
             -> ACCEPTED | REJECTED(first reason)

Threshold is checked before freshness; within freshness, expiry is checked
before the version compare-and-commit so an expired document can never
advance the ledger. The first rejection ends the flow.

Signing of an outgoing message:

    REQUESTED -> KEYS_CHECKED -> SIGNING -> SIGNED | FAILED(reason)

Key adequacy is decided before any signing call. If signers drop out during
SIGNING the failure uses the same InsufficientSignatures shape as
verification.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .adequacy import can_sign
from .crypto import DefaultInspector, DefaultVerifier, KeyInspector, KeyStore, SignatureVerifier, Signer
from .document import MetadataDocument, SignatureRecord
from .errors import (
    InsufficientSignatures,
    InvalidKeyID,
    KeyNotFoundError,
    MetadataError,
    Outcome,
    RoleThreshold,
    SigningError,
)
from .freshness import check_expiry, check_version
from .keys import KeyDescriptor, validate_key
from .ledger import VersionLedger
from .logging_config import audit_log
from .roles import Role, RolePolicy
from .threshold import evaluate_threshold

logger = logging.getLogger(__name__)


class VerificationState(str, Enum):
    RECEIVED = "RECEIVED"
    SIGNATURES_VERIFIED = "SIGNATURES_VERIFIED"
    THRESHOLD_CHECKED = "THRESHOLD_CHECKED"
    FRESHNESS_CHECKED = "FRESHNESS_CHECKED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class SigningState(str, Enum):
    REQUESTED = "REQUESTED"
    KEYS_CHECKED = "KEYS_CHECKED"
    SIGNING = "SIGNING"
    SIGNED = "SIGNED"
    FAILED = "FAILED"


@dataclass
class Decision:
    """
    Result of verifying one document.

    reached is the last state passed before the decision; on rejection it
    names the stage that failed.
    """
    state: VerificationState
    role: str
    version: int
    reached: VerificationState
    reason: Optional[MetadataError] = None
    signatures: List[SignatureRecord] = field(default_factory=list)

    def accepted(self) -> bool:
        return self.state == VerificationState.ACCEPTED

    def raise_for_reason(self) -> None:
        if self.reason is not None:
            raise self.reason

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "state": self.state.value,
            "role": self.role,
            "version": self.version,
            "reached": self.reached.value,
        }
        if self.reason is not None:
            d["reason"] = self.reason.to_dict()
        return d


@dataclass
class SigningResult:
    """Result of a signing request; signatures are only set when SIGNED."""
    state: SigningState
    role: str
    reason: Optional[MetadataError] = None
    signatures: List[SignatureRecord] = field(default_factory=list)

    def signed(self) -> bool:
        return self.state == SigningState.SIGNED

    def raise_for_reason(self) -> None:
        if self.reason is not None:
            raise self.reason

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "state": self.state.value,
            "role": self.role,
            "signatures": [s.to_dict() for s in self.signatures],
        }
        if self.reason is not None:
            d["reason"] = self.reason.to_dict()
        return d


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VerificationOrchestrator:
    """
    Verifies incoming documents and produces signatures for outgoing ones.

    Safe to share between threads. The per-role ledger lock is only held
    during the version compare-and-commit, never while signatures are being
    verified or produced.
    """

    def __init__(
        self,
        policy: RolePolicy,
        ledger: Optional[VersionLedger] = None,
        verifier: Optional[SignatureVerifier] = None,
        key_store: Optional[KeyStore] = None,
        signer: Optional[Signer] = None,
        inspector: Optional[KeyInspector] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.policy = policy
        self.ledger = ledger or VersionLedger()
        self.verifier = verifier or DefaultVerifier()
        self.key_store = key_store
        if signer is None and isinstance(key_store, Signer):
            signer = key_store
        self.signer = signer
        self.inspector = inspector or DefaultInspector()
        self.clock = clock

    # Key resolution

    def resolve_key(self, key_id: str) -> Tuple[Optional[KeyDescriptor], Optional[MetadataError]]:
        """
        Find and validate the descriptor for key_id.

        Returns (descriptor, None) when usable, (None, error) when the key
        material is inconsistent, and (None, None) when the key is unknown.
        """
        descriptor = None
        if self.key_store is not None:
            try:
                descriptor = self.key_store.get_descriptor(key_id)
            except KeyNotFoundError:
                descriptor = None
        if descriptor is None:
            descriptor = self.policy.keys().get(key_id)
        if descriptor is None:
            return None, None

        if descriptor.key_id != key_id:
            return None, InvalidKeyID()

        outcome = validate_key(descriptor, self.inspector)
        if not outcome:
            return None, outcome.reason
        return descriptor, None

    # Verification

    def verify(self, document: MetadataDocument, now: Optional[datetime] = None) -> Decision:
        """
        Decide whether to accept document.

        On acceptance the ledger is advanced to document.version. The
        caller's document and its signature records are not modified.
        """
        role = self.policy.get(document.role)
        if role is None:
            return self._reject(document, VerificationState.RECEIVED,
                                RoleThreshold(f"no threshold policy for role {document.role}"), [])

        records = [s.fresh_copy() for s in document.signatures]
        self._verify_signatures(role, document.signed, records)

        outcome = evaluate_threshold(role, records)
        if not outcome:
            return self._reject(document, VerificationState.SIGNATURES_VERIFIED, outcome.reason, records)
        valid_key_ids = outcome.key_ids

        outcome = check_expiry(now or self.clock(), document.expires_at, role.name)
        if not outcome:
            return self._reject(document, VerificationState.THRESHOLD_CHECKED, outcome.reason, records)

        outcome = check_version(role.name, document.version, self.ledger)
        if outcome:
            outcome = self.ledger.compare_and_commit(role.name, document.version)
        if not outcome:
            return self._reject(document, VerificationState.THRESHOLD_CHECKED, outcome.reason, records)

        audit_log.ledger_advanced(role.name, document.version)
        audit_log.document_accepted(role.name, document.version, valid_key_ids)
        return Decision(
            state=VerificationState.ACCEPTED,
            role=role.name,
            version=document.version,
            reached=VerificationState.FRESHNESS_CHECKED,
            signatures=records,
        )

    def _verify_signatures(self, role: Role, message: bytes, records: List[SignatureRecord]) -> None:
        """Mark each record; identical (key, signature) pairs are verified once."""
        seen: Dict[Tuple[str, bytes], bool] = {}
        resolved: Dict[str, Optional[KeyDescriptor]] = {}

        for record in records:
            if record.key_id not in role.key_ids:
                record.mark_verified(False)
                continue

            cache_key = (record.key_id, record.signature)
            if cache_key in seen:
                record.mark_verified(seen[cache_key])
                continue

            if record.key_id not in resolved:
                descriptor, error = self.resolve_key(record.key_id)
                if error is not None:
                    audit_log.key_rejected(record.key_id, error)
                elif descriptor is None:
                    logger.warning("No descriptor for key %s in role %s", record.key_id, role.name)
                resolved[record.key_id] = descriptor

            descriptor = resolved[record.key_id]
            result = False
            if descriptor is not None:
                result = bool(self.verifier.verify(descriptor, message, record.signature))
            seen[cache_key] = result
            record.mark_verified(result)

    def _reject(
        self,
        document: MetadataDocument,
        reached: VerificationState,
        reason: MetadataError,
        records: List[SignatureRecord],
    ) -> Decision:
        audit_log.document_rejected(document.role, document.version, reason)
        return Decision(
            state=VerificationState.REJECTED,
            role=document.role,
            version=document.version,
            reached=reached,
            reason=reason,
            signatures=records,
        )

    # Signing

    def check_signing_keys(self, role_name: str, available_key_ids: Optional[Iterable[str]] = None) -> Outcome:
        """Key adequacy for role_name without signing anything."""
        role = self.policy.get(role_name)
        if role is None:
            return Outcome.reject(RoleThreshold(f"no threshold policy for role {role_name}"))
        return can_sign(role, self._available_keys(available_key_ids))

    def _available_keys(self, available_key_ids: Optional[Iterable[str]]) -> List[str]:
        if available_key_ids is not None:
            return list(available_key_ids)
        if self.key_store is not None:
            return sorted(self.key_store.private_key_ids())
        return []

    def sign(
        self,
        role_name: str,
        message: bytes,
        available_key_ids: Optional[Iterable[str]] = None,
    ) -> SigningResult:
        """
        Produce a threshold-satisfying signature set for message.

        Args:
            role_name: Role whose keys and threshold apply
            message: Bytes to sign
            available_key_ids: Keys to try; defaults to every key the key
                store holds private material for

        Returns:
            SigningResult in state SIGNED or FAILED
        """
        if self.signer is None:
            raise RuntimeError("No signer configured")

        outcome = self.check_signing_keys(role_name, available_key_ids)
        if not outcome:
            audit_log.signing_failed(role_name, outcome.reason)
            return SigningResult(state=SigningState.FAILED, role=role_name, reason=outcome.reason)

        role = self.policy.get(role_name)
        records: List[SignatureRecord] = []
        for key_id in outcome.key_ids:
            record = self._sign_with(role, key_id, message)
            if record is not None:
                records.append(record)

        signed_ids = {r.key_id for r in records}
        if len(signed_ids) < role.threshold:
            reason = InsufficientSignatures(
                found_keys=len(signed_ids),
                needed_keys=role.threshold,
                missing_key_ids=sorted(role.key_ids - signed_ids),
                candidate_keys=len(outcome.key_ids),
            )
            audit_log.signing_failed(role_name, reason)
            return SigningResult(state=SigningState.FAILED, role=role_name, reason=reason)

        audit_log.signing_complete(role_name, sorted(signed_ids))
        return SigningResult(state=SigningState.SIGNED, role=role_name, signatures=records)

    def _sign_with(self, role: Role, key_id: str, message: bytes) -> Optional[SignatureRecord]:
        """Sign with one key; any failure drops the key from the set."""
        descriptor, error = self.resolve_key(key_id)
        if error is not None:
            audit_log.key_rejected(key_id, error)
            return None
        if descriptor is None:
            audit_log.signer_error(role.name, key_id, "no descriptor for key")
            return None

        try:
            signature = self.signer.sign(descriptor, message)
        except (SigningError, KeyNotFoundError) as e:
            audit_log.signer_error(role.name, key_id, str(e))
            return None

        if not self.verifier.verify(descriptor, message, signature):
            audit_log.signer_error(role.name, key_id, "signer produced an invalid signature")
            return None

        record = SignatureRecord(key_id=key_id, signature=signature)
        record.mark_verified(True)
        return record
