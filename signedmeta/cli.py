#!/usr/bin/env python3
"""
signedmeta Command Line Interface

Usage:
    signedmeta keygen --keystore <file> [--type ed25519|ecdsa|rsa] [--bits N]
    signedmeta check-key <key_id> --keystore <file>
    signedmeta can-sign --roles <file> --keystore <file> --role <name>
    signedmeta sign --roles <file> --keystore <file> --role <name> --version N --expires <ts> [--body <file>]
    signedmeta verify --roles <file> --document <file> [--keystore <file>] [--ledger <db>]
    signedmeta ledger [--ledger <db>]
"""

import argparse
import json
import os
import sys
from typing import List, Optional

from . import config
from .canonical import parse_timestamp
from .crypto import InMemoryKeyStore
from .envelope import build_document, from_envelope, to_envelope
from .errors import KeyNotFoundError, RoleConfigurationError
from .keys import KeyType, validate_key
from .ledger import SQLiteLedgerStore, VersionLedger
from .logging_config import configure_logging, set_request_id
from .orchestrator import VerificationOrchestrator


def load_json(path: str) -> dict:
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def save_json(data: dict, path: str):
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)


def _emit(data: dict, output: Optional[str] = None):
    if output:
        save_json(data, output)
        print(f"Written to: {output}", file=sys.stderr)
    else:
        print(json.dumps(data, indent=2))


def _load_keystore(path: str) -> InMemoryKeyStore:
    if path and os.path.exists(path):
        return InMemoryKeyStore.load(path)
    return InMemoryKeyStore()


def cmd_keygen(args) -> int:
    """Generate a key pair into the key store file."""
    store = _load_keystore(args.keystore)
    descriptor = store.generate(KeyType(args.type), args.bits)
    store.save(args.keystore)
    _emit(descriptor.to_dict())
    return 0


def cmd_check_key(args) -> int:
    """Validate a stored descriptor against its key material."""
    store = _load_keystore(args.keystore)
    try:
        descriptor = store.get_descriptor(args.key_id)
    except KeyNotFoundError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1

    outcome = validate_key(descriptor)
    _emit(outcome.to_dict())
    return 0 if outcome else 1


def _orchestrator(args, ledger: Optional[VersionLedger] = None) -> VerificationOrchestrator:
    policy = config.load_roles_cached(args.roles)
    store = _load_keystore(args.keystore) if args.keystore else None
    return VerificationOrchestrator(policy, ledger=ledger, key_store=store)


def cmd_can_sign(args) -> int:
    orchestrator = _orchestrator(args)
    outcome = orchestrator.check_signing_keys(args.role)
    _emit(outcome.to_dict())
    return 0 if outcome else 1


def cmd_sign(args) -> int:
    """Build and sign a document envelope."""
    orchestrator = _orchestrator(args)
    body = load_json(args.body) if args.body else {}
    document = build_document(args.role, args.version, parse_timestamp(args.expires), body)

    result = orchestrator.sign(args.role, document.signed)
    if not result.signed():
        print(f"✗ {result.reason}", file=sys.stderr)
        _emit(result.to_dict())
        return 1

    document.signatures = result.signatures
    _emit(to_envelope(document), args.output)
    print(f"✓ signed by {len(result.signatures)} keys", file=sys.stderr)
    return 0


def cmd_verify(args) -> int:
    """Verify a document envelope and advance the ledger on acceptance."""
    store = SQLiteLedgerStore(args.ledger)
    try:
        orchestrator = _orchestrator(args, VersionLedger(store))
        try:
            document = from_envelope(load_json(args.document))
        except ValueError as e:
            print(f"✗ {e}", file=sys.stderr)
            return 1

        decision = orchestrator.verify(document)
    finally:
        store.close()

    _emit(decision.to_dict())
    if decision.accepted():
        print(f"✓ {decision.role} version {decision.version} accepted", file=sys.stderr)
        return 0
    print(f"✗ {decision.reason}", file=sys.stderr)
    return 1


def cmd_ledger(args) -> int:
    store = SQLiteLedgerStore(args.ledger)
    try:
        _emit(VersionLedger(store).snapshot())
    finally:
        store.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="signedmeta",
        description="Threshold-signed metadata verification and signing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  signedmeta keygen --keystore keys.json
  signedmeta can-sign -r roles.json -k keys.json --role root
  signedmeta sign -r roles.json -k keys.json --role root --version 2 --expires 2027-01-01T00:00:00Z -o root.json
  signedmeta verify -r roles.json -d root.json
  signedmeta ledger
        """
    )
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Log level")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    keygen_parser = subparsers.add_parser("keygen", help="Generate a key pair")
    keygen_parser.add_argument("-k", "--keystore", default=config.KEYSTORE_PATH, help="Key store JSON file")
    keygen_parser.add_argument("-t", "--type", default=KeyType.ED25519.value,
                               choices=[t.value for t in KeyType], help="Key type")
    keygen_parser.add_argument("-b", "--bits", type=int, help="Key size (ECDSA curve or RSA modulus)")

    check_parser = subparsers.add_parser("check-key", help="Validate a key descriptor")
    check_parser.add_argument("key_id", help="Key ID")
    check_parser.add_argument("-k", "--keystore", default=config.KEYSTORE_PATH, help="Key store JSON file")

    can_sign_parser = subparsers.add_parser("can-sign", help="Check signing keys against a role")
    can_sign_parser.add_argument("-r", "--roles", default=config.ROLES_PATH, help="Role policy JSON file")
    can_sign_parser.add_argument("-k", "--keystore", default=config.KEYSTORE_PATH, help="Key store JSON file")
    can_sign_parser.add_argument("--role", required=True, help="Role name")

    sign_parser = subparsers.add_parser("sign", help="Sign a metadata document")
    sign_parser.add_argument("-r", "--roles", default=config.ROLES_PATH, help="Role policy JSON file")
    sign_parser.add_argument("-k", "--keystore", default=config.KEYSTORE_PATH, help="Key store JSON file")
    sign_parser.add_argument("--role", required=True, help="Role name")
    sign_parser.add_argument("--version", type=int, required=True, help="Document version")
    sign_parser.add_argument("--expires", required=True, help="Expiry timestamp (ISO-8601)")
    sign_parser.add_argument("--body", help="Document body JSON file")
    sign_parser.add_argument("-o", "--output", help="Output file for the signed envelope")

    verify_parser = subparsers.add_parser("verify", help="Verify a metadata document")
    verify_parser.add_argument("-r", "--roles", default=config.ROLES_PATH, help="Role policy JSON file")
    verify_parser.add_argument("-d", "--document", required=True, help="Signed envelope JSON file")
    verify_parser.add_argument("-k", "--keystore", help="Key store JSON file (defaults to keys in the role policy)")
    verify_parser.add_argument("-l", "--ledger", default=config.LEDGER_PATH, help="Version ledger database")

    ledger_parser = subparsers.add_parser("ledger", help="Show accepted versions")
    ledger_parser.add_argument("-l", "--ledger", default=config.LEDGER_PATH, help="Version ledger database")

    return parser


COMMANDS = {
    "keygen": cmd_keygen,
    "check-key": cmd_check_key,
    "can-sign": cmd_can_sign,
    "sign": cmd_sign,
    "verify": cmd_verify,
    "ledger": cmd_ledger,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = "DEBUG" if config.is_debug() else args.log_level
    configure_logging(level=level, json_format=config.LOG_JSON, log_file=config.LOG_FILE)
    set_request_id()

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        return 2

    try:
        return command(args)
    except RoleConfigurationError as e:
        print(f"✗ invalid role policy: {e}", file=sys.stderr)
        return 2
    except (OSError, json.JSONDecodeError) as e:
        print(f"✗ {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"✗ invalid input: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
