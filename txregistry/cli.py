#!/usr/bin/env python3
"""
TxRegistry Command Line Interface

Usage:
    txregistry keygen [--output <file>]
    txregistry address --key <file>
    txregistry key --operation <op> --record-id <id> --timestamp <n>
    txregistry sign --key <file> --operation <op> --record-id <id> --timestamp <n>
    txregistry validate [--db <file>] (--key <file> | --proof <file>) --operation ...
    txregistry signer [--db <file>] --operation <op> --record-id <id> --timestamp <n>
    txregistry demo

Exit codes: 0 accepted/found, 1 duplicate/absent, 2 rejected input.
"""

import argparse
import json
import sys

from . import config
from .logging_config import configure_logging

EXIT_OK = 0
EXIT_NEGATIVE = 1
EXIT_REJECTED = 2


def load_json(path: str) -> dict:
    """Load JSON from file."""
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def save_json(data: dict, path: str):
    """Save JSON to file."""
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)


def _descriptor(args):
    from .models import TransactionDescriptor
    return TransactionDescriptor(args.operation, args.record_id, args.timestamp)


def _open_registry(args):
    from .registry import ValidationRegistry
    from .store import SqliteRegistryStore
    return ValidationRegistry(store=SqliteRegistryStore(args.db))


def cmd_keygen(args):
    """Generate an Ed25519 key pair."""
    from .signing import generate_key_pair

    key_pair = generate_key_pair()
    if args.output:
        key_pair.save(args.output)
        print(f"Key pair saved to: {args.output}")
    else:
        print(json.dumps(key_pair.to_dict(), indent=2))

    print(f"\nAddress: {key_pair.address}", file=sys.stderr)
    return EXIT_OK


def cmd_address(args):
    """Print the address of a saved key pair."""
    from .signing import KeyPair

    print(KeyPair.load(args.key).address)
    return EXIT_OK


def cmd_key(args):
    """Print the identity key of a descriptor."""
    from .hashing import descriptor_key

    print(descriptor_key(_descriptor(args)))
    return EXIT_OK


def cmd_sign(args):
    """Sign a descriptor, producing a proof file."""
    from .signing import KeyPair, sign_descriptor

    descriptor = _descriptor(args)
    proof = sign_descriptor(descriptor, KeyPair.load(args.key))
    out = {**descriptor.to_dict(), **proof.to_dict()}

    if args.output:
        save_json(out, args.output)
        print(f"Proof saved to: {args.output}")
    else:
        print(json.dumps(out, indent=2))
    return EXIT_OK


def cmd_validate(args):
    """Submit a descriptor to the registry."""
    from .models import SignatureProof
    from .signing import KeyPair, sign_descriptor

    descriptor = _descriptor(args)
    if args.proof:
        proof = SignatureProof.from_dict(load_json(args.proof))
    else:
        proof = sign_descriptor(descriptor, KeyPair.load(args.key))

    registry = _open_registry(args)
    try:
        result = registry.validate_transaction(descriptor, proof)
    finally:
        registry.close()

    print(json.dumps(result.to_dict(), indent=2))
    if result.success:
        print("\n✓ Transaction accepted", file=sys.stderr)
        return EXIT_OK
    print(f"\n✗ Duplicate transaction; original signer {result.signer}", file=sys.stderr)
    return EXIT_NEGATIVE


def cmd_signer(args):
    """Look up the original submitter of a descriptor."""
    registry = _open_registry(args)
    try:
        signer = registry.get_signer(args.operation, args.record_id, args.timestamp)
    finally:
        registry.close()

    if signer is None:
        print("✗ NOT_FOUND", file=sys.stderr)
        return EXIT_NEGATIVE
    print(signer)
    return EXIT_OK


def cmd_demo(args):
    """Run the CreateUser scenario against an in-memory registry."""
    from .models import TransactionDescriptor
    from .registry import ValidationRegistry
    from .signing import generate_key_pair, sign_descriptor

    print("=" * 60)
    print("TxRegistry Demonstration")
    print("=" * 60)

    registry = ValidationRegistry()
    user1, user2 = generate_key_pair(), generate_key_pair()
    descriptor = TransactionDescriptor("CreateUser", "User_101", 123456789)

    print(f"\nuser1: {user1.address}")
    print(f"user2: {user2.address}")

    steps = [
        ("user1 submits", user1),
        ("user2 resubmits", user2),
        ("user1 resubmits", user1),
    ]
    for label, key_pair in steps:
        result = registry.validate_transaction(descriptor, sign_descriptor(descriptor, key_pair))
        mark = "✓" if result.success else "✗"
        print(f"\n{mark} {label}: success={result.success} signer={result.signer}")

    print(f"\nRecorded signer: {registry.get_signer('CreateUser', 'User_101', 123456789)}")
    print("\n" + "=" * 60)
    return EXIT_OK


def _add_descriptor_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--operation", required=True, help="Operation name")
    p.add_argument("--record-id", required=True, help="Record identifier")
    p.add_argument("--timestamp", required=True, type=int, help="Integer timestamp")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="txregistry",
        description="TxRegistry transaction validation CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  txregistry keygen -o alice.json
  txregistry validate -k alice.json --operation CreateUser --record-id User_101 --timestamp 123456789
  txregistry signer --operation CreateUser --record-id User_101 --timestamp 123456789
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    keygen_parser = subparsers.add_parser("keygen", help="Generate signing key pair")
    keygen_parser.add_argument("-o", "--output", help="Output file for key pair")

    address_parser = subparsers.add_parser("address", help="Show key pair address")
    address_parser.add_argument("-k", "--key", required=True, help="Key pair JSON file")

    key_parser = subparsers.add_parser("key", help="Compute identity key")
    _add_descriptor_args(key_parser)

    sign_parser = subparsers.add_parser("sign", help="Sign a descriptor")
    sign_parser.add_argument("-k", "--key", required=True, help="Key pair JSON file")
    sign_parser.add_argument("-o", "--output", help="Output file for proof")
    _add_descriptor_args(sign_parser)

    validate_parser = subparsers.add_parser("validate", help="Submit a transaction")
    validate_parser.add_argument("--db", default=config.DB_PATH, help="Registry database")
    source = validate_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("-k", "--key", help="Key pair JSON file to sign with")
    source.add_argument("-p", "--proof", help="Proof JSON file from 'sign'")
    _add_descriptor_args(validate_parser)

    signer_parser = subparsers.add_parser("signer", help="Look up original signer")
    signer_parser.add_argument("--db", default=config.DB_PATH, help="Registry database")
    _add_descriptor_args(signer_parser)

    subparsers.add_parser("demo", help="Run demonstration")

    return parser


COMMANDS = {
    "keygen": cmd_keygen,
    "address": cmd_address,
    "key": cmd_key,
    "sign": cmd_sign,
    "validate": cmd_validate,
    "signer": cmd_signer,
    "demo": cmd_demo,
}


def main(argv=None) -> int:
    from .errors import AuthenticationFailed, InvalidDescriptor

    parser = build_parser()
    args = parser.parse_args(argv)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return EXIT_REJECTED

    level = "DEBUG" if config.is_debug() else config.LOG_LEVEL
    configure_logging(level=level, json_format=config.LOG_JSON,
                      log_file=config.LOG_FILE or None, stream=sys.stderr)
    try:
        return handler(args)
    except InvalidDescriptor as e:
        print(f"✗ INVALID_DESCRIPTOR: {e}", file=sys.stderr)
        return EXIT_REJECTED
    except AuthenticationFailed as e:
        print(f"✗ AUTHENTICATION_FAILED: {e.reason}", file=sys.stderr)
        return EXIT_REJECTED


if __name__ == "__main__":
    sys.exit(main())
