#!/usr/bin/env python3
"""
pkio Command Line Interface

Usage:
    pkio new --id <id> --name <name> [--key-type rsa|ec] [-o entity.json]
    pkio public -e entity.json [-o public.json]
    pkio sign -e entity.json (-m <text> | -f <file>) [-o container.json]
    pkio verify -e signer.json -c container.json
    pkio authenticate -e entity.json --key-id <id> --secret <hex> (-m | -f) [-o]
    pkio verify-auth -e entity.json -c container.json --secret <hex>
    pkio encrypt -e sender.json [--to public.json ...] [--sign] (-m | -f) [-o]
    pkio decrypt -e entity.json -c container.json [--signer public.json] [--secret <hex>]
"""

import argparse
import json
import sys
from typing import List, Optional

from .config import get_settings
from .container import Container, SealState
from .entity import Entity
from .errors import PkioError, is_integrity_failure
from .logging_config import audit_log, configure_logging


def load_json(path: str) -> dict:
    """Load JSON from file."""
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def save_json(data: dict, path: str):
    """Save JSON to file."""
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)


def emit(data: dict, output: Optional[str], label: str):
    if output:
        save_json(data, output)
        print(f"{label} saved to: {output}", file=sys.stderr)
    else:
        print(json.dumps(data, indent=2))


def read_content(args) -> str:
    if args.message is not None:
        return args.message
    with open(args.file, 'r', encoding='utf-8') as f:
        return f.read()


def cmd_new(args):
    """Create an entity and generate its keys."""
    entity = Entity(id=args.id, name=args.name or args.id, key_type=args.key_type)
    entity.generate_keys()
    emit(json.loads(entity.dump()), args.output, "Entity")
    print(f"Generated {entity.key_type.value} keys for {entity.id}", file=sys.stderr)
    return 0


def cmd_public(args):
    """Write the public view of an entity."""
    entity = Entity.load(load_json(args.entity))
    emit(json.loads(entity.dump_public()), args.output, "Public entity")
    return 0


def cmd_sign(args):
    entity = Entity.load(load_json(args.entity))
    container = entity.sign_string(read_content(args))
    emit(container.to_dict(), args.output, "Container")
    return 0


def cmd_verify(args):
    """Verify a signed container against the signer's entity file."""
    signer = Entity.load(load_json(args.entity))
    container = Container.load(load_json(args.container))
    signer.verify(container)
    print(f"✓ signature valid ({container.signature_mode}, source {container.source})")
    return 0


def cmd_authenticate(args):
    entity = Entity.load(load_json(args.entity))
    container = entity.authenticate_string(read_content(args), args.key_id, args.secret)
    emit(container.to_dict(), args.output, "Container")
    return 0


def cmd_verify_auth(args):
    entity = Entity.load(load_json(args.entity))
    container = Container.load(load_json(args.container))
    entity.verify_authentication(container, args.secret)
    print(f"✓ authentication valid (key {container.authentication_key_id})")
    return 0


def cmd_encrypt(args):
    """Encrypt for the given public entities, or for the sender alone."""
    sender = Entity.load(load_json(args.entity))
    recipients = [Entity.load(load_json(path)) for path in args.to] if args.to else None
    content = read_content(args)

    if args.sign:
        container = sender.encrypt_then_sign_string(content, recipients)
    else:
        container = sender.encrypt(content, recipients)

    emit(container.to_dict(), args.output, "Container")
    print(f"Encrypted for: {', '.join(container.recipients)}", file=sys.stderr)
    return 0


def cmd_decrypt(args):
    """
    Decrypt a container addressed to the entity.

    Signed containers are verified first (against --signer when given);
    authenticated containers need --secret and are verified first too.
    """
    entity = Entity.load(load_json(args.entity))
    container = Container.load(load_json(args.container))

    state = container.seal_state
    if state is SealState.SIGNED:
        signer = Entity.load(load_json(args.signer)) if args.signer else None
        plaintext = entity.verify_then_decrypt(container, signer)
    elif state is SealState.AUTHENTICATED:
        if not args.secret:
            print("✗ container is authenticated; --secret is required", file=sys.stderr)
            return 1
        plaintext = entity.verify_authentication_then_decrypt(container, args.secret)
    else:
        plaintext = entity.decrypt(container)

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            f.write(plaintext)
        print(f"Plaintext saved to: {args.output}", file=sys.stderr)
    else:
        sys.stdout.write(plaintext)
    return 0


def _add_content_arguments(parser: argparse.ArgumentParser):
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("-m", "--message", help="Content as text")
    group.add_argument("-f", "--file", help="File holding the content")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pkio",
        description="pkio entity and container CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pkio new --id alice --key-type ec -o alice.json
  pkio public -e alice.json -o alice.pub.json
  pkio sign -e alice.json -m hello -o signed.json
  pkio verify -e alice.pub.json -c signed.json
  pkio encrypt -e alice.json --to bob.pub.json --sign -m secret -o box.json
  pkio decrypt -e bob.json -c box.json --signer alice.pub.json
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # new
    new_parser = subparsers.add_parser("new", help="Create an entity with fresh keys")
    new_parser.add_argument("--id", required=True, help="Entity id")
    new_parser.add_argument("--name", help="Entity name (default: id)")
    new_parser.add_argument("--key-type", choices=["rsa", "ec"], default="ec", help="Key type")
    new_parser.add_argument("-o", "--output", help="Output file for the entity")

    # public
    public_parser = subparsers.add_parser("public", help="Write the public view of an entity")
    public_parser.add_argument("-e", "--entity", required=True, help="Entity JSON file")
    public_parser.add_argument("-o", "--output", help="Output file")

    # sign
    sign_parser = subparsers.add_parser("sign", help="Sign content into a container")
    sign_parser.add_argument("-e", "--entity", required=True, help="Signing entity JSON file")
    _add_content_arguments(sign_parser)
    sign_parser.add_argument("-o", "--output", help="Output file for the container")

    # verify
    verify_parser = subparsers.add_parser("verify", help="Verify a signed container")
    verify_parser.add_argument("-e", "--entity", required=True, help="Signer entity JSON file (public view is enough)")
    verify_parser.add_argument("-c", "--container", required=True, help="Container JSON file")

    # authenticate
    auth_parser = subparsers.add_parser("authenticate", help="Authenticate content with a shared secret")
    auth_parser.add_argument("-e", "--entity", required=True, help="Entity JSON file")
    auth_parser.add_argument("--key-id", required=True, help="Identifier of the shared secret")
    auth_parser.add_argument("--secret", required=True, help="Shared secret, hex encoded")
    _add_content_arguments(auth_parser)
    auth_parser.add_argument("-o", "--output", help="Output file for the container")

    # verify-auth
    verify_auth_parser = subparsers.add_parser("verify-auth", help="Verify an authenticated container")
    verify_auth_parser.add_argument("-e", "--entity", required=True, help="Entity JSON file")
    verify_auth_parser.add_argument("-c", "--container", required=True, help="Container JSON file")
    verify_auth_parser.add_argument("--secret", required=True, help="Shared secret, hex encoded")

    # encrypt
    encrypt_parser = subparsers.add_parser("encrypt", help="Encrypt content into a container")
    encrypt_parser.add_argument("-e", "--entity", required=True, help="Sender entity JSON file")
    encrypt_parser.add_argument("--to", nargs="+", help="Recipient entity JSON files (default: sender)")
    encrypt_parser.add_argument("--sign", action="store_true", help="Sign the encrypted container")
    _add_content_arguments(encrypt_parser)
    encrypt_parser.add_argument("-o", "--output", help="Output file for the container")

    # decrypt
    decrypt_parser = subparsers.add_parser("decrypt", help="Decrypt a container")
    decrypt_parser.add_argument("-e", "--entity", required=True, help="Recipient entity JSON file")
    decrypt_parser.add_argument("-c", "--container", required=True, help="Container JSON file")
    decrypt_parser.add_argument("--signer", help="Signer entity JSON file (default: recipient)")
    decrypt_parser.add_argument("--secret", help="Shared secret for authenticated containers")
    decrypt_parser.add_argument("-o", "--output", help="Output file for the plaintext")

    return parser


COMMANDS = {
    "new": cmd_new,
    "public": cmd_public,
    "sign": cmd_sign,
    "verify": cmd_verify,
    "authenticate": cmd_authenticate,
    "verify-auth": cmd_verify_auth,
    "encrypt": cmd_encrypt,
    "decrypt": cmd_decrypt,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        settings = get_settings()
    except ValueError as e:
        print(f"✗ configuration error: {e}", file=sys.stderr)
        return 1
    configure_logging(settings.log_level, settings.log_json)

    try:
        return handler(args)
    except PkioError as e:
        if is_integrity_failure(e):
            audit_log.security_event("integrity_failure", "high", command=args.command)
        print(f"✗ {e.category.value}: {e}", file=sys.stderr)
        return 1
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
