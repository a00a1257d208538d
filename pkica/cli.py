"""Command-line front end for the certificate authority."""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from cryptography.hazmat.primitives import serialization

from . import __version__
from .authority import AuthorityManager
from .config import load_settings
from .csr import read_csr
from .errors import PkiError, UnknownUsage
from .pkcs12 import Pkcs12Exporter
from .profiles import Usage
from .store import FileCertificateStore, StoredBundle
from .utils import fingerprint


class UsageError(Exception):
    pass


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pkica",
        description="Issue X.509 certificates from a private certificate authority",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
        epilog="""
Examples:
  # Create (or reuse) a root authority
  %(prog)s --usage Authority --name "Test CA"

  # Server certificate signed by that authority
  %(prog)s --authority "Test CA" --name www.example.org

  # Sign a PKCS#10 request for code signing and write the certificate
  %(prog)s --authority "Test CA" --usage Code --sign request.csr --output codehost.pem
        """,
    )
    parser.add_argument("-a", "--authority", help="Name of the certificate authority (CA)")
    parser.add_argument("-n", "--name", help="Name of the certificate (can also be a Distinguished Name)")
    parser.add_argument(
        "-u",
        "--usage",
        default="Server",
        help="Usage of the certificate (Server, Client, Code, Authority)",
    )
    parser.add_argument("-m", "--machine", action="store_true", help="Store certificates in the machine store")
    parser.add_argument("-s", "--sign", metavar="CSR", help="Sign a PKCS#10 request and generate the certificate")
    parser.add_argument("-d", "--days", type=int, default=0, help="Validity in days (0 uses the default)")
    parser.add_argument("-o", "--output", help="Write the certificate (PEM) to this file")
    parser.add_argument("--export", metavar="FILE", help="Write a PKCS#12 bundle with the certificate and its key")
    parser.add_argument("--password", help="Password protecting the --export bundle")
    parser.add_argument("--list", action="store_true", help="List stored certificates")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("-h", "-?", "--help", action="help", help="Show this message")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def validate(args: argparse.Namespace, default_authority: Optional[str]) -> Usage:
    try:
        usage = Usage.parse(args.usage)
    except UnknownUsage as e:
        raise UsageError(str(e)) from e

    if args.list:
        return usage
    if bool(args.name) == bool(args.sign):
        raise UsageError("Exactly one of --name or --sign is required")
    if args.name is not None and not args.name.strip():
        raise UsageError("Invalid name of the certificate")
    # a root can be created without an authority, a request always needs one
    if (args.sign or not usage.is_authority) and not (args.authority or default_authority):
        raise UsageError("Invalid name of the certificate authority")
    if args.export and not args.password:
        raise UsageError("--export requires --password")
    if args.days < 0:
        raise UsageError("--days must not be negative")
    return usage


def list_certificates(store: FileCertificateStore) -> None:
    bundles = store.list()
    if not bundles:
        print("[*] No certificates stored")
        return
    for bundle in bundles:
        cert = bundle.certificate
        key = "key" if bundle.has_private_key else "no key"
        print(
            f"{bundle.location.value:7} {bundle.store_name:4} {cert.serial_number:032x} "
            f"{cert.subject.rfc4514_string()} (issuer {cert.issuer.rfc4514_string()}, "
            f"expires {cert.not_valid_after_utc:%Y-%m-%d}, {key})"
        )


def write_outputs(bundle: StoredBundle, args: argparse.Namespace) -> None:
    if args.output:
        with open(args.output, "wb") as f:
            f.write(bundle.certificate.public_bytes(serialization.Encoding.PEM))
        print(f"[+] Certificate written to {args.output}")

    if args.export:
        if not bundle.has_private_key:
            raise PkiError("the private key of this certificate is held by the requester; nothing to export")
        data = Pkcs12Exporter().export(bundle.certificate, bundle.private_key, args.password)
        with open(args.export, "wb") as f:
            f.write(data)
        print(f"[+] PKCS#12 bundle written to {args.export}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    settings = load_settings()
    try:
        usage = validate(args, settings.authority)
    except UsageError as e:
        print(f"[-] {e}\n")
        parser.print_help()
        return 2

    store = FileCertificateStore.from_settings(settings)
    try:
        if args.list:
            list_certificates(store)
            return 0

        manager = AuthorityManager.from_settings(settings, store, args.authority, machine=args.machine)
        if args.sign:
            bundle = manager.sign_certificate_request(read_csr(args.sign), usage, args.days)
        else:
            bundle = manager.generate_certificate(args.name, usage, args.days)

        cert = bundle.certificate
        print(f"[+] {cert.subject.rfc4514_string()} issued by {cert.issuer.rfc4514_string()}")
        print(f"[+] Serial {cert.serial_number:x}, SHA-256 fingerprint {fingerprint(cert)}")
        write_outputs(bundle, args)
    except (PkiError, OSError, ValueError) as e:
        print(f"[-] {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
