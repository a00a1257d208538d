"""Helpers for distinguished names, serial numbers and PEM material."""
from __future__ import annotations

import os
import hashlib
from typing import Union

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import NameOID

from .errors import InvalidDistinguishedName

SERIAL_BYTES = 16


def generate_serial() -> int:
    """Return a positive 128-bit certificate serial number.

    Sixteen random bytes with the sign bit of the most significant byte
    cleared, so the DER INTEGER never needs a leading zero pad.
    """
    while True:
        raw = bytearray(os.urandom(SERIAL_BYTES))
        raw[0] &= 0x7F
        serial = int.from_bytes(bytes(raw), "big")
        if serial > 0:
            return serial


def parse_name(name: Union[str, x509.Name]) -> x509.Name:
    """Turn user input into an x509.Name.

    A plain value such as ``www.example.org`` becomes ``CN=www.example.org``;
    anything containing ``=`` is parsed as an RFC 4514 string.
    """
    if isinstance(name, x509.Name):
        if not name.rdns:
            raise InvalidDistinguishedName("empty distinguished name")
        return name

    if name is None or not name.strip():
        raise InvalidDistinguishedName("empty distinguished name")

    text = name.strip()
    if "=" not in text:
        try:
            return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, text)])
        except ValueError as e:
            raise InvalidDistinguishedName(f"invalid common name {text!r}: {e}") from e

    try:
        parsed = x509.Name.from_rfc4514_string(text)
    except ValueError as e:
        raise InvalidDistinguishedName(f"invalid distinguished name {text!r}: {e}") from e

    if not parsed.rdns:
        raise InvalidDistinguishedName(f"invalid distinguished name {text!r}")
    return parsed


def canonical_name(name: Union[str, x509.Name]) -> str:
    """Canonical form used for name equality and store lookup.

    Attribute order and letter case do not matter:
    ``O=Acme,CN=Host`` and ``CN=host,O=acme`` compare equal.
    """
    parsed = parse_name(name)
    parts = sorted(rdn.rfc4514_string().casefold() for rdn in parsed.rdns)
    return ",".join(parts)


def common_name(name: x509.Name) -> str:
    attrs = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    if attrs:
        return attrs[0].value
    return name.rfc4514_string()


def load_pem(path_or_pem: Union[str, bytes], marker: str = "BEGIN CERTIFICATE") -> bytes:
    """Load PEM from a file path or return the given PEM content as bytes.

    If the input contains ``marker`` it is treated as PEM content.
    Otherwise it is treated as a filesystem path and the file is read.
    """
    if isinstance(path_or_pem, bytes):
        if marker.encode("ascii") in path_or_pem:
            return path_or_pem
        path_or_pem = path_or_pem.decode("utf-8")

    if marker in path_or_pem:
        return path_or_pem.encode("utf-8")

    if os.path.isfile(path_or_pem):
        with open(path_or_pem, "rb") as f:
            return f.read()

    raise FileNotFoundError(f"PEM not found or invalid: {path_or_pem}")


def fingerprint(cert: x509.Certificate) -> str:
    """Return SHA-256 fingerprint (hex lowercase) of a certificate."""
    der = cert.public_bytes(serialization.Encoding.DER)
    return hashlib.sha256(der).hexdigest().lower()

