"""Password-protected PKCS#12 bundles of a certificate and its private key."""
from __future__ import annotations

import secrets
from typing import Optional, Tuple, Union

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from .errors import StoreAccessError
from .utils import common_name


def generate_password() -> str:
    """Fresh random secret for one bundle."""
    return secrets.token_urlsafe(32)


def _password_bytes(password: Union[str, bytes]) -> bytes:
    if isinstance(password, str):
        password = password.encode("utf-8")
    if not password:
        raise ValueError("a non-empty bundle password is required")
    return password


class Pkcs12Exporter:
    def export(self, certificate: x509.Certificate, private_key, password: Union[str, bytes]) -> bytes:
        """Package certificate and key into an encrypted PKCS#12 bundle.

        The friendly name is the subject CN so store tooling shows something
        readable.
        """
        return pkcs12.serialize_key_and_certificates(
            name=common_name(certificate.subject).encode("utf-8"),
            key=private_key,
            cert=certificate,
            cas=None,
            encryption_algorithm=serialization.BestAvailableEncryption(_password_bytes(password)),
        )

    def load(self, data: bytes, password: Union[str, bytes]) -> Tuple[x509.Certificate, Optional[object]]:
        try:
            key, cert, _ = pkcs12.load_key_and_certificates(data, _password_bytes(password))
        except ValueError as e:
            raise StoreAccessError(f"cannot open PKCS#12 bundle: {e}") from e
        if cert is None:
            raise StoreAccessError("PKCS#12 bundle holds no certificate")
        return cert, key
