"""Cryptographic primitives used by the engine.

The engine only talks to a :class:`CryptoProvider`, so key generation,
signing and signature checks live in one place. :class:`RsaCryptoProvider`
is the implementation backed by ``cryptography``.
"""
from __future__ import annotations

import logging
from typing import Optional

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

logger = logging.getLogger(__name__)

HASH_ALGORITHMS = {
    "sha256": hashes.SHA256,
    "sha1": hashes.SHA1,
}


def hash_algorithm(name: str) -> hashes.HashAlgorithm:
    """Resolve a hash name. ``sha1`` exists only for compatibility testing."""
    try:
        return HASH_ALGORITHMS[name.lower()]()
    except KeyError:
        raise ValueError(f"unsupported hash algorithm: {name!r}") from None


class CryptoProvider:
    """Interface the engine needs from a cryptography backend."""

    def generate_key(self):
        raise NotImplementedError

    def sign_certificate(self, builder: x509.CertificateBuilder, signing_key) -> x509.Certificate:
        raise NotImplementedError

    def verify(self, public_key, signature: bytes, data: bytes, algorithm: Optional[hashes.HashAlgorithm],
               signature_padding=None) -> bool:
        raise NotImplementedError

    def verify_certificate(self, cert: x509.Certificate, issuer_public_key) -> bool:
        return self.verify(
            issuer_public_key,
            cert.signature,
            cert.tbs_certificate_bytes,
            cert.signature_hash_algorithm,
            cert.signature_algorithm_parameters,
        )


class RsaCryptoProvider(CryptoProvider):
    def __init__(self, key_size: int = 2048, hash_name: str = "sha256"):
        self.key_size = key_size
        self.hash_name = hash_name
        self.algorithm = hash_algorithm(hash_name)
        if self.hash_name.lower() == "sha1":
            logger.warning("Signing with SHA-1; use only for compatibility testing")

    def generate_key(self) -> rsa.RSAPrivateKey:
        logger.debug(f"Generating {self.key_size}-bit RSA key")
        return rsa.generate_private_key(public_exponent=65537, key_size=self.key_size)

    def sign_certificate(self, builder: x509.CertificateBuilder, signing_key) -> x509.Certificate:
        return builder.sign(signing_key, self.algorithm)

    def verify(self, public_key, signature, data, algorithm, signature_padding=None) -> bool:
        """Check an RSA signature using the padding the signer declared.

        ``signature_padding`` is the object's signature_algorithm_parameters
        (PKCS1v15 or PSS); PKCS1v15 is assumed when it is not given.
        """
        if not isinstance(public_key, rsa.RSAPublicKey) or algorithm is None:
            return False
        if not isinstance(signature_padding, (padding.PKCS1v15, padding.PSS)):
            signature_padding = padding.PKCS1v15()
        try:
            public_key.verify(signature, data, signature_padding, algorithm)
        except (InvalidSignature, UnsupportedAlgorithm):
            return False
        return True
