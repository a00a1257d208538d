"""Parsing and self-signature verification of PKCS#10 requests."""
from __future__ import annotations

import logging
from typing import Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import rsa

from .errors import InvalidCsrSignature, MalformedCsr
from .provider import CryptoProvider, RsaCryptoProvider
from .utils import load_pem

logger = logging.getLogger(__name__)

CSR_MARKER = "BEGIN CERTIFICATE REQUEST"


def read_csr(path_or_pem: Union[str, bytes]) -> bytes:
    """Return CSR PEM bytes from PEM content or a file path."""
    return load_pem(path_or_pem, marker=CSR_MARKER)


class CsrProcessor:
    def __init__(self, provider: CryptoProvider = None):
        self.provider = provider or RsaCryptoProvider()

    def parse(self, pem: Union[str, bytes]) -> x509.CertificateSigningRequest:
        if isinstance(pem, str):
            pem = pem.encode("utf-8")
        try:
            csr = x509.load_pem_x509_csr(pem)
            public_key = csr.public_key()
            # force the lazily parsed fields
            csr.subject
            csr.signature_hash_algorithm
            csr.signature_algorithm_parameters
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise MalformedCsr(f"cannot parse certificate request: {e}") from e

        if not isinstance(public_key, rsa.RSAPublicKey):
            raise MalformedCsr(f"unsupported public key type: {type(public_key).__name__}")
        return csr

    def verify(self, csr: x509.CertificateSigningRequest) -> bool:
        """Check the request is signed by the key it carries.

        This only proves possession of the private key; it is not a trust
        decision about the requester.
        """
        return self.provider.verify(
            csr.public_key(),
            csr.signature,
            csr.tbs_certrequest_bytes,
            csr.signature_hash_algorithm,
            csr.signature_algorithm_parameters,
        )

    def load(self, pem: Union[str, bytes]) -> x509.CertificateSigningRequest:
        csr = self.parse(pem)
        if not self.verify(csr):
            raise InvalidCsrSignature(f"signature check failed for request {csr.subject.rfc4514_string()}")
        logger.debug(f"Verified certificate request for {csr.subject.rfc4514_string()}")
        return csr
