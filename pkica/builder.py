"""Assembly and signing of X.509v3 certificates."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional, Sequence, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from .profiles import ProfileExtension
from .provider import CryptoProvider, RsaCryptoProvider
from .utils import generate_serial

logger = logging.getLogger(__name__)


class IssuedCertificate(NamedTuple):
    der: bytes
    public_key: object
    certificate: x509.Certificate


def validity_window(days: int, backdate_days: int = 1, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Return (not_before, not_after) for a certificate valid ``days`` from now.

    not_before is moved back by ``backdate_days`` to absorb clock skew
    between the issuer and relying parties.
    """
    if days <= 0:
        raise ValueError(f"validity must be positive, got {days}")
    now = now or datetime.now(timezone.utc)
    return now - timedelta(days=backdate_days), now + timedelta(days=days)


class CertificateBuilder:
    def __init__(self, provider: CryptoProvider = None):
        self.provider = provider or RsaCryptoProvider()

    def build(
        self,
        subject: x509.Name,
        issuer: x509.Name,
        public_key,
        not_before: datetime,
        not_after: datetime,
        extensions: Sequence[ProfileExtension],
        signing_key,
    ) -> IssuedCertificate:
        """Build the TBSCertificate, sign it with ``signing_key`` and encode it."""
        if not_before > not_after:
            raise ValueError("not_before is after not_after")

        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer)
            .public_key(public_key)
            .serial_number(generate_serial())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
        )
        for ext in extensions:
            builder = builder.add_extension(ext.value, critical=ext.critical)

        cert = self.provider.sign_certificate(builder, signing_key)
        logger.debug(f"Signed certificate {cert.serial_number:x} for {subject.rfc4514_string()}")

        return IssuedCertificate(
            der=cert.public_bytes(serialization.Encoding.DER),
            public_key=cert.public_key(),
            certificate=cert,
        )
