"""Certificate authority: root resolution, leaf generation and CSR signing."""
from __future__ import annotations

import logging
import threading
from typing import Dict, Optional, Tuple, Union

from cryptography import x509

from .builder import CertificateBuilder, validity_window
from .config import Settings
from .csr import CsrProcessor
from .errors import MissingRootAuthority
from .profiles import Usage, extensions_for
from .provider import CryptoProvider, RsaCryptoProvider
from .store import STORE_MY, STORE_ROOT, CertificateStore, StoredBundle, StoreLocation
from .utils import canonical_name, parse_name

logger = logging.getLogger(__name__)

DEFAULT_CERTIFICATE_VALIDITY = 2 * 365  # 2 years
DEFAULT_ROOT_VALIDITY = 10 * 365  # 10 years


def _resolve_validity(days: int, default: int) -> int:
    if days < 0:
        raise ValueError(f"validity must not be negative, got {days}")
    return days or default


class AuthorityManager:
    """Issues certificates on behalf of one root authority.

    Lookups are cached per instance for the lifetime of the manager (one
    command invocation, or one session when reused by a service). The cache
    is never shared between instances.
    """

    def __init__(
        self,
        store: CertificateStore,
        authority_name: Optional[str] = None,
        location: StoreLocation = StoreLocation.USER,
        provider: CryptoProvider = None,
        backdate_days: int = 1,
    ):
        self.store = store
        self.authority_name = authority_name
        self.location = location
        self.provider = provider or RsaCryptoProvider()
        self.builder = CertificateBuilder(self.provider)
        self.csr_processor = CsrProcessor(self.provider)
        self.backdate_days = backdate_days
        self._cache: Dict[Tuple[str, str], StoredBundle] = {}
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, settings: Settings, store: CertificateStore, authority_name: Optional[str] = None,
                      machine: bool = False) -> "AuthorityManager":
        return cls(
            store,
            authority_name=authority_name or settings.authority,
            location=StoreLocation.MACHINE if machine else StoreLocation.USER,
            provider=RsaCryptoProvider(settings.key_size, settings.hash_name),
            backdate_days=settings.backdate_days,
        )

    def _lookup(self, store_name: str, subject: x509.Name) -> Optional[StoredBundle]:
        key = (store_name, canonical_name(subject))
        if key in self._cache:
            return self._cache[key]

        bundle = self.store.get(store_name, subject)
        if bundle is not None:
            self._cache[key] = bundle
        return bundle

    def _persist(self, store_name: str, bundle: StoredBundle, cache: bool = True) -> StoredBundle:
        self.store.put(store_name, self.location, bundle)
        if cache:
            self._cache[(store_name, canonical_name(bundle.subject))] = bundle
        return bundle

    def get_or_create_authority(self, name: Union[str, x509.Name, None] = None, validity_days: int = 0) -> StoredBundle:
        """Return the root certificate for ``name``, creating it if absent."""
        name = name or self.authority_name
        if not name:
            raise MissingRootAuthority("no certificate authority name given")
        subject = parse_name(name)

        with self._lock:
            root = self._lookup(STORE_ROOT, subject)
            if root is not None:
                return root

            days = _resolve_validity(validity_days, DEFAULT_ROOT_VALIDITY)
            logger.info(f"Creating root authority {subject.rfc4514_string()}")
            key = self.provider.generate_key()
            not_before, not_after = validity_window(days, self.backdate_days)
            issued = self.builder.build(
                subject,
                subject,
                key.public_key(),
                not_before,
                not_after,
                extensions_for(Usage.AUTHORITY),
                key,
            )
            return self._persist(STORE_ROOT, StoredBundle(issued.certificate, key))

    def _require_authority(self, create: bool = True) -> StoredBundle:
        if not self.authority_name:
            raise MissingRootAuthority("a certificate authority is required for this usage")
        if create:
            root = self.get_or_create_authority()
        else:
            root = self._lookup(STORE_ROOT, parse_name(self.authority_name))
            if root is None:
                raise MissingRootAuthority(f"certificate authority {self.authority_name!r} does not exist")
        if not root.has_private_key:
            raise MissingRootAuthority(
                f"private key of authority {root.subject.rfc4514_string()} is not available"
            )
        return root

    def generate_certificate(self, subject_name: Union[str, x509.Name], usage: Usage = Usage.SERVER,
                             validity_days: int = 0) -> StoredBundle:
        """Get or create a certificate for ``subject_name``.

        An existing certificate with the same subject is returned unchanged,
        even when a different authority issued it; a warning is logged then.
        ``Usage.AUTHORITY`` creates (or reuses) a root named ``subject_name``.
        """
        usage = Usage.parse(usage)
        if usage.is_authority:
            return self.get_or_create_authority(subject_name, validity_days)

        subject = parse_name(subject_name)
        days = _resolve_validity(validity_days, DEFAULT_CERTIFICATE_VALIDITY)
        extensions = extensions_for(usage)

        with self._lock:
            root = self._require_authority()

            existing = self._lookup(STORE_MY, subject)
            if existing is not None:
                logger.info(f"Certificate {subject.rfc4514_string()} already exists")
                if existing.certificate.issuer != root.subject:
                    logger.warning(
                        f"Existing certificate {subject.rfc4514_string()} was issued by "
                        f"{existing.certificate.issuer.rfc4514_string()}, not {root.subject.rfc4514_string()}"
                    )
                return existing

            logger.info(f"Creating {usage.value} certificate {subject.rfc4514_string()}")
            key = self.provider.generate_key()
            not_before, not_after = validity_window(days, self.backdate_days)
            issued = self.builder.build(
                subject,
                root.subject,
                key.public_key(),
                not_before,
                not_after,
                extensions,
                root.private_key,
            )
            return self._persist(STORE_MY, StoredBundle(issued.certificate, key))

    def sign_certificate_request(self, csr_pem: Union[str, bytes], usage: Usage = Usage.SERVER,
                                 validity_days: int = 0) -> StoredBundle:
        """Issue a certificate for a PKCS#10 request.

        Subject and public key come from the request. The requester keeps its
        private key, so the stored bundle holds the certificate only.
        """
        usage = Usage.parse(usage)
        days = _resolve_validity(validity_days, DEFAULT_CERTIFICATE_VALIDITY)
        extensions = extensions_for(usage)

        with self._lock:
            root = self._require_authority(create=False)
            csr = self.csr_processor.load(csr_pem)

            logger.info(f"Signing {usage.value} request for {csr.subject.rfc4514_string()}")
            not_before, not_after = validity_window(days, self.backdate_days)
            issued = self.builder.build(
                csr.subject,
                root.subject,
                csr.public_key(),
                not_before,
                not_after,
                extensions,
                root.private_key,
            )
            # lookups by subject keep returning the first certificate stored for it
            return self._persist(STORE_MY, StoredBundle(issued.certificate), cache=False)

    def verify_issued(self, bundle: StoredBundle) -> bool:
        """Check ``bundle`` was signed by this manager's authority."""
        root = self._lookup(STORE_ROOT, parse_name(self.authority_name)) if self.authority_name else None
        if root is None or bundle.certificate.issuer != root.subject:
            return False
        return self.provider.verify_certificate(bundle.certificate, root.certificate.public_key())
