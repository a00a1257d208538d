"""Certificate usages and the X.509v3 extensions each one carries."""
from __future__ import annotations

import enum
from typing import Dict, List, NamedTuple, Tuple

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID

from .errors import UnknownUsage


class Usage(enum.Enum):
    AUTHORITY = "Authority"
    SERVER = "Server"
    CLIENT = "Client"
    CODE = "Code"

    @classmethod
    def parse(cls, value: str) -> "Usage":
        """Map user text (case-insensitive) onto a usage."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if text == "rootauthority":
            return cls.AUTHORITY
        for usage in cls:
            if usage.value.lower() == text:
                return usage
        raise UnknownUsage(f"unknown certificate usage: {value!r}")

    @property
    def is_authority(self) -> bool:
        return self is Usage.AUTHORITY


class ProfileExtension(NamedTuple):
    value: x509.ExtensionType
    critical: bool


def _key_usage(**flags) -> x509.KeyUsage:
    usage = dict(
        digital_signature=False,
        content_commitment=False,
        key_encipherment=False,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=False,
        crl_sign=False,
        encipher_only=False,
        decipher_only=False,
    )
    usage.update(flags)
    return x509.KeyUsage(**usage)


_END_ENTITY_KEY_USAGE = _key_usage(
    digital_signature=True,
    content_commitment=True,  # nonRepudiation
    key_encipherment=True,
)

PROFILES: Dict[Usage, Tuple[ProfileExtension, ...]] = {
    Usage.AUTHORITY: (
        ProfileExtension(x509.BasicConstraints(ca=True, path_length=None), True),
        ProfileExtension(_key_usage(key_cert_sign=True, crl_sign=True), True),
    ),
    Usage.SERVER: (
        ProfileExtension(x509.BasicConstraints(ca=False, path_length=None), True),
        ProfileExtension(_END_ENTITY_KEY_USAGE, True),
        ProfileExtension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH, ExtendedKeyUsageOID.CLIENT_AUTH]),
            True,
        ),
    ),
    Usage.CLIENT: (
        ProfileExtension(x509.BasicConstraints(ca=False, path_length=None), True),
        ProfileExtension(_END_ENTITY_KEY_USAGE, True),
        ProfileExtension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.CLIENT_AUTH]), True),
    ),
    Usage.CODE: (
        ProfileExtension(x509.BasicConstraints(ca=False, path_length=None), True),
        ProfileExtension(_END_ENTITY_KEY_USAGE, True),
        ProfileExtension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.CODE_SIGNING]), True),
    ),
}


def extensions_for(usage: Usage) -> List[ProfileExtension]:
    """Return the ordered extension list for ``usage``."""
    try:
        return list(PROFILES[usage])
    except (KeyError, TypeError):
        raise UnknownUsage(f"no extension profile for usage {usage!r}") from None
