"""pkica: a private X.509 certificate authority."""

__version__ = "1.0.0"

from .authority import AuthorityManager
from .errors import (
    InvalidCsrSignature,
    InvalidDistinguishedName,
    MalformedCsr,
    MissingRootAuthority,
    PkiError,
    StoreAccessError,
    StoreWriteError,
    UnknownUsage,
)
from .profiles import Usage, extensions_for
from .store import CertificateStore, FileCertificateStore, StoredBundle, StoreLocation

__all__ = [
    "AuthorityManager",
    "CertificateStore",
    "FileCertificateStore",
    "InvalidCsrSignature",
    "InvalidDistinguishedName",
    "MalformedCsr",
    "MissingRootAuthority",
    "PkiError",
    "StoreAccessError",
    "StoreLocation",
    "StoreWriteError",
    "StoredBundle",
    "UnknownUsage",
    "Usage",
    "extensions_for",
]
