"""Exceptions raised by the certificate authority engine."""
from __future__ import annotations


class PkiError(Exception):
    pass


class MissingRootAuthority(PkiError):
    """No authority could be resolved or created for a non-root issuance."""


class InvalidCsrSignature(PkiError):
    """The self-signature of a certificate signing request does not verify."""


class MalformedCsr(PkiError):
    """The certificate signing request cannot be parsed."""


class InvalidDistinguishedName(PkiError):
    pass


class UnknownUsage(PkiError):
    pass


class StoreAccessError(PkiError):
    """The certificate store rejected a read or write."""


class StoreWriteError(StoreAccessError):
    """A certificate was built and signed but could not be persisted.

    Raised separately from read failures because the issued key material
    is lost unless the caller handles it.
    """
