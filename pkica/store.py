"""Name-addressed certificate store with machine and user locations.

:class:`CertificateStore` is the contract the engine relies on.
:class:`FileCertificateStore` keeps each location in its own directory as a
JSON index with 0600 permissions. Bundles that carry a private key are stored
as PKCS#12 protected by a random per-bundle password; those passwords are
encrypted at rest using Fernet.
"""
from __future__ import annotations

import base64
import enum
import json
import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Union

from cryptography import x509
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import serialization

from .errors import StoreAccessError, StoreWriteError
from .pkcs12 import Pkcs12Exporter, generate_password
from .utils import canonical_name

logger = logging.getLogger(__name__)

STORE_MY = "My"
STORE_ROOT = "Root"

INDEX_FILE = "index.json"
KEY_FILE = ".store_key"


class StoreLocation(enum.Enum):
    MACHINE = "machine"
    USER = "user"


# lookup order
SEARCH_ORDER = (StoreLocation.MACHINE, StoreLocation.USER)


@dataclass
class StoredBundle:
    certificate: x509.Certificate
    private_key: Optional[object] = None
    store_name: str = STORE_MY
    location: StoreLocation = StoreLocation.USER

    @property
    def subject(self) -> x509.Name:
        return self.certificate.subject

    @property
    def serial_number(self) -> int:
        return self.certificate.serial_number

    @property
    def has_private_key(self) -> bool:
        return self.private_key is not None


class CertificateStore:
    def get(self, store_name: str, subject: Union[str, x509.Name]) -> Optional[StoredBundle]:
        """Return the first bundle for ``subject``, machine location first.

        A miss in both locations returns None.
        """
        raise NotImplementedError

    def put(self, store_name: str, location: StoreLocation, bundle: StoredBundle) -> None:
        """Persist ``bundle``; failures raise :class:`StoreWriteError`."""
        raise NotImplementedError

    def list(self, store_name: Optional[str] = None, location: Optional[StoreLocation] = None) -> List[StoredBundle]:
        raise NotImplementedError


class FileCertificateStore(CertificateStore):
    def __init__(self, machine_path: str, user_path: str, exporter: Pkcs12Exporter = None):
        self.paths: Dict[StoreLocation, str] = {
            StoreLocation.MACHINE: machine_path,
            StoreLocation.USER: user_path,
        }
        self.exporter = exporter or Pkcs12Exporter()
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings) -> "FileCertificateStore":
        return cls(settings.machine_store, settings.user_store)

    def _index_path(self, location: StoreLocation) -> str:
        return os.path.join(self.paths[location], INDEX_FILE)

    def _key_path(self, location: StoreLocation) -> str:
        return os.path.join(self.paths[location], KEY_FILE)

    def _load(self, location: StoreLocation) -> Dict[str, Dict]:
        path = self._index_path(location)
        if not os.path.exists(path):
            return {}
        try:
            with open(path, "r") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreAccessError(f"cannot read {location.value} store {path}: {e}") from e

    def _save(self, location: StoreLocation, data: Dict[str, Dict]) -> None:
        path = self._index_path(location)
        tmp = path + ".tmp"
        try:
            with open(tmp, "w") as f:
                json.dump(data, f, indent=2)
            os.chmod(tmp, 0o600)
            os.replace(tmp, path)
        except OSError:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise

    def _cipher(self, location: StoreLocation, create: bool = False) -> Fernet:
        """Load the location's password encryption key, creating it on first write."""
        key_file = self._key_path(location)
        if os.path.exists(key_file):
            try:
                with open(key_file, "rb") as f:
                    return Fernet(f.read())
            except (OSError, ValueError) as e:
                raise StoreAccessError(f"cannot read store key {key_file}: {e}") from e

        if not create:
            raise StoreAccessError(f"store key missing: {key_file}")

        key = Fernet.generate_key()
        with open(key_file, "wb") as f:
            f.write(key)
        os.chmod(key_file, 0o600)
        return Fernet(key)

    def _encode(self, location: StoreLocation, store_name: str, bundle: StoredBundle) -> Dict:
        cert = bundle.certificate
        record = {
            "store": store_name,
            "subject": cert.subject.rfc4514_string(),
            "canonical": canonical_name(cert.subject),
            "issuer": cert.issuer.rfc4514_string(),
            "added_at": int(time.time()),
            "password": None,
        }
        if bundle.private_key is not None:
            password = generate_password()
            data = self.exporter.export(cert, bundle.private_key, password)
            token = self._cipher(location, create=True).encrypt(password.encode("utf-8"))
            record["format"] = "pkcs12"
            record["password"] = token.decode("ascii")
        else:
            data = cert.public_bytes(serialization.Encoding.PEM)
            record["format"] = "pem"
        record["bundle"] = base64.b64encode(data).decode("ascii")
        return record

    def _decode(self, location: StoreLocation, record: Dict) -> StoredBundle:
        data = base64.b64decode(record["bundle"])
        if record.get("format") == "pkcs12":
            try:
                password = self._cipher(location).decrypt(record["password"].encode("ascii"))
            except InvalidToken as e:
                raise StoreAccessError(f"cannot decrypt bundle password for {record['subject']}") from e
            cert, key = self.exporter.load(data, password)
        else:
            cert, key = x509.load_pem_x509_certificate(data), None
        return StoredBundle(cert, key, record["store"], location)

    def _records(self, location: StoreLocation) -> Iterator[Dict]:
        yield from self._load(location).values()

    def get(self, store_name, subject):
        wanted = canonical_name(subject)
        for location in SEARCH_ORDER:
            for record in self._records(location):
                if record["store"] == store_name and record["canonical"] == wanted:
                    logger.debug(f"Found {record['subject']} in {location.value}/{store_name}")
                    return self._decode(location, record)
        return None

    def put(self, store_name, location, bundle):
        serial = format(bundle.certificate.serial_number, "x")
        with self._lock:
            try:
                os.makedirs(self.paths[location], exist_ok=True)
                data = self._load(location)
                data[serial] = self._encode(location, store_name, bundle)
                self._save(location, data)
            except (OSError, ValueError, StoreAccessError) as e:
                raise StoreWriteError(
                    f"certificate {bundle.certificate.subject.rfc4514_string()} was issued "
                    f"but could not be written to the {location.value} store: {e}"
                ) from e
        bundle.store_name = store_name
        bundle.location = location
        logger.info(f"Stored {bundle.certificate.subject.rfc4514_string()} in {location.value}/{store_name}")

    def list(self, store_name=None, location=None):
        locations = [location] if location else list(SEARCH_ORDER)
        bundles = []
        for loc in locations:
            for record in self._records(loc):
                if store_name is None or record["store"] == store_name:
                    bundles.append(self._decode(loc, record))
        return bundles
