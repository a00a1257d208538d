import os
import stat

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID
from datetime import datetime, timedelta, timezone

from pkica.errors import StoreAccessError, StoreWriteError
from pkica.store import (
    INDEX_FILE,
    KEY_FILE,
    STORE_MY,
    STORE_ROOT,
    FileCertificateStore,
    StoredBundle,
    StoreLocation,
)


def make_bundle(cn=u"store.example", with_key=True):
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    subject = issuer = x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, cn),
    ])
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + timedelta(days=10))
        .sign(key, hashes.SHA256())
    )
    return StoredBundle(cert, key if with_key else None)


def test_store_round_trip(store, read_index):
    bundle = make_bundle()
    store.put(STORE_MY, StoreLocation.USER, bundle)

    found = store.get(STORE_MY, "store.example")
    assert found is not None
    assert found.certificate == bundle.certificate
    assert found.location is StoreLocation.USER
    assert found.store_name == STORE_MY
    assert found.private_key.private_numbers() == bundle.private_key.private_numbers()

    index = read_index(StoreLocation.USER)
    assert len(index) == 1
    assert read_index(StoreLocation.MACHINE) == {}


def test_lookup_is_by_canonical_name(store):
    store.put(STORE_MY, StoreLocation.USER, make_bundle(u"Store.Example"))
    assert store.get(STORE_MY, "CN=store.example") is not None
    assert store.get(STORE_MY, "other.example") is None


def test_store_names_are_separate(store):
    store.put(STORE_ROOT, StoreLocation.USER, make_bundle(u"Test CA"))
    assert store.get(STORE_MY, "Test CA") is None
    assert store.get(STORE_ROOT, "Test CA") is not None


def test_machine_location_is_searched_first(store):
    machine = make_bundle()
    user = make_bundle()
    store.put(STORE_MY, StoreLocation.USER, user)
    store.put(STORE_MY, StoreLocation.MACHINE, machine)

    found = store.get(STORE_MY, "store.example")
    assert found.location is StoreLocation.MACHINE
    assert found.serial_number == machine.serial_number


def test_first_stored_entry_wins(store):
    first = make_bundle()
    store.put(STORE_MY, StoreLocation.USER, first)
    store.put(STORE_MY, StoreLocation.USER, make_bundle())

    assert store.get(STORE_MY, "store.example").serial_number == first.serial_number


def test_certificate_without_key(store, read_index):
    store.put(STORE_MY, StoreLocation.USER, make_bundle(with_key=False))

    found = store.get(STORE_MY, "store.example")
    assert found.has_private_key is False
    record = next(iter(read_index().values()))
    assert record["format"] == "pem"
    assert record["password"] is None


def test_files_are_private_and_passwords_encrypted(store, read_index):
    store.put(STORE_MY, StoreLocation.USER, make_bundle())

    user_dir = store.paths[StoreLocation.USER]
    for name in (INDEX_FILE, KEY_FILE):
        mode = stat.S_IMODE(os.stat(os.path.join(user_dir, name)).st_mode)
        assert mode == 0o600

    record = next(iter(read_index().values()))
    assert record["format"] == "pkcs12"
    # Fernet tokens are base64 and start with the version byte 0x80
    assert record["password"].startswith("gAAAAA")


def test_put_failure_is_reported(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    store = FileCertificateStore(str(tmp_path / "machine"), str(blocker))

    with pytest.raises(StoreWriteError):
        store.put(STORE_MY, StoreLocation.USER, make_bundle())
    assert store.get(STORE_MY, "store.example") is None


def test_corrupt_index_is_an_access_error(store):
    user_dir = store.paths[StoreLocation.USER]
    os.makedirs(user_dir)
    with open(os.path.join(user_dir, INDEX_FILE), "w") as f:
        f.write("{not json")

    with pytest.raises(StoreAccessError):
        store.get(STORE_MY, "store.example")


def test_list(store):
    store.put(STORE_ROOT, StoreLocation.MACHINE, make_bundle(u"Test CA"))
    store.put(STORE_MY, StoreLocation.USER, make_bundle(u"leaf"))

    assert len(store.list()) == 2
    assert [b.store_name for b in store.list(STORE_ROOT)] == [STORE_ROOT]
    assert [b.location for b in store.list(location=StoreLocation.USER)] == [StoreLocation.USER]
