import json
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pkica.authority import AuthorityManager
from pkica.store import FileCertificateStore, StoreLocation, INDEX_FILE


@pytest.fixture
def store(tmp_path):
    return FileCertificateStore(str(tmp_path / "machine"), str(tmp_path / "user"))


@pytest.fixture
def manager(store):
    return AuthorityManager(store, authority_name="Test CA")


@pytest.fixture
def read_index(store):
    def _read(location=StoreLocation.USER):
        path = os.path.join(store.paths[location], INDEX_FILE)
        if not os.path.exists(path):
            return {}
        with open(path) as f:
            return json.load(f)

    return _read
