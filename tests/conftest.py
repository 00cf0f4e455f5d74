"""
Pytest fixtures and test configuration for amem tests.
"""

import keyring
import pytest
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

from amem.storage import SQLiteStorage

TEST_KEY = "correct horse battery staple"


class MemoryKeyring(KeyringBackend):
    """Keyring backend that keeps passwords in a dict."""

    priority = 1

    def __init__(self):
        super().__init__()
        self.passwords = {}

    def set_password(self, service, username, password):
        self.passwords[(service, username)] = password

    def get_password(self, service, username):
        return self.passwords.get((service, username))

    def delete_password(self, service, username):
        try:
            del self.passwords[(service, username)]
        except KeyError:
            raise PasswordDeleteError("password not found")


@pytest.fixture(autouse=True)
def memory_keyring():
    """Swap the OS keychain for an in-memory backend for every test."""
    previous = keyring.get_keyring()
    backend = MemoryKeyring()
    keyring.set_keyring(backend)
    yield backend
    keyring.set_keyring(previous)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point HOME and XDG_CONFIG_HOME into tmp_path and run from a scratch cwd."""
    home = tmp_path / "home"
    home.mkdir()
    workdir = tmp_path / "work"
    workdir.mkdir()

    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.delenv("AMEM_ENCRYPTION_KEY", raising=False)
    monkeypatch.delenv("AMEM_LOG_LEVEL", raising=False)
    monkeypatch.chdir(workdir)
    return workdir


@pytest.fixture
def db_path(tmp_path):
    """Location for a store file that does not exist yet."""
    return tmp_path / "data" / "amem.db"


@pytest.fixture
def storage(db_path):
    """A freshly created, fully migrated store."""
    storage = SQLiteStorage.init(db_path, TEST_KEY)
    yield storage
    storage.close()
