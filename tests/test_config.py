"""Tests for config file discovery and parsing."""

import json

import pytest

from amem.config import (
    GLOBAL_SCOPE,
    LOCAL_SCOPE,
    Config,
    discover_config,
    find_local_config,
    global_config_path,
    keyring_account_for,
    load_config,
    local_config_path,
    read_config,
    write_config,
)
from amem.keychain import set_key
from amem.types import ConfigError


class TestPaths:
    def test_global_path_honours_xdg(self, tmp_path):
        assert global_config_path() == tmp_path / "xdg" / "amem" / "config.json"

    def test_global_path_falls_back_to_home(self, tmp_path, monkeypatch):
        monkeypatch.delenv("XDG_CONFIG_HOME")
        assert global_config_path() == tmp_path / "home" / ".config" / "amem" / "config.json"

    def test_local_path(self, tmp_path):
        assert local_config_path(tmp_path) == tmp_path / ".amem" / "config.json"

    def test_keyring_accounts(self, tmp_path):
        assert keyring_account_for(global_config_path(), GLOBAL_SCOPE) == "global"
        assert keyring_account_for(local_config_path(tmp_path), LOCAL_SCOPE) == f"local:{tmp_path}"


class TestReadWrite:
    def test_round_trip(self, tmp_path):
        path = tmp_path / "nested" / "config.json"
        write_config(path, Config(db_path="/data/amem.db"))
        assert read_config(path) == Config(db_path="/data/amem.db")
        assert json.loads(path.read_text()) == {"db_path": "/data/amem.db"}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_config(tmp_path / "nope.json")

    @pytest.mark.parametrize("content", ["not json", "[]", "{}", '{"db_path": ""}'])
    def test_invalid_content(self, tmp_path, content):
        path = tmp_path / "config.json"
        path.write_text(content)
        with pytest.raises(ConfigError):
            read_config(path)

    def test_empty_db_path_not_written(self, tmp_path):
        with pytest.raises(ConfigError):
            write_config(tmp_path / "config.json", Config(db_path=""))


class TestDiscovery:
    def test_nothing_found(self, isolated_env):
        with pytest.raises(ConfigError, match="amem init"):
            discover_config(isolated_env)

    def test_global_used_when_no_local(self, isolated_env):
        write_config(global_config_path(), Config(db_path="/g.db"))
        assert discover_config(isolated_env) == (global_config_path(), GLOBAL_SCOPE)

    def test_local_wins_over_global(self, isolated_env):
        write_config(global_config_path(), Config(db_path="/g.db"))
        write_config(local_config_path(isolated_env), Config(db_path="/l.db"))
        assert discover_config(isolated_env) == (local_config_path(isolated_env), LOCAL_SCOPE)

    def test_local_found_from_subdirectory(self, isolated_env):
        write_config(local_config_path(isolated_env), Config(db_path="/l.db"))
        nested = isolated_env / "src" / "pkg"
        nested.mkdir(parents=True)
        assert find_local_config(nested) == local_config_path(isolated_env)


class TestLoadConfig:
    def test_loads_key_from_keychain(self, isolated_env):
        write_config(local_config_path(isolated_env), Config(db_path="/l.db"))
        set_key(f"local:{isolated_env}", "s3cret")

        loaded = load_config(isolated_env)
        assert loaded.db_path == "/l.db"
        assert loaded.encryption_key == "s3cret"
        assert loaded.scope == LOCAL_SCOPE
        assert loaded.keyring_account == f"local:{isolated_env}"

    def test_falls_back_to_env_key(self, isolated_env, monkeypatch):
        write_config(global_config_path(), Config(db_path="/g.db"))
        monkeypatch.setenv("AMEM_ENCRYPTION_KEY", "from-env")
        assert load_config(isolated_env).encryption_key == "from-env"

    def test_missing_key(self, isolated_env):
        write_config(global_config_path(), Config(db_path="/g.db"))
        with pytest.raises(ConfigError, match="AMEM_ENCRYPTION_KEY"):
            load_config(isolated_env)
