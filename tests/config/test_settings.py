"""Tests for configuration loading, paths and credential files."""

from __future__ import annotations

import stat

import msgspec

from tokenbar.config import paths
from tokenbar.config.credentials import check_credential_permissions
from tokenbar.config.credentials import read_credential
from tokenbar.config.credentials import write_credential
from tokenbar.config.settings import Config
from tokenbar.config.settings import get_config
from tokenbar.config.settings import load_config
from tokenbar.config.settings import reload_config
from tokenbar.config.settings import save_config


class TestConfig:
    """Tests for Config loading."""

    def test_defaults(self):
        config = Config()
        assert config.fetch.timeout == 15.0
        assert config.fetch.app_server_timeout == 10.0
        assert config.poll.default_interval == 300
        assert config.credentials.keyring_service == "tokenbar"

    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_config(tmp_path / "missing.toml") == Config()

    def test_load_from_toml(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[fetch]\ntimeout = 5.0\n\n[poll]\ndefault_interval = 60\n")

        config = load_config(path)
        assert config.fetch.timeout == 5.0
        assert config.fetch.app_server_timeout == 10.0
        assert config.poll.default_interval == 60

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TOKENBAR_FETCH_TIMEOUT", "3.5")
        monkeypatch.setenv("TOKENBAR_KEYRING_SERVICE", "other")

        config = load_config(tmp_path / "missing.toml")
        assert config.fetch.timeout == 3.5
        assert config.credentials.keyring_service == "other"

    def test_invalid_env_timeout_ignored(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TOKENBAR_FETCH_TIMEOUT", "soon")
        assert load_config(tmp_path / "missing.toml").fetch.timeout == 15.0

    def test_save_omits_defaults(self, tmp_path):
        path = tmp_path / "config.toml"
        config = msgspec.convert({"poll": {"default_interval": 120}}, type=Config)

        save_config(config, path)

        text = path.read_text()
        assert "default_interval = 120" in text
        assert "timeout" not in text
        assert load_config(path) == config

    def test_save_updates_singleton(self, tmp_path):
        config = msgspec.convert({"fetch": {"timeout": 2.0}}, type=Config)
        save_config(config, tmp_path / "config.toml")
        assert get_config() is config

    def test_reload_reads_config_dir(self, tmp_path):
        config_path = tmp_path / "config" / "config.toml"
        config_path.parent.mkdir(parents=True)
        config_path.write_text("[fetch]\ntimeout = 7.0\n")

        assert reload_config().fetch.timeout == 7.0


class TestPaths:
    """Tests for platform paths."""

    def test_env_overrides(self, tmp_path):
        assert paths.config_dir() == tmp_path / "config"
        assert paths.cache_dir() == tmp_path / "cache"
        assert paths.config_file() == tmp_path / "config" / "config.toml"
        assert paths.workspace_cache_file() == tmp_path / "cache" / "codex-workspaces.json"

    def test_ensure_directories(self, tmp_path, monkeypatch):
        monkeypatch.setattr(paths, "state_dir", lambda: tmp_path / "state")
        paths.ensure_directories()
        assert (tmp_path / "config").is_dir()
        assert (tmp_path / "cache").is_dir()
        assert (tmp_path / "state").is_dir()


class TestCredentialFiles:
    """Tests for credential file helpers."""

    def test_write_is_private(self, tmp_path):
        path = tmp_path / "creds" / "auth.json"
        write_credential(path, b'{"token": "x"}')

        assert read_credential(path) == b'{"token": "x"}'
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert check_credential_permissions(path)

    def test_read_missing(self, tmp_path):
        assert read_credential(tmp_path / "missing.json") is None

    def test_world_readable_flagged(self, tmp_path):
        path = tmp_path / "auth.json"
        path.write_text("{}")
        path.chmod(0o644)
        assert not check_credential_permissions(path)
