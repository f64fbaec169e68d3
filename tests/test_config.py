"""Unit tests for configuration handling."""

import pytest

from cloudstore.config import (
    API_KEY_HEADER,
    CONFIG_KEYS,
    DEFAULT_API_URL,
    ClientConfig,
    ConfigStore,
    Credential,
    is_sensitive_key,
    mask_value,
    normalize_key,
)
from cloudstore.exceptions import CloudStoreConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Make sure no CLOUD_STORAGE_* variable leaks into the tests."""
    monkeypatch.delenv("CLOUD_STORAGE_CONFIG", raising=False)
    for key in CONFIG_KEYS:
        monkeypatch.delenv(f"CLOUD_STORAGE_{key.upper()}", raising=False)


@pytest.fixture
def store(tmp_path):
    return ConfigStore(tmp_path / "cli" / "config")


class TestCredential:
    """Tests for Credential."""

    def test_api_key_precedence(self):
        credential = Credential(api_key="key", access_token="token")
        assert credential.auth_headers() == {API_KEY_HEADER: "key"}
        assert credential.kind == "api_key"

    def test_token(self):
        credential = Credential(access_token="token")
        assert credential.auth_headers() == {"Authorization": "Bearer token"}
        assert credential.kind == "token"

    def test_empty(self):
        assert Credential().auth_headers() == {}
        assert Credential().kind == "none"


class TestClientConfig:
    """Tests for ClientConfig."""

    def test_defaults(self):
        config = ClientConfig()
        assert config.base_url == DEFAULT_API_URL
        assert config.timeout == 30.0

    def test_with_overrides(self):
        config = ClientConfig(credential=Credential(access_token="tok"))
        updated = config.with_overrides(api_url="https://api.example.com", api_key="k")
        assert updated.base_url == "https://api.example.com"
        assert updated.credential == Credential(api_key="k", access_token="tok")
        # original is unchanged
        assert config.base_url == DEFAULT_API_URL

    def test_with_no_overrides(self):
        config = ClientConfig()
        assert config.with_overrides() == config


class TestKeyHelpers:
    """Tests for key normalization and masking."""

    @pytest.mark.parametrize(
        "key", ["api_url", "api-url", "apiUrl", "API_URL", " api-url "]
    )
    def test_normalize_key(self, key):
        assert normalize_key(key) == "api_url"

    def test_unknown_key(self):
        with pytest.raises(CloudStoreConfigError, match="unknown config key"):
            normalize_key("timeout")

    def test_is_sensitive_key(self):
        assert is_sensitive_key("api-key")
        assert is_sensitive_key("accessToken")
        assert not is_sensitive_key("api_url")
        assert not is_sensitive_key("bogus")

    @pytest.mark.parametrize(
        "value,expected",
        [("", "(not set)"), ("short", "***"), ("abcd1234efgh5678", "abcd...5678")],
    )
    def test_mask_value(self, value, expected):
        assert mask_value(value) == expected


class TestConfigStore:
    """Tests for the settings file."""

    def test_defaults_without_file(self, store):
        settings = store.load()
        assert settings.api_url == DEFAULT_API_URL
        assert settings.api_key == ""
        assert settings.access_token == ""

    def test_set_and_get(self, store):
        store.set_value("api-url", "https://api.example.com")
        assert store.get_config_path().exists()
        assert store.get_value("api_url") == "https://api.example.com"
        assert "API_URL=https://api.example.com" in store.get_config_path().read_text()

    def test_value_with_dollar_sign(self, store):
        store.set_value("api_key", "ab$cd${EF}")
        assert store.get_value("api_key") == "ab$cd${EF}"

    def test_empty_value_unsets(self, store):
        store.set_value("api_key", "secret-key")
        store.set_value("api_key", "")
        assert store.get_value("api_key") == ""

    def test_unknown_key_rejected(self, store):
        with pytest.raises(CloudStoreConfigError):
            store.set_value("colour", "blue")

    def test_tokens(self, store):
        store.save_tokens("access", "refresh")
        assert store.get_stored_tokens() == ("access", "refresh")
        store.clear_tokens()
        assert store.get_stored_tokens() == ("", "")

    def test_environment_overrides_file(self, store, monkeypatch):
        store.set_value("api_url", "http://from-file")
        monkeypatch.setenv("CLOUD_STORAGE_API_URL", "http://from-env")
        monkeypatch.setenv("CLOUD_STORAGE_API_KEY", "env-key")
        settings = store.load()
        assert settings.api_url == "http://from-env"
        assert settings.api_key == "env-key"

    def test_config_path_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CLOUD_STORAGE_CONFIG", str(tmp_path / "custom"))
        assert ConfigStore().get_config_path() == tmp_path / "custom"

    def test_default_config_path(self, tmp_path, monkeypatch):
        monkeypatch.setattr("pathlib.Path.home", lambda: tmp_path)
        assert ConfigStore().get_config_path() == tmp_path / ".cloud-storage-cli" / "config"

    def test_client_config(self, store):
        store.set_value("api_url", "https://api.example.com")
        store.save_tokens("tok", "ref")
        config = store.client_config()
        assert config.base_url == "https://api.example.com"
        assert config.credential == Credential(access_token="tok")

    def test_client_config_overrides(self, store):
        store.save_tokens("tok", "ref")
        config = store.client_config(api_url="http://other", api_key="k")
        assert config.base_url == "http://other"
        assert config.credential.auth_headers() == {API_KEY_HEADER: "k"}
