"""Tests for ``ConfigurationStore`` and ``SecretCipher``."""

from __future__ import annotations

import json

import pytest
from config.cipher import SecretCipher
from config.store import ConfigurationStore, SettingKey
from cryptography.fernet import Fernet
from entities.shared.errors import ConfigurationError


class TestDefaults:
    """Values fall back to the environment-backed settings."""

    def test_missing_file_uses_defaults(self, test_settings) -> None:
        """Without a settings file every key has its default."""
        store = ConfigurationStore(test_settings)

        assert store.get_setting(SettingKey.PROVIDER) == "OpenAI"
        assert store.get_setting(SettingKey.OLLAMA_MODEL) == "llama2"
        assert store.max_rows() == 1000

    def test_unknown_key_returns_default(self, test_settings) -> None:
        """A key with no value anywhere returns the caller's default."""
        store = ConfigurationStore(test_settings)
        assert store.get_setting("ConnectionStrings:Reporting", "none") == "none"


class TestSetAndSave:
    """Writes, validation and persistence."""

    async def test_round_trip(self, test_settings) -> None:
        """Saved values are visible to a new store over the same file."""
        store = ConfigurationStore(test_settings)
        store.set_setting(SettingKey.PROVIDER, "ollama")
        store.set_setting(SettingKey.MAX_ROWS, "250")
        store.set_setting("ConnectionStrings:Reporting", "DSN=reporting")
        await store.save()

        reloaded = ConfigurationStore(test_settings)
        assert reloaded.get_setting(SettingKey.PROVIDER) == "Ollama"
        assert reloaded.max_rows() == 250
        assert reloaded.get_setting("ConnectionStrings:Reporting") == "DSN=reporting"

    def test_unknown_provider_rejected(self, test_settings) -> None:
        """Only supported provider names can be saved."""
        store = ConfigurationStore(test_settings)
        with pytest.raises(ConfigurationError, match="Unknown LLM provider"):
            store.set_setting(SettingKey.PROVIDER, "Bard")

    def test_non_integer_max_rows_rejected(self, test_settings) -> None:
        """The row cap must be an integer."""
        store = ConfigurationStore(test_settings)
        with pytest.raises(ConfigurationError):
            store.set_setting(SettingKey.MAX_ROWS, "lots")

    def test_unknown_key_rejected(self, test_settings) -> None:
        """Keys outside the namespace are refused."""
        store = ConfigurationStore(test_settings)
        with pytest.raises(ConfigurationError, match="Unknown setting key"):
            store.set_setting("Bot:Colour", "blue")

    @pytest.mark.parametrize("value", [0, -10])
    def test_non_positive_max_rows_resolves_to_default(self, test_settings, value) -> None:
        """Stored but non-positive caps resolve to 1000."""
        store = ConfigurationStore(test_settings)
        store.set_setting(SettingKey.MAX_ROWS, value)
        assert store.max_rows() == 1000


class TestBatchUpdate:
    """``update`` applies a batch of settings or none of them."""

    def test_applies_batch(self, test_settings) -> None:
        """Every value in a valid batch is stored."""
        store = ConfigurationStore(test_settings)
        store.update({
            SettingKey.PROVIDER.value: "gemini",
            SettingKey.GEMINI_API_KEY.value: "g-key",
            SettingKey.MAX_ROWS.value: 200,
        })

        assert store.get_setting(SettingKey.PROVIDER) == "Gemini"
        assert store.get_setting(SettingKey.GEMINI_API_KEY) == "g-key"
        assert store.max_rows() == 200

    def test_invalid_value_rolls_back_earlier_ones(self, test_settings) -> None:
        """A rejected value leaves the whole batch unapplied."""
        store = ConfigurationStore(test_settings)
        with pytest.raises(ConfigurationError, match="Unknown LLM provider"):
            store.update({SettingKey.MAX_ROWS.value: 50, SettingKey.PROVIDER.value: "Bard"})

        assert store.max_rows() == 1000
        assert store.get_setting(SettingKey.PROVIDER) == "OpenAI"

    def test_provider_credential_required(self, test_settings) -> None:
        """Selecting a provider without its API key is refused."""
        store = ConfigurationStore(test_settings)
        with pytest.raises(ConfigurationError, match="Bot:Gemini:ApiKey is required"):
            store.update({SettingKey.PROVIDER.value: "Gemini"})

        assert store.get_setting(SettingKey.PROVIDER) == "OpenAI"

    def test_blank_connection_string_rejected(self, test_settings) -> None:
        """The default connection string cannot be cleared."""
        store = ConfigurationStore(test_settings)
        with pytest.raises(ConfigurationError, match="connection string is required"):
            store.update({
                SettingKey.OPENAI_API_KEY.value: "sk-test",
                SettingKey.CONNECTION_STRING.value: "",
            })

        assert store.get_setting(SettingKey.OPENAI_API_KEY) == ""


class TestEncryption:
    """API keys are encrypted at rest."""

    async def test_api_key_encrypted_on_disk(self, test_settings) -> None:
        """The file holds a token; reads return plaintext."""
        store = ConfigurationStore(test_settings)
        store.set_setting(SettingKey.OPENAI_API_KEY, "sk-secret")
        await store.save()

        raw = json.loads(store.path.read_text(encoding="utf-8"))
        assert raw["Bot:OpenAI:ApiKey"] != "sk-secret"
        assert "sk-secret" not in store.path.read_text(encoding="utf-8")
        assert ConfigurationStore(test_settings).get_setting(SettingKey.OPENAI_API_KEY) == "sk-secret"

    def test_plaintext_value_tolerated(self, test_settings) -> None:
        """A hand-written plaintext key is returned as stored."""
        with open(test_settings.settings_file, "w", encoding="utf-8") as handle:
            json.dump({"Bot:Gemini:ApiKey": "plain-key"}, handle)

        store = ConfigurationStore(test_settings)
        assert store.get_setting(SettingKey.GEMINI_API_KEY) == "plain-key"


class TestMalformedFile:
    """A broken settings file is a configuration error."""

    def test_invalid_json(self, test_settings) -> None:
        """Unparseable JSON raises ConfigurationError."""
        with open(test_settings.settings_file, "w", encoding="utf-8") as handle:
            handle.write("{not json")

        with pytest.raises(ConfigurationError, match="Malformed settings file"):
            ConfigurationStore(test_settings)

    def test_non_object(self, test_settings) -> None:
        """A JSON array is not a settings object."""
        with open(test_settings.settings_file, "w", encoding="utf-8") as handle:
            json.dump([1, 2], handle)

        with pytest.raises(ConfigurationError):
            ConfigurationStore(test_settings)


class TestSecretCipher:
    """Key handling."""

    def test_key_file_created_and_reused(self, tmp_path) -> None:
        """A generated key is persisted and decrypts later tokens."""
        key_file = tmp_path / "keys" / "settings.key"
        token = SecretCipher(key_file=key_file).encrypt("hello")

        assert key_file.exists()
        assert SecretCipher(key_file=key_file).decrypt(token) == "hello"

    def test_wrong_key_returns_token(self) -> None:
        """A token from another key is returned unchanged."""
        token = SecretCipher(key=Fernet.generate_key().decode()).encrypt("hello")
        other = SecretCipher(key=Fernet.generate_key().decode())
        assert other.decrypt(token) == token
