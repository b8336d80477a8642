import pytest

from context_store.config import Settings, resolve_embedding_config
from context_store.embeddings import DEFAULT_API_URL, DEFAULT_MODEL, DEFAULT_TIMEOUT_MILLIS


def test_explicit_values_win_over_environment():
    env = {"OLLAMA_API_URL": "http://env:11434", "OLLAMA_MODEL": "env-model", "OLLAMA_TIMEOUT_MS": "1000"}
    config = resolve_embedding_config(
        api_url="http://custom:11434", model="custom-model", timeout_millis=2000, environ=env
    )

    assert config.api_url == "http://custom:11434"
    assert config.model == "custom-model"
    assert config.timeout_millis == 2000


def test_environment_used_when_no_explicit_value():
    env = {"OLLAMA_API_URL": "http://env:11434", "OLLAMA_MODEL": "env-model", "OLLAMA_TIMEOUT_MS": "1000"}
    config = resolve_embedding_config(environ=env)

    assert config.api_url == "http://env:11434"
    assert config.model == "env-model"
    assert config.timeout_millis == 1000


def test_defaults_when_neither_config_nor_environment():
    config = resolve_embedding_config(environ={})

    assert config.api_url == DEFAULT_API_URL
    assert config.model == DEFAULT_MODEL
    assert config.timeout_millis == DEFAULT_TIMEOUT_MILLIS == 30000


def test_invalid_timeout_is_rejected():
    with pytest.raises(ValueError, match="OLLAMA_TIMEOUT_MS"):
        resolve_embedding_config(environ={"OLLAMA_TIMEOUT_MS": "soon"})


def test_settings_from_env():
    settings = Settings.from_env(
        {
            "CONTEXT_STORE_PATH": "/tmp/contexts",
            "CONTEXT_STORE_ENCRYPTION_KEY": "secret",
            "CONTEXT_STORE_LOG_LEVEL": "debug",
            "OLLAMA_MODEL": "env-model",
        }
    )

    assert settings.storage_path == "/tmp/contexts"
    assert settings.encryption_key == "secret"
    assert settings.log_level == "DEBUG"
    assert settings.embedding.model == "env-model"


def test_settings_defaults():
    settings = Settings.from_env({})

    assert settings.storage_path == "data/contexts"
    assert settings.encryption_key is None
    assert settings.embedding.api_url == DEFAULT_API_URL
