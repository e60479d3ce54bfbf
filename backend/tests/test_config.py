"""Tests for Settings loading and validation."""

import pytest
from pydantic import SecretStr, ValidationError

from smartmatch.config import Settings, get_settings


def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.embedding_dim == 768
    assert settings.similar_entries_limit == 5
    assert settings.training_min_entries == 10
    assert settings.training_min_new_entries == 5
    assert settings.ai_enabled is False


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("SMARTMATCH_EMBEDDING_DIM", "384")
    monkeypatch.setenv("SMARTMATCH_AI_API_KEY", "sk-env")
    settings = Settings(_env_file=None)
    assert settings.embedding_dim == 384
    assert settings.ai_enabled is True
    assert settings.ai_api_key.get_secret_value() == "sk-env"


def test_api_key_is_not_printed():
    settings = Settings(_env_file=None, ai_api_key=SecretStr("sk-secret"))
    assert "sk-secret" not in repr(settings)


@pytest.mark.parametrize("field", ["ai_timeout_seconds", "embedding_dim", "similar_entries_limit"])
def test_non_positive_values_rejected(field):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: 0})


def test_remote_embeddings_require_key():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, use_remote_embeddings=True)


def test_get_settings_wraps_errors(monkeypatch):
    monkeypatch.setenv("SMARTMATCH_EMBEDDING_DIM", "-1")
    with pytest.raises(RuntimeError, match="SMARTMATCH_"):
        get_settings()
