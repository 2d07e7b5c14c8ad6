"""Tests for settings validation."""

import pytest

from app.core.config import Settings

PRODUCTION_KEYS = {
    "app_env": "production",
    "admin_api_key": "secret",
    "sanity_project_id": "abc123",
    "sanity_api_token": "token",
    "openai_api_key": "sk-test",
}


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **{**PRODUCTION_KEYS, **overrides})


def test_production_with_credentials():
    settings = make_settings()
    assert settings.embeddings_enabled is True


@pytest.mark.parametrize(
    "missing,message",
    [
        ("admin_api_key", "ADMIN_API_KEY"),
        ("sanity_api_token", "SANITY_API_TOKEN"),
    ],
)
def test_production_requires(missing, message):
    with pytest.raises(ValueError, match=message):
        make_settings(**{missing: ""})


def test_production_requires_an_llm_key():
    with pytest.raises(ValueError, match="No LLM API keys"):
        make_settings(openai_api_key="", anthropic_api_key="")


def test_development_only_warns():
    settings = make_settings(app_env="development", admin_api_key="", openai_api_key="", anthropic_api_key="")
    assert settings.admin_api_key == ""
    assert settings.embeddings_enabled is False


def test_async_database_url():
    settings = make_settings(database_url="postgresql://u:p@db:5432/dave")
    assert settings.database_url_async == "postgresql+asyncpg://u:p@db:5432/dave"
