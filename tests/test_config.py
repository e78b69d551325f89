from __future__ import annotations

import os

import pytest

from switchyard import config as config_mod
from switchyard.config import (
    DEFAULT_LOCAL_URL,
    api_key_env_var,
    provider_config_from_env,
    resolve_api_key,
)
from switchyard.errors import ConfigurationError
from switchyard.types import ProviderConfig

pytestmark = pytest.mark.unit


def test_api_key_env_var_names():
    assert api_key_env_var("openai") == "OPENAI_API_KEY"
    assert api_key_env_var("anthropic") == "ANTHROPIC_API_KEY"
    assert api_key_env_var("local") == "LOCAL_LLM_API_KEY"


def test_unknown_kind_is_a_configuration_error():
    with pytest.raises(ConfigurationError) as exc_info:
        api_key_env_var("gemini")  # type: ignore[arg-type]
    assert "openai" in (exc_info.value.hint or "")


def test_explicit_key_wins_over_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")

    assert resolve_api_key("openai", ProviderConfig(api_key="sk-explicit")) == "sk-explicit"
    assert resolve_api_key("openai", ProviderConfig()) == "sk-env"


def test_empty_env_key_counts_as_missing(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "")

    assert resolve_api_key("anthropic", ProviderConfig()) is None


def test_local_config_defaults_to_well_known_url():
    cfg = provider_config_from_env("local")

    assert cfg.base_url == DEFAULT_LOCAL_URL
    assert cfg.api_key is None


def test_config_from_env_reads_urls_and_organization(monkeypatch):
    monkeypatch.setenv("LOCAL_LLM_URL", "http://gpu-box:8000/v1")
    monkeypatch.setenv("OPENAI_ORGANIZATION", "org-123")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-x")

    assert provider_config_from_env("local").base_url == "http://gpu-box:8000/v1"
    openai_cfg = provider_config_from_env("openai")
    assert openai_cfg.organization == "org-123"
    assert openai_cfg.api_key == "sk-x"
    assert provider_config_from_env("anthropic").organization is None


def test_dotenv_is_blocked_by_default():
    assert config_mod.load_environment() is False


@pytest.mark.allow_dotenv
def test_dotenv_does_not_override_existing_values(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("OPENAI_API_KEY=from-file\nLOCAL_LLM_URL=http://file/v1\n")
    monkeypatch.setenv("OPENAI_API_KEY", "from-shell")
    monkeypatch.delenv("LOCAL_LLM_URL", raising=False)

    try:
        assert config_mod.load_environment(str(env_file)) is True
        assert resolve_api_key("openai", ProviderConfig()) == "from-shell"
        assert provider_config_from_env("local").base_url == "http://file/v1"
    finally:
        os.environ.pop("LOCAL_LLM_URL", None)
