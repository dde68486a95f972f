"""
Tests for `llm_cloud/provider.py`: provider routing, API key lookup and client construction.

Building an AsyncOpenAI client performs no network I/O, so real clients are created here.
"""

import pytest
from openai import AsyncOpenAI

from proactive_chat.llm_cloud import provider

KEY_VARS = ["OPENROUTER_API_KEY", "LLM_API_KEY", "OPENAI_API_KEY"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in KEY_VARS:
        monkeypatch.delenv(name, raising=False)


def _config(provider_name="openrouter"):
    return {
        "llm": {
            "provider": provider_name,
            "base_url": "https://openrouter.ai/api/v1",
            "timeout": 12,
            "app_title": "Proactive Chatbot",
            "app_referer": "http://localhost:5173",
        }
    }


def test_require_any_env_prefers_first_set(monkeypatch):
    monkeypatch.setenv("LLM_API_KEY", "fallback")
    assert provider.require_any_env(["OPENROUTER_API_KEY", "LLM_API_KEY"]) == ("LLM_API_KEY", "fallback")

    monkeypatch.setenv("OPENROUTER_API_KEY", "primary")
    assert provider.require_any_env(["OPENROUTER_API_KEY", "LLM_API_KEY"]) == ("OPENROUTER_API_KEY", "primary")


def test_require_any_env_missing_raises():
    with pytest.raises(RuntimeError, match="OPENROUTER_API_KEY, LLM_API_KEY"):
        provider.require_any_env(["OPENROUTER_API_KEY", "LLM_API_KEY"])


def test_unsupported_provider_raises(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "key")
    with pytest.raises(ValueError, match="Unsupported LLM provider"):
        provider.validate_env_for_provider(_config("nebius"))


def test_get_provider_normalizes_name():
    assert provider.get_provider(_config(" OpenRouter ")) == "openrouter"
    assert provider.get_provider({}) == "openrouter"


def test_get_client_openrouter(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "test-key")

    client = provider.get_client(_config())

    assert isinstance(client, AsyncOpenAI)
    assert client.api_key == "test-key"
    assert "openrouter.ai/api/v1" in str(client.base_url)
    assert client.max_retries == 0
    assert client.default_headers["X-Title"] == "Proactive Chatbot"
    assert client.default_headers["HTTP-Referer"] == "http://localhost:5173"


def test_get_client_openai(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    client = provider.get_client(_config("openai"))

    assert "api.openai.com" in str(client.base_url)
    assert "X-Title" not in client.default_headers


def test_get_client_without_key_raises():
    with pytest.raises(RuntimeError):
        provider.get_client(_config())
