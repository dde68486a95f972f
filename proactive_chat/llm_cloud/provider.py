"""
provider.py – External LLM client with provider routing and validation.
-----------------------------------------------------------------------
In the overall data-flow this file sits at the infrastructure layer.
It is the single place where we build the client for the external chat-completion platform
(OpenRouter's OpenAI-compatible endpoint by default, or OpenAI itself).

• Keeps third-party SDK initialisation separate from the gateway's prompt logic.
• Offers a tiny, easily mockable `get_client()` function instead of a global singleton.
  Tests inject a fake client into the gateway without importing heavy objects.
• Validation happens at client creation time (not import time): a missing API key does not
  prevent the application from starting, it fails the first LLM call instead.

Provider routing logic:
- "openrouter": OpenRouter endpoint with OPENROUTER_API_KEY or LLM_API_KEY
- "openai": OpenAI's official API with OPENAI_API_KEY
- Unsupported providers raise ValueError with clear error message
"""

import logging
import os
from typing import Dict, List, Optional, Tuple

from openai import AsyncOpenAI
from proactive_chat.config import CONFIG

logger = logging.getLogger(__name__)

PROVIDER_KEYS = {
    "openrouter": ["OPENROUTER_API_KEY", "LLM_API_KEY"],
    "openai": ["OPENAI_API_KEY"],
}

DEFAULT_BASE_URLS = {
    "openrouter": "https://openrouter.ai/api/v1",
    "openai": "https://api.openai.com/v1",
}


def require_any_env(var_names: List[str]) -> Tuple[str, str]:
    """
    Check that at least one of the specified environment variables is present and non-empty.

    The function never logs or returns the name of a variable together with its value in
    log output; callers only log the selected variable name.

    Args:
        var_names (List[str]): Environment variable names to check, in order of preference.

    Returns:
        Tuple[str, str]: (selected_var_name, value) for the first variable that is set.

    Raises:
        RuntimeError: If none of the variables are present or all are empty.
    """
    for var_name in var_names:
        value = os.getenv(var_name, "")
        if value:
            return var_name, value

    var_list = ", ".join(var_names)
    raise RuntimeError(
        f"Missing required environment variable. Set one of: {var_list}"
    )


def get_provider(config: Dict) -> str:
    """Return the normalized provider name from the 'llm' config section."""
    return (config.get("llm", {}) or {}).get("provider", "openrouter").strip().lower()


def validate_env_for_provider(config: Dict) -> str:
    """
    Validate that the API key for the configured provider is present.

    Args:
        config (Dict): Configuration with an 'llm' section holding 'provider'.

    Returns:
        str: The API key to authenticate with.

    Raises:
        ValueError: If the provider is not supported.
        RuntimeError: If the provider's API key environment variables are missing.
    """
    provider = get_provider(config)
    if provider not in PROVIDER_KEYS:
        raise ValueError(f"Unsupported LLM provider: {provider}")

    selected_var, api_key = require_any_env(PROVIDER_KEYS[provider])
    logger.info("LLM provider selected: %s | using environment variable: %s", provider, selected_var)
    return api_key


def get_client(config: Optional[Dict] = None) -> AsyncOpenAI:
    """
    Build and return a configured async OpenAI-compatible client.

    The client authenticates with a bearer token taken from the environment and, for
    OpenRouter, sends the attribution headers OpenRouter uses to identify the application.
    SDK retries default to zero: the conversation engine does not retry generations.

    Args:
        config (Optional[Dict]): Configuration mapping; defaults to the global CONFIG.

    Returns:
        AsyncOpenAI: A ready-to-use client for the selected provider.

    Raises:
        RuntimeError: If the API key is missing.
        ValueError: If an unsupported provider is configured.
    """
    config = config or CONFIG
    api_key = validate_env_for_provider(config)

    llm_config = config.get("llm", {})
    provider = get_provider(config)
    if provider == "openai":
        base_url = DEFAULT_BASE_URLS["openai"]
    else:
        base_url = llm_config.get("base_url", DEFAULT_BASE_URLS[provider])

    default_headers = {}
    if provider == "openrouter":
        default_headers = {
            "HTTP-Referer": llm_config.get("app_referer", "http://localhost"),
            "X-Title": llm_config.get("app_title", "Proactive Chatbot"),
        }

    logger.info("Building LLM client | provider=%s | base_url=%s", provider, base_url)
    return AsyncOpenAI(
        base_url=base_url,
        api_key=api_key,
        timeout=llm_config.get("timeout", 30),  # seconds
        max_retries=llm_config.get("max_retries", 0),
        default_headers=default_headers or None,
    )
