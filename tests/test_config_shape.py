"""
Shape checks for the configuration package: required sections, prompts, env overrides.
"""

from proactive_chat.config import CONFIG, get_config_value


def test_llm_section_has_required_keys():
    assert "llm" in CONFIG and isinstance(CONFIG["llm"], dict)
    assert "provider" in CONFIG["llm"]
    assert "base_url" in CONFIG["llm"]
    assert CONFIG["llm"]["model"]
    models = CONFIG["llm"].get("models", {})
    for key in ["response", "proactive", "notification", "reminder", "calendar_event"]:
        assert key in models and "settings" in models[key]
        assert {"max_tokens", "temperature"} <= set(models[key]["settings"])


def test_prompts_are_loaded():
    for key in [
        "response_message",
        "proactive_message",
        "notification_message",
        "reminder_extraction_message",
        "calendar_extraction_message",
    ]:
        assert CONFIG[key]


def test_extraction_prompts_format_with_today():
    for key in ["reminder_extraction_message", "calendar_extraction_message"]:
        rendered = CONFIG[key].format(today="2025-01-01")
        assert "2025-01-01" in rendered


def test_test_environment_overrides_applied():
    assert CONFIG["logging"]["file_path"] == ""
    assert CONFIG["proactive"]["quiet_period_seconds"] == 0.05
    assert CONFIG["paths"]["conversations_full_path"].endswith("conversations")


def test_get_config_value_priority(monkeypatch):
    monkeypatch.setenv("TEST_LLM_TIMEOUT", "45")
    assert get_config_value(["llm", "timeout"], "TEST_LLM_TIMEOUT", 30) == 45

    monkeypatch.delenv("TEST_LLM_TIMEOUT")
    assert get_config_value(["llm", "provider"], "TEST_LLM_TIMEOUT", "x") == CONFIG["llm"]["provider"]
    assert get_config_value(["missing", "key"], None, "fallback") == "fallback"


def test_get_config_value_bool(monkeypatch):
    monkeypatch.setenv("TEST_FLAG", "False")
    assert get_config_value(["proactive", "enabled"], "TEST_FLAG", True) is False
