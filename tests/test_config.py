"""Tests for config — defaults, provider credentials, model overrides, masking."""

import pytest

from studymate.config import Settings, get_settings, reset_settings


class TestSettings:
    """Tests for the Settings configuration class."""

    def test_defaults(self):
        s = Settings(openai_api_key="")
        assert s.ai_features_enabled is True
        assert s.ai_text_provider == "openai"
        assert s.openai_base_url == "https://api.openai.com/v1"
        assert s.ai_max_retries == 3
        assert s.ai_timeout == 60.0
        assert s.ai_rate_limit_delay > s.ai_retry_max_delay

    def test_provider_credentials(self):
        s = Settings(groq_api_key="gsk-abc", groq_base_url="https://api.groq.com/openai/v1/")
        base_url, key = s.provider_credentials("GROQ")
        assert base_url == "https://api.groq.com/openai/v1"
        assert key == "gsk-abc"

    def test_placeholder_key_counts_as_unset(self):
        s = Settings(openai_api_key="YOUR_OPENAI_API_KEY_HERE")
        assert s.provider_credentials("openai")[1] == ""

    def test_provider_credentials_unknown(self):
        with pytest.raises(ValueError, match="Unknown AI provider"):
            Settings().provider_credentials("anthropic")

    def test_parse_ai_models_empty(self):
        assert Settings(ai_models="").parse_ai_models() == []

    def test_parse_ai_models(self):
        s = Settings(ai_models="chat=gpt-4o-mini, generation=llama-3.3-70b@Groq,,bad-entry,=x")
        items = s.parse_ai_models()
        assert items == [
            {"task": "CHAT", "model": "gpt-4o-mini", "provider": ""},
            {"task": "GENERATION", "model": "llama-3.3-70b", "provider": "groq"},
        ]

    def test_as_display_dict_masks_keys(self):
        s = Settings(openai_api_key="sk-abcdef123456", groq_api_key="abc", openrouter_api_key="")
        d = s.as_display_dict()
        assert "abcdef" not in d["OPENAI_API_KEY"]
        assert d["OPENAI_API_KEY"].endswith("3456")
        assert d["GROQ_API_KEY"] == "***"
        assert d["OPENROUTER_API_KEY"] == "(not set)"

    def test_as_display_dict_never_contains_full_key(self):
        key = "sk-proj-very-secret-value"
        d = Settings(openai_api_key=key).as_display_dict()
        assert all(key not in value for value in d.values())


class TestResetSettings:
    def test_reset_clears_cache(self):
        reset_settings()
        s1 = get_settings()
        assert get_settings() is s1
        reset_settings()
        s2 = get_settings()
        assert s2 is not s1
        reset_settings()  # cleanup
