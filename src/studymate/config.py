"""Configuration management — loads .env and validates with Pydantic."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings


def _find_project_root() -> Path:
    """Walk up from CWD to find directory containing pyproject.toml or .env."""
    cwd = Path.cwd()
    for parent in [cwd, *cwd.parents]:
        if (parent / "pyproject.toml").exists() or (parent / ".env").exists():
            return parent
    return cwd


PROJECT_ROOT = _find_project_root()

# Load .env from project root (if it exists)
_env_path = PROJECT_ROOT / ".env"
if _env_path.exists():
    load_dotenv(_env_path)


# Sample-config values such as "YOUR_OPENAI_API_KEY_HERE".
_PLACEHOLDER_MARKERS = ("YOUR_", "HERE")


def is_placeholder_key(value: str) -> bool:
    return any(marker in value for marker in _PLACEHOLDER_MARKERS)


def _mask(secret: str) -> str:
    if not secret:
        return "(not set)"
    if len(secret) > 8:
        return f"{'*' * 8}...{secret[-4:]}"
    return "***"


class Settings(BaseSettings):
    """All StudyMate AI configuration, loaded from env vars / .env file."""

    # ── Feature flags ─────────────────────────────────────────────────
    ai_features_enabled: bool = Field(default=True, description="Master switch for AI features")
    voice_control_enabled: bool = Field(
        default=True, description="Enable audio transcription (hands-free mode)"
    )

    # ── Provider selection ────────────────────────────────────────────
    ai_text_provider: str = Field(
        default="openai", description="Provider for chat/text tasks: openai, groq, openrouter"
    )
    ai_image_provider: Optional[str] = Field(
        default=None, description="Provider for image generation (defaults from text provider)"
    )
    ai_audio_provider: Optional[str] = Field(
        default=None, description="Provider for audio transcription (defaults from text provider)"
    )

    # ── Provider credentials ──────────────────────────────────────────
    openai_api_key: str = Field(default="", description="OpenAI API key")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1", description="OpenAI API base URL"
    )
    groq_api_key: str = Field(default="", description="Groq API key")
    groq_base_url: str = Field(
        default="https://api.groq.com/openai/v1", description="Groq OpenAI-compatible base URL"
    )
    openrouter_api_key: str = Field(default="", description="OpenRouter API key")
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1", description="OpenRouter API base URL"
    )

    # ── Identification headers ────────────────────────────────────────
    app_referer_url: str = Field(
        default="https://studymate.app", description="Sent as HTTP-Referer"
    )
    app_title: str = Field(default="StudyMate", description="Sent as X-Title")

    # ── Models ────────────────────────────────────────────────────────
    ai_models: str = Field(
        default="",
        description="Comma-separated task=model overrides, e.g. 'chat=gpt-4o-mini,generation=gpt-4o@openai'",
    )

    # ── HTTP / retry ──────────────────────────────────────────────────
    ai_timeout: float = Field(default=60.0, description="Request timeout seconds")
    ai_connect_timeout: float = Field(default=10.0, description="Connect timeout seconds")
    ai_max_retries: int = Field(default=3, description="Max retries per AI request")
    ai_audio_max_retries: int = Field(
        default=1, description="Max retries for audio uploads (large payloads)"
    )
    ai_retry_base_delay: float = Field(default=1.0, description="Backoff base delay seconds")
    ai_retry_max_delay: float = Field(default=10.0, description="Backoff cap seconds")
    ai_rate_limit_delay: float = Field(
        default=30.0, description="Fixed wait after an HTTP 429 before retrying"
    )
    ai_rate_limit_max_delay: float = Field(
        default=120.0, description="Upper bound on a provider Retry-After wait"
    )

    # ── Logging ─────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/studymate.log", description="Log file path")
    log_json: bool = Field(default=False, description="Output logs in JSON")

    # Use absolute env_file path so Pydantic-settings finds it regardless of CWD
    model_config = {
        "env_file": str(_env_path),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    # ── Derived helpers ───────────────────────────────────────────────

    def provider_credentials(self, provider: str) -> tuple[str, str]:
        """Return (base_url, api_key) for a provider name.

        Placeholder keys copied from a sample config count as unset.
        """
        mapping = {
            "openai": (self.openai_base_url, self.openai_api_key),
            "groq": (self.groq_base_url, self.groq_api_key),
            "openrouter": (self.openrouter_base_url, self.openrouter_api_key),
        }
        try:
            base_url, api_key = mapping[provider.lower()]
        except KeyError:
            raise ValueError(
                f"Unknown AI provider: {provider!r}. Available: {', '.join(mapping)}"
            ) from None
        if is_placeholder_key(api_key):
            api_key = ""
        return base_url.rstrip("/"), api_key

    def parse_ai_models(self) -> list[dict[str, str]]:
        """Parse AI_MODELS into a list of override descriptors.

        Format: "chat=gpt-4o-mini,analysis=llama-3.3-70b-versatile@groq"
        A trailing "@provider" scopes the override to one provider; without it
        the override applies whichever provider is active.
        """
        raw = (self.ai_models or "").strip()
        if not raw:
            return []

        items: list[dict[str, str]] = []
        for part in raw.split(","):
            entry = part.strip()
            if not entry or "=" not in entry:
                continue
            task_part, model_part = entry.split("=", 1)
            task = task_part.strip().upper()
            model = model_part.strip()

            provider = ""
            if "@" in model:
                model, provider = (s.strip() for s in model.rsplit("@", 1))
                provider = provider.lower()

            if not task or not model:
                continue

            items.append({"task": task, "model": model, "provider": provider})

        return items

    def as_display_dict(self) -> dict[str, str]:
        """Return a sanitized dict of all config values for display."""
        return {
            "AI_FEATURES_ENABLED": str(self.ai_features_enabled),
            "VOICE_CONTROL_ENABLED": str(self.voice_control_enabled),
            "AI_TEXT_PROVIDER": self.ai_text_provider,
            "AI_IMAGE_PROVIDER": self.ai_image_provider or "(auto)",
            "AI_AUDIO_PROVIDER": self.ai_audio_provider or "(auto)",
            "OPENAI_API_KEY": _mask(self.openai_api_key),
            "OPENAI_BASE_URL": self.openai_base_url,
            "GROQ_API_KEY": _mask(self.groq_api_key),
            "GROQ_BASE_URL": self.groq_base_url,
            "OPENROUTER_API_KEY": _mask(self.openrouter_api_key),
            "OPENROUTER_BASE_URL": self.openrouter_base_url,
            "APP_REFERER_URL": self.app_referer_url,
            "APP_TITLE": self.app_title,
            "AI_MODELS": self.ai_models or "(not set)",
            "AI_TIMEOUT": str(self.ai_timeout),
            "AI_CONNECT_TIMEOUT": str(self.ai_connect_timeout),
            "AI_MAX_RETRIES": str(self.ai_max_retries),
            "AI_AUDIO_MAX_RETRIES": str(self.ai_audio_max_retries),
            "AI_RETRY_BASE_DELAY": str(self.ai_retry_base_delay),
            "AI_RETRY_MAX_DELAY": str(self.ai_retry_max_delay),
            "AI_RATE_LIMIT_DELAY": str(self.ai_rate_limit_delay),
            "AI_RATE_LIMIT_MAX_DELAY": str(self.ai_rate_limit_max_delay),
            "LOG_LEVEL": self.log_level,
            "LOG_FILE": self.log_file,
            "LOG_JSON": str(self.log_json),
        }


# ── Singleton accessor ────────────────────────────────────────────────

_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Return a cached Settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance


def reset_settings() -> None:
    """Invalidate the cached Settings so the next call to get_settings() reloads."""
    global _settings_instance
    _settings_instance = None
