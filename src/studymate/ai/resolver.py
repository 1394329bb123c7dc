"""Configuration resolver — provider, model and prompt lookup.

Pure lookups over an injected Settings value: no I/O, no network, safe to call
synchronously and repeatedly.
"""

from __future__ import annotations

import logging

from studymate.ai.errors import ConfigError
from studymate.ai.models import (
    Capability,
    Feature,
    ModelSpec,
    PromptConfig,
    ProviderConfig,
    ProviderId,
    RetryPolicy,
    Task,
)
from studymate.ai.prompts import PROMPTS
from studymate.config import Settings, get_settings

logger = logging.getLogger(__name__)

DEFAULT_MODELS: dict[ProviderId, dict[Task, ModelSpec]] = {
    ProviderId.OPENAI: {
        Task.CHAT: ModelSpec("gpt-3.5-turbo", max_tokens=1000, temperature=0.7),
        Task.ANALYSIS: ModelSpec("gpt-3.5-turbo-1106", max_tokens=1000, temperature=0.3),
        Task.GENERATION: ModelSpec("gpt-3.5-turbo-1106", max_tokens=1000, temperature=0.3),
        Task.IMAGE: ModelSpec("dall-e-3", max_tokens=0, temperature=0.0),
        Task.AUDIO: ModelSpec("whisper-1", max_tokens=0, temperature=0.0),
    },
    ProviderId.GROQ: {
        Task.CHAT: ModelSpec("llama-3.1-8b-instant", max_tokens=1000, temperature=0.7),
        Task.ANALYSIS: ModelSpec("llama-3.3-70b-versatile", max_tokens=1000, temperature=0.3),
        Task.GENERATION: ModelSpec("llama-3.3-70b-versatile", max_tokens=1000, temperature=0.3),
        Task.AUDIO: ModelSpec("whisper-large-v3", max_tokens=0, temperature=0.0),
    },
    ProviderId.OPENROUTER: {
        Task.CHAT: ModelSpec("openai/gpt-4o-mini", max_tokens=1000, temperature=0.7),
        Task.ANALYSIS: ModelSpec("openai/gpt-4o-mini", max_tokens=1000, temperature=0.3),
        Task.GENERATION: ModelSpec("openai/gpt-4o-mini", max_tokens=1000, temperature=0.3),
    },
}

# Used when the text provider cannot serve a capability and none is configured.
FALLBACK_PROVIDER = ProviderId.OPENAI


def _provider_id(name: str, setting: str) -> ProviderId:
    try:
        return ProviderId(name.strip().lower())
    except ValueError:
        available = ", ".join(p.value for p in ProviderId)
        raise ConfigError(
            f"{setting}={name!r} is not a known provider (available: {available})"
        ) from None


class ConfigResolver:
    """Resolves provider, model, prompt and retry settings for AI calls."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    # ── Providers ─────────────────────────────────────────────────────

    def get_active_provider(self, capability: Capability) -> ProviderId:
        """Provider assigned to a capability class.

        IMAGE and AUDIO use their explicit setting when present; otherwise the
        text provider if it supports the capability, else the fallback.
        """
        text_provider = _provider_id(self.settings.ai_text_provider, "AI_TEXT_PROVIDER")
        if capability is Capability.TEXT:
            return text_provider

        override = {
            Capability.IMAGE: (self.settings.ai_image_provider, "AI_IMAGE_PROVIDER"),
            Capability.AUDIO: (self.settings.ai_audio_provider, "AI_AUDIO_PROVIDER"),
        }[capability]
        if override[0]:
            return _provider_id(override[0], override[1])
        if capability in text_provider.capabilities:
            return text_provider
        return FALLBACK_PROVIDER

    def get_active_provider_config(self, capability: Capability) -> ProviderConfig:
        """Resolve the provider for ``capability`` with credentials and models.

        Raises:
            ConfigError: the provider lacks the capability or has no API key.
        """
        provider = self.get_active_provider(capability)
        if capability not in provider.capabilities:
            raise ConfigError(
                f"Provider {provider.value!r} does not support {capability.value} requests"
            )

        base_url, api_key = self.settings.provider_credentials(provider.value)
        if not api_key:
            raise ConfigError(
                f"{provider.value.upper()}_API_KEY is not set; AI features are unavailable"
            )

        models = {task: self.get_model_config(task, provider) for task in Task}
        return ProviderConfig(provider=provider, base_url=base_url, api_key=api_key, models=models)

    # ── Models / prompts ──────────────────────────────────────────────

    def get_model_config(self, task: Task | str, provider: ProviderId | None = None) -> ModelSpec:
        """Model spec for a task on a provider (the task's active provider by default).

        Unknown task names fall back to ANALYSIS. A task the provider has no
        default for also falls back to the provider's ANALYSIS spec.
        """
        task = Task.parse(task)
        if provider is None:
            provider = self.get_active_provider(task.capability)

        defaults = DEFAULT_MODELS[provider]
        spec = defaults.get(task) or defaults[Task.default()]

        for override in self.settings.parse_ai_models():
            if override["task"] != task.value:
                continue
            if override["provider"] and override["provider"] != provider.value:
                continue
            spec = ModelSpec(override["model"], spec.max_tokens, spec.temperature)
        return spec

    def get_ai_prompt_config(self, feature: Feature | str) -> PromptConfig:
        """Prompt config for a feature; unknown names fall back to SUMMARY."""
        return PROMPTS[Feature.parse(feature)]

    def get_retry_policy(self, task: Task | str) -> RetryPolicy:
        task = Task.parse(task)
        max_retries = self.settings.ai_max_retries
        if task is Task.AUDIO:
            max_retries = min(max_retries, self.settings.ai_audio_max_retries)
        return RetryPolicy(
            max_retries=max_retries,
            base_delay=self.settings.ai_retry_base_delay,
            max_delay=self.settings.ai_retry_max_delay,
            rate_limit_delay=self.settings.ai_rate_limit_delay,
            rate_limit_max_delay=self.settings.ai_rate_limit_max_delay,
        )
