"""Study assistant request builders — chat, summary, quiz, flashcards, plan, image, audio.

Each builder follows the same shape:

1. fail fast if the feature is disabled (ConfigError, no network);
2. validate and bound-check caller input (ValidationError, no network);
3. resolve provider, model and prompt configuration;
4. compose the payload;
5. send it through the retry engine;
6-7. normalize HTTP failures / parse and shape-check the response;
8. translate anything that escapes into one user-safe AIServiceError.

Steps 1-3 raise their own (already user-safe) errors untranslated.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import os
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Mapping, Sequence, TypeVar

import httpx

from studymate.ai.client import (
    AUDIO_TRANSCRIPTIONS_PATH,
    CHAT_COMPLETIONS_PATH,
    IMAGE_GENERATIONS_PATH,
    AIHttpClient,
)
from studymate.ai.errors import ConfigError, FormatError, ValidationError, translate_error
from studymate.ai.models import (
    Capability,
    ChatMessage,
    Feature,
    ProviderId,
    Role,
    Task,
)
from studymate.ai.parser import parse_model_json
from studymate.ai.prompts import (
    build_flashcard_prompt,
    build_quiz_prompt,
    build_study_plan_prompt,
    build_summary_prompt,
)
from studymate.ai.resolver import ConfigResolver
from studymate.ai.retry import Sleep, retry_with_policy
from studymate.config import Settings, get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

CHAT_MESSAGE_MAX_CHARS = 5000
SUMMARY_MAX_CHARS = 20000

IMAGE_SIZES = ("256x256", "512x512", "1024x1024", "1792x1024", "1024x1792")
MAX_IMAGES = 4

# (sizes, max n) the OpenAI image models accept; other models get the generic bounds.
IMAGE_MODEL_LIMITS: dict[str, tuple[tuple[str, ...], int]] = {
    "dall-e-2": (("256x256", "512x512", "1024x1024"), MAX_IMAGES),
    "dall-e-3": (("1024x1024", "1792x1024", "1024x1792"), 1),
}

# Providers that accept response_format={"type": "json_object"}.
JSON_MODE_PROVIDERS = frozenset({ProviderId.OPENAI, ProviderId.GROQ})


# ── Input validation ──────────────────────────────────────────────────


def _require_text(value: Any, field: str, max_length: int | None = None) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(
            f"{field} must be a non-empty string",
            user_message=f"Please enter some {field} first.",
        )
    if max_length is not None and len(value) > max_length:
        raise ValidationError(
            f"{field} is {len(value)} characters, limit is {max_length}",
            user_message=f"The {field} is too long. Please keep it under {max_length} characters.",
        )
    return value


def _validate_chat_messages(messages: Any) -> list[ChatMessage]:
    if isinstance(messages, (str, bytes)) or not isinstance(messages, Sequence) or not messages:
        raise ValidationError(
            "messages must be a non-empty list of {role, content} items",
            user_message="Please type a message first.",
        )

    history: list[ChatMessage] = []
    for index, raw in enumerate(messages):
        try:
            message = ChatMessage.from_value(raw)
        except (AttributeError, ValueError) as exc:
            raise ValidationError(f"message {index} is invalid: {exc}") from exc
        if len(message.content) > CHAT_MESSAGE_MAX_CHARS:
            raise ValidationError(
                f"message {index} is {len(message.content)} characters, "
                f"limit is {CHAT_MESSAGE_MAX_CHARS}",
                user_message=(
                    f"Your message is too long. Please keep it under {CHAT_MESSAGE_MAX_CHARS} characters."
                ),
            )
        history.append(message)
    return history


async def _read_audio(audio: bytes | str | os.PathLike, filename: str) -> tuple[bytes, str]:
    if isinstance(audio, (bytes, bytearray)):
        content = bytes(audio)
    else:
        path = Path(audio)
        try:
            content = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise ValidationError(
                f"cannot read audio file {path}: {exc}",
                user_message="The recording could not be read. Please try again.",
            ) from exc
        filename = path.name
    if not content:
        raise ValidationError(
            "audio payload is empty",
            user_message="The recording is empty. Please try again.",
        )
    return content, filename


# ── Response extraction ───────────────────────────────────────────────


def _message_content(data: Any) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise FormatError("chat completion response has no choices[0].message.content") from exc
    if not isinstance(content, str):
        raise FormatError("chat completion content is not a string")
    return content


def _require_list(data: Any, key: str | None, feature: Feature) -> list[Any]:
    value = data.get(key) if key and isinstance(data, Mapping) else data
    if not isinstance(value, list):
        where = f"'{key}' array" if key else "top-level array"
        raise FormatError(f"Invalid {feature.value.lower()} format received from AI: expected {where}")
    return value


class StudyAssistant:
    """Builders for every AI capability of the study app.

    Configuration is injected once; nothing is cached between calls, and
    concurrent calls share no mutable state.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        self.resolver = ConfigResolver(self.settings)
        self.http = AIHttpClient(self.settings, transport=transport)
        self.sleep = sleep

    # ── Status ────────────────────────────────────────────────────────

    def is_ai_enabled(self) -> bool:
        return self.settings.ai_features_enabled is True

    def get_api_config(self) -> dict[str, Any]:
        """Current text-provider configuration, without credentials."""
        provider = self.resolver.get_active_provider(Capability.TEXT)
        base_url, api_key = self.settings.provider_credentials(provider.value)
        model = self.resolver.get_model_config(Task.CHAT, provider)
        return {
            "is_ai_enabled": self.is_ai_enabled(),
            "provider": provider.value,
            "configured": bool(api_key),
            "model": model.model,
            "max_tokens": model.max_tokens,
            "temperature": model.temperature,
            "base_url": base_url,
        }

    # ── Shared plumbing ───────────────────────────────────────────────

    def _require_enabled(self, feature: Feature) -> None:
        if not self.is_ai_enabled():
            raise ConfigError("AI features are disabled in this environment")
        if feature is Feature.TRANSCRIPTION and not self.settings.voice_control_enabled:
            raise ConfigError(
                "Voice control is disabled in this environment",
                user_message="Voice features are currently unavailable.",
            )

    async def _run(self, feature: Feature, task: Task, operation: Callable[[], Awaitable[T]]) -> T:
        """Retry ``operation`` and translate whatever escapes into a user message."""
        purpose = feature.value.lower()
        try:
            return await retry_with_policy(
                operation,
                self.resolver.get_retry_policy(task),
                sleep=self.sleep,
                purpose=purpose,
            )
        except Exception as exc:
            raise translate_error(feature, exc) from exc

    async def _complete(
        self,
        feature: Feature,
        messages: Iterable[ChatMessage],
        parse: Callable[[str], T],
    ) -> T:
        provider = self.resolver.get_active_provider_config(Capability.TEXT)
        prompt = self.resolver.get_ai_prompt_config(feature)
        model = provider.models[prompt.task]

        payload: dict[str, Any] = {
            "model": model.model,
            "messages": [m.to_payload() for m in messages],
            "max_tokens": prompt.max_tokens or model.max_tokens,
            "temperature": prompt.temperature,
        }
        if prompt.json_output and provider.provider in JSON_MODE_PROVIDERS:
            payload["response_format"] = {"type": "json_object"}

        purpose = feature.value.lower()

        async def attempt() -> T:
            data = await self.http.post_json(provider, CHAT_COMPLETIONS_PATH, payload, purpose)
            return parse(_message_content(data))

        return await self._run(feature, prompt.task, attempt)

    # ── Builders ──────────────────────────────────────────────────────

    async def get_ai_chat_response(self, messages: Sequence[ChatMessage | Mapping[str, Any]]) -> str:
        """Answer the latest turn of a conversation.

        The history is forwarded in order, with the assistant system prompt
        prepended unless the caller already supplied one.
        """
        self._require_enabled(Feature.CHAT)
        history = _validate_chat_messages(messages)
        if not any(m.role is Role.SYSTEM for m in history):
            system = self.resolver.get_ai_prompt_config(Feature.CHAT).template
            history.insert(0, ChatMessage(Role.SYSTEM, system))
        return await self._complete(Feature.CHAT, history, str.strip)

    async def summarize_text(self, text: str) -> str:
        self._require_enabled(Feature.SUMMARY)
        text = _require_text(text, "text to summarize", SUMMARY_MAX_CHARS)
        messages = [ChatMessage(Role.USER, build_summary_prompt(text))]
        return await self._complete(Feature.SUMMARY, messages, str.strip)

    async def generate_quiz(self, text: str) -> dict[str, Any]:
        """Generate a multiple-choice quiz: ``{"questions": [...]}``."""
        self._require_enabled(Feature.QUIZ)
        text = _require_text(text, "quiz source text")
        messages = [ChatMessage(Role.USER, build_quiz_prompt(text))]

        def parse(content: str) -> dict[str, Any]:
            data = parse_model_json(content)
            _require_list(data, "questions", Feature.QUIZ)
            return data

        return await self._complete(Feature.QUIZ, messages, parse)

    async def generate_flashcards(self, text: str) -> list[dict[str, Any]]:
        """Generate flashcards and return the ``flashcards`` list itself."""
        self._require_enabled(Feature.FLASHCARDS)
        text = _require_text(text, "study material")
        messages = [ChatMessage(Role.USER, build_flashcard_prompt(text))]

        def parse(content: str) -> list[dict[str, Any]]:
            return _require_list(parse_model_json(content), "flashcards", Feature.FLASHCARDS)

        return await self._complete(Feature.FLASHCARDS, messages, parse)

    async def generate_study_plan(self, subjects: str, goals: str) -> list[dict[str, Any]]:
        """Generate a day plan. The model answers with a bare JSON array."""
        self._require_enabled(Feature.STUDY_PLAN)
        subjects = _require_text(subjects, "subjects")
        goals = _require_text(goals, "goals")
        messages = [ChatMessage(Role.USER, build_study_plan_prompt(subjects, goals))]

        def parse(content: str) -> list[dict[str, Any]]:
            return _require_list(parse_model_json(content), None, Feature.STUDY_PLAN)

        return await self._complete(Feature.STUDY_PLAN, messages, parse)

    async def generate_image(self, prompt: str, size: str = "1024x1024", n: int = 1) -> str:
        """Generate an image and return the URL of the first result."""
        self._require_enabled(Feature.IMAGE)
        prompt = _require_text(prompt, "image description")
        if isinstance(n, bool) or not isinstance(n, int):
            raise ValidationError(f"image count must be an integer, got {n!r}")

        provider = self.resolver.get_active_provider_config(Capability.IMAGE)
        model = provider.models[Task.IMAGE]
        sizes, max_images = IMAGE_MODEL_LIMITS.get(model.model, (IMAGE_SIZES, MAX_IMAGES))
        if size not in sizes:
            raise ValidationError(
                f"unsupported image size {size!r} for {model.model}; use one of {', '.join(sizes)}"
            )
        if not 1 <= n <= max_images:
            raise ValidationError(f"image count for {model.model} must be between 1 and {max_images}, got {n}")

        payload = {"model": model.model, "prompt": prompt, "n": n, "size": size}

        async def attempt() -> str:
            data = await self.http.post_json(provider, IMAGE_GENERATIONS_PATH, payload, "image")
            try:
                url = data["data"][0]["url"]
            except (KeyError, IndexError, TypeError) as exc:
                raise FormatError("image response has no data[0].url") from exc
            if not isinstance(url, str) or not url:
                raise FormatError("image response url is empty")
            return url

        return await self._run(Feature.IMAGE, Task.IMAGE, attempt)

    async def transcribe_audio(
        self,
        audio: bytes | str | os.PathLike,
        filename: str = "audio.m4a",
        language: str = "en",
        prompt: str | None = None,
    ) -> str:
        """Transcribe a recording (raw bytes or a file path) to plain text."""
        self._require_enabled(Feature.TRANSCRIPTION)
        content, filename = await _read_audio(audio, filename)
        language = _require_text(language, "language")

        provider = self.resolver.get_active_provider_config(Capability.AUDIO)
        model = provider.models[Task.AUDIO]
        content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        data = {"model": model.model, "language": language}
        if prompt:
            data["prompt"] = prompt

        async def attempt() -> str:
            body = await self.http.post_multipart(
                provider,
                AUDIO_TRANSCRIPTIONS_PATH,
                data,
                {"file": (filename, content, content_type)},
                "transcription",
            )
            text = body.get("text") if isinstance(body, Mapping) else None
            if not isinstance(text, str):
                raise FormatError("transcription response has no text field")
            return text.strip()

        return await self._run(Feature.TRANSCRIPTION, Task.AUDIO, attempt)
