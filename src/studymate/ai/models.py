"""Request/response shapes shared by the AI client layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

logger = logging.getLogger(__name__)


class Capability(str, Enum):
    """Capability class a provider may or may not support."""

    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"


class Task(str, Enum):
    """Named use case with its own model and parameter defaults."""

    CHAT = "CHAT"
    ANALYSIS = "ANALYSIS"
    GENERATION = "GENERATION"
    IMAGE = "IMAGE"
    AUDIO = "AUDIO"

    @classmethod
    def default(cls) -> Task:
        return cls.ANALYSIS

    @classmethod
    def parse(cls, value: Task | str) -> Task:
        """Resolve a task name, falling back to ``default()`` for unknown names."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            logger.warning("Unknown AI task %r, using %s", value, cls.default().value)
            return cls.default()

    @property
    def capability(self) -> Capability:
        if self is Task.IMAGE:
            return Capability.IMAGE
        if self is Task.AUDIO:
            return Capability.AUDIO
        return Capability.TEXT


class Feature(str, Enum):
    """End-user AI feature with its own prompt configuration."""

    CHAT = "CHAT"
    SUMMARY = "SUMMARY"
    QUIZ = "QUIZ"
    FLASHCARDS = "FLASHCARDS"
    STUDY_PLAN = "STUDY_PLAN"
    IMAGE = "IMAGE"
    TRANSCRIPTION = "TRANSCRIPTION"

    @classmethod
    def default(cls) -> Feature:
        return cls.SUMMARY

    @classmethod
    def parse(cls, value: Feature | str) -> Feature:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            logger.warning("Unknown AI feature %r, using %s", value, cls.default().value)
            return cls.default()


class ProviderId(str, Enum):
    """Interchangeable OpenAI-compatible vendors."""

    OPENAI = "openai"
    GROQ = "groq"
    OPENROUTER = "openrouter"

    @property
    def capabilities(self) -> frozenset[Capability]:
        return PROVIDER_CAPABILITIES[self]


PROVIDER_CAPABILITIES: dict[ProviderId, frozenset[Capability]] = {
    ProviderId.OPENAI: frozenset({Capability.TEXT, Capability.IMAGE, Capability.AUDIO}),
    ProviderId.GROQ: frozenset({Capability.TEXT, Capability.AUDIO}),
    ProviderId.OPENROUTER: frozenset({Capability.TEXT}),
}


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ModelSpec:
    model: str
    max_tokens: int = 1000
    temperature: float = 0.3


@dataclass(frozen=True)
class ProviderConfig:
    """Resolved provider endpoint and credentials for one call.

    The API key is excluded from ``repr`` so it never lands in logs.
    """

    provider: ProviderId
    base_url: str
    api_key: str = field(repr=False)
    models: Mapping[Task, ModelSpec] = field(default_factory=dict)

    @property
    def capabilities(self) -> frozenset[Capability]:
        return self.provider.capabilities

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"


@dataclass(frozen=True)
class PromptConfig:
    """Prompt template plus generation parameters for one feature."""

    template: str
    max_tokens: int
    temperature: float
    task: Task = Task.ANALYSIS
    json_output: bool = False


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    rate_limit_delay: float = 30.0
    rate_limit_max_delay: float = 120.0


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    content: str

    @classmethod
    def from_value(cls, value: ChatMessage | Mapping[str, Any]) -> ChatMessage:
        """Build a message from a ``{role, content}`` mapping.

        Raises ValueError for an unknown role or non-string content.
        """
        if isinstance(value, cls):
            return value
        role = Role(str(value.get("role", "")).lower())
        content = value.get("content")
        if not isinstance(content, str):
            raise ValueError("message content must be a string")
        return cls(role=role, content=content)

    def to_payload(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}
