"""StudyMate AI layer — OpenAI-compatible providers behind one resilient client."""

from studymate.ai.assistant import StudyAssistant
from studymate.ai.errors import (
    AIServiceError,
    ConfigError,
    FormatError,
    HTTPStatusError,
    NormalizedError,
    ParseError,
    StudyMateAIError,
    TransportError,
    ValidationError,
)
from studymate.ai.models import Capability, ChatMessage, Feature, ProviderId, Role, Task
from studymate.ai.resolver import ConfigResolver


def get_assistant(**kwargs) -> StudyAssistant:
    """Factory for a StudyAssistant; defaults to the cached Settings."""
    return StudyAssistant(**kwargs)


__all__ = [
    "AIServiceError",
    "Capability",
    "ChatMessage",
    "ConfigError",
    "ConfigResolver",
    "Feature",
    "FormatError",
    "HTTPStatusError",
    "NormalizedError",
    "ParseError",
    "ProviderId",
    "Role",
    "StudyAssistant",
    "StudyMateAIError",
    "Task",
    "TransportError",
    "ValidationError",
    "get_assistant",
]
