"""AI error taxonomy and the error normalizer.

Every failure that leaves the HTTP layer is described by a NormalizedError:
a short title, a user-safe message for the UI, a technical message for logs,
and a context mapping (url, method, purpose, provider, status). The API key
never appears in any of them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping

import httpx

from studymate.ai.models import Feature

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    CONFIG = "config"
    VALIDATION = "validation"
    TRANSPORT = "transport"
    HTTP_STATUS = "http_status"
    PARSE = "parse"
    FORMAT = "format"
    UNKNOWN = "unknown"


@dataclass
class NormalizedError:
    title: str
    user_message: str
    technical_message: str
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> int | None:
        return self.context.get("status")


# ── Exceptions ────────────────────────────────────────────────────────


class StudyMateAIError(Exception):
    """Base class for every error raised by the AI client layer."""

    kind: ErrorKind = ErrorKind.CONFIG
    retryable: bool = False
    default_user_message = "Something went wrong. Please try again later."

    def __init__(self, message: str, *, user_message: str | None = None) -> None:
        super().__init__(message)
        self.user_message = user_message or self.default_user_message


class ConfigError(StudyMateAIError):
    """AI feature disabled, key missing, or provider lacks a capability."""

    kind = ErrorKind.CONFIG
    default_user_message = "AI features are currently unavailable."


class ValidationError(StudyMateAIError):
    """Caller input rejected before any network call."""

    kind = ErrorKind.VALIDATION
    default_user_message = "Invalid input provided. Please check your entries."


class TransportError(StudyMateAIError):
    """No HTTP response at all (DNS failure, timeout, offline)."""

    kind = ErrorKind.TRANSPORT
    retryable = True

    def __init__(self, normalized: NormalizedError) -> None:
        super().__init__(normalized.technical_message, user_message=normalized.user_message)
        self.normalized = normalized


class HTTPStatusError(StudyMateAIError):
    """Provider answered with a non-2xx status."""

    kind = ErrorKind.HTTP_STATUS

    def __init__(self, normalized: NormalizedError, retry_after: float | None = None) -> None:
        super().__init__(normalized.technical_message, user_message=normalized.user_message)
        self.normalized = normalized
        self.status: int = int(normalized.context.get("status") or 0)
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status == 429 or self.status >= 500

    @property
    def is_rate_limited(self) -> bool:
        return self.status == 429


class ParseError(StudyMateAIError):
    """The model returned non-JSON content where JSON was required."""

    kind = ErrorKind.PARSE
    default_user_message = "The AI returned an unexpected answer. Please try again."


class FormatError(StudyMateAIError):
    """JSON parsed but does not have the expected shape."""

    kind = ErrorKind.FORMAT
    default_user_message = "The AI returned an unexpected answer. Please try again."


class AIServiceError(StudyMateAIError):
    """Single user-safe error a builder raises after translating a failure.

    ``str(exc)`` is the user message; the lower-layer error is kept as
    ``__cause__`` and its category as ``kind``.
    """

    def __init__(self, user_message: str, *, kind: ErrorKind, status: int | None = None) -> None:
        super().__init__(user_message, user_message=user_message)
        self.kind = kind
        self.status = status


# ── Normalizer ────────────────────────────────────────────────────────

USER_MESSAGES = {
    "network": "Connection failed. Please check your internet connection and try again.",
    "timeout": "Request timed out. Please check your connection and try again.",
    "auth": "Authentication failed. Please check the API configuration.",
    "forbidden": "Access denied. Please check the API permissions.",
    "not_found": "Model not found. Please check the model configuration.",
    "rate_limit": "Too many requests. The rate limit was exceeded, please wait a moment and try again.",
    "unavailable": "The service is temporarily unavailable. Please try again later.",
    "default": "Something went wrong. Please try again later.",
}

_STATUS_TABLE: dict[int, tuple[str, str]] = {
    401: ("Authentication Error", USER_MESSAGES["auth"]),
    403: ("Access Denied", USER_MESSAGES["forbidden"]),
    404: ("Model Not Found", USER_MESSAGES["not_found"]),
    429: ("Rate Limited", USER_MESSAGES["rate_limit"]),
    500: ("Service Unavailable", USER_MESSAGES["unavailable"]),
    502: ("Service Unavailable", USER_MESSAGES["unavailable"]),
    503: ("Service Unavailable", USER_MESSAGES["unavailable"]),
    504: ("Service Unavailable", USER_MESSAGES["unavailable"]),
}


def extract_detail(body: Any, status: int | None) -> str:
    """Pull a human-readable detail out of a provider error body.

    Order: ``body.error.message``, ``body.message``, then a fallback literal.
    """
    if isinstance(body, Mapping):
        error = body.get("error")
        if isinstance(error, Mapping) and error.get("message"):
            return str(error["message"])
        if body.get("message"):
            return str(body["message"])
    return f"API request failed with status {status}"


def redact(text: str, secrets: Iterable[str] = ()) -> str:
    for secret in secrets:
        if secret:
            text = text.replace(secret, "***")
    return text


def _normalize_status(status: int, body: Any) -> tuple[str, str, str]:
    detail = extract_detail(body, status)
    technical = f"HTTP {status}: {detail}"
    if status == 400:
        return "Bad Request", f"Bad request: {detail}", technical
    if status in _STATUS_TABLE:
        title, user_message = _STATUS_TABLE[status]
        return title, user_message, technical
    return "API Error", detail, technical


def _normalize_transport(exc: BaseException) -> tuple[str, str, str]:
    technical = f"{type(exc).__name__}: {exc}".rstrip(": ")
    if isinstance(exc, httpx.TimeoutException):
        return "Request Timeout", USER_MESSAGES["timeout"], technical
    return "Connection Error", USER_MESSAGES["network"], technical


def normalize_error(
    raw_error: Any,
    context: Mapping[str, Any] | None = None,
    *,
    secrets: Iterable[str] = (),
) -> NormalizedError:
    """Map a raw failure onto a NormalizedError and log it once.

    ``raw_error`` may be an ``httpx.Response``, an ``httpx.TransportError``,
    a decoded error body (with the status in ``context["status"]``), or any
    other exception or string.
    """
    ctx: dict[str, Any] = {"type": "API_ERROR", **(context or {})}
    secrets = tuple(secrets)

    if isinstance(raw_error, httpx.Response):
        ctx["status"] = raw_error.status_code
        try:
            body: Any = raw_error.json()
        except ValueError:
            body = {"message": raw_error.text[:500]} if raw_error.text else {}
        title, user_message, technical = _normalize_status(raw_error.status_code, body)
    elif isinstance(raw_error, (httpx.TransportError, OSError)):
        ctx["status"] = None
        ctx["type"] = "TRANSPORT_ERROR"
        title, user_message, technical = _normalize_transport(raw_error)
    elif ctx.get("status") is not None:
        title, user_message, technical = _normalize_status(int(ctx["status"]), raw_error)
    else:
        technical = str(raw_error) or type(raw_error).__name__
        title, user_message = "Error", USER_MESSAGES["default"]

    normalized = NormalizedError(
        title=title,
        user_message=redact(user_message, secrets),
        technical_message=redact(technical, secrets),
        context=ctx,
    )
    log_error(normalized)
    return normalized


def log_error(normalized: NormalizedError) -> None:
    logger.error(
        "%s: %s",
        normalized.title,
        normalized.technical_message,
        extra={"context": dict(normalized.context)},
    )


# ── Builder translation ───────────────────────────────────────────────

FEATURE_FAILURE_MESSAGES: dict[Feature, str] = {
    Feature.CHAT: "Sorry, I couldn't connect to the AI assistant right now. Please try again later.",
    Feature.SUMMARY: "Failed to summarize text. Please try again.",
    Feature.QUIZ: "Failed to generate quiz. Please try again.",
    Feature.FLASHCARDS: "Failed to generate flashcards. Please try again.",
    Feature.STUDY_PLAN: "Failed to generate study plan. Please try again.",
    Feature.IMAGE: "Failed to generate image. Please try again.",
    Feature.TRANSCRIPTION: "Failed to transcribe audio. Please try again.",
}

# Statuses whose normalized message is safe and more useful than the generic one.
_PASSTHROUGH_STATUSES = {401, 403, 404, 429, 500, 502, 503, 504}


def user_message_for(feature: Feature, exc: BaseException) -> str:
    """Pick the single user-safe message a builder surfaces for ``exc``.

    Provider error text (400 details, unknown statuses) is never passed
    through.
    """
    if isinstance(exc, TransportError):
        return exc.user_message
    if isinstance(exc, HTTPStatusError) and exc.status in _PASSTHROUGH_STATUSES:
        return exc.user_message
    return FEATURE_FAILURE_MESSAGES.get(feature, USER_MESSAGES["default"])


def translate_error(feature: Feature, exc: BaseException) -> AIServiceError:
    kind = exc.kind if isinstance(exc, StudyMateAIError) else ErrorKind.UNKNOWN
    if not isinstance(exc, StudyMateAIError):
        logger.exception("Unexpected error in %s request", feature.value.lower(), exc_info=exc)
    status = exc.status if isinstance(exc, HTTPStatusError) else None
    return AIServiceError(user_message_for(feature, exc), kind=kind, status=status)
