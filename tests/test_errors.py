"""Tests for the error normalizer and builder-facing translation."""

import json
import logging

import httpx
import pytest

from studymate.ai.errors import (
    AIServiceError,
    ErrorKind,
    FormatError,
    HTTPStatusError,
    TransportError,
    extract_detail,
    normalize_error,
    translate_error,
    user_message_for,
)
from studymate.ai.models import Feature

CONTEXT = {"url": "https://api.example.com/v1/chat/completions", "method": "POST", "purpose": "chat"}

EXPECTED_THEMES = {
    400: "Bad request: quota field missing",
    401: "Authentication failed",
    403: "Access denied",
    404: "Model not found",
    429: "Too many requests",
    500: "temporarily unavailable",
    502: "temporarily unavailable",
    503: "temporarily unavailable",
    504: "temporarily unavailable",
}


def _response(status: int, body=None, text: str | None = None) -> httpx.Response:
    request = httpx.Request("POST", CONTEXT["url"])
    if text is not None:
        return httpx.Response(status, text=text, request=request)
    return httpx.Response(status, json=body if body is not None else {}, request=request)


class TestStatusMapping:
    @pytest.mark.parametrize("status", sorted(EXPECTED_THEMES))
    def test_status_table(self, status):
        body = {"error": {"message": "quota field missing"}}
        normalized = normalize_error(body, {**CONTEXT, "status": status})
        assert EXPECTED_THEMES[status] in normalized.user_message
        assert normalized.context["status"] == status
        assert normalized.context["url"] == CONTEXT["url"]

    def test_unknown_status_uses_raw_detail(self):
        normalized = normalize_error({"message": "teapot"}, {"status": 418})
        assert normalized.user_message == "teapot"
        assert normalized.title == "API Error"

    def test_from_response_object(self):
        normalized = normalize_error(_response(429, {"error": {"message": "slow down"}}), CONTEXT)
        assert normalized.status == 429
        assert "slow down" in normalized.technical_message
        assert "429" in normalized.technical_message

    def test_non_json_response_body(self):
        normalized = normalize_error(_response(502, text="<html>Bad Gateway</html>"), CONTEXT)
        assert normalized.status == 502
        assert "Bad Gateway" in normalized.technical_message


class TestDetailExtraction:
    def test_error_message_first(self):
        assert extract_detail({"error": {"message": "a"}, "message": "b"}, 400) == "a"

    def test_message_second(self):
        assert extract_detail({"message": "b"}, 400) == "b"

    def test_fallback_literal(self):
        assert extract_detail({}, 503) == "API request failed with status 503"
        assert extract_detail("not a dict", 500) == "API request failed with status 500"


class TestTransportErrors:
    def test_connect_error_is_connectivity(self):
        normalized = normalize_error(httpx.ConnectError("dns failure"), CONTEXT)
        assert "internet connection" in normalized.user_message
        assert normalized.context["status"] is None
        assert "Authentication" not in normalized.user_message
        assert "Too many" not in normalized.user_message

    def test_timeout_has_own_message(self):
        normalized = normalize_error(httpx.ReadTimeout("read timed out"), CONTEXT)
        assert normalized.title == "Request Timeout"
        assert "timed out" in normalized.user_message


class TestSecretsAndLogging:
    def test_api_key_redacted(self):
        key = "sk-live-0123456789"
        body = {"error": {"message": f"Incorrect API key provided: {key}"}}
        normalized = normalize_error(body, {**CONTEXT, "status": 400}, secrets=[key])
        assert key not in normalized.technical_message
        assert key not in normalized.user_message
        assert key not in json.dumps(normalized.context)

    def test_logs_exactly_once_with_context(self, caplog):
        with caplog.at_level(logging.ERROR, logger="studymate.ai.errors"):
            normalize_error({"message": "boom"}, {**CONTEXT, "status": 500})
        records = [r for r in caplog.records if r.name == "studymate.ai.errors"]
        assert len(records) == 1
        assert records[0].context["status"] == 500
        assert records[0].context["purpose"] == "chat"
        assert "boom" in records[0].getMessage()


class TestTranslation:
    def _http_error(self, status: int) -> HTTPStatusError:
        body = {"error": {"message": "raw provider text"}}
        return HTTPStatusError(normalize_error(body, {"status": status}))

    def test_rate_limit_passes_through(self):
        message = user_message_for(Feature.CHAT, self._http_error(429))
        assert "Too many requests" in message

    def test_bad_request_detail_is_not_leaked(self):
        message = user_message_for(Feature.QUIZ, self._http_error(400))
        assert "raw provider text" not in message
        assert message == "Failed to generate quiz. Please try again."

    def test_format_error_uses_feature_message(self):
        exc = translate_error(Feature.FLASHCARDS, FormatError("missing flashcards"))
        assert isinstance(exc, AIServiceError)
        assert exc.kind is ErrorKind.FORMAT
        assert str(exc) == "Failed to generate flashcards. Please try again."

    def test_transport_error_keeps_connectivity_message(self):
        err = TransportError(normalize_error(httpx.ConnectError("offline"), CONTEXT))
        exc = translate_error(Feature.CHAT, err)
        assert exc.kind is ErrorKind.TRANSPORT
        assert "internet connection" in exc.user_message

    def test_unexpected_exception(self):
        exc = translate_error(Feature.CHAT, RuntimeError("kaboom"))
        assert exc.kind is ErrorKind.UNKNOWN
        assert "kaboom" not in str(exc)

    def test_retryable_flags(self):
        assert self._http_error(429).retryable
        assert self._http_error(503).retryable
        assert not self._http_error(401).retryable
        assert not self._http_error(400).retryable
