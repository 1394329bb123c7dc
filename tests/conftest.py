"""Shared fixtures: settings factory, fake HTTP transport, fake timer."""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from studymate.config import Settings

TEST_API_KEY = "sk-test-secret-key-1234567890"


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "ai_features_enabled": True,
        "voice_control_enabled": True,
        "ai_text_provider": "openai",
        "ai_image_provider": None,
        "ai_audio_provider": None,
        "openai_api_key": TEST_API_KEY,
        "groq_api_key": "",
        "openrouter_api_key": "",
        "ai_models": "",
        "ai_max_retries": 3,
        "ai_audio_max_retries": 1,
    }
    values.update(overrides)
    return Settings(**values)


def chat_body(content: str) -> dict[str, Any]:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class FakeAPI:
    """Scripted httpx transport that records every request it receives."""

    def __init__(self, responses: list[httpx.Response | Exception] | None = None) -> None:
        self.responses = list(responses or [])
        self.requests: list[httpx.Request] = []

    def queue(self, response: httpx.Response | Exception) -> None:
        self.responses.append(response)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"unexpected request to {request.url}")
        # The last scripted response repeats once the script runs out.
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return httpx.Response(
            response.status_code,
            headers=response.headers,
            content=response.content,
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def json_body(self, index: int = -1) -> dict[str, Any]:
        return json.loads(self.requests[index].content)


class FakeSleep:
    """Records requested delays instead of sleeping."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_api() -> FakeAPI:
    return FakeAPI()


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    return make_settings
