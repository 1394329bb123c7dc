"""HTTP plumbing for OpenAI-compatible endpoints.

Endpoints (relative to the provider base URL):
- POST /chat/completions       JSON  -> {choices: [{message: {content}}]}
- POST /images/generations     JSON  -> {data: [{url}]}
- POST /audio/transcriptions   multipart -> {text}

Every call is a fresh request on a fresh client; retries live one layer up.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from studymate.ai.errors import FormatError, HTTPStatusError, TransportError, normalize_error
from studymate.ai.models import ProviderConfig
from studymate.config import Settings, get_settings

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "/chat/completions"
IMAGE_GENERATIONS_PATH = "/images/generations"
AUDIO_TRANSCRIPTIONS_PATH = "/audio/transcriptions"


def _parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds; HTTP-dates are ignored."""
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        logger.debug("Non-numeric Retry-After header: %s", value)
        return None


class AIHttpClient:
    """Issues single POST requests to a provider and normalizes failures."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.transport = transport
        self.timeout = httpx.Timeout(self.settings.ai_timeout, connect=self.settings.ai_connect_timeout)

    def _headers(self, provider: ProviderConfig, json_body: bool = True) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {provider.api_key}",
            "HTTP-Referer": self.settings.app_referer_url,
            "X-Title": self.settings.app_title,
        }
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def post_json(
        self,
        provider: ProviderConfig,
        path: str,
        payload: Mapping[str, Any],
        purpose: str,
    ) -> Any:
        return await self._post(
            provider, path, purpose,
            headers=self._headers(provider),
            json=dict(payload),
        )

    async def post_multipart(
        self,
        provider: ProviderConfig,
        path: str,
        data: Mapping[str, str],
        files: Mapping[str, tuple[str, bytes, str]],
        purpose: str,
    ) -> Any:
        # httpx sets the multipart Content-Type (with boundary) itself.
        return await self._post(
            provider, path, purpose,
            headers=self._headers(provider, json_body=False),
            data=dict(data),
            files=dict(files),
        )

    async def _post(
        self,
        provider: ProviderConfig,
        path: str,
        purpose: str,
        **kwargs: Any,
    ) -> Any:
        url = provider.url(path)
        context = {
            "url": url,
            "method": "POST",
            "purpose": purpose,
            "provider": provider.provider.value,
        }
        secrets = (provider.api_key,)

        try:
            async with self._build_client() as client:
                resp = await client.post(url, **kwargs)
        except httpx.TransportError as exc:
            raise TransportError(normalize_error(exc, context, secrets=secrets)) from exc

        if not resp.is_success:
            normalized = normalize_error(resp, context, secrets=secrets)
            raise HTTPStatusError(
                normalized,
                retry_after=_parse_retry_after(resp.headers.get("Retry-After")),
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise FormatError(
                f"{purpose}: provider returned a non-JSON body (HTTP {resp.status_code})"
            ) from exc
        logger.debug("%s succeeded via %s (HTTP %d)", purpose, provider.provider.value, resp.status_code)
        return data
