"""
Shared HTTP plumbing for upstream LLM providers.

Each provider client:
- reads and checks its API key once, at construction
- sends a single JSON POST per call, cancelled after ``timeout`` seconds
- maps transport and HTTP failures onto the ProviderError hierarchy
- unwraps its own response envelope in the concrete subclass
"""

from __future__ import annotations

import asyncio
import re
from typing import Any, Protocol

import httpx
from loguru import logger

from src.core.errors import (
    ConfigurationError,
    MalformedResponse,
    ProviderConnectionError,
    ProviderError,
    ProviderTimeout,
    UpstreamHttpError,
)
from src.core.result import Result

DEFAULT_TIMEOUT_SECONDS = 30.0
LOGGED_BODY_CHARS = 300


class CardProvider(Protocol):
    """Anything that can turn a question into raw card text."""

    name: str

    async def generate_card(self, question: str) -> Result[str, ProviderError]:
        ...


class ProviderClient:
    """
    Base class for provider clients.

    Subclasses set ``name``, ``env_var`` and optionally ``key_pattern``.
    An ``http_client`` can be injected (tests pass one built on
    httpx.MockTransport); otherwise a client is opened per request.
    """

    name = "provider"
    env_var = "API_KEY"
    key_pattern: re.Pattern[str] | None = None

    def __init__(
        self,
        api_key: str | None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_key = self._check_api_key(api_key)
        self.timeout = timeout
        self._http_client = http_client

    def _check_api_key(self, api_key: str | None) -> str:
        key = (api_key or "").strip()
        if not key:
            raise ConfigurationError(f"{self.env_var} environment variable is not set")
        if self.key_pattern is not None and not self.key_pattern.fullmatch(key):
            raise ConfigurationError(
                f"{self.env_var} has an unexpected format (length {len(key)})"
            )
        return key

    async def _send(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
    ) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.post(url, json=payload, headers=headers)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(url, json=payload, headers=headers)

    async def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """POST ``payload`` and return the decoded JSON body, raising ProviderError."""
        request_headers = {"Content-Type": "application/json", **(headers or {})}
        try:
            response = await asyncio.wait_for(
                self._send(url, payload, request_headers),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise ProviderTimeout(self.name, self.timeout) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ProviderConnectionError(self.name, f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            body = response.text
            logger.error(
                f"[{self.name}] API request failed: {response.status_code} "
                f"{body[:LOGGED_BODY_CHARS]}"
            )
            raise UpstreamHttpError(self.name, response.status_code, body)

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponse(self.name, "response body is not JSON") from e
        if not isinstance(data, dict):
            raise MalformedResponse(self.name, "response body is not a JSON object")

        logger.debug(f"[{self.name}] API request succeeded ({len(response.content)} bytes)")
        return data

    async def _guarded(self, call) -> Result[Any, ProviderError]:
        """
        Await ``call`` and convert any raised error into a failed Result.

        Errors outside the ProviderError hierarchy (envelope parser bugs and the
        like) are logged with their traceback and wrapped as ProviderError.
        """
        try:
            return Result.success(await call)
        except ProviderError as e:
            logger.warning(f"[{self.name}] {type(e).__name__}: {e}")
            return Result.failure(e)
        except Exception as e:
            logger.exception(f"[{self.name}] Unexpected provider failure")
            return Result.failure(
                ProviderError(self.name, f"unexpected {type(e).__name__}: {e}")
            )
