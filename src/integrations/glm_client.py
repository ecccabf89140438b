"""
Zhipu GLM chat-completions client.

Only card text is generated through GLM; the answer is the first choice's
message content.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from config import Settings
from src.core.errors import MalformedResponse, ProviderError
from src.core.result import Result
from src.generation.prompts import get_card_prompt

from .base import DEFAULT_TIMEOUT_SECONDS, ProviderClient

GLM_API_URL = "https://open.bigmodel.cn/api/paas/v4/chat/completions"


class GLMClient(ProviderClient):
    """GLM text provider for knowledge cards."""

    name = "glm"
    env_var = "GLM_API_KEY"

    def __init__(
        self,
        api_key: str | None,
        api_url: str = GLM_API_URL,
        model: str = "glm-4-flash",
        max_tokens: int = 2000,
        temperature: float = 0.7,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(api_key, timeout=timeout, http_client=http_client)
        self.api_url = api_url
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: httpx.AsyncClient | None = None
    ) -> "GLMClient":
        return cls(
            api_key=settings.glm_api_key,
            api_url=settings.glm_api_url,
            model=settings.glm_model,
            max_tokens=settings.glm_max_tokens,
            temperature=settings.card_temperature,
            timeout=settings.provider_timeout_seconds,
            http_client=http_client,
        )

    def build_payload(self, question: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": get_card_prompt(question)}],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "stream": False,
        }

    def extract_text(self, data: dict[str, Any]) -> str:
        """Unwrap ``choices[0].message.content``."""
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            raise MalformedResponse(self.name, "response has no choices")
        first = choices[0] if isinstance(choices[0], dict) else {}
        message = first.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise MalformedResponse(self.name, "first choice has no message content")
        return content

    async def _generate_card(self, question: str) -> str:
        logger.info(f"[{self.name}] Generating knowledge card for: {question!r}")
        data = await self._post_json(
            self.api_url,
            self.build_payload(question),
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        return self.extract_text(data)

    async def generate_card(self, question: str) -> Result[str, ProviderError]:
        return await self._guarded(self._generate_card(question))
