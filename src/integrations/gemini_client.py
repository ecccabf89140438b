"""
Google Gemini ``generateContent`` client.

Serves both variants:
- card text from the text model (joined text of the first candidate's parts)
- card illustrations from the image model (first inline image part)

The API key goes in the ``x-goog-api-key`` header so it never appears in URLs
or in error messages that carry one.
"""

from __future__ import annotations

import re
from typing import Any

import httpx
from loguru import logger

from config import Settings
from src.core.errors import MalformedResponse, NoImageData, ProviderError
from src.core.result import Result
from src.generation.models import GeneratedImage
from src.generation.prompts import build_image_prompt, get_card_prompt

from .base import DEFAULT_TIMEOUT_SECONDS, ProviderClient

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_IMAGE_MIME_TYPE = "image/png"


class GeminiClient(ProviderClient):
    """Gemini text and image provider."""

    name = "gemini"
    env_var = "GEMINI_API_KEY"
    # Standard Gemini keys: "AIza" followed by 35 URL-safe characters
    key_pattern = re.compile(r"AIza[0-9A-Za-z_\-]{35}")

    def __init__(
        self,
        api_key: str | None,
        api_base: str = GEMINI_API_BASE,
        text_model: str = "models/gemini-2.5-flash",
        image_model: str = "models/gemini-2.5-flash-image-preview",
        card_temperature: float = 0.7,
        image_temperature: float = 0.6,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(api_key, timeout=timeout, http_client=http_client)
        self.api_base = api_base.rstrip("/")
        self.text_model = text_model
        self.image_model = image_model
        self.card_temperature = card_temperature
        self.image_temperature = image_temperature

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: httpx.AsyncClient | None = None
    ) -> "GeminiClient":
        return cls(
            api_key=settings.gemini_api_key,
            api_base=settings.gemini_api_base,
            text_model=settings.gemini_text_model,
            image_model=settings.gemini_image_model,
            card_temperature=settings.card_temperature,
            image_temperature=settings.image_temperature,
            timeout=settings.provider_timeout_seconds,
            http_client=http_client,
        )

    def endpoint(self, model: str) -> str:
        return f"{self.api_base}/{model}:generateContent"

    @property
    def _auth_headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self.api_key}

    # =========================================================================
    # Envelope unwrapping
    # =========================================================================

    def _first_candidate_parts(self, data: dict[str, Any]) -> list[dict[str, Any]]:
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            raise MalformedResponse(self.name, "response has no candidates")
        first = candidates[0] if isinstance(candidates[0], dict) else {}
        content = first.get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            raise MalformedResponse(self.name, "first candidate has no content parts")
        return [p for p in parts if isinstance(p, dict)]

    def extract_text(self, data: dict[str, Any]) -> str:
        parts = self._first_candidate_parts(data)
        text = "\n".join(p["text"] for p in parts if isinstance(p.get("text"), str)).strip()
        if not text:
            raise MalformedResponse(self.name, "first candidate has no text")
        return text

    def extract_image(self, data: dict[str, Any]) -> GeneratedImage:
        for part in self._first_candidate_parts(data):
            inline = part.get("inlineData") or part.get("inline_data")
            if isinstance(inline, dict) and inline.get("data"):
                mime_type = inline.get("mimeType") or inline.get("mime_type")
                return GeneratedImage(
                    mime_type=mime_type or DEFAULT_IMAGE_MIME_TYPE,
                    base64_data=inline["data"],
                )
        raise NoImageData(self.name, "Gemini returned no image data")

    # =========================================================================
    # Card text
    # =========================================================================

    def build_card_payload(self, question: str) -> dict[str, Any]:
        return {
            "contents": [{"role": "user", "parts": [{"text": get_card_prompt(question)}]}],
            "generationConfig": {
                "temperature": self.card_temperature,
                "topP": 0.9,
                "topK": 40,
                "maxOutputTokens": 2048,
            },
        }

    async def _generate_card(self, question: str) -> str:
        logger.info(f"[{self.name}] Generating knowledge card for: {question!r}")
        data = await self._post_json(
            self.endpoint(self.text_model),
            self.build_card_payload(question),
            headers=self._auth_headers,
        )
        return self.extract_text(data)

    async def generate_card(self, question: str) -> Result[str, ProviderError]:
        return await self._guarded(self._generate_card(question))

    # =========================================================================
    # Illustration
    # =========================================================================

    def build_image_payload(self, card: dict[str, Any]) -> dict[str, Any]:
        return {
            "contents": [{"role": "user", "parts": [{"text": build_image_prompt(card)}]}],
            "generationConfig": {
                "temperature": self.image_temperature,
                "responseModalities": ["TEXT", "IMAGE"],
            },
        }

    async def _generate_image(self, card: dict[str, Any]) -> GeneratedImage:
        logger.info(f"[{self.name}] Generating illustration for card: {card.get('title')!r}")
        data = await self._post_json(
            self.endpoint(self.image_model),
            self.build_image_payload(card),
            headers=self._auth_headers,
        )
        image = self.extract_image(data)
        logger.info(
            f"[{self.name}] Illustration ready: {image.mime_type}, "
            f"{len(image.base64_data)} base64 chars"
        )
        return image

    async def generate_image(self, card: dict[str, Any]) -> Result[GeneratedImage, ProviderError]:
        return await self._guarded(self._generate_image(card))
