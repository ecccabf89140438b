"""
Provider registry.

Builds provider clients from settings on first use. A provider whose key is
missing or malformed is reported once and left out of the card fallback
chain; the image client raises ConfigurationError to its caller instead.
"""

from __future__ import annotations

import httpx
from loguru import logger

from config import Settings
from src.core.errors import ConfigurationError
from src.generation.models import CardSource

from .base import CardProvider
from .gemini_client import GeminiClient
from .glm_client import GLMClient

CARD_PROVIDER_CLASSES: dict[str, type[GLMClient] | type[GeminiClient]] = {
    "glm": GLMClient,
    "gemini": GeminiClient,
}
CHAIN_SOURCES = (CardSource.PRIMARY, CardSource.SECONDARY)


class ProviderRegistry:
    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None):
        self.settings = settings
        self.http_client = http_client
        self._card_chain: list[tuple[CardSource, CardProvider]] | None = None

    def build(self, name: str) -> GLMClient | GeminiClient:
        """Construct the named client, raising ConfigurationError when unconfigured."""
        try:
            cls = CARD_PROVIDER_CLASSES[name]
        except KeyError:
            raise ConfigurationError(f"Unknown provider: {name}") from None
        return cls.from_settings(self.settings, http_client=self.http_client)

    def card_chain(self) -> list[tuple[CardSource, CardProvider]]:
        """Configured card providers in fallback order, tagged primary/secondary."""
        if self._card_chain is None:
            chain: list[tuple[CardSource, CardProvider]] = []
            seen: set[str] = set()
            slots = (self.settings.card_primary_provider, self.settings.card_secondary_provider)
            for source, name in zip(CHAIN_SOURCES, slots):
                # a slot keeps its own tag even when the slot before it is empty
                if name == "none" or name in seen:
                    continue
                seen.add(name)
                try:
                    chain.append((source, self.build(name)))
                except ConfigurationError as e:
                    logger.warning(f"Card provider '{name}' unavailable: {e}")
            self._card_chain = chain
        return self._card_chain

    def image_client(self) -> GeminiClient:
        return GeminiClient.from_settings(self.settings, http_client=self.http_client)
