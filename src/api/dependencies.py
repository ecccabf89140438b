"""
FastAPI dependencies.

Process-wide collaborators (provider registry, rate limiters) are built once
and cached; tests swap them through ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Request

from config import get_settings
from src.core.rate_limiter import InMemoryRateLimitStore, RateLimiter
from src.generation.mock_cards import MockCardGenerator
from src.generation.normalizer import CardNormalizer, LengthPolicy
from src.generation.orchestrator import CardPipeline
from src.generation.validator import ContentValidator
from src.integrations.registry import ProviderRegistry

DEFAULT_CLIENT_KEY = "127.0.0.1"


def get_client_key(request: Request) -> str:
    """Client address: first X-Forwarded-For hop, X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return DEFAULT_CLIENT_KEY


@lru_cache(maxsize=1)
def get_provider_registry() -> ProviderRegistry:
    return ProviderRegistry(get_settings())


def _build_rate_limiter(namespace: str) -> RateLimiter:
    settings = get_settings()
    return RateLimiter(
        InMemoryRateLimitStore(),
        limit=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
        namespace=namespace,
    )


@lru_cache(maxsize=1)
def get_card_rate_limiter() -> RateLimiter:
    return _build_rate_limiter("card")


@lru_cache(maxsize=1)
def get_image_rate_limiter() -> RateLimiter:
    return _build_rate_limiter("image")


def get_card_pipeline(
    registry: ProviderRegistry = Depends(get_provider_registry),
    rate_limiter: RateLimiter = Depends(get_card_rate_limiter),
) -> CardPipeline:
    settings = get_settings()
    return CardPipeline(
        validator=ContentValidator(
            max_length=settings.question_max_length,
            forbidden_words=settings.forbidden_words,
        ),
        rate_limiter=rate_limiter,
        providers=registry.card_chain(),
        normalizer=CardNormalizer(LengthPolicy.named(settings.card_length_policy)),
        mock_generator=MockCardGenerator(),
    )
