"""
Configuration settings for the knowledge-cards service.

Uses Pydantic Settings for environment variable management with .env file support.
Provider API keys are optional here; a missing key only disables that provider
and is reported when its client is constructed.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ProviderName = Literal["glm", "gemini", "none"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_version: str = Field(
        default="1.0.0",
        description="Service version reported by / and /health",
    )

    # ========================================
    # Gemini (text + image)
    # ========================================
    gemini_api_key: str | None = Field(
        default=None,
        description="Google Generative AI (Gemini) API key",
    )
    gemini_api_base: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST API base URL",
    )
    gemini_text_model: str = Field(
        default="models/gemini-2.5-flash",
        description="Gemini model used for knowledge card text",
    )
    gemini_image_model: str = Field(
        default="models/gemini-2.5-flash-image-preview",
        description="Gemini model used for card illustrations",
    )

    # ========================================
    # GLM (Zhipu chat completions)
    # ========================================
    glm_api_key: str | None = Field(
        default=None,
        description="Zhipu GLM API key",
    )
    glm_api_url: str = Field(
        default="https://open.bigmodel.cn/api/paas/v4/chat/completions",
        description="GLM chat completions endpoint",
    )
    glm_model: str = Field(
        default="glm-4-flash",
        description="GLM model name",
    )
    glm_max_tokens: int = Field(
        default=2000,
        description="Completion token budget for GLM",
    )

    # ========================================
    # Generation
    # ========================================
    card_primary_provider: ProviderName = Field(
        default="glm",
        description="Provider tried first for knowledge cards",
    )
    card_secondary_provider: ProviderName = Field(
        default="gemini",
        description="Provider tried when the primary fails",
    )
    card_temperature: float = Field(default=0.7)
    image_temperature: float = Field(default=0.6)
    provider_timeout_seconds: float = Field(
        default=30.0,
        description="Hard timeout for a single upstream request",
    )
    card_length_policy: Literal["rich", "compact"] = Field(
        default="rich",
        description="Point content band: rich = 80-120 chars, compact = <=50 chars",
    )

    # ========================================
    # Input validation
    # ========================================
    question_max_length: int = Field(
        default=200,
        description="Maximum trimmed question length",
    )
    forbidden_words: list[str] = Field(
        default=["暴力", "色情", "政治", "赌博"],
        description="Case-insensitive denylist of unsafe topic words",
    )

    # ========================================
    # Rate limiting
    # ========================================
    rate_limit_requests: int = Field(
        default=10,
        description="Requests allowed per client per window",
    )
    rate_limit_window_seconds: float = Field(
        default=60.0,
        description="Fixed window length",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # API Server
    # ========================================
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host",
    )
    api_port: int = Field(
        default=8100,
        description="API server port",
    )
    cors_allow_origins: list[str] = Field(
        default=["*"],
        description="Origins allowed by the CORS middleware",
    )

    def get_card_provider_order(self) -> list[str]:
        """Configured card providers in fallback order, without duplicates or 'none'."""
        order: list[str] = []
        for name in (self.card_primary_provider, self.card_secondary_provider):
            if name != "none" and name not in order:
                order.append(name)
        return order

    def get_configured_providers(self) -> dict[str, bool]:
        """Which providers have an API key set (values are never exposed)."""
        return {
            "glm": bool(self.glm_api_key),
            "gemini": bool(self.gemini_api_key),
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
