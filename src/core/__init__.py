"""
Core building blocks shared by the API, CLI, and generation pipeline.

Modules:
- errors: error taxonomy and user-safe messages
- result: Result type returned by pipeline stages
- rate_limiter: fixed-window per-client throttling
- logging_config: loguru sink setup
"""
from .errors import (
    CardServiceError,
    ConfigurationError,
    ProviderError,
    QuestionValidationError,
    RateLimitExceeded,
)
from .rate_limiter import InMemoryRateLimitStore, RateLimitDecision, RateLimiter
from .result import Result

__all__ = [
    "CardServiceError",
    "ConfigurationError",
    "InMemoryRateLimitStore",
    "ProviderError",
    "QuestionValidationError",
    "RateLimitDecision",
    "RateLimitExceeded",
    "RateLimiter",
    "Result",
]
