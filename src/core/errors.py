"""
Error taxonomy for the knowledge-cards service.

User-facing messages are the Chinese strings shown to children and parents;
everything else (provider names, HTTP status, upstream body) is for operators.
"""

from __future__ import annotations

from enum import Enum


class CardServiceError(Exception):
    """Base class for all service errors."""

    user_message = "服务器内部错误，请稍后再试"


class ConfigurationError(CardServiceError):
    """A provider is missing credentials or has a malformed key."""

    user_message = "API配置错误"


class ValidationErrorKind(str, Enum):
    EMPTY_INPUT = "empty_input"
    TOO_LONG = "too_long"
    FORBIDDEN_CONTENT = "forbidden_content"


class QuestionValidationError(CardServiceError):
    """The question failed input validation. The message is safe to show."""

    def __init__(self, kind: ValidationErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.user_message = message


class RateLimitExceeded(CardServiceError):
    user_message = "请求过于频繁，请稍后再试"

    def __init__(self, decision=None):
        super().__init__(self.user_message)
        self.decision = decision


# ========================================
# Provider errors
# ========================================


class ProviderError(CardServiceError):
    """An upstream LLM call failed. Never shown to users verbatim."""

    user_message = "AI服务暂时不可用"

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ProviderTimeout(ProviderError):
    user_message = "请求超时，请稍后再试"

    def __init__(self, provider: str, timeout: float):
        super().__init__(provider, f"request timeout after {timeout:g}s")
        self.timeout = timeout


class ProviderConnectionError(ProviderError):
    """Network-level failure before any HTTP status was received."""


class UpstreamHttpError(ProviderError):
    """Non-2xx response. ``body`` is kept for logs only."""

    def __init__(self, provider: str, status: int, body: str = ""):
        super().__init__(provider, f"upstream returned HTTP {status}")
        self.status = status
        self.body = body

    @property
    def is_auth_error(self) -> bool:
        return self.status in (401, 403)

    @property
    def is_throttled(self) -> bool:
        return self.status == 429

    @property
    def is_server_error(self) -> bool:
        return self.status >= 500

    @property
    def user_message(self) -> str:  # type: ignore[override]
        if self.is_auth_error:
            return "API密钥无效"
        if self.is_throttled:
            return "API请求频率超限，请稍后再试"
        if self.is_server_error:
            return "API服务暂时不可用，请稍后再试"
        return f"API请求失败: {self.status}"


class MalformedResponse(ProviderError):
    """The response envelope or its content did not have the expected shape."""


class NoImageData(ProviderError):
    """The image model answered without inline image data."""


def coarse_user_message(error: BaseException) -> str:
    """
    Map any failure to one of a few user-safe categories.

    Known error types decide first; otherwise the message is searched for
    familiar markers, since third-party exceptions only expose text.
    """
    message = str(error)
    if isinstance(error, ConfigurationError) or "API_KEY" in message:
        return ConfigurationError.user_message
    if isinstance(error, ProviderTimeout) or "timeout" in message.lower():
        return ProviderTimeout.user_message
    if isinstance(error, ProviderError) or "gemini" in message.lower():
        return ProviderError.user_message
    return CardServiceError.user_message
