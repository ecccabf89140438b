"""
Request/response models shared by the API routers.

Response bodies keep the camelCase keys the front-end already consumes
(``mimeType``, ``base64Data``).
"""

from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.generation.models import CardSource, KnowledgeCard

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-Requested-With",
    "Access-Control-Max-Age": "86400",
}


# ========================================
# Requests
# ========================================


class CardRequest(BaseModel):
    """Body of POST /api/generate-card. Type checks happen in the validator."""

    question: Any = None


class ImageRequest(BaseModel):
    """Body of POST /api/generate-image. Only presence of ``card`` is checked."""

    card: Any = None


# ========================================
# Responses
# ========================================


class CardMetadata(BaseModel):
    timestamp: str
    question: str
    source: CardSource
    provider: str


class CardResponse(BaseModel):
    success: bool = True
    card: KnowledgeCard
    metadata: CardMetadata


class ImageData(BaseModel):
    mimeType: str
    base64Data: str


class ImageMetadata(BaseModel):
    timestamp: str
    source: str = "gemini-api"


class ImageResponse(BaseModel):
    success: bool = True
    image: ImageData
    metadata: ImageMetadata


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    details: str | None = None


def error_response(
    status_code: int,
    message: str,
    headers: dict[str, str] | None = None,
    details: str | None = None,
) -> JSONResponse:
    """Uniform ``{success: false, error}`` body; ``details`` only when given."""
    body = ErrorResponse(error=message, details=details).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body, headers=headers)
