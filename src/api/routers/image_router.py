"""
Card illustration router.

POST /api/generate-image turns a previously generated card into a doodle
infographic via Gemini. There is no server-side fallback image: failures
return 500 with a coarse category and the raw message in ``details``.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, Response
from loguru import logger

from src.api.dependencies import get_client_key, get_image_rate_limiter, get_provider_registry
from src.api.schemas import (
    CORS_HEADERS,
    ErrorResponse,
    ImageData,
    ImageMetadata,
    ImageRequest,
    ImageResponse,
    error_response,
)
from src.core.errors import ConfigurationError, RateLimitExceeded, coarse_user_message
from src.core.rate_limiter import RateLimiter
from src.integrations.registry import ProviderRegistry

router = APIRouter()

MISSING_CARD_MESSAGE = "请求体缺少 card 字段"


@router.options("/generate-image", include_in_schema=False)
def image_preflight() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post(
    "/generate-image",
    response_model=ImageResponse,
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Generate an illustration for a knowledge card",
)
async def generate_image(
    request: Request,
    response: Response,
    body: ImageRequest | None = None,
    registry: ProviderRegistry = Depends(get_provider_registry),
    rate_limiter: RateLimiter = Depends(get_image_rate_limiter),
):
    card = body.card if body else None
    if not isinstance(card, dict) or not card:
        return error_response(400, MISSING_CARD_MESSAGE)

    client_key = get_client_key(request)
    decision = rate_limiter.check(client_key)
    headers = decision.headers()
    if not decision.allowed:
        return error_response(429, RateLimitExceeded.user_message, headers=headers)

    logger.info(f"Generating illustration for {card.get('title')!r} from {client_key}")

    try:
        client = registry.image_client()
        result = await client.generate_image(card)
    except ConfigurationError as e:
        logger.error(f"Image provider not configured: {e}")
        return error_response(500, coarse_user_message(e), headers=headers, details=str(e))
    except Exception as e:
        logger.exception("Unexpected failure generating illustration")
        return error_response(500, coarse_user_message(e), headers=headers, details=str(e))

    if not result.ok:
        return error_response(
            500, coarse_user_message(result.error), headers=headers, details=str(result.error)
        )

    for name, value in headers.items():
        response.headers[name] = value

    image = result.value
    return ImageResponse(
        image=ImageData(mimeType=image.mime_type, base64Data=image.base64_data),
        metadata=ImageMetadata(timestamp=datetime.now(timezone.utc).isoformat()),
    )
