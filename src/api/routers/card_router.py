"""
Knowledge card router.

POST /api/generate-card runs the card pipeline. Validation and rate-limit
rejections are returned verbatim (their messages are already user-safe);
provider failures never reach the caller because the pipeline degrades to a
mock card instead.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from loguru import logger

from src.api.dependencies import get_card_pipeline, get_client_key
from src.api.schemas import (
    CORS_HEADERS,
    CardMetadata,
    CardRequest,
    CardResponse,
    ErrorResponse,
    error_response,
)
from src.core.errors import CardServiceError, RateLimitExceeded
from src.generation.orchestrator import CardPipeline

router = APIRouter()


@router.options("/generate-card", include_in_schema=False)
def card_preflight() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post(
    "/generate-card",
    response_model=CardResponse,
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Generate a knowledge card for a child's question",
)
async def generate_card(
    request: Request,
    response: Response,
    body: CardRequest | None = None,
    pipeline: CardPipeline = Depends(get_card_pipeline),
):
    """
    Answer a question with a three-point knowledge card.

    The card comes from the primary provider, the secondary provider, or the
    built-in templates, in that order; ``metadata.source`` says which.
    """
    client_key = get_client_key(request)
    try:
        outcome = await pipeline.run(body.question if body else None, client_key)
    except Exception:
        logger.exception(f"Unexpected failure generating card for {client_key}")
        return error_response(500, CardServiceError.user_message)

    headers = outcome.rate_limit.headers() if outcome.rate_limit else {}

    if not outcome.succeeded:
        status_code = 429 if isinstance(outcome.error, RateLimitExceeded) else 400
        return error_response(status_code, outcome.error.user_message, headers=headers)

    for name, value in headers.items():
        response.headers[name] = value

    return CardResponse(
        card=outcome.card,
        metadata=CardMetadata(
            timestamp=outcome.finished_at.isoformat(),
            question=outcome.question,
            source=outcome.card.source,
            provider=outcome.provider,
        ),
    )
