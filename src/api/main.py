"""
FastAPI application for the knowledge-cards service.

Provides REST API for:
- Knowledge card generation (LLM provider chain with template fallback)
- Card illustration generation (Gemini image model)
- Health and configuration status
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_settings
from src.api.schemas import error_response
from src.core.logging_config import configure_logging

settings = get_settings()

HTTP_ERROR_MESSAGES = {
    404: "接口不存在",
    405: "只支持POST请求",
}
BAD_REQUEST_MESSAGE = "请求体格式不正确"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    configure_logging(settings)
    logger.info("Starting knowledge-cards service...")
    logger.info(
        f"Card providers: {settings.get_card_provider_order() or ['mock only']}, "
        f"configured keys: {settings.get_configured_providers()}"
    )

    yield

    logger.info("Shutting down knowledge-cards service...")


app = FastAPI(
    title="Knowledge Cards",
    description="""
    Child-friendly science knowledge cards generated by LLMs.

    ## Flow

    ```
    question
        ↓ validate + rate limit
    primary provider → secondary provider → template cards
        ↓ normalize
    knowledge card (title, introduction, 3 points, summary)
    ```
    """,
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=False,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Requested-With"],
    max_age=86400,
)


# ========================================
# Error handlers
# ========================================


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = HTTP_ERROR_MESSAGES.get(exc.status_code, str(exc.detail))
    return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info(f"Malformed request body on {request.url.path}: {exc.errors()}")
    return error_response(400, BAD_REQUEST_MESSAGE)


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": "knowledge-cards",
        "version": settings.app_version,
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, Any]:
    """Report which providers can be used. Keys themselves are never returned."""
    configured = settings.get_configured_providers()
    card_chain = [name for name in settings.get_card_provider_order() if configured[name]]

    return {
        "status": "healthy" if card_chain else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {
            "card_providers": card_chain or ["mock-data"],
            "image_provider": "configured" if configured["gemini"] else "not_configured",
        },
        "config": {
            "rate_limit_requests": settings.rate_limit_requests,
            "rate_limit_window_seconds": settings.rate_limit_window_seconds,
            "card_length_policy": settings.card_length_policy,
        },
    }


# ========================================
# Import and mount routers
# ========================================

from src.api.routers import card_router, image_router

app.include_router(card_router.router, prefix="/api", tags=["Cards"])
app.include_router(image_router.router, prefix="/api", tags=["Images"])
