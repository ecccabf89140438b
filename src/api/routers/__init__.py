"""API routers for the knowledge-cards service."""

from src.api.routers import card_router, image_router

__all__ = [
    "card_router",
    "image_router",
]
