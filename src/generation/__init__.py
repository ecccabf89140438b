"""Knowledge card generation.

Pipeline:
1. ContentValidator checks the child's question
2. RateLimiter throttles each client
3. Providers (GLM, Gemini) answer with card JSON, normalized by CardNormalizer
4. Mock templates answer when no provider produced a usable card

Usage:
    from src.generation import CardNormalizer, CardSource

    card = CardNormalizer().normalize_card(raw_text, CardSource.PRIMARY)
    print(card.title)
"""
from src.generation.mock_cards import MockCardGenerator, generate_mock_card
from src.generation.models import CardSource, GeneratedImage, KnowledgeCard, Point
from src.generation.normalizer import CardNormalizer, LengthPolicy, NormalizationOutcome
from src.generation.validator import ContentValidator

__all__ = [
    "CardNormalizer",
    "CardSource",
    "ContentValidator",
    "GeneratedImage",
    "KnowledgeCard",
    "LengthPolicy",
    "MockCardGenerator",
    "NormalizationOutcome",
    "Point",
    "generate_mock_card",
]
