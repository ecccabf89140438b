"""
Card generation pipeline.

Walks one request through an explicit state machine:

    VALIDATING -> RATE_LIMITING -> TRYING_PRIMARY -> TRYING_SECONDARY
               -> USING_MOCK -> RESPONDING

with REJECTED reachable from VALIDATING and RATE_LIMITING. Every stage
returns a Result; provider failures are logged and move the request to the
next stage, so a validated, non-throttled request always ends in RESPONDING
with a usable card.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Sequence

from loguru import logger

from src.core.errors import (
    CardServiceError,
    MalformedResponse,
    ProviderError,
    QuestionValidationError,
    RateLimitExceeded,
)
from src.core.rate_limiter import RateLimitDecision, RateLimiter
from src.core.result import Result
from src.integrations.base import CardProvider

from .mock_cards import MockCardGenerator
from .models import CardSource, KnowledgeCard
from .normalizer import CardNormalizer
from .validator import ContentValidator


class PipelineState(str, Enum):
    VALIDATING = "validating"
    RATE_LIMITING = "rate_limiting"
    TRYING_PRIMARY = "trying_primary"
    TRYING_SECONDARY = "trying_secondary"
    USING_MOCK = "using_mock"
    RESPONDING = "responding"
    REJECTED = "rejected"


PROVIDER_STATES = {
    CardSource.PRIMARY: PipelineState.TRYING_PRIMARY,
    CardSource.SECONDARY: PipelineState.TRYING_SECONDARY,
}


@dataclass
class PipelineOutcome:
    """Terminal result of one pipeline run."""

    state: PipelineState
    question: str | None = None
    card: KnowledgeCard | None = None
    provider: str | None = None
    error: CardServiceError | None = None
    rate_limit: RateLimitDecision | None = None
    visited: list[PipelineState] = field(default_factory=list)
    provider_errors: list[ProviderError] = field(default_factory=list)
    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def succeeded(self) -> bool:
        return self.state is PipelineState.RESPONDING

    @property
    def source(self) -> CardSource | None:
        return self.card.source if self.card else None


class CardPipeline:
    """Validator -> rate limiter -> provider chain -> mock fallback."""

    def __init__(
        self,
        validator: ContentValidator,
        rate_limiter: RateLimiter,
        providers: Sequence[tuple[CardSource, CardProvider]],
        normalizer: CardNormalizer | None = None,
        mock_generator: MockCardGenerator | None = None,
    ):
        self.validator = validator
        self.rate_limiter = rate_limiter
        self.providers = list(providers)
        self.normalizer = normalizer or CardNormalizer()
        self.mock_generator = mock_generator or MockCardGenerator()

    # =========================================================================
    # Stages
    # =========================================================================

    def validate(self, question: object) -> Result[str, QuestionValidationError]:
        return self.validator.validate(question)

    def rate_limit(self, client_key: str) -> Result[RateLimitDecision, RateLimitExceeded]:
        decision = self.rate_limiter.check(client_key)
        if decision.allowed:
            return Result.success(decision)
        return Result.failure(RateLimitExceeded(decision))

    async def try_provider(
        self, provider: CardProvider, source: CardSource, question: str
    ) -> Result[KnowledgeCard, ProviderError]:
        try:
            raw = await provider.generate_card(question)
        except Exception as e:
            logger.exception(f"[{provider.name}] generate_card raised instead of returning a Result")
            return Result.failure(ProviderError(provider.name, f"unexpected {type(e).__name__}: {e}"))
        if not raw.ok:
            return Result.failure(raw.error)

        outcome = self.normalizer.normalize(raw.value, source)
        if outcome.is_apology:
            return Result.failure(
                MalformedResponse(provider.name, "provider text could not be parsed into a card")
            )
        logger.info(f"[{provider.name}] Card accepted via {outcome.strategy} ({source.value})")
        return Result.success(outcome.card)

    def use_mock(self, question: str) -> KnowledgeCard:
        return self.mock_generator.generate(question)

    # =========================================================================
    # State machine
    # =========================================================================

    async def run(self, question: object, client_key: str) -> PipelineOutcome:
        outcome = PipelineOutcome(state=PipelineState.VALIDATING)
        outcome.visited.append(PipelineState.VALIDATING)

        validated = self.validate(question)
        if not validated.ok:
            logger.info(f"Rejected question from {client_key}: {validated.error}")
            return self._finish(outcome, PipelineState.REJECTED, error=validated.error)
        outcome.question = validated.value

        outcome.visited.append(PipelineState.RATE_LIMITING)
        limited = self.rate_limit(client_key)
        outcome.rate_limit = limited.value if limited.ok else limited.error.decision
        if not limited.ok:
            return self._finish(outcome, PipelineState.REJECTED, error=limited.error)

        logger.info(f"Received question {outcome.question!r} from {client_key}")

        for source, provider in self.providers:
            outcome.visited.append(PROVIDER_STATES[source])
            attempt = await self.try_provider(provider, source, outcome.question)
            if attempt.ok:
                outcome.card = attempt.value
                outcome.provider = provider.name
                return self._finish(outcome, PipelineState.RESPONDING)
            outcome.provider_errors.append(attempt.error)
            logger.warning(
                f"[{provider.name}] {source.value} failed, falling back: "
                f"{type(attempt.error).__name__}: {attempt.error}"
            )

        outcome.visited.append(PipelineState.USING_MOCK)
        outcome.card = self.use_mock(outcome.question)
        outcome.provider = "mock"
        logger.info(f"Serving mock card for {outcome.question!r}")
        return self._finish(outcome, PipelineState.RESPONDING)

    @staticmethod
    def _finish(
        outcome: PipelineOutcome,
        state: PipelineState,
        error: CardServiceError | None = None,
    ) -> PipelineOutcome:
        outcome.state = state
        outcome.error = error
        outcome.visited.append(state)
        return outcome
