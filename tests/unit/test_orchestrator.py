"""
Unit tests for the card pipeline state machine.
"""

import pytest

from conftest import FakeProvider, card_json
from src.core.errors import (
    MalformedResponse,
    ProviderTimeout,
    QuestionValidationError,
    RateLimitExceeded,
    UpstreamHttpError,
)
from src.core.rate_limiter import InMemoryRateLimitStore, RateLimiter
from src.generation.models import CardSource
from src.generation.orchestrator import CardPipeline, PipelineState
from src.generation.validator import ContentValidator

S = PipelineState


def build_pipeline(rate_limiter, *providers):
    sources = (CardSource.PRIMARY, CardSource.SECONDARY)
    return CardPipeline(
        validator=ContentValidator(),
        rate_limiter=rate_limiter,
        providers=list(zip(sources, providers)),
    )


class TestProviderChain:
    @pytest.mark.asyncio
    async def test_primary_success(self, rate_limiter):
        primary = FakeProvider.answering("glm", card_json())
        secondary = FakeProvider.answering("gemini", card_json())
        pipeline = build_pipeline(rate_limiter, primary, secondary)

        outcome = await pipeline.run("  恐龙是怎么灭绝的？ ", "1.2.3.4")

        assert outcome.succeeded
        assert outcome.source is CardSource.PRIMARY
        assert outcome.provider == "glm"
        assert outcome.question == "恐龙是怎么灭绝的？"
        assert outcome.visited == [S.VALIDATING, S.RATE_LIMITING, S.TRYING_PRIMARY, S.RESPONDING]
        assert primary.questions == ["恐龙是怎么灭绝的？"]
        assert secondary.questions == []

    @pytest.mark.asyncio
    async def test_secondary_after_primary_failure(self, rate_limiter):
        primary = FakeProvider.failing("glm", UpstreamHttpError("glm", 500, "oops"))
        secondary = FakeProvider.answering("gemini", card_json())
        pipeline = build_pipeline(rate_limiter, primary, secondary)

        outcome = await pipeline.run("恐龙", "1.2.3.4")

        assert outcome.source is CardSource.SECONDARY
        assert outcome.provider == "gemini"
        assert [type(e) for e in outcome.provider_errors] == [UpstreamHttpError]
        assert outcome.visited == [
            S.VALIDATING,
            S.RATE_LIMITING,
            S.TRYING_PRIMARY,
            S.TRYING_SECONDARY,
            S.RESPONDING,
        ]

    @pytest.mark.asyncio
    async def test_mock_when_all_providers_fail(self, rate_limiter):
        pipeline = build_pipeline(
            rate_limiter,
            FakeProvider.failing("glm", ProviderTimeout("glm", 30)),
            FakeProvider.failing("gemini"),
        )

        outcome = await pipeline.run("恐龙是怎么灭绝的？", "1.2.3.4")

        assert outcome.succeeded
        assert outcome.source is CardSource.MOCK
        assert outcome.provider == "mock"
        assert outcome.card.title == "🦕 恐龙的神秘世界"
        assert len(outcome.card.points) == 3
        assert len(outcome.provider_errors) == 2
        assert outcome.visited[-2:] == [S.USING_MOCK, S.RESPONDING]

    @pytest.mark.asyncio
    async def test_mock_when_no_providers_configured(self, rate_limiter):
        outcome = await build_pipeline(rate_limiter).run("彩虹是怎么来的？", "1.2.3.4")

        assert outcome.source is CardSource.MOCK
        assert outcome.visited == [S.VALIDATING, S.RATE_LIMITING, S.USING_MOCK, S.RESPONDING]

    @pytest.mark.asyncio
    async def test_unparseable_primary_answer_falls_back(self, rate_limiter):
        primary = FakeProvider.answering("glm", "!!! ??? !!!")
        secondary = FakeProvider.answering("gemini", card_json(title="🌈 彩虹"))
        pipeline = build_pipeline(rate_limiter, primary, secondary)

        outcome = await pipeline.run("彩虹", "1.2.3.4")

        assert outcome.source is CardSource.SECONDARY
        assert outcome.card.title == "🌈 彩虹"
        assert isinstance(outcome.provider_errors[0], MalformedResponse)

    @pytest.mark.asyncio
    async def test_free_text_answer_is_accepted(self, rate_limiter):
        primary = FakeProvider.answering("glm", "彩虹的秘密\n阳光照在水滴上。\n光被分成七种颜色。")
        pipeline = build_pipeline(rate_limiter, primary)

        outcome = await pipeline.run("彩虹", "1.2.3.4")

        assert outcome.source is CardSource.PRIMARY
        assert outcome.card.title == "🌟 彩虹的秘密"


class TestRejection:
    @pytest.mark.asyncio
    async def test_invalid_question_is_rejected_before_rate_limiting(self, rate_limiter):
        primary = FakeProvider.answering("glm", card_json())
        pipeline = build_pipeline(rate_limiter, primary)

        outcome = await pipeline.run("   ", "1.2.3.4")

        assert not outcome.succeeded
        assert isinstance(outcome.error, QuestionValidationError)
        assert outcome.visited == [S.VALIDATING, S.REJECTED]
        assert outcome.rate_limit is None
        assert len(rate_limiter.store) == 0
        assert primary.questions == []

    @pytest.mark.asyncio
    async def test_throttled_client_is_rejected(self, clock):
        limiter = RateLimiter(InMemoryRateLimitStore(), limit=1, clock=clock)
        primary = FakeProvider.answering("glm", card_json())
        pipeline = build_pipeline(limiter, primary)

        first = await pipeline.run("恐龙", "1.2.3.4")
        second = await pipeline.run("恐龙", "1.2.3.4")

        assert first.succeeded
        assert first.rate_limit.remaining == 0
        assert second.state is S.REJECTED
        assert isinstance(second.error, RateLimitExceeded)
        assert second.rate_limit is second.error.decision
        assert not second.rate_limit.allowed
        assert second.visited == [S.VALIDATING, S.RATE_LIMITING, S.REJECTED]
        assert len(primary.questions) == 1

    @pytest.mark.asyncio
    async def test_other_clients_are_not_throttled(self, clock):
        limiter = RateLimiter(InMemoryRateLimitStore(), limit=1, clock=clock)
        pipeline = build_pipeline(limiter)

        await pipeline.run("恐龙", "1.1.1.1")
        outcome = await pipeline.run("恐龙", "2.2.2.2")

        assert outcome.succeeded


class RaisingProvider:
    """Provider whose generate_card raises instead of returning a Result."""

    def __init__(self, name: str):
        self.name = name

    async def generate_card(self, question: str):
        raise RuntimeError("envelope parser bug")


class TestUnexpectedProviderErrors:
    @pytest.mark.asyncio
    async def test_raising_primary_falls_back_to_secondary(self, rate_limiter):
        secondary = FakeProvider.answering("gemini", card_json(title="🌈 彩虹"))
        pipeline = build_pipeline(rate_limiter, RaisingProvider("glm"), secondary)

        outcome = await pipeline.run("彩虹", "1.2.3.4")

        assert outcome.succeeded
        assert outcome.source is CardSource.SECONDARY
        assert "RuntimeError" in str(outcome.provider_errors[0])

    @pytest.mark.asyncio
    async def test_raising_providers_fall_back_to_mock(self, rate_limiter):
        pipeline = build_pipeline(rate_limiter, RaisingProvider("glm"), RaisingProvider("gemini"))

        outcome = await pipeline.run("恐龙是怎么灭绝的？", "1.2.3.4")

        assert outcome.source is CardSource.MOCK
        assert outcome.card.title == "🦕 恐龙的神秘世界"
        assert len(outcome.provider_errors) == 2
