"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import json
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings
from src.core.errors import ProviderError
from src.core.rate_limiter import InMemoryRateLimitStore, RateLimiter
from src.core.result import Result

# "AIza" + 35 URL-safe characters
VALID_GEMINI_KEY = "AIza" + "SyTestKeyForUnitTests_0123456789abc"


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (in-process API)")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


class FakeClock:
    """Manually advanced clock for rate limiter tests."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider:
    """Card provider returning canned results in order (the last one repeats)."""

    def __init__(self, name: str, *results: Result):
        self.name = name
        self.results = list(results)
        self.questions: list[str] = []

    async def generate_card(self, question: str) -> Result:
        self.questions.append(question)
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]

    @classmethod
    def answering(cls, name: str, text: str) -> "FakeProvider":
        return cls(name, Result.success(text))

    @classmethod
    def failing(cls, name: str, error: ProviderError | None = None) -> "FakeProvider":
        return cls(name, Result.failure(error or ProviderError(name, "boom")))


def card_json(title="🦕 恐龙的秘密", points=3, **overrides) -> str:
    """Well-formed card JSON as a provider would return it."""
    data = {
        "title": title,
        "introduction": "小朋友，恐龙是很久以前生活在地球上的动物！",
        "points": [
            {
                "title": f"🔍 秘密{i + 1}",
                "content": (
                    f"这是第{i + 1}个知识点。恐龙生活在很久很久以前，科学家通过化石来研究它们。"
                    "化石就像大自然留下的照片，告诉我们恐龙长什么样子，吃什么食物，怎样生活。"
                ),
            }
            for i in range(points)
        ],
        "summary": "💡 恐龙虽然消失了，但化石让我们认识它们！",
    }
    data.update(overrides)
    return json.dumps(data, ensure_ascii=False)


@pytest.fixture
def settings():
    """Settings with both providers configured and no .env file."""
    return Settings(
        _env_file=None,
        glm_api_key="test-glm-key",
        gemini_api_key=VALID_GEMINI_KEY,
        rate_limit_requests=10,
        rate_limit_window_seconds=60,
    )


@pytest.fixture
def clock():
    return FakeClock(start=1_700_000_000.0)


@pytest.fixture
def rate_limiter(clock):
    return RateLimiter(InMemoryRateLimitStore(), limit=10, window_seconds=60, clock=clock)
