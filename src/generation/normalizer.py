"""
Card Normalizer.

Coerces raw provider output into a KnowledgeCard. Extraction is a list of
strategies tried in order:

1. StrictJsonStrategy    - largest brace-delimited JSON object with all fields
2. HeuristicTextStrategy - line-based extraction when the model ignored JSON
3. ApologyCardStrategy   - fixed learning-encouragement card

Whatever strategy produced the raw fields, the same field rules are applied
afterwards: sanitize, emoji and address prefixes, length banding, and a clamp
to exactly three points. ``normalize`` never raises.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from loguru import logger

from .models import (
    HARD_MAX_CHARS,
    POINT_TITLE_MAX_CHARS,
    POINTS_PER_CARD,
    TITLE_MAX_CHARS,
    CardSource,
    KnowledgeCard,
    Point,
)

EMOJI_PATTERN = re.compile(
    "["
    "\U0001F300-\U0001FAFF"  # pictographs, emoticons, transport, extended-A
    "\U0001F1E0-\U0001F1FF"  # regional indicators
    "\u2600-\u27BF"  # misc symbols, dingbats
    "\u2B50\u2B55"
    "]"
)
CHILD_ADDRESS_PATTERN = re.compile(r"小朋友|让我们|一起")

_MARKDOWN_EMPHASIS = re.compile(r"\*+")
_MARKDOWN_HEADING = re.compile(r"#{1,6}\s*")
_WHITESPACE = re.compile(r"\s+")
_WORD = re.compile(r"\w")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

ELLIPSIS = "..."

DEFAULT_TITLE = "🌟 有趣的知识"
DEFAULT_TITLE_EMOJI = "🌟"
DEFAULT_INTRODUCTION = "让我们一起学习新知识吧！"
CHILD_ADDRESS_PREFIX = "小朋友，"
DEFAULT_SUMMARY = "学习让我们变得更聪明！"
DEFAULT_SUMMARY_EMOJI = "💡"
DEFAULT_POINT_CONTENT = "这是一个有趣的知识点。"
POINT_EMOJIS = ("📚", "🔍", "🎯")
POINT_TITLES = ("📚 基础认知", "🔍 深入探索", "🎯 实际应用")

CONTENT_FILLERS = (
    "这个现象背后有着有趣的科学原理。科学家们通过长期观察和研究，发现了其中的奥秘。",
    "在我们的日常生活中，可以观察到很多类似的例子。这些现象都遵循着相同的科学规律。",
    "这个知识不仅有趣，还很实用。了解了这个原理，我们就能更好地理解周围的世界。",
)


# =============================================================================
# Text helpers
# =============================================================================


def sanitize(value: Any) -> str:
    """Strip markdown emphasis/heading markers, collapse whitespace, cap at 500."""
    if not isinstance(value, str):
        return ""
    text = _MARKDOWN_EMPHASIS.sub("", value)
    text = _MARKDOWN_HEADING.sub("", text)
    text = _WHITESPACE.sub(" ", text).strip()
    return text[:HARD_MAX_CHARS]


def has_emoji(text: str) -> bool:
    return bool(EMOJI_PATTERN.search(text))


def strip_emoji(text: str) -> str:
    return _WHITESPACE.sub(" ", EMOJI_PATTERN.sub("", text).replace("\ufe0f", "")).strip()


def fit_length(text: str, max_chars: int) -> str:
    """Truncate to ``max_chars`` including a trailing ellipsis marker."""
    if len(text) <= max_chars:
        return text
    if max_chars <= len(ELLIPSIS):
        return text[:max_chars]
    return text[: max_chars - len(ELLIPSIS)] + ELLIPSIS


def with_emoji(text: str, emoji: str, max_chars: int) -> str:
    """Fit ``text`` to ``max_chars`` keeping at least one emoji in the result."""
    if not has_emoji(text):
        text = f"{emoji} {text}"
    text = fit_length(text, max_chars)
    if not has_emoji(text):
        # the only emoji was cut off the end
        text = fit_length(f"{emoji} {text}", max_chars)
    return text


# =============================================================================
# Length policy
# =============================================================================


@dataclass(frozen=True)
class LengthPolicy:
    """Per-field length bands. Point content below the floor gets a filler sentence."""

    title_max: int = TITLE_MAX_CHARS
    introduction_max: int = 40
    point_title_max: int = POINT_TITLE_MAX_CHARS
    point_content_min: int = 80
    point_content_max: int = 120
    summary_max: int = 30

    @classmethod
    def rich(cls) -> "LengthPolicy":
        return cls()

    @classmethod
    def compact(cls) -> "LengthPolicy":
        return cls(point_content_min=0, point_content_max=50)

    @classmethod
    def named(cls, name: str) -> "LengthPolicy":
        if name == "compact":
            return cls.compact()
        if name == "rich":
            return cls.rich()
        raise ValueError(f"Unknown length policy: {name}")


# =============================================================================
# Extraction strategies
# =============================================================================


class ExtractionStrategy(Protocol):
    name: str

    def extract(self, raw_text: str) -> dict[str, Any] | None:
        """Return raw card fields, or None when this strategy does not apply."""
        ...


class StrictJsonStrategy:
    name = "strict-json"
    required_fields = ("title", "introduction", "points", "summary")

    def extract(self, raw_text: str) -> dict[str, Any] | None:
        match = _JSON_OBJECT.search(raw_text)
        if not match:
            return None
        try:
            data = json.loads(match.group(0))
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None
        if not all(data.get(name) for name in self.required_fields):
            return None
        if not isinstance(data["points"], list):
            return None
        return data


class HeuristicTextStrategy:
    """Line-based extraction for answers that ignored the JSON instruction."""

    name = "heuristic-text"

    introduction = "小朋友，让我来为你解答这个问题！我们一起来学习吧！"
    summary = "💡 学习新知识让我们变得更聪明，保持好奇心很重要！"
    expansions = (
        "这个概念很重要，它帮助我们理解世界的运作方式。科学家们通过仔细观察和研究，发现了其中的规律。",
        "深入了解这个现象，我们会发现更多有趣的细节。就像拼图一样，每个小知识都是完整图画的一部分。",
        "这些知识在我们的生活中很有用。了解了原理，我们就能更好地解释身边发生的事情。",
    )
    fallback_fragments = (
        "这是一个很有趣的话题。",
        "让我们更深入地了解一下。",
        "这些知识很有用。",
    )
    expand_below = 80

    def extract(self, raw_text: str) -> dict[str, Any] | None:
        lines = [line.strip() for line in raw_text.splitlines() if line.strip()]
        if not any(_WORD.search(line) for line in lines):
            return None

        groups = (lines[1:3], lines[3:5], lines[max(1, len(lines) - 2):])
        points = []
        for index, group in enumerate(groups):
            content = " ".join(group) or self.fallback_fragments[index]
            if len(content) < self.expand_below:
                content += self.expansions[index]
            points.append({"title": POINT_TITLES[index], "content": content})

        return {
            "title": lines[0],
            "introduction": self.introduction,
            "points": points,
            "summary": self.summary,
        }


class ApologyCardStrategy:
    """Evergreen learning-encouragement card used when nothing else parses."""

    name = "apology-card"

    card = {
        "title": "🌟 知识探索小课堂",
        "introduction": "小朋友，AI老师遇到了一点小问题，但学习的热情不能停！",
        "points": [
            {
                "title": "📚 学习方法",
                "content": (
                    "遇到不懂的问题时，可以问老师、家长或查阅书籍。每个问题都是学习的好机会，"
                    "通过多种方式寻找答案，我们会学到更多知识。记住，没有愚蠢的问题，"
                    "只有不问问题的遗憾！我们一起加油吧！"
                ),
            },
            {
                "title": "🔍 探索精神",
                "content": (
                    "保持好奇心是学习最重要的品质。世界上有无数有趣的现象等待我们去发现。"
                    "就像科学家一样，我们要勇敢地提出问题，仔细观察周围的事物，"
                    "用心思考其中的原理。你也可以成为小小科学家！"
                ),
            },
            {
                "title": "🎯 持续成长",
                "content": (
                    "每天学一点新知识，就像小树苗每天长高一点点。知识会让我们的大脑变得更聪明，"
                    "帮助我们更好地理解这个美妙的世界。学习是一场永不结束的冒险，"
                    "让我们一起出发，去发现更多的奥秘吧！"
                ),
            },
        ],
        "summary": "💡 学习的脚步不会停止，保持好奇心，继续探索吧！",
    }

    def extract(self, raw_text: str) -> dict[str, Any] | None:
        return self.card


DEFAULT_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    StrictJsonStrategy(),
    HeuristicTextStrategy(),
    ApologyCardStrategy(),
)


# =============================================================================
# Normalizer
# =============================================================================


@dataclass(frozen=True)
class NormalizationOutcome:
    card: KnowledgeCard
    strategy: str

    @property
    def is_apology(self) -> bool:
        return self.strategy == ApologyCardStrategy.name


class CardNormalizer:
    """Turns raw provider text into a KnowledgeCard that satisfies the field rules."""

    def __init__(
        self,
        policy: LengthPolicy | None = None,
        strategies: Sequence[ExtractionStrategy] = DEFAULT_STRATEGIES,
    ):
        self.policy = policy or LengthPolicy.rich()
        self.strategies = tuple(strategies)

    def normalize(self, raw_text: str, source: CardSource) -> NormalizationOutcome:
        text = raw_text if isinstance(raw_text, str) else ""
        for strategy in self.strategies:
            try:
                fields = strategy.extract(text)
                if fields is None:
                    continue
                card = self.apply_field_rules(fields, source)
            except Exception as exc:
                logger.warning(f"Normalization strategy {strategy.name} failed: {exc}")
                continue
            logger.debug(f"Card normalized with strategy {strategy.name}")
            return NormalizationOutcome(card=card, strategy=strategy.name)

        return NormalizationOutcome(
            card=self.apply_field_rules(ApologyCardStrategy.card, source),
            strategy=ApologyCardStrategy.name,
        )

    def normalize_card(self, raw_text: str, source: CardSource) -> KnowledgeCard:
        return self.normalize(raw_text, source).card

    # -------------------------------------------------------------------------
    # Field rules
    # -------------------------------------------------------------------------

    def apply_field_rules(self, fields: dict[str, Any], source: CardSource) -> KnowledgeCard:
        policy = self.policy

        title = with_emoji(
            sanitize(fields.get("title")) or DEFAULT_TITLE,
            DEFAULT_TITLE_EMOJI,
            policy.title_max,
        )

        introduction = sanitize(fields.get("introduction")) or DEFAULT_INTRODUCTION
        if not CHILD_ADDRESS_PATTERN.search(introduction):
            introduction = CHILD_ADDRESS_PREFIX + introduction
        introduction = fit_length(introduction, policy.introduction_max)

        raw_points = fields.get("points")
        if not isinstance(raw_points, list):
            raw_points = []
        points = [
            self._normalize_point(raw, index)
            for index, raw in enumerate(raw_points[:POINTS_PER_CARD])
        ]
        for index in range(len(points), POINTS_PER_CARD):
            logger.debug(f"Padding missing point {index + 1} with filler text")
            points.append(self._normalize_point({"title": POINT_TITLES[index]}, index))

        summary = with_emoji(
            sanitize(fields.get("summary")) or DEFAULT_SUMMARY,
            DEFAULT_SUMMARY_EMOJI,
            policy.summary_max,
        )

        return KnowledgeCard(
            title=title,
            introduction=introduction,
            points=tuple(points),
            summary=summary,
            source=source,
        )

    def _normalize_point(self, raw: Any, index: int) -> Point:
        if isinstance(raw, str):
            raw = {"content": raw}
        elif not isinstance(raw, dict):
            raw = {}

        title = with_emoji(
            sanitize(raw.get("title")) or f"知识点{index + 1}",
            POINT_EMOJIS[index % len(POINT_EMOJIS)],
            self.policy.point_title_max,
        )

        content = sanitize(raw.get("content")) or DEFAULT_POINT_CONTENT
        filler = index
        while len(content) < self.policy.point_content_min:
            content += CONTENT_FILLERS[filler % len(CONTENT_FILLERS)]
            filler += 1
        content = fit_length(content, self.policy.point_content_max)

        return Point(title=title, content=content)
