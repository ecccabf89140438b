"""Question validation: emptiness, length and a child-safety denylist."""

from __future__ import annotations

from typing import Any, Iterable

from src.core.errors import QuestionValidationError, ValidationErrorKind
from src.core.result import Result

DEFAULT_FORBIDDEN_WORDS = ("暴力", "色情", "政治", "赌博")
DEFAULT_MAX_LENGTH = 200


class ContentValidator:
    """
    Validates raw question input.

    On success the trimmed question is returned with no other change.
    """

    def __init__(
        self,
        max_length: int = DEFAULT_MAX_LENGTH,
        forbidden_words: Iterable[str] = DEFAULT_FORBIDDEN_WORDS,
    ):
        self.max_length = max_length
        self.forbidden_words = tuple(w.lower() for w in forbidden_words if w)

    def validate(self, question: Any) -> Result[str, QuestionValidationError]:
        if not isinstance(question, str) or not question.strip():
            return Result.failure(
                QuestionValidationError(ValidationErrorKind.EMPTY_INPUT, "问题不能为空")
            )

        trimmed = question.strip()
        if len(trimmed) > self.max_length:
            return Result.failure(
                QuestionValidationError(
                    ValidationErrorKind.TOO_LONG,
                    f"问题长度不能超过{self.max_length}个字符",
                )
            )

        lowered = trimmed.lower()
        if any(word in lowered for word in self.forbidden_words):
            return Result.failure(
                QuestionValidationError(
                    ValidationErrorKind.FORBIDDEN_CONTENT,
                    "问题内容不适合儿童，请重新输入",
                )
            )

        return Result.success(trimmed)
