"""
Rubric schemas.

The six fixed scoring categories and the models that carry per-category
scores through parsing, aggregation and storage.
"""

from __future__ import annotations

import math
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Keys used by the stored analysis record.
OVERALL_SUMMARY_KEY = "Overall Feedback Summary"
SCORES_KEY = "Scores"

MAX_SCORE = 10.0

_SCORE_FRACTION_RE = re.compile(r"(-?\d+(?:\.\d+)?)\s*/\s*10\b")


class RubricCategory(str, Enum):
    """Fixed evaluation dimensions, valued by their display label."""

    CORRECTNESS = "Correctness"
    CLARITY_AND_STRUCTURE = "Clarity & Structure"
    COMPLETENESS = "Completeness"
    RELEVANCE = "Relevance"
    CONFIDENCE_AND_TONE = "Confidence & Tone"
    COMMUNICATION_SKILLS = "Communication Skills"


def coerce_score(value: Any) -> float:
    """
    Coerce a score-like value into the [0, 10] range.

    Accepts numbers, numeric strings and "N/10" fractions. Anything
    unparseable, non-finite or outside the range becomes 0.

    Args:
        value: Raw score value.

    Returns:
        Score between 0 and 10 inclusive.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        match = _SCORE_FRACTION_RE.search(value)
        raw = match.group(1) if match else value.strip()
        try:
            number = float(raw)
        except ValueError:
            return 0.0
    else:
        return 0.0

    if not math.isfinite(number) or number < 0.0 or number > MAX_SCORE:
        return 0.0
    return number


def format_score(score: float) -> str:
    """Render a score in the "N/10" form used by rubric text."""
    return f"{score:g}/10"


class CategoryScore(BaseModel):
    """Score and explanation for one rubric category."""

    model_config = ConfigDict(frozen=True)

    score: float = Field(default=0.0, ge=0.0, le=MAX_SCORE, description="Score out of 10")
    explanation: str = Field(default="", description="Model's explanation for the score")

    @field_validator("score", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> float:
        return coerce_score(value)

    @property
    def score_text(self) -> str:
        """Score as "N/10"."""
        return format_score(self.score)


class EvaluationResult(BaseModel):
    """Structured rubric evaluation of a session or a single answer."""

    model_config = ConfigDict(frozen=True)

    categories: dict[RubricCategory, CategoryScore] = Field(
        default_factory=dict,
        description="Scores for the categories that were found",
    )
    overall_summary: str | None = Field(
        default=None,
        description="Free-text overall feedback",
    )

    @property
    def is_empty(self) -> bool:
        """True when no category was extracted."""
        return not self.categories

    def get(self, category: RubricCategory) -> CategoryScore | None:
        return self.categories.get(category)

    def with_defaults(self) -> EvaluationResult:
        """Return a copy containing all six categories, absent ones at 0."""
        filled = {
            category: self.categories.get(category, CategoryScore())
            for category in RubricCategory
        }
        return EvaluationResult(categories=filled, overall_summary=self.overall_summary)

    @property
    def scores_text(self) -> str:
        """One "Category: N/10" line per category, absent categories at 0/10."""
        lines = []
        for category in RubricCategory:
            entry = self.categories.get(category)
            score = entry.score if entry else 0.0
            lines.append(f"{category.value}: {format_score(score)}")
        return "\n".join(lines)

    def to_record(self) -> dict[str, Any]:
        """
        Build the stored analysis mapping.

        Returns:
            Dict keyed by category label with {"score", "explanation"} values,
            plus the overall summary and the derived Scores block.
        """
        record: dict[str, Any] = {
            category.value: {"score": entry.score_text, "explanation": entry.explanation}
            for category, entry in self.categories.items()
        }
        if self.overall_summary:
            record[OVERALL_SUMMARY_KEY] = self.overall_summary
        record[SCORES_KEY] = self.scores_text
        return record
