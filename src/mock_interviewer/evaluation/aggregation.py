"""
Score aggregation for analytics.

Stored evaluations come in several shapes: plain "N/10" strings, structured
{"score", "explanation"} objects, or only a "Scores" text block. Everything
here reduces them to finite numbers in [0, 10] so averages and charts never
see NaN.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from mock_interviewer.evaluation.rubric import (
    OVERALL_SUMMARY_KEY,
    SCORES_KEY,
    CategoryScore,
    EvaluationResult,
    RubricCategory,
    coerce_score,
)

if TYPE_CHECKING:
    from mock_interviewer.schemas import InterviewSession


@dataclass(frozen=True)
class RawScore:
    """A score stored as text, e.g. "7/10"."""

    text: str


@dataclass(frozen=True)
class StructuredScore:
    """A score stored as {"score": ..., "explanation": ...}."""

    score: Any
    explanation: str = ""


@dataclass(frozen=True)
class AbsentScore:
    """No stored value for the category."""


ScoreValue = RawScore | StructuredScore | AbsentScore


@dataclass(frozen=True)
class TrendPoint:
    """Mean score of one session."""

    session_id: str
    created_at: datetime | None
    mean: float


def to_score_value(value: Any) -> ScoreValue:
    """
    Classify a stored category value.

    Args:
        value: A string, a mapping with a "score" key, a CategoryScore, or None.

    Returns:
        The matching ScoreValue variant.
    """
    if isinstance(value, (RawScore, StructuredScore, AbsentScore)):
        return value
    if isinstance(value, CategoryScore):
        return StructuredScore(score=value.score, explanation=value.explanation)
    if isinstance(value, Mapping):
        if value.get("score") is None:
            return AbsentScore()
        return StructuredScore(
            score=value.get("score"),
            explanation=str(value.get("explanation") or ""),
        )
    if isinstance(value, str) and value.strip():
        return RawScore(text=value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return StructuredScore(score=value)
    return AbsentScore()


def score_from_text(text: str | None, label: str | RubricCategory | None) -> float:
    """
    Find "<label>: N/10" in a Scores block.

    Args:
        text: Multi-line text to search.
        label: Category label to look for.

    Returns:
        The score in [0, 10], or 0 if not found.
    """
    if not text or not label:
        return 0.0
    name = label.value if isinstance(label, RubricCategory) else label
    pattern = re.compile(rf"{re.escape(name)}:\s*(\d+(?:\.\d+)?)/10", re.IGNORECASE)
    match = pattern.search(text)
    return coerce_score(match.group(1)) if match else 0.0


def extract_score(
    value: Any,
    scores_text: str | None = None,
    label: str | RubricCategory | None = None,
) -> float:
    """
    Reduce a stored category value to a number in [0, 10].

    A present value wins over the Scores text fallback; with neither the
    score is 0. Unparseable, non-finite and out-of-range values become 0.

    Args:
        value: Stored value in any supported shape.
        scores_text: Optional Scores block for the fallback search.
        label: Category label used with scores_text.

    Returns:
        Sanitized score.
    """
    variant = to_score_value(value)
    if isinstance(variant, StructuredScore):
        return coerce_score(variant.score)
    if isinstance(variant, RawScore):
        return coerce_score(variant.text)
    return score_from_text(scores_text, label)


def category_scores(
    evaluation: EvaluationResult | Mapping[str, Any] | None,
) -> dict[RubricCategory, float]:
    """
    Score every rubric category of one evaluation.

    Args:
        evaluation: A parsed result or a stored analysis record.

    Returns:
        Mapping with all six categories.
    """
    if evaluation is None:
        return {category: 0.0 for category in RubricCategory}

    if isinstance(evaluation, EvaluationResult):
        scores_text = evaluation.scores_text
        return {
            category: extract_score(evaluation.get(category), scores_text, category)
            for category in RubricCategory
        }

    scores_text = evaluation.get(SCORES_KEY)
    if not isinstance(scores_text, str):
        scores_text = None
    return {
        category: extract_score(evaluation.get(category.value), scores_text, category)
        for category in RubricCategory
    }


def session_mean(scores: Mapping[RubricCategory, float]) -> float:
    """Mean over all six categories; missing ones count as 0."""
    total = sum(_finite(scores.get(category, 0.0)) for category in RubricCategory)
    return total / len(RubricCategory)


def has_positive_score(scores: Mapping[RubricCategory, float]) -> bool:
    return any(_finite(v) > 0 for v in scores.values())


def score_trend(sessions: Iterable[InterviewSession]) -> list[TrendPoint]:
    """
    Per-session mean scores for trend reporting.

    Sessions whose categories are all 0 carry no usable evaluation and are
    left out. Input order is preserved.

    Args:
        sessions: Sessions to include.

    Returns:
        One point per session with at least one positive score.
    """
    points: list[TrendPoint] = []
    for session in sessions:
        scores = category_scores(session.evaluation)
        if not has_positive_score(scores):
            continue
        points.append(
            TrendPoint(
                session_id=str(session.session_id),
                created_at=session.created_at,
                mean=session_mean(scores),
            )
        )
    return points


def bucket_key(role: str, level: str) -> str:
    """Bucket label such as "Backend Engineer - L4"; "L4" and "4" share one."""
    level = level.strip()
    if re.fullmatch(r"[Ll]\d+", level):
        level = level[1:]
    return f"{role.strip()} - L{level}"


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up."""
    return int(math.floor(value + 0.5))


def bucket_averages(
    sessions: Iterable[InterviewSession],
) -> dict[str, dict[RubricCategory, int]]:
    """
    Average category scores per (role, level) bucket.

    Args:
        sessions: Sessions to aggregate. Those without an available
            evaluation are skipped.

    Returns:
        Mapping of "role - L<level>" to rounded per-category averages.
    """
    totals: dict[str, dict[RubricCategory, float]] = {}
    counts: Counter[str] = Counter()

    for session in sessions:
        if not session.evaluation_available:
            continue
        key = bucket_key(session.context.role, session.context.level)
        bucket = totals.setdefault(key, {category: 0.0 for category in RubricCategory})
        for category, score in category_scores(session.evaluation).items():
            bucket[category] += _finite(score)
        counts[key] += 1

    averages: dict[str, dict[RubricCategory, int]] = {}
    for key, bucket in totals.items():
        count = counts[key]
        if count == 0:
            continue
        averages[key] = {
            category: round_half_up(total / count) for category, total in bucket.items()
        }
    return averages


def role_distribution(sessions: Iterable[InterviewSession]) -> dict[str, int]:
    """Number of sessions per role."""
    return dict(Counter(session.context.role for session in sessions))


def evaluation_from_record(record: Mapping[str, Any] | None) -> EvaluationResult:
    """
    Rebuild an EvaluationResult from a stored analysis record.

    Categories with no value and no Scores line stay absent.

    Args:
        record: Stored analysis mapping in any supported shape.

    Returns:
        Parsed evaluation.
    """
    if not record:
        return EvaluationResult()

    scores_text = record.get(SCORES_KEY)
    if not isinstance(scores_text, str):
        scores_text = None

    categories: dict[RubricCategory, CategoryScore] = {}
    for category in RubricCategory:
        variant = to_score_value(record.get(category.value))
        if isinstance(variant, AbsentScore):
            if not _scores_text_has(scores_text, category):
                continue
            explanation = ""
        elif isinstance(variant, StructuredScore):
            explanation = variant.explanation
        else:
            explanation = ""
        categories[category] = CategoryScore(
            score=extract_score(variant, scores_text, category),
            explanation=explanation,
        )

    summary = record.get(OVERALL_SUMMARY_KEY)
    return EvaluationResult(
        categories=categories,
        overall_summary=summary if isinstance(summary, str) and summary.strip() else None,
    )


def _scores_text_has(scores_text: str | None, category: RubricCategory) -> bool:
    if not scores_text:
        return False
    return re.search(rf"{re.escape(category.value)}:\s*\d", scores_text, re.IGNORECASE) is not None


def _finite(value: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0
