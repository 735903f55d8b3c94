"""
Evaluation parser.

Turns rubric text emitted by the language model into an EvaluationResult.
The expected shape is one line per category followed by an overall
feedback paragraph:

    • Correctness: 8/10 – Accurate and well reasoned.
    • Clarity & Structure: 6.5/10 — Somewhat rambling.
    ...
    Overall Feedback: Solid answers overall.

Model output is unreliable, so parsing never raises on malformed input: it
returns whatever categories it could match with confidence.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from mock_interviewer.errors import EvaluationUnparseable
from mock_interviewer.evaluation.rubric import (
    CategoryScore,
    EvaluationResult,
    RubricCategory,
)

logger = logging.getLogger(__name__)

_BULLET_CHARS = "•·*–—-"

_SCORE_LINE_RE = re.compile(
    rf"""^\s*
    (?:[{_BULLET_CHARS}]\s*)?              # optional bullet
    (?P<label>[^:]+?)\s*:\s*\**\s*         # category label
    (?P<score>\d+(?:\.\d+)?)\s*/\s*10\**   # N/10 or N.N/10
    (?:\s*[–—-])?\s*                       # optional separator
    (?P<explanation>.*?)\s*$
    """,
    re.VERBOSE,
)

_OVERALL_RE = re.compile(
    rf"^\s*(?:[{_BULLET_CHARS}]\s*)?\**\s*overall\s+feedback\b",
    re.IGNORECASE,
)

# Checked in order; the first keyword contained in the label wins.
_LABEL_KEYWORDS: tuple[tuple[str, RubricCategory], ...] = (
    ("clarity", RubricCategory.CLARITY_AND_STRUCTURE),
    ("confidence", RubricCategory.CONFIDENCE_AND_TONE),
    ("communication", RubricCategory.COMMUNICATION_SKILLS),
    ("correctness", RubricCategory.CORRECTNESS),
    ("completeness", RubricCategory.COMPLETENESS),
    ("relevance", RubricCategory.RELEVANCE),
)


@dataclass(frozen=True)
class ScoreLine:
    """A line carrying one category score."""

    category: RubricCategory
    score: CategoryScore


@dataclass(frozen=True)
class OverallFeedbackLine:
    """The line that opens the overall feedback paragraph."""

    text: str


ParsedLine = ScoreLine | OverallFeedbackLine | None


def normalize_category(label: str) -> RubricCategory | None:
    """
    Map a free-form label to a rubric category.

    Matching is case-insensitive, ignores markdown emphasis, treats "&" and
    "and" alike and accepts partial labels ("Clarity" → Clarity & Structure).

    Args:
        label: Label text as written by the model.

    Returns:
        The matching category, or None if the label is not recognised.
    """
    normalized = label.replace("*", "").replace("_", " ").lower()
    normalized = normalized.replace("&", " and ")
    normalized = " ".join(normalized.split())
    if not normalized:
        return None

    for keyword, category in _LABEL_KEYWORDS:
        if keyword in normalized:
            return category
    return None


def parse_line(line: str) -> ParsedLine:
    """
    Classify one line of rubric text.

    Args:
        line: A single line without its newline.

    Returns:
        ScoreLine, OverallFeedbackLine, or None for anything else.
    """
    if _OVERALL_RE.match(line):
        _, sep, remainder = line.partition(":")
        if not sep:
            remainder = _OVERALL_RE.sub("", line, count=1)
        return OverallFeedbackLine(text=remainder.replace("**", "").strip(" \t:–—-"))

    match = _SCORE_LINE_RE.match(line)
    if not match:
        return None

    category = normalize_category(match.group("label"))
    if category is None:
        return None

    return ScoreLine(
        category=category,
        score=CategoryScore(
            score=match.group("score"),
            explanation=match.group("explanation"),
        ),
    )


class EvaluationParser:
    """Parses rubric-formatted evaluation text."""

    def parse(self, text: str | None, *, strict: bool = False) -> EvaluationResult:
        """
        Parse evaluation text into structured scores.

        Args:
            text: Raw model output.
            strict: Raise EvaluationUnparseable when nothing matched.

        Returns:
            Result holding only the categories that were found.
        """
        categories: dict[RubricCategory, CategoryScore] = {}
        summary_parts: list[str] = []
        found_summary = False
        capturing = False

        for line in (text or "").splitlines():
            parsed = parse_line(line)

            if isinstance(parsed, OverallFeedbackLine):
                found_summary = True
                capturing = True
                summary_parts = [parsed.text] if parsed.text else []
                continue

            if isinstance(parsed, ScoreLine):
                capturing = False
                categories[parsed.category] = parsed.score
                continue

            if capturing:
                if not line.strip():
                    capturing = False
                else:
                    summary_parts.append(line.strip())

        summary = " ".join(summary_parts).strip() if found_summary else None
        result = EvaluationResult(categories=categories, overall_summary=summary or None)

        if result.is_empty:
            logger.debug("No rubric categories found in evaluation text")
            if strict:
                raise EvaluationUnparseable("Evaluation text contained no rubric scores")
        else:
            logger.debug(f"Parsed {len(categories)} rubric categories")

        return result


def parse_evaluation(text: str | None) -> EvaluationResult:
    """Parse evaluation text with the default parser."""
    return EvaluationParser().parse(text)
