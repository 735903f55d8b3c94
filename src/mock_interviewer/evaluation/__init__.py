"""
Evaluation module: rubric schemas, the rubric text parser and score
aggregation for analytics.
"""

from mock_interviewer.evaluation.aggregation import (
    AbsentScore,
    RawScore,
    ScoreValue,
    StructuredScore,
    TrendPoint,
    bucket_averages,
    category_scores,
    evaluation_from_record,
    extract_score,
    role_distribution,
    score_trend,
    session_mean,
)
from mock_interviewer.evaluation.parser import (
    EvaluationParser,
    OverallFeedbackLine,
    ScoreLine,
    normalize_category,
    parse_evaluation,
    parse_line,
)
from mock_interviewer.evaluation.rubric import (
    CategoryScore,
    EvaluationResult,
    RubricCategory,
    coerce_score,
)

__all__ = [
    "AbsentScore",
    "CategoryScore",
    "EvaluationParser",
    "EvaluationResult",
    "OverallFeedbackLine",
    "RawScore",
    "RubricCategory",
    "ScoreLine",
    "ScoreValue",
    "StructuredScore",
    "TrendPoint",
    "bucket_averages",
    "category_scores",
    "coerce_score",
    "evaluation_from_record",
    "extract_score",
    "normalize_category",
    "parse_evaluation",
    "parse_line",
    "role_distribution",
    "score_trend",
    "session_mean",
]
