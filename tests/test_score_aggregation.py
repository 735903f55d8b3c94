import math
from datetime import datetime, timedelta, timezone

import pytest

from mock_interviewer.evaluation import (
    AbsentScore,
    CategoryScore,
    EvaluationResult,
    RawScore,
    RubricCategory,
    StructuredScore,
    bucket_averages,
    category_scores,
    evaluation_from_record,
    extract_score,
    parse_evaluation,
    role_distribution,
    score_trend,
    session_mean,
)
from mock_interviewer.evaluation.aggregation import bucket_key, round_half_up, to_score_value
from mock_interviewer.schemas import InterviewContext, InterviewSession

BASE_TIME = datetime(2024, 5, 1, tzinfo=timezone.utc)


def make_session(
    scores: dict[RubricCategory, float] | None = None,
    role: str = "Backend Engineer",
    level: str = "L4",
    available: bool = True,
    offset_days: int = 0,
) -> InterviewSession:
    categories = {c: CategoryScore(score=s) for c, s in (scores or {}).items()}
    return InterviewSession(
        context=InterviewContext(company="Acme", role=role, level=level),
        evaluation=EvaluationResult(categories=categories).with_defaults(),
        evaluation_available=available,
        created_at=BASE_TIME + timedelta(days=offset_days),
    )


def uniform(score: float) -> dict[RubricCategory, float]:
    return {c: score for c in RubricCategory}


class TestExtractScore:
    def test_raw_string(self) -> None:
        assert extract_score("7/10") == 7.0

    def test_structured(self) -> None:
        assert extract_score({"score": "3.5/10", "explanation": "meh"}) == 3.5

    @pytest.mark.parametrize("value", ["15/10", "-2/10", float("nan"), float("inf"), "abc"])
    def test_invalid_values_become_zero(self, value) -> None:
        assert extract_score(value) == 0.0

    def test_present_value_wins_over_text(self) -> None:
        assert extract_score("4/10", "Correctness: 9/10", "Correctness") == 4.0

    def test_text_fallback_when_absent(self) -> None:
        scores = "Correctness: 9/10\nRelevance: 6.5/10"
        assert extract_score(None, scores, RubricCategory.RELEVANCE) == 6.5
        assert extract_score({}, scores, "correctness") == 9.0

    def test_missing_everywhere_is_zero(self) -> None:
        assert extract_score(None, "Relevance: 6/10", RubricCategory.COMPLETENESS) == 0.0
        assert extract_score(None) == 0.0

    def test_score_value_variants(self) -> None:
        assert to_score_value("7/10") == RawScore(text="7/10")
        assert to_score_value({"score": 5, "explanation": "x"}) == StructuredScore(score=5, explanation="x")
        assert to_score_value({"explanation": "x"}) == AbsentScore()
        assert to_score_value("   ") == AbsentScore()
        assert to_score_value(None) == AbsentScore()


class TestCategoryScores:
    def test_from_legacy_record_with_mixed_shapes(self) -> None:
        record = {
            "Correctness": "8/10",
            "Clarity & Structure": {"score": "6/10", "explanation": "ok"},
            "Scores": "Completeness: 5/10\nRelevance: 7/10",
        }
        scores = category_scores(record)

        assert scores[RubricCategory.CORRECTNESS] == 8.0
        assert scores[RubricCategory.CLARITY_AND_STRUCTURE] == 6.0
        assert scores[RubricCategory.COMPLETENESS] == 5.0
        assert scores[RubricCategory.RELEVANCE] == 7.0
        assert scores[RubricCategory.CONFIDENCE_AND_TONE] == 0.0

    def test_none_gives_all_zero(self) -> None:
        assert set(category_scores(None).values()) == {0.0}

    def test_session_mean_counts_missing_as_zero(self) -> None:
        scores = {RubricCategory.CORRECTNESS: 6.0, RubricCategory.RELEVANCE: 6.0}
        assert session_mean(scores) == pytest.approx(2.0)

    def test_session_mean_is_finite(self) -> None:
        scores = {RubricCategory.CORRECTNESS: float("nan")}
        assert math.isfinite(session_mean(scores))


class TestScoreTrend:
    def test_all_zero_sessions_are_excluded(self) -> None:
        sessions = [
            make_session(uniform(6), offset_days=0),
            make_session(uniform(0), offset_days=1),
            make_session({RubricCategory.CORRECTNESS: 6}, offset_days=2),
        ]
        trend = score_trend(sessions)

        assert len(trend) == 2
        assert trend[0].mean == pytest.approx(6.0)
        assert trend[1].mean == pytest.approx(1.0)

    def test_order_is_preserved(self) -> None:
        later = make_session(uniform(8), offset_days=5)
        earlier = make_session(uniform(4), offset_days=1)
        trend = score_trend([later, earlier])

        assert [p.session_id for p in trend] == [str(later.session_id), str(earlier.session_id)]
        assert trend[0].created_at == later.created_at


class TestBucketAverages:
    def test_bucket_key_normalizes_level(self) -> None:
        assert bucket_key("Backend Engineer", "L4") == "Backend Engineer - L4"
        assert bucket_key("Backend Engineer", "4") == "Backend Engineer - L4"
        assert bucket_key(" SRE ", "l5") == "SRE - L5"

    @pytest.mark.parametrize(("value", "expected"), [(6.5, 7), (6.49, 6), (0.5, 1), (7.0, 7)])
    def test_round_half_up(self, value: float, expected: int) -> None:
        assert round_half_up(value) == expected

    def test_averages_per_bucket(self) -> None:
        sessions = [
            make_session(uniform(6), level="L4"),
            make_session(uniform(7), level="4"),
            make_session(uniform(3), role="Data Scientist", level="L3"),
        ]
        averages = bucket_averages(sessions)

        assert set(averages) == {"Backend Engineer - L4", "Data Scientist - L3"}
        assert averages["Backend Engineer - L4"][RubricCategory.CORRECTNESS] == 7
        assert averages["Data Scientist - L3"][RubricCategory.RELEVANCE] == 3

    def test_unavailable_evaluations_are_skipped(self) -> None:
        sessions = [
            make_session(uniform(8)),
            make_session(uniform(0), available=False),
        ]
        averages = bucket_averages(sessions)
        assert averages["Backend Engineer - L4"][RubricCategory.COMPLETENESS] == 8

    def test_no_sessions(self) -> None:
        assert bucket_averages([]) == {}

    def test_role_distribution(self) -> None:
        sessions = [
            make_session(role="Backend Engineer"),
            make_session(role="Backend Engineer"),
            make_session(role="Data Scientist"),
        ]
        assert role_distribution(sessions) == {"Backend Engineer": 2, "Data Scientist": 1}


class TestEvaluationFromRecord:
    def test_record_round_trip_keeps_scores_and_summary(self) -> None:
        original = parse_evaluation(
            "Correctness: 8/10 – solid\nRelevance: 6/10 – drifted\nOverall Feedback: Keep going."
        )
        rebuilt = evaluation_from_record(original.to_record())

        assert rebuilt.get(RubricCategory.CORRECTNESS).score == 8.0
        assert rebuilt.get(RubricCategory.CORRECTNESS).explanation == "solid"
        assert rebuilt.overall_summary == "Keep going."

    def test_scores_block_only(self) -> None:
        rebuilt = evaluation_from_record({"Scores": "Completeness: 4/10"})

        assert set(rebuilt.categories) == {RubricCategory.COMPLETENESS}
        assert rebuilt.get(RubricCategory.COMPLETENESS).score == 4.0

    def test_empty_record(self) -> None:
        assert evaluation_from_record(None).is_empty
        assert evaluation_from_record({}).is_empty
