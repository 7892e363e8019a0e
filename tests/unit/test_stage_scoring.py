"""Unit tests for stage scoring, progress arithmetic and benchmarks.

These tests exercise pure functions and need no database.
"""

from types import SimpleNamespace

import pytest

from clm_assessment.core.benchmarks import compare_to_benchmarks, stage_benchmark
from clm_assessment.core.scoring import (
    compute_stage_summaries,
    overall_progress,
    overall_scaled_score,
    scaled_score,
)


def _answer(stage_name: str, rating: int | None) -> SimpleNamespace:
    return SimpleNamespace(stage_name=stage_name, rating=rating)


def _progress(answered: int, total: int) -> SimpleNamespace:
    return SimpleNamespace(answered_questions=answered, total_questions=total)


class TestScaledScore:
    """Tests for the 1-5 to 0-100 mapping."""

    @pytest.mark.parametrize(
        ("average", "expected"),
        [(1.0, 0.0), (3.0, 50.0), (5.0, 100.0), (2.5, 37.5)],
    )
    def test_boundaries_and_midpoint(self, average: float, expected: float) -> None:
        assert scaled_score(average) == expected


class TestComputeStageSummaries:
    """Tests for compute_stage_summaries."""

    def test_two_answers_average_to_fifty(self) -> None:
        """Ratings 4 and 2 average 3.0 and scale to 50.0."""
        summaries = compute_stage_summaries([_answer("A", 4), _answer("A", 2)])

        assert summaries == [
            {
                "stage_name": "A",
                "stage_average": 3.0,
                "stage_scaled_score": 50.0,
                "question_count": 2,
                "answered_count": 2,
            }
        ]

    def test_null_ratings_count_as_questions_but_not_answers(self) -> None:
        summaries = compute_stage_summaries([_answer("A", 5), _answer("A", None), _answer("A", 3)])

        assert summaries[0]["question_count"] == 3
        assert summaries[0]["answered_count"] == 2
        assert summaries[0]["stage_average"] == 4.0
        assert summaries[0]["stage_scaled_score"] == 75.0

    def test_stage_without_ratings_has_no_scores(self) -> None:
        summaries = compute_stage_summaries([_answer("A", None)])

        assert summaries[0]["stage_average"] is None
        assert summaries[0]["stage_scaled_score"] is None

    def test_summaries_ordered_by_stage_name(self) -> None:
        summaries = compute_stage_summaries([_answer("B", 1), _answer("A", 5), _answer("C", 3)])

        assert [s["stage_name"] for s in summaries] == ["A", "B", "C"]

    def test_scaled_score_follows_rounded_average(self) -> None:
        summaries = compute_stage_summaries([_answer("A", 4), _answer("A", 4), _answer("A", 5)])

        assert summaries[0]["stage_average"] == 4.33
        assert summaries[0]["stage_scaled_score"] == 83.25

    def test_stored_pair_keeps_linear_mapping(self) -> None:
        """Ratings 3, 3 and 4 average 3.33, stored with 58.25 rather than 58.33."""
        summary = compute_stage_summaries([_answer("A", 3), _answer("A", 3), _answer("A", 4)])[0]

        assert summary["stage_average"] == 3.33
        assert summary["stage_scaled_score"] == 58.25
        assert summary["stage_scaled_score"] == pytest.approx((summary["stage_average"] - 1) * 25)

    def test_same_input_gives_identical_output(self) -> None:
        answers = [_answer("A", 2), _answer("B", 5), _answer("A", 3)]

        assert compute_stage_summaries(answers) == compute_stage_summaries(list(answers))


class TestOverallProgress:
    """Tests for overall_progress over visited stages."""

    def test_sums_over_visited_stages_only(self) -> None:
        rows = [_progress(2, 2), _progress(1, 4)]

        assert overall_progress(rows) == pytest.approx(100.0 * 3 / 6)

    def test_single_completed_stage_is_one_hundred(self) -> None:
        assert overall_progress([_progress(2, 2)]) == 100.0

    def test_no_rows_is_zero(self) -> None:
        assert overall_progress([]) == 0.0

    def test_zero_total_is_zero(self) -> None:
        assert overall_progress([_progress(0, 0)]) == 0.0


class TestOverallScaledScore:
    def test_mean_of_existing_scores(self) -> None:
        rows = [
            SimpleNamespace(stage_scaled_score=50.0),
            SimpleNamespace(stage_scaled_score=None),
            SimpleNamespace(stage_scaled_score=100.0),
        ]

        assert overall_scaled_score(rows) == 75.0

    def test_none_when_nothing_scored(self) -> None:
        assert overall_scaled_score([]) is None


class TestBenchmarks:
    """Tests for benchmark lookup and comparison."""

    def test_stage_benchmark_scaled_to_hundred(self) -> None:
        assert stage_benchmark("CLM Stage 1: e-Document") == (69.6, 87.9)
        assert stage_benchmark("CLM Stage 6: Contract Execution") == (11.0, 50.0)

    def test_unknown_stage_has_no_benchmark(self) -> None:
        assert stage_benchmark("Onboarding") is None

    def test_comparison_gaps(self) -> None:
        summary = SimpleNamespace(stage_name="CLM Stage 2: e-Signature", stage_scaled_score=60.0)

        row = compare_to_benchmarks([summary])[0]

        assert row["stage_number"] == 2
        assert row["peer_average"] == 50.5
        assert row["best_in_class"] == 83.0
        assert row["gap_to_peer"] == 9.5
        assert row["gap_to_best"] == -23.0

    def test_comparison_without_score_has_no_gaps(self) -> None:
        summary = SimpleNamespace(stage_name="CLM Stage 3: Workflow", stage_scaled_score=None)

        row = compare_to_benchmarks([summary])[0]

        assert row["gap_to_peer"] is None
        assert row["gap_to_best"] is None
