"""CLM stage scoring and progress arithmetic.

Ratings are on a 1-5 Likert scale. A stage's average maps linearly onto
0-100 via ``(average - 1) * 25`` so that 1 -> 0, 3 -> 50 and 5 -> 100.

This module is independent of the database layer so that the arithmetic can
be unit-tested without any infrastructure.
"""

from collections import defaultdict
from typing import Any, Iterable

# (rating - 1) * 25 maps 1->0, 5->100
LIKERT_SCALE_FACTOR: float = 25.0


def scaled_score(average: float) -> float:
    """Map a 1-5 average rating onto the 0-100 scale."""
    return round((average - 1.0) * LIKERT_SCALE_FACTOR, 2)


def compute_stage_summaries(answers: Iterable[Any]) -> list[dict[str, Any]]:
    """Group answers by stage and compute one summary per stage.

    Args:
        answers: Objects exposing ``stage_name`` and ``rating`` (None allowed).

    Returns:
        Summaries ordered by stage name, each with stage_name, stage_average,
        stage_scaled_score, question_count and answered_count. Average and
        scaled score are None for a stage with no non-null ratings. The
        scaled score is derived from the rounded average, so the stored
        pair always satisfies ``scaled = (average - 1) * 25``.
    """
    ratings_by_stage: dict[str, list[int | None]] = defaultdict(list)
    for answer in answers:
        ratings_by_stage[answer.stage_name].append(answer.rating)

    summaries: list[dict[str, Any]] = []
    for stage_name in sorted(ratings_by_stage):
        ratings = ratings_by_stage[stage_name]
        rated = [r for r in ratings if r is not None]
        average = round(sum(rated) / len(rated), 2) if rated else None
        summaries.append(
            {
                "stage_name": stage_name,
                "stage_average": average,
                "stage_scaled_score": scaled_score(average) if average is not None else None,
                "question_count": len(ratings),
                "answered_count": len(rated),
            }
        )
    return summaries


def overall_progress(progress_rows: Iterable[Any]) -> float:
    """Completion percentage across visited stages only.

    Unvisited stages have no progress row and contribute to neither sum.

    Args:
        progress_rows: Objects exposing ``answered_questions`` and
            ``total_questions``.

    Returns:
        ``100 * sum(answered) / sum(total)``, or 0.0 when the total is zero.
    """
    answered = 0
    total = 0
    for row in progress_rows:
        answered += row.answered_questions
        total += row.total_questions
    if total <= 0:
        return 0.0
    return 100.0 * answered / total


def overall_scaled_score(summaries: Iterable[Any]) -> float | None:
    """Unweighted mean of the stage scaled scores that exist."""
    scores = [float(s.stage_scaled_score) for s in summaries if s.stage_scaled_score is not None]
    if not scores:
        return None
    return round(sum(scores) / len(scores), 2)
