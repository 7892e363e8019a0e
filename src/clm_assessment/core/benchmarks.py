"""Industry benchmark data for the CLM maturity stages.

Source figures are on a 0-10 scale per stage and are reported on the same
0-100 scale as stage scaled scores.
"""

from typing import Any, Iterable

from clm_assessment.core.survey_definition import parse_stage_number

# Stage number -> (peer average, best in class), 0-10 scale
_STAGE_BENCHMARKS: dict[int, tuple[float, float]] = {
    1: (6.96, 8.79),
    2: (5.05, 8.30),
    3: (4.90, 7.78),
    4: (5.00, 7.50),
    5: (4.89, 7.42),
    6: (1.10, 5.00),
}

_DISPLAY_SCALE: float = 10.0


def stage_benchmark(stage_name: str) -> tuple[float, float] | None:
    """Return (peer_average, best_in_class) on the 0-100 scale, or None."""
    figures = _STAGE_BENCHMARKS.get(parse_stage_number(stage_name))
    if figures is None:
        return None
    peer, best = figures
    return round(peer * _DISPLAY_SCALE, 2), round(best * _DISPLAY_SCALE, 2)


def compare_to_benchmarks(summaries: Iterable[Any]) -> list[dict[str, Any]]:
    """Compare each stage's scaled score against peer and best-in-class figures.

    Args:
        summaries: Objects exposing ``stage_name`` and ``stage_scaled_score``.

    Returns:
        One row per summary with score, peer_average, best_in_class,
        gap_to_peer and gap_to_best. Gaps are None when either side is
        missing.
    """
    rows: list[dict[str, Any]] = []
    for summary in summaries:
        benchmark = stage_benchmark(summary.stage_name)
        score = summary.stage_scaled_score
        peer, best = benchmark if benchmark is not None else (None, None)
        rows.append(
            {
                "stage_name": summary.stage_name,
                "stage_number": parse_stage_number(summary.stage_name),
                "score": score,
                "peer_average": peer,
                "best_in_class": best,
                "gap_to_peer": round(score - peer, 2) if score is not None and peer is not None else None,
                "gap_to_best": round(score - best, 2) if score is not None and best is not None else None,
            }
        )
    return rows
