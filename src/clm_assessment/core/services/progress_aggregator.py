"""Progress Aggregator: per-stage and overall completion.

Stage progress is recorded page by page from the respondent's client. The
first time a stage reaches completion the whole session is re-scored. After
every record the denormalised completion columns on the session are
refreshed; those columns are a cache, and callers that gate on completion
use ``live_completion`` instead.
"""

from dataclasses import dataclass
from typing import Any

from clm_assessment.core.interfaces import IScoringEngine, ISurveyStore
from clm_assessment.core.scoring import overall_progress
from clm_assessment.core.survey_definition import SurveyDefinition
from clm_assessment.observability import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SessionCompletion:
    """Live completion of a session, recomputed from stage progress.

    Attributes:
        total_questions: Questions in the whole survey definition.
        answered_questions: Answered questions summed over recorded stages.
        completion_percentage: 100 * answered / total over the whole survey.
        overall_progress: Completion over visited stages only.
        is_completed: Every stage of the definition is recorded as complete.
    """

    total_questions: int
    answered_questions: int
    completion_percentage: float
    overall_progress: float
    is_completed: bool


class ProgressAggregator:
    """Records stage progress and derives overall completion.

    Args:
        store: Persistence interface.
        scoring_engine: Engine re-run when a stage first becomes complete.
        definition: Survey definition providing the stage set and totals.
    """

    def __init__(
        self,
        store: ISurveyStore,
        scoring_engine: IScoringEngine,
        definition: SurveyDefinition,
    ) -> None:
        self._store = store
        self._scoring_engine = scoring_engine
        self._definition = definition

    async def record_page(
        self,
        session_id: str,
        stage_name: str,
        stage_order: int,
        page_question_count: int,
        answered_question_count: int,
    ) -> Any:
        """Upsert one stage's progress row and advance the session's activity.

        Args:
            session_id: Session being recorded.
            stage_name: Stage the page belongs to.
            stage_order: 1-based stage position.
            page_question_count: Questions on the page.
            answered_question_count: Questions answered on the page; clamped
                to ``[0, page_question_count]``.

        Returns:
            The updated StageProgress row.
        """
        total = max(0, page_question_count)
        answered = min(max(0, answered_question_count), total)
        if answered != answered_question_count:
            logger.warning(
                "Answered count clamped to page size",
                session_id=session_id,
                stage_name=stage_name,
                reported=answered_question_count,
                total=total,
            )

        previous = {row.stage_name: row for row in await self._store.list_stage_progress(session_id)}
        row = await self._store.upsert_stage_progress(
            session_id=session_id,
            stage_name=stage_name,
            stage_order=stage_order,
            total_questions=total,
            answered_questions=answered,
        )
        await self._store.touch_session(session_id)

        before = previous.get(stage_name)
        if row.is_completed and not (before is not None and before.is_completed):
            logger.info("Stage completed", session_id=session_id, stage_name=stage_name)
            await self._scoring_engine.recompute(session_id)

        await self.refresh_session_cache(session_id)
        return row

    async def overall_progress(self, session_id: str) -> float:
        """100 * sum(answered) / sum(total) over visited stages; 0.0 if none."""
        return overall_progress(await self._store.list_stage_progress(session_id))

    async def live_completion(self, session_id: str) -> SessionCompletion:
        """Recompute session completion from stage progress, ignoring the cache."""
        rows = await self._store.list_stage_progress(session_id)
        total = self._definition.total_questions
        answered = sum(row.answered_questions for row in rows)
        completed_stages = {row.stage_name for row in rows if row.is_completed}
        return SessionCompletion(
            total_questions=total,
            answered_questions=answered,
            completion_percentage=min(100.0, round(100.0 * answered / total, 2)) if total > 0 else 0.0,
            overall_progress=round(overall_progress(rows), 2),
            is_completed=bool(self._definition.stages)
            and all(name in completed_stages for name in self._definition.stage_names),
        )

    async def refresh_session_cache(self, session_id: str) -> SessionCompletion:
        """Write the live completion into the session's cached columns."""
        completion = await self.live_completion(session_id)
        await self._store.update_session_progress(
            session_id=session_id,
            total_questions=completion.total_questions,
            answered_questions=completion.answered_questions,
            completion_percentage=completion.completion_percentage,
            is_completed=completion.is_completed,
        )
        return completion
