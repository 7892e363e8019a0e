"""Results Service: stage scores, completion gating and benchmark comparison.

Results are computed on demand when a session has none yet. Whether results
are unlocked is decided from a live completion recompute, never from the
cached completion columns on the session.
"""

from typing import Any

from clm_assessment.core.benchmarks import compare_to_benchmarks
from clm_assessment.core.errors import SessionNotFoundError
from clm_assessment.core.interfaces import IScoringEngine, ISurveyStore
from clm_assessment.core.scoring import overall_scaled_score
from clm_assessment.core.services.progress_aggregator import ProgressAggregator
from clm_assessment.observability import get_logger

logger = get_logger(__name__)


class ResultsService:
    """Builds the results view for a session.

    Args:
        store: Persistence interface.
        scoring_engine: Engine used when results are missing or requested.
        progress: Aggregator providing live completion.
        min_completion_for_results: Live completion (percent) that unlocks results.
        min_completion_for_meaningful: Live completion (percent) above which
            results are considered representative.
    """

    def __init__(
        self,
        store: ISurveyStore,
        scoring_engine: IScoringEngine,
        progress: ProgressAggregator,
        min_completion_for_results: float = 50.0,
        min_completion_for_meaningful: float = 80.0,
    ) -> None:
        self._store = store
        self._scoring_engine = scoring_engine
        self._progress = progress
        self._min_for_results = min_completion_for_results
        self._min_for_meaningful = min_completion_for_meaningful

    async def get_results(self, session_id: str) -> dict[str, Any]:
        """Return scores for a session, computing them first if none exist.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        session = await self._require_session(session_id)
        summaries = await self._store.list_results(session_id)
        if not summaries:
            logger.info("No results stored; computing now", session_id=session_id)
            await self._scoring_engine.recompute(session_id)
            summaries = await self._store.list_results(session_id)
        return await self._build(session, summaries)

    async def calculate(self, session_id: str) -> dict[str, Any]:
        """Recompute scores unconditionally and return the results view.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        session = await self._require_session(session_id)
        await self._scoring_engine.recompute(session_id)
        await self._progress.refresh_session_cache(session_id)
        summaries = await self._store.list_results(session_id)
        return await self._build(session, summaries)

    async def _require_session(self, session_id: str) -> Any:
        session = await self._store.find_session_by(session_id=session_id)
        if session is None:
            raise SessionNotFoundError()
        return session

    async def _build(self, session: Any, summaries: list[Any]) -> dict[str, Any]:
        completion = await self._progress.live_completion(session.session_id)
        return {
            "session": session,
            "summaries": summaries,
            "completion": completion,
            "results_unlocked": completion.completion_percentage >= self._min_for_results,
            "is_meaningful": completion.completion_percentage >= self._min_for_meaningful,
            "overall_score": overall_scaled_score(summaries),
            "benchmarks": compare_to_benchmarks(summaries),
        }
