"""Abstract interfaces (Protocol classes) for the CLM assessment service.

All services depend on these interfaces, not concrete implementations. The
SQLAlchemy implementation lives in ``adapters/repositories/survey_store.py``;
any key-value or relational backend that satisfies ``ISurveyStore`` works.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ISurveyStore(Protocol):
    """Persistence interface consumed by the core.

    Every method runs in its own transaction. Methods returning records
    return objects exposing the ORM attribute names of
    ``core/models/survey.py``.
    """

    # -- Answers -----------------------------------------------------------

    async def put_answer(
        self,
        session_id: str,
        stage_name: str,
        capability: str,
        rating: int | None,
        option_text: str | None,
        question: str | None = None,
        rating_explanation: str | None = None,
    ) -> Any:
        """Upsert one answer by (session_id, stage_name, capability)."""
        ...

    async def list_answers(self, session_id: str) -> list[Any]:
        """List all answers for a session ordered by stage then capability."""
        ...

    async def delete_answer(self, session_id: str, stage_name: str, capability: str) -> bool:
        """Delete one answer; return whether a row existed."""
        ...

    # -- Stage progress ----------------------------------------------------

    async def upsert_stage_progress(
        self,
        session_id: str,
        stage_name: str,
        stage_order: int,
        total_questions: int,
        answered_questions: int,
    ) -> Any:
        """Create or update the progress row for one stage."""
        ...

    async def list_stage_progress(self, session_id: str) -> list[Any]:
        """List progress rows for a session ordered by stage order."""
        ...

    # -- Results -----------------------------------------------------------

    async def replace_results(self, session_id: str, summaries: list[dict[str, Any]]) -> None:
        """Atomically replace all result summaries for a session.

        Each summary dict carries stage_name, stage_average,
        stage_scaled_score, question_count and answered_count.
        """
        ...

    async def list_results(self, session_id: str) -> list[Any]:
        """List result summaries for a session ordered by stage name."""
        ...

    # -- Sessions ----------------------------------------------------------

    async def find_session_by(
        self,
        session_id: str | None = None,
        email: str | None = None,
        company: str | None = None,
        multi: bool = False,
    ) -> Any | list[Any] | None:
        """Look up sessions by exactly one of id, email or company.

        With ``multi`` and a company, returns every matching session, newest
        first; otherwise the most recently created match or None.
        """
        ...

    async def create_session(self, session: dict[str, Any]) -> Any:
        """Insert a new session record."""
        ...

    async def delete_session(self, session_id: str) -> bool:
        """Delete a session and cascade to answers, progress and results."""
        ...

    async def touch_session(self, session_id: str) -> None:
        """Advance last_activity and updated_at (never backwards)."""
        ...

    async def update_session_progress(
        self,
        session_id: str,
        total_questions: int,
        answered_questions: int,
        completion_percentage: float,
        is_completed: bool,
    ) -> None:
        """Refresh the denormalised completion cache on the session."""
        ...

    async def update_session_metadata(self, session_id: str, updates: dict[str, Any]) -> Any | None:
        """Apply admin metadata edits; return the session or None if absent."""
        ...

    async def list_sessions(
        self,
        offset: int,
        limit: int,
        search: str | None,
        status: str,
        sort_by: str,
        sort_order: str,
    ) -> tuple[list[Any], int]:
        """List sessions for administration with the total match count."""
        ...

    async def dashboard_stats(self) -> dict[str, Any]:
        """Aggregate counts for the admin dashboard."""
        ...

    async def list_audit_entries(self, session_id: str) -> list[Any]:
        """List audit entries recorded for a session, oldest first."""
        ...


@runtime_checkable
class IScoringEngine(Protocol):
    """Interface for the per-session stage scoring engine."""

    async def recompute(self, session_id: str) -> list[dict[str, Any]]:
        """Replace the session's result summaries from its current answers.

        Args:
            session_id: Session to score.

        Returns:
            The summaries written, one per stage with answers.
        """
        ...
