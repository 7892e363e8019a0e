"""Admin Service: session listing, inspection, edits and deletions.

Deleting a session does not stop a respondent's in-flight autosave; callers
holding a ``SessionController`` for the session should call
``cancel_autosave`` first.
"""

import math
from typing import Any

from clm_assessment.core.errors import SessionNotFoundError
from clm_assessment.core.interfaces import IScoringEngine, ISurveyStore
from clm_assessment.observability import get_logger

logger = get_logger(__name__)

SESSION_STATUSES = ("all", "completed", "in_progress")
SESSION_SORT_FIELDS = (
    "created_at",
    "last_activity",
    "company_name",
    "respondent_email",
    "completion_percentage",
)
EDITABLE_FIELDS = ("company_name", "respondent_name", "respondent_email")


class AdminService:
    """Administrative operations over stored survey sessions.

    Args:
        store: Persistence interface.
        scoring_engine: Engine re-run after an answer is deleted.
        page_size_max: Upper bound on the listing page size.
    """

    def __init__(
        self,
        store: ISurveyStore,
        scoring_engine: IScoringEngine,
        page_size_max: int = 100,
    ) -> None:
        self._store = store
        self._scoring_engine = scoring_engine
        self._page_size_max = page_size_max

    async def list_sessions(
        self,
        page: int = 1,
        limit: int = 20,
        search: str | None = None,
        status: str = "all",
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> dict[str, Any]:
        """Return one page of sessions with pagination metadata.

        Unknown status, sort field or order fall back to the defaults.
        """
        page = max(1, page)
        limit = min(max(1, limit), self._page_size_max)
        status = status if status in SESSION_STATUSES else "all"
        sort_by = sort_by if sort_by in SESSION_SORT_FIELDS else "created_at"
        sort_order = "asc" if sort_order == "asc" else "desc"

        sessions, total = await self._store.list_sessions(
            offset=(page - 1) * limit,
            limit=limit,
            search=(search or "").strip() or None,
            status=status,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        return {
            "sessions": sessions,
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if total else 0,
        }

    async def get_session_details(self, session_id: str) -> dict[str, Any]:
        """Session record with its answers, stage progress, results and audit trail.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        session = await self._store.find_session_by(session_id=session_id)
        if session is None:
            raise SessionNotFoundError()
        return {
            "session": session,
            "responses": await self._store.list_answers(session_id),
            "stage_progress": await self._store.list_stage_progress(session_id),
            "results": await self._store.list_results(session_id),
            "audit_log": await self._store.list_audit_entries(session_id),
        }

    async def update_session_metadata(self, session_id: str, updates: dict[str, Any]) -> Any:
        """Edit company, respondent name or email.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        clean = {
            key: (value.strip() or None) if isinstance(value, str) else value
            for key, value in updates.items()
            if key in EDITABLE_FIELDS
        }
        session = await self._store.update_session_metadata(session_id, clean)
        if session is None:
            raise SessionNotFoundError()
        logger.info("Session metadata updated", session_id=session_id, fields=sorted(clean))
        return session

    async def delete_answer(self, session_id: str, stage_name: str, capability: str) -> bool:
        """Delete one answer and re-score the session.

        Returns:
            Whether the answer existed.
        """
        deleted = await self._store.delete_answer(session_id, stage_name, capability)
        if deleted:
            logger.info("Answer deleted by admin", session_id=session_id, stage_name=stage_name)
            await self._scoring_engine.recompute(session_id)
        return deleted

    async def delete_session(self, session_id: str) -> None:
        """Delete a session and everything recorded for it.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        if not await self._store.delete_session(session_id):
            raise SessionNotFoundError()
        logger.info("Session deleted by admin", session_id=session_id)

    async def dashboard_stats(self) -> dict[str, Any]:
        return await self._store.dashboard_stats()
