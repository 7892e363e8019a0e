"""Table-level repositories for the CLM assessment data layer.

Each repository wraps a caller-supplied SQLAlchemy ``AsyncSession`` and never
commits; transaction boundaries belong to ``SqlSurveyStore``. All queries are
parameterised and portable between PostgreSQL and SQLite.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from clm_assessment.core.models.survey import (
    AuditLog,
    OperationType,
    StageProgress,
    SurveyResponse,
    SurveyResultSummary,
    SurveySession,
)
from clm_assessment.core.timestamps import monotonic_after
from clm_assessment.observability import get_logger

logger = get_logger(__name__)

_SESSION_SORT_COLUMNS = {
    "created_at": SurveySession.created_at,
    "last_activity": SurveySession.last_activity,
    "company_name": SurveySession.company_name,
    "respondent_email": SurveySession.respondent_email,
    "completion_percentage": SurveySession.completion_percentage,
}

_EDITABLE_SESSION_FIELDS = ("company_name", "respondent_name", "respondent_email")

_SUMMARY_FIELDS = ("stage_average", "stage_scaled_score", "question_count", "answered_count")


def _normalise(value: str) -> str:
    return value.strip().lower()


def summary_id_for(session_id: str, stage_name: str) -> str:
    """Deterministic summary id for a (session, stage) pair."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{session_id}/{stage_name}"))


def session_to_dict(record: SurveySession) -> dict[str, Any]:
    """Serialise a session to JSON-compatible values for audit entries and APIs."""
    return {
        "session_id": record.session_id,
        "user_identifier": record.user_identifier,
        "company_name": record.company_name,
        "respondent_name": record.respondent_name,
        "respondent_email": record.respondent_email,
        "created_at": record.created_at.isoformat() if record.created_at else None,
        "is_completed": record.is_completed,
        "total_questions": record.total_questions,
        "answered_questions": record.answered_questions,
        "completion_percentage": record.completion_percentage,
    }


class SessionRepository:
    """Repository for SurveySession persistence and identity lookups."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialise with an async database session.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    async def create(self, values: dict[str, Any], now: datetime) -> SurveySession:
        """Insert a session record stamped with ``now``.

        Args:
            values: Column values; must include session_id and user_identifier.
            now: Creation timestamp used for all three lifecycle stamps.

        Returns:
            The persisted SurveySession.
        """
        record = SurveySession(
            session_id=values["session_id"],
            user_identifier=values["user_identifier"],
            company_name=values.get("company_name"),
            respondent_name=values.get("respondent_name"),
            respondent_email=values.get("respondent_email"),
            user_ip_address=values.get("user_ip_address"),
            user_agent=values.get("user_agent"),
            created_at=now,
            updated_at=now,
            last_activity=now,
            is_completed=False,
            total_questions=int(values.get("total_questions", 0)),
            answered_questions=0,
            completion_percentage=0.0,
        )
        self._session.add(record)
        await self._session.flush()
        return record

    async def get_by_id(self, session_id: str) -> SurveySession | None:
        return await self._session.get(SurveySession, session_id)

    async def find_latest_by_email(self, email: str) -> SurveySession | None:
        """Most recently created session for an email (case-insensitive)."""
        result = await self._session.execute(
            select(SurveySession)
            .where(func.lower(SurveySession.respondent_email) == _normalise(email))
            .order_by(SurveySession.created_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def find_latest_by_company(self, company: str) -> SurveySession | None:
        """Most recently created session for a company (case-insensitive)."""
        result = await self._session.execute(
            select(SurveySession)
            .where(func.lower(SurveySession.company_name) == _normalise(company))
            .order_by(SurveySession.created_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def list_by_company(self, company: str) -> list[SurveySession]:
        """All sessions for a company, newest first."""
        result = await self._session.execute(
            select(SurveySession)
            .where(func.lower(SurveySession.company_name) == _normalise(company))
            .order_by(SurveySession.created_at.desc())
        )
        return list(result.scalars().all())

    async def touch(self, record: SurveySession, now: datetime) -> None:
        """Advance activity timestamps without ever moving them backwards."""
        record.last_activity = monotonic_after(record.last_activity, now)
        record.updated_at = monotonic_after(record.updated_at, now)
        await self._session.flush()

    async def update_progress(
        self,
        record: SurveySession,
        total_questions: int,
        answered_questions: int,
        completion_percentage: float,
        is_completed: bool,
        now: datetime,
    ) -> None:
        """Refresh the cached completion columns on a session."""
        if is_completed and not record.is_completed:
            record.completion_date = now
        elif not is_completed:
            record.completion_date = None
        record.total_questions = total_questions
        record.answered_questions = answered_questions
        record.completion_percentage = completion_percentage
        record.is_completed = is_completed
        record.updated_at = monotonic_after(record.updated_at, now)
        await self._session.flush()

    async def update_metadata(
        self,
        record: SurveySession,
        updates: dict[str, Any],
        user_identifier: str,
        now: datetime,
    ) -> dict[str, Any]:
        """Apply editable field updates.

        Args:
            record: Session to edit.
            updates: Candidate values; keys outside the editable set are ignored.
            user_identifier: Re-derived identifier for the edited email/company.
            now: Update timestamp.

        Returns:
            Mapping of changed field to its previous value.
        """
        previous: dict[str, Any] = {}
        for field_name in _EDITABLE_SESSION_FIELDS:
            if field_name in updates and getattr(record, field_name) != updates[field_name]:
                previous[field_name] = getattr(record, field_name)
                setattr(record, field_name, updates[field_name])
        if previous:
            record.user_identifier = user_identifier
            record.updated_at = monotonic_after(record.updated_at, now)
            await self._session.flush()
        return previous

    async def delete(self, record: SurveySession) -> None:
        await self._session.delete(record)
        await self._session.flush()

    async def list_paginated(
        self,
        offset: int,
        limit: int,
        search: str | None,
        status: str,
        sort_by: str,
        sort_order: str,
    ) -> tuple[list[SurveySession], int]:
        """List sessions with search, status filter, sorting and pagination.

        Args:
            offset: Rows to skip.
            limit: Maximum rows to return.
            search: Case-insensitive substring of company, email or name.
            status: 'completed' | 'in_progress' | 'all' (uses the cached flag).
            sort_by: One of created_at, last_activity, company_name,
                respondent_email, completion_percentage.
            sort_order: 'asc' | 'desc'.

        Returns:
            Tuple of (page of sessions, total matching count).
        """
        query = select(SurveySession)
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.where(
                or_(
                    func.lower(SurveySession.company_name).like(pattern),
                    func.lower(SurveySession.respondent_email).like(pattern),
                    func.lower(SurveySession.respondent_name).like(pattern),
                )
            )
        if status == "completed":
            query = query.where(SurveySession.is_completed.is_(True))
        elif status == "in_progress":
            query = query.where(SurveySession.is_completed.is_(False))

        total_result = await self._session.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = int(total_result.scalar_one())

        sort_column = _SESSION_SORT_COLUMNS.get(sort_by, SurveySession.created_at)
        ordering = sort_column.asc() if sort_order == "asc" else sort_column.desc()
        page_result = await self._session.execute(
            query.order_by(ordering, SurveySession.session_id).offset(offset).limit(limit)
        )
        return list(page_result.scalars().all()), total

    async def counts(self) -> dict[str, Any]:
        """Session counts and mean cached completion."""
        result = await self._session.execute(
            select(
                func.count(SurveySession.session_id),
                func.count(SurveySession.session_id).filter(SurveySession.is_completed.is_(True)),
                func.avg(SurveySession.completion_percentage),
            )
        )
        total, completed, average_completion = result.one()
        return {
            "total_sessions": int(total or 0),
            "completed_sessions": int(completed or 0),
            "in_progress_sessions": int(total or 0) - int(completed or 0),
            "average_completion": round(float(average_completion or 0.0), 2),
        }


class SurveyResponseRepository:
    """Repository for SurveyResponse (answer) persistence."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialise with an async database session.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    async def upsert(
        self,
        session_id: str,
        stage_name: str,
        capability: str,
        rating: int | None,
        option_text: str | None,
        question: str | None,
        now: datetime,
        rating_explanation: str | None = None,
    ) -> SurveyResponse:
        """Insert or update one answer by its natural key.

        ``answered_at`` is set on insert and whenever the rating changes;
        writing the same rating again leaves it untouched. ``updated_at`` is
        refreshed on every write.

        Returns:
            The persisted SurveyResponse.
        """
        existing = await self._session.get(SurveyResponse, (session_id, stage_name, capability))
        if existing is not None:
            if existing.rating != rating:
                existing.answered_at = now
            existing.rating = rating
            existing.selected_option_text = option_text
            existing.rating_explanation = rating_explanation
            if question is not None:
                existing.question = question
            existing.updated_at = monotonic_after(existing.updated_at, now)
            await self._session.flush()
            return existing

        record = SurveyResponse(
            session_id=session_id,
            stage_name=stage_name,
            capability=capability,
            question=question,
            rating=rating,
            selected_option_text=option_text,
            rating_explanation=rating_explanation,
            answered_at=now,
            updated_at=now,
        )
        self._session.add(record)
        await self._session.flush()
        return record

    async def list_by_session(self, session_id: str) -> list[SurveyResponse]:
        """All answers for a session ordered by stage name then capability."""
        result = await self._session.execute(
            select(SurveyResponse)
            .where(SurveyResponse.session_id == session_id)
            .order_by(SurveyResponse.stage_name, SurveyResponse.capability)
        )
        return list(result.scalars().all())

    async def delete(self, session_id: str, stage_name: str, capability: str) -> bool:
        existing = await self._session.get(SurveyResponse, (session_id, stage_name, capability))
        if existing is None:
            return False
        await self._session.delete(existing)
        await self._session.flush()
        return True

    async def delete_by_session(self, session_id: str) -> int:
        result = await self._session.execute(
            delete(SurveyResponse).where(SurveyResponse.session_id == session_id)
        )
        return int(result.rowcount or 0)

    async def totals(self) -> dict[str, Any]:
        """Total answer count and mean rating across all sessions."""
        result = await self._session.execute(
            select(func.count(SurveyResponse.session_id), func.avg(SurveyResponse.rating))
        )
        count, average = result.one()
        return {
            "total_responses": int(count or 0),
            "average_rating": round(float(average), 2) if average is not None else None,
        }


class StageProgressRepository:
    """Repository for StageProgress persistence."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialise with an async database session.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    async def upsert(
        self,
        session_id: str,
        stage_name: str,
        stage_order: int,
        total_questions: int,
        answered_questions: int,
        now: datetime,
    ) -> StageProgress:
        """Create or update one stage's progress row.

        ``completion_percentage`` is 0 when the stage has no questions, and
        ``is_completed`` holds exactly when answered equals total.

        Returns:
            The persisted StageProgress row.
        """
        completion = (
            round(100.0 * answered_questions / total_questions, 2) if total_questions > 0 else 0.0
        )
        is_completed = answered_questions == total_questions

        existing = await self._session.get(StageProgress, (session_id, stage_name))
        if existing is None:
            existing = StageProgress(
                session_id=session_id,
                stage_name=stage_name,
                completed_at=None,
            )
            self._session.add(existing)
        if is_completed and not existing.is_completed:
            existing.completed_at = now
        elif not is_completed:
            existing.completed_at = None

        existing.stage_order = stage_order
        existing.total_questions = total_questions
        existing.answered_questions = answered_questions
        existing.completion_percentage = completion
        existing.is_completed = is_completed
        existing.last_updated = now
        await self._session.flush()
        return existing

    async def list_by_session(self, session_id: str) -> list[StageProgress]:
        result = await self._session.execute(
            select(StageProgress)
            .where(StageProgress.session_id == session_id)
            .order_by(StageProgress.stage_order, StageProgress.stage_name)
        )
        return list(result.scalars().all())

    async def delete_by_session(self, session_id: str) -> int:
        result = await self._session.execute(
            delete(StageProgress).where(StageProgress.session_id == session_id)
        )
        return int(result.rowcount or 0)


class ResultSummaryRepository:
    """Repository for SurveyResultSummary persistence."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialise with an async database session.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    async def replace(
        self,
        session_id: str,
        summaries: list[dict[str, Any]],
        now: datetime,
    ) -> list[SurveyResultSummary]:
        """Make the session's stored summaries equal to ``summaries``.

        Stages missing from ``summaries`` are deleted, new stages inserted and
        changed stages updated. Rows whose scores are unchanged keep their
        ``calculated_at``, so a redundant recompute leaves them identical.
        Must run inside the caller's transaction so the swap is atomic.
        """
        existing = {row.stage_name: row for row in await self.list_by_session(session_id)}
        records: list[SurveyResultSummary] = []
        for summary in summaries:
            values = {field_name: summary[field_name] for field_name in _SUMMARY_FIELDS}
            row = existing.pop(summary["stage_name"], None)
            if row is None:
                row = SurveyResultSummary(
                    summary_id=summary_id_for(session_id, summary["stage_name"]),
                    session_id=session_id,
                    stage_name=summary["stage_name"],
                    calculated_at=now,
                    **values,
                )
                self._session.add(row)
            elif any(getattr(row, name) != value for name, value in values.items()):
                for name, value in values.items():
                    setattr(row, name, value)
                row.calculated_at = now
            records.append(row)

        for stale in existing.values():
            await self._session.delete(stale)
        await self._session.flush()
        return records

    async def list_by_session(self, session_id: str) -> list[SurveyResultSummary]:
        result = await self._session.execute(
            select(SurveyResultSummary)
            .where(SurveyResultSummary.session_id == session_id)
            .order_by(SurveyResultSummary.stage_name)
        )
        return list(result.scalars().all())

    async def delete_by_session(self, session_id: str) -> int:
        result = await self._session.execute(
            delete(SurveyResultSummary).where(SurveyResultSummary.session_id == session_id)
        )
        return int(result.rowcount or 0)


class AuditLogRepository:
    """Repository for AuditLog entries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialise with an async database session.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    async def record(
        self,
        table_name: str,
        operation: OperationType,
        old_values: dict[str, Any] | None,
        new_values: dict[str, Any] | None,
        now: datetime,
        session_id: str | None = None,
        user_identifier: str | None = None,
    ) -> AuditLog:
        """Append one audit entry."""
        entry = AuditLog(
            log_id=str(uuid.uuid4()),
            session_id=session_id,
            table_name=table_name,
            operation_type=operation.value,
            old_values=old_values,
            new_values=new_values,
            user_identifier=user_identifier,
            created_at=now,
        )
        self._session.add(entry)
        await self._session.flush()
        return entry

    async def list_by_session(self, session_id: str) -> list[AuditLog]:
        result = await self._session.execute(
            select(AuditLog)
            .where(AuditLog.session_id == session_id)
            .order_by(AuditLog.created_at)
        )
        return list(result.scalars().all())
