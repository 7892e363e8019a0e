"""SQLAlchemy implementation of ``ISurveyStore``.

Each public method opens its own session and transaction from the injected
``async_sessionmaker`` and composes the table repositories in
``survey_repository``. Driver and SQL failures surface as ``PersistenceError``
so the core never sees SQLAlchemy exceptions.
"""

import contextlib
from collections.abc import AsyncIterator
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clm_assessment.adapters.repositories.survey_repository import (
    AuditLogRepository,
    ResultSummaryRepository,
    SessionRepository,
    StageProgressRepository,
    SurveyResponseRepository,
    session_to_dict,
)
from clm_assessment.core.errors import PersistenceError, SessionNotFoundError
from clm_assessment.core.identity import derive_user_identifier
from clm_assessment.core.models.survey import (
    AuditLog,
    OperationType,
    StageProgress,
    SurveyResponse,
    SurveyResultSummary,
    SurveySession,
)
from clm_assessment.core.timestamps import utcnow
from clm_assessment.observability import get_logger

logger = get_logger(__name__)


class SqlSurveyStore:
    """Relational survey store backed by an async SQLAlchemy engine.

    Args:
        session_factory: Factory producing ``AsyncSession`` objects; built
            with ``expire_on_commit=False`` so returned records stay readable
            after their transaction closes.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @contextlib.asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as exc:
            logger.error("Survey store operation failed", operation=operation, error=str(exc))
            raise PersistenceError(f"{operation} failed: {exc}") from exc

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
    ) -> SurveyResponse:
        """Upsert one answer and advance the session's activity stamp.

        Raises:
            SessionNotFoundError: If the session does not exist.
            PersistenceError: If the write fails.
        """
        async with self._transaction("put_answer") as session:
            sessions = SessionRepository(session)
            record = await sessions.get_by_id(session_id)
            if record is None:
                raise SessionNotFoundError()
            now = utcnow()
            answer = await SurveyResponseRepository(session).upsert(
                session_id=session_id,
                stage_name=stage_name,
                capability=capability,
                rating=rating,
                option_text=option_text,
                question=question,
                rating_explanation=rating_explanation,
                now=now,
            )
            await sessions.touch(record, now)
        logger.debug("Answer stored", session_id=session_id, stage_name=stage_name, rating=rating)
        return answer

    async def list_answers(self, session_id: str) -> list[SurveyResponse]:
        async with self._transaction("list_answers") as session:
            return await SurveyResponseRepository(session).list_by_session(session_id)

    async def delete_answer(self, session_id: str, stage_name: str, capability: str) -> bool:
        async with self._transaction("delete_answer") as session:
            deleted = await SurveyResponseRepository(session).delete(session_id, stage_name, capability)
            if deleted:
                await AuditLogRepository(session).record(
                    table_name=SurveyResponse.__tablename__,
                    operation=OperationType.DELETE,
                    old_values={"stage_name": stage_name, "capability": capability},
                    new_values=None,
                    now=utcnow(),
                    session_id=session_id,
                )
        return deleted

    # -- Stage progress ----------------------------------------------------

    async def upsert_stage_progress(
        self,
        session_id: str,
        stage_name: str,
        stage_order: int,
        total_questions: int,
        answered_questions: int,
    ) -> StageProgress:
        async with self._transaction("upsert_stage_progress") as session:
            if await SessionRepository(session).get_by_id(session_id) is None:
                raise SessionNotFoundError()
            return await StageProgressRepository(session).upsert(
                session_id=session_id,
                stage_name=stage_name,
                stage_order=stage_order,
                total_questions=total_questions,
                answered_questions=answered_questions,
                now=utcnow(),
            )

    async def list_stage_progress(self, session_id: str) -> list[StageProgress]:
        async with self._transaction("list_stage_progress") as session:
            return await StageProgressRepository(session).list_by_session(session_id)

    # -- Results -----------------------------------------------------------

    async def replace_results(self, session_id: str, summaries: list[dict[str, Any]]) -> None:
        """Replace the session's summaries in one transaction."""
        async with self._transaction("replace_results") as session:
            await ResultSummaryRepository(session).replace(session_id, summaries, utcnow())
        logger.debug("Result summaries replaced", session_id=session_id, stage_count=len(summaries))

    async def list_results(self, session_id: str) -> list[SurveyResultSummary]:
        async with self._transaction("list_results") as session:
            return await ResultSummaryRepository(session).list_by_session(session_id)

    # -- Sessions ----------------------------------------------------------

    async def find_session_by(
        self,
        session_id: str | None = None,
        email: str | None = None,
        company: str | None = None,
        multi: bool = False,
    ) -> SurveySession | list[SurveySession] | None:
        """Look up by exactly one key, in the order id, email, company.

        Raises:
            ValueError: If no lookup key is supplied.
        """
        async with self._transaction("find_session_by") as session:
            sessions = SessionRepository(session)
            if session_id:
                return await sessions.get_by_id(session_id)
            if email:
                return await sessions.find_latest_by_email(email)
            if company:
                if multi:
                    return await sessions.list_by_company(company)
                return await sessions.find_latest_by_company(company)
        raise ValueError("find_session_by requires session_id, email or company")

    async def create_session(self, session: dict[str, Any]) -> SurveySession:
        """Insert a session and record an INSERT audit entry."""
        async with self._transaction("create_session") as db_session:
            now = utcnow()
            record = await SessionRepository(db_session).create(session, now)
            await AuditLogRepository(db_session).record(
                table_name=SurveySession.__tablename__,
                operation=OperationType.INSERT,
                old_values=None,
                new_values=session_to_dict(record),
                now=now,
                session_id=record.session_id,
                user_identifier=record.user_identifier,
            )
        logger.info("Survey session created", session_id=record.session_id)
        return record

    async def delete_session(self, session_id: str) -> bool:
        """Delete a session and its answers, progress and summaries."""
        async with self._transaction("delete_session") as session:
            sessions = SessionRepository(session)
            record = await sessions.get_by_id(session_id)
            if record is None:
                return False
            snapshot = session_to_dict(record)
            await SurveyResponseRepository(session).delete_by_session(session_id)
            await StageProgressRepository(session).delete_by_session(session_id)
            await ResultSummaryRepository(session).delete_by_session(session_id)
            await sessions.delete(record)
            await AuditLogRepository(session).record(
                table_name=SurveySession.__tablename__,
                operation=OperationType.DELETE,
                old_values=snapshot,
                new_values=None,
                now=utcnow(),
                session_id=session_id,
                user_identifier=snapshot["user_identifier"],
            )
        logger.info("Survey session deleted", session_id=session_id)
        return True

    async def touch_session(self, session_id: str) -> None:
        async with self._transaction("touch_session") as session:
            sessions = SessionRepository(session)
            record = await sessions.get_by_id(session_id)
            if record is not None:
                await sessions.touch(record, utcnow())

    async def update_session_progress(
        self,
        session_id: str,
        total_questions: int,
        answered_questions: int,
        completion_percentage: float,
        is_completed: bool,
    ) -> None:
        async with self._transaction("update_session_progress") as session:
            sessions = SessionRepository(session)
            record = await sessions.get_by_id(session_id)
            if record is None:
                raise SessionNotFoundError()
            await sessions.update_progress(
                record,
                total_questions=total_questions,
                answered_questions=answered_questions,
                completion_percentage=completion_percentage,
                is_completed=is_completed,
                now=utcnow(),
            )

    async def update_session_metadata(
        self, session_id: str, updates: dict[str, Any]
    ) -> SurveySession | None:
        """Apply admin edits, re-deriving ``user_identifier`` from the result."""
        async with self._transaction("update_session_metadata") as session:
            sessions = SessionRepository(session)
            record = await sessions.get_by_id(session_id)
            if record is None:
                return None
            email = updates.get("respondent_email", record.respondent_email) or ""
            company = updates.get("company_name", record.company_name) or ""
            now = utcnow()
            previous = await sessions.update_metadata(
                record,
                updates,
                user_identifier=derive_user_identifier(email, company),
                now=now,
            )
            if previous:
                await AuditLogRepository(session).record(
                    table_name=SurveySession.__tablename__,
                    operation=OperationType.UPDATE,
                    old_values=previous,
                    new_values={key: getattr(record, key) for key in previous},
                    now=now,
                    session_id=session_id,
                    user_identifier=record.user_identifier,
                )
        return record

    async def list_sessions(
        self,
        offset: int,
        limit: int,
        search: str | None,
        status: str,
        sort_by: str,
        sort_order: str,
    ) -> tuple[list[SurveySession], int]:
        async with self._transaction("list_sessions") as session:
            return await SessionRepository(session).list_paginated(
                offset=offset,
                limit=limit,
                search=search,
                status=status,
                sort_by=sort_by,
                sort_order=sort_order,
            )

    async def dashboard_stats(self) -> dict[str, Any]:
        async with self._transaction("dashboard_stats") as session:
            stats = await SessionRepository(session).counts()
            stats.update(await SurveyResponseRepository(session).totals())
        return stats

    async def list_audit_entries(self, session_id: str) -> list[AuditLog]:
        async with self._transaction("list_audit_entries") as session:
            return await AuditLogRepository(session).list_by_session(session_id)
