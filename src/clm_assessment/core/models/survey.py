"""SQLAlchemy ORM models for the CLM self-assessment.

Tables:
    survey_sessions        : respondent identity and cached completion
    survey_responses       : one rating per (session, stage, capability)
    stage_progress         : per-stage completion, one row per (session, stage)
    survey_results_summary : per-stage scores, replaced on every recompute
    audit_log              : admin-visible trail of identity and delete operations

Column types are portable between PostgreSQL and SQLite. Answers, progress
and summaries reference the session with ON DELETE CASCADE; the store also
deletes children explicitly so that the cascade holds on SQLite connections
without foreign key enforcement.
"""

import enum
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from clm_assessment.core.timestamps import as_utc


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetime on every backend.

    SQLite drops the offset on write and returns naive values; they are
    stored in UTC and re-attached to UTC on read.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: object) -> datetime | None:
        return as_utc(value)

    def process_result_value(self, value: datetime | None, dialect: object) -> datetime | None:
        return as_utc(value)


class SurveyBase(DeclarativeBase):
    """Base class for CLM assessment ORM models."""


class OperationType(str, enum.Enum):
    """Audit log operation types."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class SurveySession(SurveyBase):
    """A respondent's survey attempt.

    ``is_completed``, ``total_questions``, ``answered_questions`` and
    ``completion_percentage`` are a denormalised cache refreshed after each
    progress write. Decisions that depend on completion recompute it from
    stage progress instead of trusting these columns.

    Table: survey_sessions
    """

    __tablename__ = "survey_sessions"

    session_id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        comment="Opaque session token (uuid4), immutable",
    )
    user_identifier: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
        comment="Truncated sha256 of lower(email)_lower(company); correlation only",
    )
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    respondent_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    respondent_email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    user_ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        server_default=func.now(),
    )
    last_activity: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        server_default=func.now(),
    )
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completion_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    answered_questions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completion_percentage: Mapped[float] = mapped_column(
        Numeric(5, 2, asdecimal=False),
        nullable=False,
        default=0.0,
    )


class SurveyResponse(SurveyBase):
    """One rating for one capability within a stage.

    The natural key is (session_id, stage_name, capability); re-submitting
    the same key updates the row in place.

    Table: survey_responses
    """

    __tablename__ = "survey_responses"

    session_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("survey_sessions.session_id", ondelete="CASCADE"),
        primary_key=True,
    )
    stage_name: Mapped[str] = mapped_column(String(255), primary_key=True)
    capability: Mapped[str] = mapped_column(
        String(1000),
        primary_key=True,
        comment="Durable capability description; cross-session and cross-locale join key",
    )
    question: Mapped[str | None] = mapped_column(Text, nullable=True)
    rating: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="Likert rating 1-5",
    )
    rating_explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    selected_option_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    answered_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)


class StageProgress(SurveyBase):
    """Completion of one stage for one session.

    Table: stage_progress
    """

    __tablename__ = "stage_progress"

    session_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("survey_sessions.session_id", ondelete="CASCADE"),
        primary_key=True,
    )
    stage_name: Mapped[str] = mapped_column(String(255), primary_key=True)
    stage_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    answered_questions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completion_percentage: Mapped[float] = mapped_column(
        Numeric(5, 2, asdecimal=False),
        nullable=False,
        default=0.0,
    )
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    last_updated: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)


class SurveyResultSummary(SurveyBase):
    """Scores for one stage of one session.

    The full set for a session is deleted and re-inserted by each scoring
    run. ``summary_id`` is derived from (session_id, stage_name).

    Table: survey_results_summary
    """

    __tablename__ = "survey_results_summary"
    __table_args__ = (
        UniqueConstraint("session_id", "stage_name", name="uq_results_summary_session_stage"),
    )

    summary_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    session_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("survey_sessions.session_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    stage_name: Mapped[str] = mapped_column(String(255), nullable=False)
    stage_average: Mapped[float | None] = mapped_column(
        Numeric(3, 2, asdecimal=False),
        nullable=True,
        comment="Mean rating on the 1-5 scale",
    )
    stage_scaled_score: Mapped[float | None] = mapped_column(
        Numeric(5, 2, asdecimal=False),
        nullable=True,
        comment="(stage_average - 1) * 25, 0-100 scale",
    )
    question_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    answered_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    calculated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)


class AuditLog(SurveyBase):
    """Audit trail entry.

    Table: audit_log
    """

    __tablename__ = "audit_log"

    log_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    session_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    table_name: Mapped[str] = mapped_column(String(255), nullable=False)
    operation_type: Mapped[str] = mapped_column(String(50), nullable=False)
    old_values: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    new_values: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    user_identifier: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        server_default=func.now(),
    )
