"""clm: initial schema, sessions, responses, stage progress, results, audit log.

Creates the five tables behind the CLM maturity self-assessment. Column types
are portable so the same revision runs on PostgreSQL and SQLite.

Revision ID: clm_001_initial
Revises:
Create Date: 2025-01-01 00:00:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "clm_001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create survey_sessions, survey_responses, stage_progress, survey_results_summary, audit_log."""
    # survey_sessions: respondent identity and cached completion
    op.create_table(
        "survey_sessions",
        sa.Column("session_id", sa.String(36), primary_key=True),
        sa.Column(
            "user_identifier",
            sa.String(64),
            nullable=False,
            comment="Truncated sha256 of lower(email)_lower(company); correlation only",
        ),
        sa.Column("company_name", sa.String(255), nullable=True),
        sa.Column("respondent_name", sa.String(255), nullable=True),
        sa.Column("respondent_email", sa.String(255), nullable=True),
        sa.Column("user_ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("last_activity", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("is_completed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("completion_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_questions", sa.Integer, nullable=False, server_default="0"),
        sa.Column("answered_questions", sa.Integer, nullable=False, server_default="0"),
        sa.Column("completion_percentage", sa.Numeric(5, 2), nullable=False, server_default="0"),
    )
    op.create_index("ix_survey_sessions_user_identifier", "survey_sessions", ["user_identifier"])
    op.create_index("ix_survey_sessions_company_name", "survey_sessions", ["company_name"])
    op.create_index("ix_survey_sessions_respondent_email", "survey_sessions", ["respondent_email"])

    # survey_responses: one rating per (session, stage, capability)
    op.create_table(
        "survey_responses",
        sa.Column(
            "session_id",
            sa.String(36),
            sa.ForeignKey("survey_sessions.session_id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("stage_name", sa.String(255), primary_key=True),
        sa.Column(
            "capability",
            sa.String(1000),
            primary_key=True,
            comment="Durable capability description; cross-session and cross-locale join key",
        ),
        sa.Column("question", sa.Text, nullable=True),
        sa.Column("rating", sa.Integer, nullable=True, comment="Likert rating 1-5"),
        sa.Column("rating_explanation", sa.Text, nullable=True),
        sa.Column("selected_option_text", sa.Text, nullable=True),
        sa.Column("answered_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    # stage_progress: per-stage completion
    op.create_table(
        "stage_progress",
        sa.Column(
            "session_id",
            sa.String(36),
            sa.ForeignKey("survey_sessions.session_id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("stage_name", sa.String(255), primary_key=True),
        sa.Column("stage_order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_questions", sa.Integer, nullable=False, server_default="0"),
        sa.Column("answered_questions", sa.Integer, nullable=False, server_default="0"),
        sa.Column("completion_percentage", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("is_completed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
    )

    # survey_results_summary: per-stage scores, replaced on each recompute
    op.create_table(
        "survey_results_summary",
        sa.Column("summary_id", sa.String(36), primary_key=True),
        sa.Column(
            "session_id",
            sa.String(36),
            sa.ForeignKey("survey_sessions.session_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("stage_name", sa.String(255), nullable=False),
        sa.Column("stage_average", sa.Numeric(3, 2), nullable=True, comment="Mean rating on the 1-5 scale"),
        sa.Column(
            "stage_scaled_score",
            sa.Numeric(5, 2),
            nullable=True,
            comment="(stage_average - 1) * 25, 0-100 scale",
        ),
        sa.Column("question_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("answered_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("calculated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("session_id", "stage_name", name="uq_results_summary_session_stage"),
    )
    op.create_index("ix_survey_results_summary_session_id", "survey_results_summary", ["session_id"])

    # audit_log: identity and delete operations
    op.create_table(
        "audit_log",
        sa.Column("log_id", sa.String(36), primary_key=True),
        sa.Column("session_id", sa.String(36), nullable=True),
        sa.Column("table_name", sa.String(255), nullable=False),
        sa.Column("operation_type", sa.String(50), nullable=False),
        sa.Column("old_values", sa.JSON, nullable=True),
        sa.Column("new_values", sa.JSON, nullable=True),
        sa.Column("user_identifier", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_audit_log_session_id", "audit_log", ["session_id"])


def downgrade() -> None:
    """Drop all CLM assessment tables."""
    op.drop_index("ix_audit_log_session_id", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_index("ix_survey_results_summary_session_id", table_name="survey_results_summary")
    op.drop_table("survey_results_summary")
    op.drop_table("stage_progress")
    op.drop_table("survey_responses")
    op.drop_index("ix_survey_sessions_respondent_email", table_name="survey_sessions")
    op.drop_index("ix_survey_sessions_company_name", table_name="survey_sessions")
    op.drop_index("ix_survey_sessions_user_identifier", table_name="survey_sessions")
    op.drop_table("survey_sessions")
