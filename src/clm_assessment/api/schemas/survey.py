"""Pydantic request/response schemas for the CLM assessment API.

All API inputs and outputs are Pydantic v2 models. ORM records are read
through ``from_attributes``.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field


# ---------------------------------------------------------------------------
# Shared record views
# ---------------------------------------------------------------------------


class SessionSchema(BaseModel):
    """A stored survey session.

    The completion columns are a cache refreshed after each progress write.
    """

    model_config = ConfigDict(from_attributes=True)

    session_id: str
    user_identifier: str
    company_name: str | None = None
    respondent_name: str | None = None
    respondent_email: str | None = None
    created_at: datetime
    updated_at: datetime
    last_activity: datetime
    is_completed: bool
    completion_date: datetime | None = None
    total_questions: int
    answered_questions: int
    completion_percentage: float


class ResponseSchema(BaseModel):
    """One stored answer."""

    model_config = ConfigDict(from_attributes=True)

    session_id: str
    stage_name: str
    capability: str
    question: str | None = None
    rating: int | None = None
    selected_option_text: str | None = None
    rating_explanation: str | None = None
    answered_at: datetime
    updated_at: datetime


class StageProgressSchema(BaseModel):
    """Recorded completion of one stage."""

    model_config = ConfigDict(from_attributes=True)

    session_id: str
    stage_name: str
    stage_order: int
    total_questions: int
    answered_questions: int
    completion_percentage: float
    is_completed: bool
    completed_at: datetime | None = None
    last_updated: datetime


class ResultSummarySchema(BaseModel):
    """Scores for one stage."""

    model_config = ConfigDict(from_attributes=True)

    summary_id: str
    session_id: str
    stage_name: str
    stage_average: float | None = None
    stage_scaled_score: float | None = None
    question_count: int
    answered_count: int
    calculated_at: datetime


class AuditEntrySchema(BaseModel):
    """One audit trail entry."""

    model_config = ConfigDict(from_attributes=True)

    log_id: str
    session_id: str | None = None
    table_name: str
    operation_type: str
    old_values: dict | None = None
    new_values: dict | None = None
    user_identifier: str | None = None
    created_at: datetime


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class CreateSessionRequest(BaseModel):
    """Request body to start a survey for a respondent.

    Attributes:
        company_name: Respondent's company.
        respondent_email: Respondent's email; an existing session for it
            defers creation unless ``allow_duplicate`` is set.
        respondent_name: Optional respondent name.
        allow_duplicate: Create a new session even if the email has one.
    """

    company_name: str = Field(..., min_length=1, max_length=255)
    respondent_email: EmailStr
    respondent_name: str | None = Field(default=None, max_length=255)
    allow_duplicate: bool = False


class CreateSessionResponse(BaseModel):
    """Outcome of a create request.

    ``duplicate`` carries the existing session and means nothing was created.
    """

    outcome: Literal["created", "duplicate"]
    session: SessionSchema


class SessionLookupResponse(BaseModel):
    """Outcome of a session lookup.

    ``ambiguous`` lists every matching session, newest first, in
    ``candidates``; ``session`` is then the most recent one.
    """

    outcome: Literal["found", "ambiguous"]
    session: SessionSchema
    candidates: list[SessionSchema] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Responses (answers)
# ---------------------------------------------------------------------------


class AnswerItem(BaseModel):
    """One answer to save. The rating is validated per item."""

    stage_name: str = Field(..., min_length=1, max_length=255)
    capability: str = Field(..., min_length=1, max_length=1000)
    rating: int
    question: str | None = None
    selected_option_text: str | None = None
    rating_explanation: str | None = None


class SaveResponsesRequest(BaseModel):
    """A batch of answers for one session."""

    session_id: str = Field(..., min_length=1, max_length=36)
    responses: list[AnswerItem] = Field(..., min_length=1)


class SkippedAnswer(BaseModel):
    """An answer rejected from a batch."""

    stage_name: str
    capability: str
    reason: str


class SaveResponsesResponse(BaseModel):
    """Result of saving a batch; invalid answers are skipped, not fatal."""

    session_id: str
    saved: int
    skipped: list[SkippedAnswer] = Field(default_factory=list)


class ResponseListResponse(BaseModel):
    """All answers for a session ordered by stage then capability."""

    session_id: str
    responses: list[ResponseSchema]


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


class RecordProgressRequest(BaseModel):
    """Progress for the page the respondent just saved."""

    session_id: str = Field(..., min_length=1, max_length=36)
    stage_name: str = Field(..., min_length=1, max_length=255)
    stage_order: int = Field(..., ge=0)
    total_questions: int = Field(..., ge=0)
    answered_questions: int = Field(..., ge=0)


class ProgressResponse(BaseModel):
    """Stage progress rows plus overall completion.

    Attributes:
        overall_progress: Completion over visited stages only.
        completion_percentage: Completion over the whole survey.
        is_completed: Every stage has been completed.
    """

    session_id: str
    stages: list[StageProgressSchema]
    overall_progress: float
    completion_percentage: float
    is_completed: bool


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class CalculateResultsRequest(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=36)


class BenchmarkRowSchema(BaseModel):
    """A stage score against peer and best-in-class figures (0-100 scale)."""

    stage_name: str
    stage_number: int
    score: float | None = None
    peer_average: float | None = None
    best_in_class: float | None = None
    gap_to_peer: float | None = None
    gap_to_best: float | None = None


class ResultsResponse(BaseModel):
    """Results view for a session.

    Attributes:
        results_unlocked: Live completion has reached the results threshold.
        is_meaningful: Live completion is high enough for representative scores.
        overall_score: Mean of the stage scaled scores.
    """

    session: SessionSchema
    summaries: list[ResultSummarySchema]
    completion_percentage: float
    overall_progress: float
    results_unlocked: bool
    is_meaningful: bool
    overall_score: float | None = None
    benchmarks: list[BenchmarkRowSchema]


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class SessionListResponse(BaseModel):
    sessions: list[SessionSchema]
    total: int
    page: int
    limit: int
    total_pages: int


class SessionDetailResponse(BaseModel):
    session: SessionSchema
    responses: list[ResponseSchema]
    stage_progress: list[StageProgressSchema]
    results: list[ResultSummarySchema]
    audit_log: list[AuditEntrySchema]


class UpdateSessionRequest(BaseModel):
    """Admin edit of respondent metadata; only supplied fields change."""

    company_name: str | None = Field(default=None, max_length=255)
    respondent_name: str | None = Field(default=None, max_length=255)
    respondent_email: EmailStr | None = None


class DeleteAnswerResponse(BaseModel):
    session_id: str
    deleted: bool


class DashboardStatsResponse(BaseModel):
    total_sessions: int
    completed_sessions: int
    in_progress_sessions: int
    average_completion: float
    total_responses: int
    average_rating: float | None = None
