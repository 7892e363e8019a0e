"""Pydantic schemas package for the CLM assessment service."""

from clm_assessment.api.schemas.survey import (
    AnswerItem,
    AuditEntrySchema,
    BenchmarkRowSchema,
    CalculateResultsRequest,
    CreateSessionRequest,
    CreateSessionResponse,
    DashboardStatsResponse,
    DeleteAnswerResponse,
    ProgressResponse,
    RecordProgressRequest,
    ResponseListResponse,
    ResponseSchema,
    ResultsResponse,
    ResultSummarySchema,
    SaveResponsesRequest,
    SaveResponsesResponse,
    SessionDetailResponse,
    SessionListResponse,
    SessionLookupResponse,
    SessionSchema,
    SkippedAnswer,
    StageProgressSchema,
    UpdateSessionRequest,
)

__all__ = [
    "AnswerItem",
    "AuditEntrySchema",
    "BenchmarkRowSchema",
    "CalculateResultsRequest",
    "CreateSessionRequest",
    "CreateSessionResponse",
    "DashboardStatsResponse",
    "DeleteAnswerResponse",
    "ProgressResponse",
    "RecordProgressRequest",
    "ResponseListResponse",
    "ResponseSchema",
    "ResultSummarySchema",
    "ResultsResponse",
    "SaveResponsesRequest",
    "SaveResponsesResponse",
    "SessionDetailResponse",
    "SessionListResponse",
    "SessionLookupResponse",
    "SessionSchema",
    "SkippedAnswer",
    "StageProgressSchema",
    "UpdateSessionRequest",
]
