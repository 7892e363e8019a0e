"""ORM models package for the CLM assessment service."""

from clm_assessment.core.models.survey import (
    AuditLog,
    OperationType,
    StageProgress,
    SurveyBase,
    SurveyResponse,
    SurveyResultSummary,
    SurveySession,
)

__all__ = [
    "SurveyBase",
    "SurveySession",
    "SurveyResponse",
    "StageProgress",
    "SurveyResultSummary",
    "AuditLog",
    "OperationType",
]
