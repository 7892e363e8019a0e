"""Repository sub-package for the CLM assessment service.

Table-level repositories operate on a caller-supplied ``AsyncSession``;
``SqlSurveyStore`` composes them into the transactional ``ISurveyStore``
consumed by the core services.
"""

from clm_assessment.adapters.repositories.survey_repository import (
    AuditLogRepository,
    ResultSummaryRepository,
    SessionRepository,
    StageProgressRepository,
    SurveyResponseRepository,
)
from clm_assessment.adapters.repositories.survey_store import SqlSurveyStore

__all__ = [
    "AuditLogRepository",
    "ResultSummaryRepository",
    "SessionRepository",
    "StageProgressRepository",
    "SurveyResponseRepository",
    "SqlSurveyStore",
]
