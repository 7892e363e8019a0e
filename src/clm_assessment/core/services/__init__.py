"""Services package for the CLM assessment service."""

from clm_assessment.core.services.admin_service import AdminService
from clm_assessment.core.services.answer_store import AnswerStore, validate_rating
from clm_assessment.core.services.autosave import AutosaveDebouncer
from clm_assessment.core.services.identity_resolver import IdentityResolver
from clm_assessment.core.services.progress_aggregator import (
    ProgressAggregator,
    SessionCompletion,
)
from clm_assessment.core.services.results_service import ResultsService
from clm_assessment.core.services.session_controller import (
    SessionController,
    SessionState,
)

__all__ = [
    "AdminService",
    "AnswerStore",
    "AutosaveDebouncer",
    "IdentityResolver",
    "ProgressAggregator",
    "ResultsService",
    "SessionCompletion",
    "SessionController",
    "SessionState",
    "validate_rating",
]
