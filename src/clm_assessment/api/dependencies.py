"""FastAPI dependency factories.

Routes receive services built on a ``SqlSurveyStore`` over the process-wide
session factory. Tests swap the store through ``app.dependency_overrides``
on ``get_survey_store``.
"""

from functools import lru_cache

from fastapi import Depends

from clm_assessment.adapters.repositories import SqlSurveyStore
from clm_assessment.adapters.scoring_engine import ScoringEngine, SessionLockRegistry
from clm_assessment.core.interfaces import ISurveyStore
from clm_assessment.core.services import (
    AdminService,
    AnswerStore,
    IdentityResolver,
    ProgressAggregator,
    ResultsService,
    SessionController,
)
from clm_assessment.core.survey_definition import CLM_SURVEY
from clm_assessment.database import get_session_factory
from clm_assessment.settings import Settings

# Shared so that concurrent requests re-scoring one session queue up.
_SCORING_LOCKS = SessionLockRegistry()


@lru_cache
def get_settings() -> Settings:
    return Settings()


def get_survey_store() -> ISurveyStore:
    """Survey store over the session factory created at startup."""
    return SqlSurveyStore(get_session_factory())


def get_scoring_engine(store: ISurveyStore = Depends(get_survey_store)) -> ScoringEngine:
    return ScoringEngine(store, locks=_SCORING_LOCKS)


def get_identity_resolver(store: ISurveyStore = Depends(get_survey_store)) -> IdentityResolver:
    return IdentityResolver(store, total_questions=CLM_SURVEY.total_questions)


def get_answer_store(store: ISurveyStore = Depends(get_survey_store)) -> AnswerStore:
    return AnswerStore(store)


def get_progress_aggregator(
    store: ISurveyStore = Depends(get_survey_store),
    scoring_engine: ScoringEngine = Depends(get_scoring_engine),
) -> ProgressAggregator:
    return ProgressAggregator(store, scoring_engine, CLM_SURVEY)


def get_results_service(
    store: ISurveyStore = Depends(get_survey_store),
    scoring_engine: ScoringEngine = Depends(get_scoring_engine),
    progress: ProgressAggregator = Depends(get_progress_aggregator),
    settings: Settings = Depends(get_settings),
) -> ResultsService:
    """Build ResultsService with the configured completion thresholds."""
    return ResultsService(
        store=store,
        scoring_engine=scoring_engine,
        progress=progress,
        min_completion_for_results=settings.min_completion_for_results,
        min_completion_for_meaningful=settings.min_completion_for_meaningful,
    )


def get_admin_service(
    store: ISurveyStore = Depends(get_survey_store),
    scoring_engine: ScoringEngine = Depends(get_scoring_engine),
    settings: Settings = Depends(get_settings),
) -> AdminService:
    return AdminService(store, scoring_engine, page_size_max=settings.admin_page_size_max)


def get_session_controller(
    store: ISurveyStore = Depends(get_survey_store),
    scoring_engine: ScoringEngine = Depends(get_scoring_engine),
    settings: Settings = Depends(get_settings),
) -> SessionController:
    """Build a respondent SessionController using the configured autosave delay."""
    return SessionController(
        store,
        scoring_engine,
        definition=CLM_SURVEY,
        debounce_seconds=settings.autosave_debounce_seconds,
    )
