"""FastAPI routes for the respondent-facing survey flow.

All routes are thin: they parse inputs, delegate to the services, and
serialise responses. Domain exceptions become HTTP errors here.

API prefix: /api/v1
Auth: None. This is an anonymous self-service flow.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from clm_assessment.api.dependencies import (
    get_answer_store,
    get_identity_resolver,
    get_progress_aggregator,
    get_results_service,
    get_survey_store,
)
from clm_assessment.api.errors import to_http_error
from clm_assessment.api.schemas import (
    BenchmarkRowSchema,
    CalculateResultsRequest,
    CreateSessionRequest,
    CreateSessionResponse,
    ProgressResponse,
    RecordProgressRequest,
    ResponseListResponse,
    ResponseSchema,
    ResultsResponse,
    ResultSummarySchema,
    SaveResponsesRequest,
    SaveResponsesResponse,
    SessionLookupResponse,
    SessionSchema,
    SkippedAnswer,
    StageProgressSchema,
)
from clm_assessment.core.errors import AssessmentError, InvalidAnswerError, SessionNotFoundError
from clm_assessment.core.identity import ResolutionOutcome
from clm_assessment.core.interfaces import ISurveyStore
from clm_assessment.core.services import (
    AnswerStore,
    IdentityResolver,
    ProgressAggregator,
    ResultsService,
)

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["CLM Survey"])


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


@router.post(
    "/sessions",
    response_model=CreateSessionResponse,
    summary="Start a survey session",
)
async def create_session(
    body: CreateSessionRequest,
    request: Request,
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> CreateSessionResponse:
    """Create a session, or report the existing one for a known email.

    When the email already has a session the response outcome is
    ``duplicate`` and nothing is created; resubmit with
    ``allow_duplicate=true`` to create a new session anyway.
    """
    try:
        resolution = await resolver.create_session(
            email=str(body.respondent_email),
            company=body.company_name,
            respondent_name=body.respondent_name,
            user_ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
            allow_duplicate=body.allow_duplicate,
        )
    except AssessmentError as exc:
        raise to_http_error(exc) from exc

    return CreateSessionResponse(
        outcome=resolution.outcome.value,
        session=SessionSchema.model_validate(resolution.session),
    )


@router.get(
    "/sessions",
    response_model=SessionLookupResponse,
    summary="Find a session by id, email or company",
)
async def find_session(
    session_id: str | None = Query(default=None, max_length=36),
    email: str | None = Query(default=None, max_length=255),
    company: str | None = Query(default=None, max_length=255),
    all_matches: bool = Query(default=False, alias="all"),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> SessionLookupResponse:
    """Recover a session.

    Email and company lookups return the most recently created match. With
    ``all=true`` a company lookup returns every match for disambiguation.
    """
    try:
        resolution = await resolver.resolve(
            session_id=session_id,
            email=email,
            company=company,
            multi=all_matches,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except AssessmentError as exc:
        raise to_http_error(exc) from exc

    if resolution.outcome == ResolutionOutcome.NOT_FOUND:
        raise to_http_error(SessionNotFoundError())

    return SessionLookupResponse(
        outcome=resolution.outcome.value,
        session=SessionSchema.model_validate(resolution.session),
        candidates=[SessionSchema.model_validate(c) for c in resolution.candidates],
    )


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


@router.post(
    "/responses",
    response_model=SaveResponsesResponse,
    summary="Save a batch of answers",
)
async def save_responses(
    body: SaveResponsesRequest,
    answer_store: AnswerStore = Depends(get_answer_store),
) -> SaveResponsesResponse:
    """Upsert each answer by (session, stage, capability).

    Invalid answers are skipped and reported; the rest are saved. A batch in
    which every answer is invalid is rejected with 422.
    """
    saved = 0
    skipped: list[SkippedAnswer] = []
    for item in body.responses:
        try:
            await answer_store.upsert(
                session_id=body.session_id,
                stage_name=item.stage_name,
                capability=item.capability,
                rating=item.rating,
                selected_option_text=item.selected_option_text,
                question=item.question,
                rating_explanation=item.rating_explanation,
            )
        except InvalidAnswerError as exc:
            skipped.append(SkippedAnswer(stage_name=item.stage_name, capability=item.capability, reason=str(exc)))
            continue
        except AssessmentError as exc:
            raise to_http_error(exc) from exc
        saved += 1

    if saved == 0 and skipped:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=[s.model_dump() for s in skipped],
        )

    logger.info("Answers saved", session_id=body.session_id, saved=saved, skipped=len(skipped))
    return SaveResponsesResponse(session_id=body.session_id, saved=saved, skipped=skipped)


@router.get(
    "/responses",
    response_model=ResponseListResponse,
    summary="List a session's answers",
)
async def list_responses(
    session_id: str = Query(..., min_length=1, max_length=36),
    store: ISurveyStore = Depends(get_survey_store),
    answer_store: AnswerStore = Depends(get_answer_store),
) -> ResponseListResponse:
    try:
        if await store.find_session_by(session_id=session_id) is None:
            raise SessionNotFoundError()
        answers = await answer_store.list_by_session(session_id)
    except AssessmentError as exc:
        raise to_http_error(exc) from exc
    return ResponseListResponse(
        session_id=session_id,
        responses=[ResponseSchema.model_validate(a) for a in answers],
    )


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


async def _progress_view(session_id: str, store: ISurveyStore, progress: ProgressAggregator) -> ProgressResponse:
    rows = await store.list_stage_progress(session_id)
    completion = await progress.live_completion(session_id)
    return ProgressResponse(
        session_id=session_id,
        stages=[StageProgressSchema.model_validate(r) for r in rows],
        overall_progress=completion.overall_progress,
        completion_percentage=completion.completion_percentage,
        is_completed=completion.is_completed,
    )


@router.post(
    "/progress",
    response_model=ProgressResponse,
    summary="Record progress for one stage page",
)
async def record_progress(
    body: RecordProgressRequest,
    store: ISurveyStore = Depends(get_survey_store),
    progress: ProgressAggregator = Depends(get_progress_aggregator),
) -> ProgressResponse:
    """Upsert the stage's progress; the first completion of a stage re-scores the session."""
    try:
        await progress.record_page(
            session_id=body.session_id,
            stage_name=body.stage_name,
            stage_order=body.stage_order,
            page_question_count=body.total_questions,
            answered_question_count=body.answered_questions,
        )
        return await _progress_view(body.session_id, store, progress)
    except AssessmentError as exc:
        raise to_http_error(exc) from exc


@router.get(
    "/progress",
    response_model=ProgressResponse,
    summary="Get a session's progress",
)
async def get_progress(
    session_id: str = Query(..., min_length=1, max_length=36),
    store: ISurveyStore = Depends(get_survey_store),
    progress: ProgressAggregator = Depends(get_progress_aggregator),
) -> ProgressResponse:
    try:
        if await store.find_session_by(session_id=session_id) is None:
            raise SessionNotFoundError()
        return await _progress_view(session_id, store, progress)
    except AssessmentError as exc:
        raise to_http_error(exc) from exc


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


def _results_response(result: dict) -> ResultsResponse:
    completion = result["completion"]
    return ResultsResponse(
        session=SessionSchema.model_validate(result["session"]),
        summaries=[ResultSummarySchema.model_validate(s) for s in result["summaries"]],
        completion_percentage=completion.completion_percentage,
        overall_progress=completion.overall_progress,
        results_unlocked=result["results_unlocked"],
        is_meaningful=result["is_meaningful"],
        overall_score=result["overall_score"],
        benchmarks=[BenchmarkRowSchema(**row) for row in result["benchmarks"]],
    )


@router.post(
    "/results",
    response_model=ResultsResponse,
    summary="Recalculate a session's results",
)
async def calculate_results(
    body: CalculateResultsRequest,
    service: ResultsService = Depends(get_results_service),
) -> ResultsResponse:
    try:
        result = await service.calculate(body.session_id)
    except AssessmentError as exc:
        raise to_http_error(exc) from exc
    return _results_response(result)


@router.get(
    "/results",
    response_model=ResultsResponse,
    summary="Get a session's results",
)
async def get_results(
    session_id: str = Query(..., min_length=1, max_length=36),
    service: ResultsService = Depends(get_results_service),
) -> ResultsResponse:
    """Return stage scores, computing them first if none are stored yet."""
    try:
        result = await service.get_results(session_id)
    except AssessmentError as exc:
        raise to_http_error(exc) from exc
    return _results_response(result)
