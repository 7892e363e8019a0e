"""FastAPI routes for survey administration.

Authentication for these routes is provided by the deployment in front of
the service.

API prefix: /api/v1/admin
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from clm_assessment.api.dependencies import get_admin_service, get_settings
from clm_assessment.api.errors import to_http_error
from clm_assessment.api.schemas import (
    AuditEntrySchema,
    DashboardStatsResponse,
    DeleteAnswerResponse,
    ResponseSchema,
    ResultSummarySchema,
    SessionDetailResponse,
    SessionListResponse,
    SessionSchema,
    StageProgressSchema,
    UpdateSessionRequest,
)
from clm_assessment.core.errors import AssessmentError
from clm_assessment.core.services import AdminService
from clm_assessment.settings import Settings

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["CLM Survey Admin"])


@router.get(
    "/sessions",
    response_model=SessionListResponse,
    summary="List survey sessions",
)
async def list_sessions(
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    search: str | None = Query(default=None, max_length=255),
    status_filter: str = Query(default="all", alias="status", pattern="^(all|completed|in_progress)$"),
    sort_by: str = Query(
        default="created_at",
        alias="sortBy",
        pattern="^(created_at|last_activity|company_name|respondent_email|completion_percentage)$",
    ),
    sort_order: str = Query(default="desc", alias="sortOrder", pattern="^(asc|desc)$"),
    service: AdminService = Depends(get_admin_service),
    settings: Settings = Depends(get_settings),
) -> SessionListResponse:
    """Page through sessions with search, status filter and sorting.

    The status filter uses each session's cached completion flag.
    """
    try:
        result = await service.list_sessions(
            page=page,
            limit=limit or settings.admin_page_size_default,
            search=search,
            status=status_filter,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    except AssessmentError as exc:
        raise to_http_error(exc) from exc

    return SessionListResponse(
        sessions=[SessionSchema.model_validate(s) for s in result["sessions"]],
        total=result["total"],
        page=result["page"],
        limit=result["limit"],
        total_pages=result["total_pages"],
    )


@router.get(
    "/sessions/{session_id}",
    response_model=SessionDetailResponse,
    summary="Get a session with its answers, progress and results",
)
async def get_session_details(
    session_id: str = Path(..., max_length=36),
    service: AdminService = Depends(get_admin_service),
) -> SessionDetailResponse:
    try:
        details = await service.get_session_details(session_id)
    except AssessmentError as exc:
        raise to_http_error(exc) from exc

    return SessionDetailResponse(
        session=SessionSchema.model_validate(details["session"]),
        responses=[ResponseSchema.model_validate(r) for r in details["responses"]],
        stage_progress=[StageProgressSchema.model_validate(p) for p in details["stage_progress"]],
        results=[ResultSummarySchema.model_validate(r) for r in details["results"]],
        audit_log=[AuditEntrySchema.model_validate(e) for e in details["audit_log"]],
    )


@router.patch(
    "/sessions/{session_id}",
    response_model=SessionSchema,
    summary="Edit respondent metadata",
)
async def update_session(
    body: UpdateSessionRequest,
    session_id: str = Path(..., max_length=36),
    service: AdminService = Depends(get_admin_service),
) -> SessionSchema:
    """Change company, respondent name or email; ``user_identifier`` is re-derived."""
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")
    if "respondent_email" in updates and updates["respondent_email"] is not None:
        updates["respondent_email"] = str(updates["respondent_email"])
    try:
        session = await service.update_session_metadata(session_id, updates)
    except AssessmentError as exc:
        raise to_http_error(exc) from exc
    return SessionSchema.model_validate(session)


@router.delete(
    "/sessions/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a session and all of its data",
)
async def delete_session(
    session_id: str = Path(..., max_length=36),
    service: AdminService = Depends(get_admin_service),
) -> None:
    try:
        await service.delete_session(session_id)
    except AssessmentError as exc:
        raise to_http_error(exc) from exc


@router.delete(
    "/sessions/{session_id}/responses",
    response_model=DeleteAnswerResponse,
    summary="Delete one answer and re-score the session",
)
async def delete_answer(
    session_id: str = Path(..., max_length=36),
    stage_name: str = Query(..., min_length=1, max_length=255),
    capability: str = Query(..., min_length=1, max_length=1000),
    service: AdminService = Depends(get_admin_service),
) -> DeleteAnswerResponse:
    try:
        deleted = await service.delete_answer(session_id, stage_name, capability)
    except AssessmentError as exc:
        raise to_http_error(exc) from exc
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Answer not found")
    return DeleteAnswerResponse(session_id=session_id, deleted=True)


@router.get(
    "/stats",
    response_model=DashboardStatsResponse,
    summary="Dashboard statistics",
)
async def dashboard_stats(
    service: AdminService = Depends(get_admin_service),
) -> DashboardStatsResponse:
    try:
        stats = await service.dashboard_stats()
    except AssessmentError as exc:
        raise to_http_error(exc) from exc
    return DashboardStatsResponse(**stats)
