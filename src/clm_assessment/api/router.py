"""Top-level API router for the CLM assessment service.

API prefix: /api/v1
"""

from fastapi import APIRouter

from clm_assessment.api.routes import admin, survey

router = APIRouter()
router.include_router(survey.router)
router.include_router(admin.router)
