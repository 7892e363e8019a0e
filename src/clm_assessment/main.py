"""CLM assessment service entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from clm_assessment import __version__
from clm_assessment.api.dependencies import get_settings
from clm_assessment.api.router import router
from clm_assessment.database import create_schema, dispose_database, init_database
from clm_assessment.observability import configure_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle.

    Args:
        app: The FastAPI application instance.

    Yields:
        None
    """
    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_json)
    init_database(settings.database_url, echo=settings.database_echo)
    if settings.database_url.startswith("sqlite"):
        await create_schema()
    logger.info("Service started", service=settings.service_name, version=__version__)
    yield
    await dispose_database()
    logger.info("Service stopped", service=settings.service_name)


def create_app() -> FastAPI:
    """Build the FastAPI application with all routes mounted under /api/v1."""
    application = FastAPI(
        title="CLM Maturity Assessment",
        version=__version__,
        lifespan=lifespan,
    )
    application.include_router(router, prefix="/api/v1")

    @application.get("/health", tags=["Health"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return application


app: FastAPI = create_app()
