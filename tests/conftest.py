"""Test fixtures for clm-assessment.

Store-level and API tests run against an in-memory SQLite database through
aiosqlite. A StaticPool keeps the single in-memory connection alive for the
whole test.
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from clm_assessment.adapters.repositories import SqlSurveyStore
from clm_assessment.adapters.scoring_engine import ScoringEngine
from clm_assessment.api.dependencies import get_survey_store
from clm_assessment.core.models import SurveyBase
from clm_assessment.core.survey_definition import SurveyDefinition, definition_from_dict
from clm_assessment.main import app


@pytest_asyncio.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with the survey schema created."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as connection:
        await connection.run_sync(SurveyBase.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture()
def store(session_factory: async_sessionmaker[AsyncSession]) -> SqlSurveyStore:
    return SqlSurveyStore(session_factory)


@pytest.fixture()
def scoring_engine(store: SqlSurveyStore) -> ScoringEngine:
    return ScoringEngine(store)


@pytest.fixture()
def two_stage_definition() -> SurveyDefinition:
    """Small survey: stage A with two questions, stage B with one."""
    return definition_from_dict(
        {
            "stages": [
                {
                    "name": "CLM Stage 1: Alpha",
                    "questions": [
                        {"name": "a1", "capability": "**Alpha** one"},
                        {"name": "a2", "capability": "Alpha two"},
                    ],
                },
                {
                    "name": "CLM Stage 2: Beta",
                    "questions": [{"name": "b1", "capability": "Beta one"}],
                },
            ]
        }
    )


@pytest_asyncio.fixture()
async def client(store: SqlSurveyStore) -> AsyncGenerator[AsyncClient, None]:
    """Async test client backed by the in-memory store."""
    app.dependency_overrides[get_survey_store] = lambda: store

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()
