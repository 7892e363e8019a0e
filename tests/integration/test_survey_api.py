"""Integration tests for the CLM survey and admin HTTP API.

Each test uses a fresh async HTTP client whose survey store dependency is
overridden with an in-memory SQLite store, exercising the full stack from
routes through services to the database.
"""

from typing import Any

import pytest
from fastapi import status
from httpx import AsyncClient

from clm_assessment.core.survey_definition import CLM_SURVEY

_STAGE_ONE = CLM_SURVEY.stages[0]
_STAGE_TWO = CLM_SURVEY.stages[1]
_CREATE_REQUEST = {
    "company_name": "Acme Corporation",
    "respondent_email": "cto@acmecorp.com",
    "respondent_name": "Dana",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _create_session(client: AsyncClient, **overrides: Any) -> str:
    response = await client.post("/api/v1/sessions", json={**_CREATE_REQUEST, **overrides})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["outcome"] == "created"
    return response.json()["session"]["session_id"]


def _stage_answers(stage, ratings: list[int]) -> list[dict[str, Any]]:
    return [
        {"stage_name": stage.name, "capability": question.capability, "rating": rating}
        for question, rating in zip(stage.questions, ratings)
    ]


async def _answer_stage(client: AsyncClient, session_id: str, stage, ratings: list[int]) -> None:
    response = await client.post(
        "/api/v1/responses",
        json={"session_id": session_id, "responses": _stage_answers(stage, ratings)},
    )
    assert response.status_code == status.HTTP_200_OK
    response = await client.post(
        "/api/v1/progress",
        json={
            "session_id": session_id,
            "stage_name": stage.name,
            "stage_order": stage.order,
            "total_questions": stage.question_count,
            "answered_questions": len(ratings),
        },
    )
    assert response.status_code == status.HTTP_200_OK


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class TestSessions:
    """Session creation and lookup endpoints."""

    @pytest.mark.asyncio()
    async def test_create_session(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/sessions", json=_CREATE_REQUEST)

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["outcome"] == "created"
        assert body["session"]["company_name"] == "Acme Corporation"
        assert body["session"]["total_questions"] == 38
        assert len(body["session"]["user_identifier"]) == 16

    @pytest.mark.asyncio()
    async def test_duplicate_email_returns_existing(self, client: AsyncClient) -> None:
        session_id = await _create_session(client)

        response = await client.post("/api/v1/sessions", json=_CREATE_REQUEST)

        assert response.json()["outcome"] == "duplicate"
        assert response.json()["session"]["session_id"] == session_id

    @pytest.mark.asyncio()
    async def test_allow_duplicate_creates_new(self, client: AsyncClient) -> None:
        session_id = await _create_session(client)

        response = await client.post("/api/v1/sessions", json={**_CREATE_REQUEST, "allow_duplicate": True})

        assert response.json()["outcome"] == "created"
        assert response.json()["session"]["session_id"] != session_id

    @pytest.mark.asyncio()
    async def test_invalid_email_rejected(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/sessions", json={**_CREATE_REQUEST, "respondent_email": "nope"})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.asyncio()
    async def test_lookup_by_email(self, client: AsyncClient) -> None:
        session_id = await _create_session(client)

        response = await client.get("/api/v1/sessions", params={"email": "CTO@acmecorp.com"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["outcome"] == "found"
        assert response.json()["session"]["session_id"] == session_id

    @pytest.mark.asyncio()
    async def test_lookup_by_company_all_is_ambiguous(self, client: AsyncClient) -> None:
        older = await _create_session(client)
        newer = await _create_session(client, respondent_email="cfo@acmecorp.com")

        response = await client.get("/api/v1/sessions", params={"company": "acme corporation", "all": "true"})

        body = response.json()
        assert body["outcome"] == "ambiguous"
        assert [c["session_id"] for c in body["candidates"]] == [newer, older]

    @pytest.mark.asyncio()
    async def test_lookup_not_found(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/sessions", params={"session_id": "missing"})

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert "start a new survey" in response.json()["detail"]

    @pytest.mark.asyncio()
    async def test_lookup_without_key(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/sessions")

        assert response.status_code == status.HTTP_400_BAD_REQUEST


# ---------------------------------------------------------------------------
# Responses and progress
# ---------------------------------------------------------------------------


class TestResponsesAndProgress:
    """Answer batches and stage progress endpoints."""

    @pytest.mark.asyncio()
    async def test_invalid_answer_skipped_in_batch(self, client: AsyncClient) -> None:
        session_id = await _create_session(client)
        answers = _stage_answers(_STAGE_ONE, [4, 7])

        response = await client.post("/api/v1/responses", json={"session_id": session_id, "responses": answers})

        body = response.json()
        assert response.status_code == status.HTTP_200_OK
        assert body["saved"] == 1
        assert body["skipped"][0]["capability"] == _STAGE_ONE.questions[1].capability

    @pytest.mark.asyncio()
    async def test_all_invalid_batch_rejected(self, client: AsyncClient) -> None:
        session_id = await _create_session(client)

        response = await client.post(
            "/api/v1/responses",
            json={"session_id": session_id, "responses": _stage_answers(_STAGE_ONE, [0])},
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.asyncio()
    async def test_answers_for_unknown_session(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/responses",
            json={"session_id": "missing", "responses": _stage_answers(_STAGE_ONE, [3])},
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio()
    async def test_resubmitting_overwrites(self, client: AsyncClient) -> None:
        session_id = await _create_session(client)
        answers = _stage_answers(_STAGE_ONE, [2])
        await client.post("/api/v1/responses", json={"session_id": session_id, "responses": answers})
        answers[0]["rating"] = 5
        await client.post("/api/v1/responses", json={"session_id": session_id, "responses": answers})

        response = await client.get("/api/v1/responses", params={"session_id": session_id})

        stored = response.json()["responses"]
        assert len(stored) == 1
        assert stored[0]["rating"] == 5

    @pytest.mark.asyncio()
    async def test_rating_explanation_stored_with_answer(self, client: AsyncClient) -> None:
        session_id = await _create_session(client)
        answers = _stage_answers(_STAGE_ONE, [2])
        answers[0]["rating_explanation"] = "Contracts still live on shared drives"

        await client.post("/api/v1/responses", json={"session_id": session_id, "responses": answers})
        response = await client.get("/api/v1/responses", params={"session_id": session_id})

        assert response.json()["responses"][0]["rating_explanation"] == "Contracts still live on shared drives"

    @pytest.mark.asyncio()
    async def test_progress_counts_visited_stages_only(self, client: AsyncClient) -> None:
        session_id = await _create_session(client)

        await _answer_stage(client, session_id, _STAGE_ONE, [3] * _STAGE_ONE.question_count)
        response = await client.get("/api/v1/progress", params={"session_id": session_id})

        body = response.json()
        assert body["overall_progress"] == 100.0
        assert body["completion_percentage"] == round(100.0 * 7 / 38, 2)
        assert body["is_completed"] is False
        assert body["stages"][0]["is_completed"] is True

    @pytest.mark.asyncio()
    async def test_progress_for_unknown_session(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/progress",
            json={
                "session_id": "missing",
                "stage_name": _STAGE_ONE.name,
                "stage_order": 1,
                "total_questions": 7,
                "answered_questions": 1,
            },
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class TestResults:
    """Results endpoints, gating and benchmarks."""

    @pytest.mark.asyncio()
    async def test_results_computed_on_first_read(self, client: AsyncClient) -> None:
        session_id = await _create_session(client)
        await client.post(
            "/api/v1/responses",
            json={"session_id": session_id, "responses": _stage_answers(_STAGE_TWO, [4, 2])},
        )

        response = await client.get("/api/v1/results", params={"session_id": session_id})

        body = response.json()
        assert response.status_code == status.HTTP_200_OK
        assert body["summaries"][0]["stage_name"] == _STAGE_TWO.name
        assert body["summaries"][0]["stage_average"] == 3.0
        assert body["summaries"][0]["stage_scaled_score"] == 50.0
        assert body["results_unlocked"] is False
        assert body["benchmarks"][0]["peer_average"] == 50.5

    @pytest.mark.asyncio()
    async def test_results_unlock_from_live_completion(self, client: AsyncClient) -> None:
        session_id = await _create_session(client)
        for stage in CLM_SURVEY.stages[:3]:
            await _answer_stage(client, session_id, stage, [5] * stage.question_count)

        response = await client.get("/api/v1/results", params={"session_id": session_id})

        body = response.json()
        assert body["completion_percentage"] == round(100.0 * 20 / 38, 2)
        assert body["results_unlocked"] is True
        assert body["is_meaningful"] is False
        assert body["overall_score"] == 100.0

    @pytest.mark.asyncio()
    async def test_recalculate(self, client: AsyncClient) -> None:
        session_id = await _create_session(client)
        await _answer_stage(client, session_id, _STAGE_ONE, [1] * _STAGE_ONE.question_count)

        response = await client.post("/api/v1/results", json={"session_id": session_id})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["summaries"][0]["stage_scaled_score"] == 0.0

    @pytest.mark.asyncio()
    async def test_results_for_unknown_session(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/results", params={"session_id": "missing"})

        assert response.status_code == status.HTTP_404_NOT_FOUND


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class TestAdmin:
    """Admin listing, edits and deletions."""

    @pytest.mark.asyncio()
    async def test_list_sessions_with_search(self, client: AsyncClient) -> None:
        await _create_session(client)
        await _create_session(client, company_name="Globex", respondent_email="ceo@globex.com")

        response = await client.get("/api/v1/admin/sessions", params={"search": "globex", "limit": 10})

        body = response.json()
        assert body["total"] == 1
        assert body["total_pages"] == 1
        assert body["sessions"][0]["company_name"] == "Globex"

    @pytest.mark.asyncio()
    async def test_list_sessions_rejects_unknown_sort(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/admin/sessions", params={"sortBy": "password"})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.asyncio()
    async def test_session_details(self, client: AsyncClient) -> None:
        session_id = await _create_session(client)
        await _answer_stage(client, session_id, _STAGE_ONE, [3] * _STAGE_ONE.question_count)

        response = await client.get(f"/api/v1/admin/sessions/{session_id}")

        body = response.json()
        assert len(body["responses"]) == 7
        assert len(body["stage_progress"]) == 1
        assert len(body["results"]) == 1
        assert body["audit_log"][0]["operation_type"] == "INSERT"

    @pytest.mark.asyncio()
    async def test_update_metadata(self, client: AsyncClient) -> None:
        session_id = await _create_session(client)
        original = (await client.get("/api/v1/sessions", params={"session_id": session_id})).json()

        response = await client.patch(f"/api/v1/admin/sessions/{session_id}", json={"company_name": "Acme Ltd"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["company_name"] == "Acme Ltd"
        assert response.json()["user_identifier"] != original["session"]["user_identifier"]

    @pytest.mark.asyncio()
    async def test_delete_answer_rescoring(self, client: AsyncClient) -> None:
        session_id = await _create_session(client)
        await _answer_stage(client, session_id, _STAGE_TWO, [5, 5, 5, 5, 5, 1])
        before = (await client.get("/api/v1/results", params={"session_id": session_id})).json()

        response = await client.delete(
            f"/api/v1/admin/sessions/{session_id}/responses",
            params={"stage_name": _STAGE_TWO.name, "capability": _STAGE_TWO.questions[5].capability},
        )
        after = (await client.get("/api/v1/results", params={"session_id": session_id})).json()

        assert response.json()["deleted"] is True
        assert after["summaries"][0]["question_count"] == before["summaries"][0]["question_count"] - 1
        assert after["summaries"][0]["stage_average"] == 5.0

    @pytest.mark.asyncio()
    async def test_delete_missing_answer(self, client: AsyncClient) -> None:
        session_id = await _create_session(client)

        response = await client.delete(
            f"/api/v1/admin/sessions/{session_id}/responses",
            params={"stage_name": _STAGE_ONE.name, "capability": "nothing"},
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio()
    async def test_delete_session(self, client: AsyncClient) -> None:
        session_id = await _create_session(client)
        await _answer_stage(client, session_id, _STAGE_ONE, [2] * _STAGE_ONE.question_count)

        response = await client.delete(f"/api/v1/admin/sessions/{session_id}")
        lookup = await client.get("/api/v1/sessions", params={"session_id": session_id})
        again = await client.delete(f"/api/v1/admin/sessions/{session_id}")

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert lookup.status_code == status.HTTP_404_NOT_FOUND
        assert again.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio()
    async def test_dashboard_stats(self, client: AsyncClient) -> None:
        session_id = await _create_session(client)
        await _answer_stage(client, session_id, _STAGE_ONE, [4] * _STAGE_ONE.question_count)

        response = await client.get("/api/v1/admin/stats")

        body = response.json()
        assert body["total_sessions"] == 1
        assert body["in_progress_sessions"] == 1
        assert body["total_responses"] == 7
        assert body["average_rating"] == 4.0
