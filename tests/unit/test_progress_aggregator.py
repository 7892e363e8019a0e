"""Unit tests for ProgressAggregator with a mocked store and scoring engine."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from clm_assessment.core.services import ProgressAggregator
from clm_assessment.core.survey_definition import SurveyDefinition


def _row(stage_name: str, answered: int, total: int) -> SimpleNamespace:
    return SimpleNamespace(
        stage_name=stage_name,
        answered_questions=answered,
        total_questions=total,
        is_completed=answered == total,
    )


@pytest.fixture()
def mock_store() -> AsyncMock:
    store = AsyncMock()
    store.list_stage_progress.return_value = []
    return store


@pytest.fixture()
def mock_scoring_engine() -> AsyncMock:
    return AsyncMock()


@pytest.fixture()
def aggregator(
    mock_store: AsyncMock,
    mock_scoring_engine: AsyncMock,
    two_stage_definition: SurveyDefinition,
) -> ProgressAggregator:
    return ProgressAggregator(mock_store, mock_scoring_engine, two_stage_definition)


class TestRecordPage:
    """Tests for ProgressAggregator.record_page."""

    @pytest.mark.asyncio()
    async def test_first_completion_triggers_session_recompute(
        self,
        aggregator: ProgressAggregator,
        mock_store: AsyncMock,
        mock_scoring_engine: AsyncMock,
    ) -> None:
        mock_store.upsert_stage_progress.return_value = _row("CLM Stage 1: Alpha", 2, 2)

        row = await aggregator.record_page("s-1", "CLM Stage 1: Alpha", 1, 2, 2)

        assert row.is_completed
        mock_scoring_engine.recompute.assert_awaited_once_with("s-1")

    @pytest.mark.asyncio()
    async def test_recording_a_page_touches_session_activity(
        self,
        aggregator: ProgressAggregator,
        mock_store: AsyncMock,
    ) -> None:
        mock_store.upsert_stage_progress.return_value = _row("CLM Stage 1: Alpha", 1, 2)

        await aggregator.record_page("s-1", "CLM Stage 1: Alpha", 1, 2, 1)

        mock_store.touch_session.assert_awaited_once_with("s-1")

    @pytest.mark.asyncio()
    async def test_already_completed_stage_does_not_recompute(
        self,
        aggregator: ProgressAggregator,
        mock_store: AsyncMock,
        mock_scoring_engine: AsyncMock,
    ) -> None:
        mock_store.list_stage_progress.return_value = [_row("CLM Stage 1: Alpha", 2, 2)]
        mock_store.upsert_stage_progress.return_value = _row("CLM Stage 1: Alpha", 2, 2)

        await aggregator.record_page("s-1", "CLM Stage 1: Alpha", 1, 2, 2)

        mock_scoring_engine.recompute.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_incomplete_stage_does_not_recompute(
        self,
        aggregator: ProgressAggregator,
        mock_store: AsyncMock,
        mock_scoring_engine: AsyncMock,
    ) -> None:
        mock_store.upsert_stage_progress.return_value = _row("CLM Stage 1: Alpha", 1, 2)

        await aggregator.record_page("s-1", "CLM Stage 1: Alpha", 1, 2, 1)

        mock_scoring_engine.recompute.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_answered_count_clamped_to_page_size(
        self, aggregator: ProgressAggregator, mock_store: AsyncMock
    ) -> None:
        mock_store.upsert_stage_progress.return_value = _row("CLM Stage 1: Alpha", 2, 2)

        await aggregator.record_page("s-1", "CLM Stage 1: Alpha", 1, 2, 5)

        kwargs = mock_store.upsert_stage_progress.await_args.kwargs
        assert kwargs["answered_questions"] == 2
        assert kwargs["total_questions"] == 2

    @pytest.mark.asyncio()
    async def test_session_cache_refreshed(
        self, aggregator: ProgressAggregator, mock_store: AsyncMock
    ) -> None:
        mock_store.upsert_stage_progress.return_value = _row("CLM Stage 1: Alpha", 1, 2)
        mock_store.list_stage_progress.side_effect = [[], [_row("CLM Stage 1: Alpha", 1, 2)]]

        await aggregator.record_page("s-1", "CLM Stage 1: Alpha", 1, 2, 1)

        mock_store.update_session_progress.assert_awaited_once_with(
            session_id="s-1",
            total_questions=3,
            answered_questions=1,
            completion_percentage=33.33,
            is_completed=False,
        )


class TestLiveCompletion:
    """Tests for overall and live completion."""

    @pytest.mark.asyncio()
    async def test_unvisited_stage_excluded_from_overall_progress(
        self, aggregator: ProgressAggregator, mock_store: AsyncMock
    ) -> None:
        mock_store.list_stage_progress.return_value = [_row("CLM Stage 1: Alpha", 2, 2)]

        completion = await aggregator.live_completion("s-1")

        assert completion.overall_progress == 100.0
        assert completion.completion_percentage == 66.67
        assert completion.is_completed is False

    @pytest.mark.asyncio()
    async def test_all_stages_completed(
        self, aggregator: ProgressAggregator, mock_store: AsyncMock
    ) -> None:
        mock_store.list_stage_progress.return_value = [
            _row("CLM Stage 1: Alpha", 2, 2),
            _row("CLM Stage 2: Beta", 1, 1),
        ]

        completion = await aggregator.live_completion("s-1")

        assert completion.is_completed is True
        assert completion.completion_percentage == 100.0

    @pytest.mark.asyncio()
    async def test_no_progress_is_zero(self, aggregator: ProgressAggregator) -> None:
        assert await aggregator.overall_progress("s-1") == 0.0
