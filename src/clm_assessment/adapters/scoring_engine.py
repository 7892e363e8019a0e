"""Stage scoring engine for the CLM assessment service.

Implements the IScoringEngine interface. Each run reads every answer for the
session, computes one summary per stage and replaces the stored summary set
in a single store transaction. Runs for the same session are serialised
in-process; runs for different sessions proceed independently.
"""

import asyncio
import contextlib
from collections.abc import AsyncIterator
from typing import Any

from clm_assessment.core.interfaces import ISurveyStore
from clm_assessment.core.scoring import compute_stage_summaries
from clm_assessment.observability import get_logger

logger = get_logger(__name__)


class SessionLockRegistry:
    """Per-session asyncio locks, released from the registry when idle."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @contextlib.asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._holders[session_id] = self._holders.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[session_id] -= 1
            if self._holders[session_id] == 0:
                del self._holders[session_id]
                del self._locks[session_id]

    def __len__(self) -> int:
        return len(self._locks)


class ScoringEngine:
    """Recomputes per-stage result summaries from stored answers.

    Args:
        store: Persistence interface providing answers and the atomic replace.
        locks: Lock registry; share one instance across engines in a process
            so that concurrent recomputes of one session queue up.
    """

    def __init__(self, store: ISurveyStore, locks: SessionLockRegistry | None = None) -> None:
        self._store = store
        self._locks = locks if locks is not None else SessionLockRegistry()

    async def recompute(self, session_id: str) -> list[dict[str, Any]]:
        """Replace the session's result summaries from its current answers.

        Safe to call redundantly: with unchanged answers the replacement rows
        are identical to the existing ones. If the replace fails the previous
        summaries stay in place.

        Args:
            session_id: Session to score.

        Returns:
            The summaries written, ordered by stage name.
        """
        async with self._locks.hold(session_id):
            answers = await self._store.list_answers(session_id)
            summaries = compute_stage_summaries(answers)
            await self._store.replace_results(session_id, summaries)

        logger.info(
            "Stage scores recomputed",
            session_id=session_id,
            stage_count=len(summaries),
            answer_count=len(answers),
        )
        return summaries
