"""Answer Store: validated, idempotent per-capability rating writes."""

from typing import Any

from clm_assessment.core.errors import InvalidAnswerError
from clm_assessment.core.interfaces import ISurveyStore
from clm_assessment.core.survey_definition import RATING_MAX, RATING_MIN


def validate_rating(rating: Any) -> int:
    """Return ``rating`` if it is an integer on the 1-5 scale.

    Raises:
        InvalidAnswerError: For non-integers (including bools) or out-of-range values.
    """
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise InvalidAnswerError(f"Rating must be an integer, got {rating!r}")
    if not RATING_MIN <= rating <= RATING_MAX:
        raise InvalidAnswerError(f"Rating {rating} outside {RATING_MIN}-{RATING_MAX}")
    return rating


class AnswerStore:
    """One rating per (session, stage, capability), last write wins.

    Args:
        store: Persistence interface.
    """

    def __init__(self, store: ISurveyStore) -> None:
        self._store = store

    async def upsert(
        self,
        session_id: str,
        stage_name: str,
        capability: str,
        rating: int,
        selected_option_text: str | None = None,
        question: str | None = None,
        rating_explanation: str | None = None,
    ) -> Any:
        """Validate and write one answer.

        Re-writing the same key updates the row in place; ``answered_at``
        moves only when the rating changes.

        Raises:
            InvalidAnswerError: If the rating or capability is invalid.
            SessionNotFoundError: If the session does not exist.
            PersistenceError: If the write fails.
        """
        if not capability or not capability.strip():
            raise InvalidAnswerError("Answer has no capability")
        if not stage_name or not stage_name.strip():
            raise InvalidAnswerError("Answer has no stage")
        validate_rating(rating)
        return await self._store.put_answer(
            session_id=session_id,
            stage_name=stage_name,
            capability=capability,
            rating=rating,
            option_text=selected_option_text,
            question=question,
            rating_explanation=rating_explanation,
        )

    async def clear(self, session_id: str, stage_name: str, capability: str) -> Any:
        """Withdraw a rating, keeping the row as an unanswered question."""
        return await self._store.put_answer(
            session_id=session_id,
            stage_name=stage_name,
            capability=capability,
            rating=None,
            option_text=None,
        )

    async def list_by_session(self, session_id: str) -> list[Any]:
        """All answers for a session, ordered by stage then capability."""
        return await self._store.list_answers(session_id)

    async def delete(self, session_id: str, stage_name: str, capability: str) -> bool:
        """Admin single-key delete; returns whether the answer existed."""
        return await self._store.delete_answer(session_id, stage_name, capability)
