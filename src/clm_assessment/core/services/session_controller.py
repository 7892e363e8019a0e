"""Session Controller: the respondent-side survey state machine.

States and transitions:
    NO_SESSION        -> AWAITING_IDENTITY  begin() / start_new()
    AWAITING_IDENTITY -> ACTIVE             submit_identity(), load_existing(),
                                            create_anyway(), recover(),
                                            select_session()
    ACTIVE            -> ACTIVE             answer(), change_page(),
                                            navigate_to_stage()
    ACTIVE            -> COMPLETED          complete()

Every answer or page change arms a single-slot debounced autosave. When it
fires, each answered question on the pending pages is written through the
Answer Store, the page's progress is recorded, and stage completion triggers
a scoring run. Autosave failures are logged and kept as a soft warning; they
never block further input and the next change retries.

Stored answers are matched back to questions through a capability lookup
built once from the canonical definition, so answers saved under one locale
restore under another.
"""

import enum
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from clm_assessment.core.errors import (
    InvalidAnswerError,
    InvalidStateError,
    PersistenceError,
    SessionNotFoundError,
)
from clm_assessment.core.identity import IdentityResolution, ResolutionOutcome
from clm_assessment.core.interfaces import IScoringEngine, ISurveyStore
from clm_assessment.core.services.answer_store import AnswerStore, validate_rating
from clm_assessment.core.services.autosave import AutosaveDebouncer
from clm_assessment.core.services.identity_resolver import IdentityResolver
from clm_assessment.core.services.progress_aggregator import (
    ProgressAggregator,
    SessionCompletion,
)
from clm_assessment.core.survey_definition import (
    CLM_SURVEY,
    SurveyDefinition,
    SurveyStage,
    build_capability_map,
    strip_markdown,
)
from clm_assessment.core.timestamps import utcnow
from clm_assessment.observability import get_logger

logger = get_logger(__name__)


class SessionState(str, enum.Enum):
    """Lifecycle states of a respondent's survey session."""

    NO_SESSION = "no_session"
    AWAITING_IDENTITY = "awaiting_identity"
    ACTIVE = "active"
    COMPLETED = "completed"


class SessionController:
    """Drives one respondent through identity, answering and completion.

    Args:
        store: Persistence interface.
        scoring_engine: Engine recomputing stage scores.
        definition: Canonical survey definition; stage names and capability
            text stored with answers come from here.
        display_definition: Optional localised variant used for question
            text and option labels. Must share question names with
            ``definition``.
        debounce_seconds: Autosave quiet period.
    """

    def __init__(
        self,
        store: ISurveyStore,
        scoring_engine: IScoringEngine,
        definition: SurveyDefinition = CLM_SURVEY,
        display_definition: SurveyDefinition | None = None,
        debounce_seconds: float = 1.0,
    ) -> None:
        self._scoring_engine = scoring_engine
        self._definition = definition
        self._display = display_definition or definition
        self._capability_map = build_capability_map(definition)

        self._resolver = IdentityResolver(store, total_questions=definition.total_questions)
        self._answer_store = AnswerStore(store)
        self._progress = ProgressAggregator(store, scoring_engine, definition)
        self._debouncer = AutosaveDebouncer(self._autosave, delay_seconds=debounce_seconds)

        self._state = SessionState.NO_SESSION
        self._session: Any | None = None
        self._answers: dict[str, int] = {}
        self._unsaved: set[str] = set()
        self._dirty_stages: set[str] = set()
        self._current_stage: SurveyStage | None = None

        self._pending_identity: dict[str, Any] | None = None
        self._duplicate: Any | None = None
        self._candidates: list[Any] = []
        self._not_found = False

        self.last_save_warning: str | None = None
        self.last_saved_at = None

    # -- Read-only views ---------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Any | None:
        return self._session

    @property
    def session_id(self) -> str | None:
        return self._session.session_id if self._session is not None else None

    @property
    def answers(self) -> Mapping[str, int]:
        """Current in-memory ratings keyed by question name."""
        return MappingProxyType(dict(self._answers))

    @property
    def current_stage(self) -> SurveyStage | None:
        return self._current_stage

    @property
    def candidates(self) -> list[Any]:
        """Sessions offered for disambiguation after an ambiguous recovery."""
        return list(self._candidates)

    @property
    def duplicate_session(self) -> Any | None:
        """Existing session found for a submitted email, awaiting the caller's choice."""
        return self._duplicate

    @property
    def not_found(self) -> bool:
        return self._not_found

    @property
    def debounce_seconds(self) -> float:
        return self._debouncer.delay_seconds

    @property
    def autosave_pending(self) -> bool:
        return self.session_id is not None and self._debouncer.is_pending(self.session_id)

    # -- Identity ----------------------------------------------------------

    def begin(self) -> None:
        """Start collecting respondent identity."""
        self._require(SessionState.NO_SESSION, SessionState.AWAITING_IDENTITY)
        self._state = SessionState.AWAITING_IDENTITY

    async def submit_identity(
        self,
        email: str | None,
        company: str | None,
        respondent_name: str | None = None,
        user_ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> IdentityResolution:
        """Create a session for a fresh respondent.

        If the email already has a session nothing is created; the result is
        DUPLICATE and the caller must choose ``load_existing`` or
        ``create_anyway``.
        """
        self._require(SessionState.AWAITING_IDENTITY)
        identity = {
            "email": email,
            "company": company,
            "respondent_name": respondent_name,
            "user_ip_address": user_ip_address,
            "user_agent": user_agent,
        }
        resolution = await self._resolver.create_session(**identity)
        if resolution.outcome == ResolutionOutcome.DUPLICATE:
            self._pending_identity = identity
            self._duplicate = resolution.session
            return resolution

        await self._activate(resolution.session, hydrate=False)
        return resolution

    async def load_existing(self) -> Any:
        """Continue the existing session found for a duplicate email."""
        self._require(SessionState.AWAITING_IDENTITY)
        if self._duplicate is None:
            raise InvalidStateError("No existing session is awaiting a choice")
        await self._activate(self._duplicate, hydrate=True)
        return self._session

    async def create_anyway(self) -> Any:
        """Create a new session for a duplicate email, skipping the check once."""
        self._require(SessionState.AWAITING_IDENTITY)
        if self._pending_identity is None:
            raise InvalidStateError("No submitted identity is awaiting a choice")
        resolution = await self._resolver.create_session(**self._pending_identity, allow_duplicate=True)
        await self._activate(resolution.session, hydrate=False)
        return self._session

    async def recover(
        self,
        session_id: str | None = None,
        email: str | None = None,
        company: str | None = None,
    ) -> IdentityResolution:
        """Resume a stored session by id, email or company.

        A company lookup returns every match; more than one yields AMBIGUOUS
        and the caller picks with ``select_session``. NOT_FOUND leaves the
        controller awaiting identity so the respondent can retry or start new.
        """
        if self._state == SessionState.NO_SESSION:
            self._state = SessionState.AWAITING_IDENTITY
        self._require(SessionState.AWAITING_IDENTITY)

        by_company = bool(company) and not (session_id or email)
        resolution = await self._resolver.resolve(
            session_id=session_id,
            email=email,
            company=company,
            multi=by_company,
        )
        self._not_found = resolution.outcome == ResolutionOutcome.NOT_FOUND
        self._candidates = list(resolution.candidates)
        if resolution.outcome == ResolutionOutcome.FOUND:
            await self._activate(resolution.session, hydrate=True)
        return resolution

    async def select_session(self, session_id: str) -> Any:
        """Pick one of the candidates offered by an ambiguous recovery."""
        self._require(SessionState.AWAITING_IDENTITY)
        for candidate in self._candidates:
            if candidate.session_id == session_id:
                await self._activate(candidate, hydrate=True)
                return self._session
        raise InvalidStateError(f"Session {session_id} is not one of the offered candidates")

    async def start_new(self) -> None:
        """Leave the current session and return to identity collection."""
        if self._state == SessionState.ACTIVE and (self._dirty_stages or self._unsaved):
            await self._debouncer.flush_now(self.session_id)
        if self.session_id is not None:
            self._debouncer.cancel(self.session_id)
        self._reset()
        self._state = SessionState.AWAITING_IDENTITY

    # -- Answering ---------------------------------------------------------

    def answer(self, question_name: str, rating: int | None) -> None:
        """Record a rating in memory and arm the autosave.

        A None rating withdraws the answer; the autosave stores the cleared
        rating so scoring and restores stop counting it.

        Raises:
            InvalidAnswerError: If the question is not part of the survey or
                the rating is off the 1-5 scale.
        """
        self._require(SessionState.ACTIVE)
        stage = self._definition.stage_for_question(question_name)
        if stage is None:
            raise InvalidAnswerError(f"Unknown question {question_name!r}")
        if rating is None:
            self._answers.pop(question_name, None)
        else:
            self._answers[question_name] = validate_rating(rating)
        self._unsaved.add(question_name)
        self._dirty_stages.add(stage.name)
        self._current_stage = stage
        self._debouncer.arm(self.session_id)

    def change_page(self, stage_name: str) -> None:
        """Move to the next or previous page; the page left is saved on autosave."""
        self._require(SessionState.ACTIVE)
        stage = self._stage(stage_name)
        if self._current_stage is not None:
            self._dirty_stages.add(self._current_stage.name)
        self._current_stage = stage
        self._debouncer.arm(self.session_id)

    async def navigate_to_stage(self, stage_name: str) -> int:
        """Jump to any stage and merge in answers saved from other devices.

        Pending local edits are flushed first; answers that still failed to
        save keep their local value.

        Returns:
            Number of persisted answers merged into memory.
        """
        self._require(SessionState.ACTIVE)
        stage = self._stage(stage_name)
        if self._dirty_stages or self._unsaved or self._debouncer.is_pending(self.session_id):
            await self._debouncer.flush_now(self.session_id)
        self._current_stage = stage
        try:
            stored = await self._answer_store.list_by_session(self.session_id)
            return self._merge_persisted(stored)
        except PersistenceError as exc:
            self._warn("Could not refresh saved answers", exc)
            return 0

    async def complete(self) -> SessionCompletion:
        """Final flush bypassing the debounce, re-score, and mark completed.

        Raises:
            PersistenceError: If the final flush fails; the controller stays
                ACTIVE so completion can be retried.
        """
        self._require(SessionState.ACTIVE)
        session_id = self.session_id
        self._debouncer.disarm(session_id)
        await self._debouncer.wait_idle(session_id)

        await self._persist_pending(include_answered=True)
        await self._scoring_engine.recompute(session_id)
        completion = await self._progress.refresh_session_cache(session_id)

        self._state = SessionState.COMPLETED
        logger.info(
            "Survey completed",
            session_id=session_id,
            completion_percentage=completion.completion_percentage,
        )
        return completion

    def cancel_autosave(self) -> bool:
        """Drop any scheduled or running autosave for the current session."""
        if self.session_id is None:
            return False
        return self._debouncer.cancel(self.session_id)

    async def wait_for_autosave(self) -> None:
        if self.session_id is not None:
            await self._debouncer.wait_idle(self.session_id)

    async def overall_progress(self) -> float:
        self._require(SessionState.ACTIVE, SessionState.COMPLETED)
        return await self._progress.overall_progress(self.session_id)

    async def live_completion(self) -> SessionCompletion:
        self._require(SessionState.ACTIVE, SessionState.COMPLETED)
        return await self._progress.live_completion(self.session_id)

    def close(self) -> None:
        self._debouncer.close()

    # -- Internals ---------------------------------------------------------

    def _require(self, *states: SessionState) -> None:
        if self._state not in states:
            allowed = ", ".join(state.value for state in states)
            raise InvalidStateError(f"Operation requires state {allowed}; current state is {self._state.value}")

    def _stage(self, stage_name: str) -> SurveyStage:
        stage = self._definition.get_stage(stage_name)
        if stage is None:
            raise InvalidStateError(f"Unknown stage {stage_name!r}")
        return stage

    def _reset(self) -> None:
        self._session = None
        self._answers = {}
        self._unsaved = set()
        self._dirty_stages = set()
        self._current_stage = None
        self._pending_identity = None
        self._duplicate = None
        self._candidates = []
        self._not_found = False
        self.last_save_warning = None

    async def _activate(self, session: Any, hydrate: bool) -> None:
        stored = await self._answer_store.list_by_session(session.session_id) if hydrate else []
        self._reset()
        self._session = session
        self._current_stage = self._definition.stages[0] if self._definition.stages else None
        merged = self._merge_persisted(stored)
        self._state = SessionState.ACTIVE
        logger.info("Survey session active", session_id=session.session_id, restored_answers=merged)

    def _question_name_for(self, capability: str) -> str | None:
        name = self._capability_map.get(capability)
        if name is None:
            name = self._capability_map.get(strip_markdown(capability))
        return name

    def _merge_persisted(self, stored: list[Any]) -> int:
        merged = 0
        for answer in stored:
            name = self._question_name_for(answer.capability)
            if name is None:
                logger.warning(
                    "Stored answer has no matching question; skipped",
                    session_id=answer.session_id,
                    stage_name=answer.stage_name,
                )
                continue
            if name in self._unsaved:
                continue
            if answer.rating is None:
                # cleared on another device
                self._answers.pop(name, None)
                continue
            self._answers[name] = answer.rating
            merged += 1
        return merged

    async def _autosave(self, session_id: str) -> None:
        if session_id != self.session_id or self._state != SessionState.ACTIVE:
            return
        try:
            await self._persist_pending()
        except (PersistenceError, SessionNotFoundError) as exc:
            self._warn("Autosave failed; will retry on next change", exc)

    def _warn(self, message: str, exc: Exception) -> None:
        logger.warning(message, session_id=self.session_id, error=str(exc))
        self.last_save_warning = str(exc)

    async def _persist_pending(self, include_answered: bool = False) -> None:
        """Write every answered question on the pending pages and record progress."""
        session_id = self.session_id
        pending = set(self._dirty_stages)
        if self._current_stage is not None:
            pending.add(self._current_stage.name)
        if include_answered:
            pending.update(
                stage.name for stage in self._definition.stages
                if any(q.name in self._answers for q in stage.questions)
            )
        self._dirty_stages.clear()

        stages = [stage for stage in self._definition.stages if stage.name in pending]
        try:
            for stage in stages:
                answered, cleared = await self._persist_stage(session_id, stage)
                await self._progress.record_page(
                    session_id=session_id,
                    stage_name=stage.name,
                    stage_order=stage.order,
                    page_question_count=stage.question_count,
                    answered_question_count=answered,
                )
                if cleared:
                    # withdrawn ratings must drop out of the stored scores
                    await self._scoring_engine.recompute(session_id)
                pending.discard(stage.name)
        except (PersistenceError, SessionNotFoundError):
            self._dirty_stages.update(pending)
            raise

        self.last_save_warning = None
        self.last_saved_at = utcnow()
        logger.debug("Autosave complete", session_id=session_id, stage_count=len(stages))

    async def _persist_stage(self, session_id: str, stage: SurveyStage) -> tuple[int, int]:
        """Write the stage's answers; returns (answered, cleared) counts."""
        answered = 0
        cleared = 0
        for question in stage.questions:
            rating = self._answers.get(question.name)
            if rating is None:
                if question.name in self._unsaved:
                    await self._answer_store.clear(
                        session_id=session_id,
                        stage_name=stage.name,
                        capability=question.capability,
                    )
                    cleared += 1
                    if question.name not in self._answers:
                        self._unsaved.discard(question.name)
                continue
            shown = self._display.question(question.name) or question
            try:
                await self._answer_store.upsert(
                    session_id=session_id,
                    stage_name=stage.name,
                    capability=question.capability,
                    rating=rating,
                    selected_option_text=shown.option_text(rating),
                    question=shown.title,
                )
            except InvalidAnswerError as exc:
                logger.warning(
                    "Invalid answer skipped",
                    session_id=session_id,
                    question=question.name,
                    error=str(exc),
                )
                continue
            answered += 1
            if self._answers.get(question.name) == rating:
                self._unsaved.discard(question.name)
        return answered, cleared
