"""Identity resolution for anonymous, possibly multi-device respondents.

Lookups follow a "most recent session wins" policy: when several sessions
share an email or company, the most recently created one is returned unless
the caller asks for every match. Not-found, ambiguous and duplicate outcomes
are reported as ``IdentityResolution`` values rather than exceptions.
"""

from typing import Any

from clm_assessment.core.identity import (
    IdentityResolution,
    ResolutionOutcome,
    derive_user_identifier,
    new_session_id,
)
from clm_assessment.core.interfaces import ISurveyStore
from clm_assessment.observability import get_logger

logger = get_logger(__name__)


class IdentityResolver:
    """Maps a session id, email or company to stored sessions.

    Args:
        store: Persistence interface.
        total_questions: Question count recorded on newly created sessions.
    """

    def __init__(self, store: ISurveyStore, total_questions: int = 0) -> None:
        self._store = store
        self._total_questions = total_questions

    async def resolve(
        self,
        session_id: str | None = None,
        email: str | None = None,
        company: str | None = None,
        multi: bool = False,
    ) -> IdentityResolution:
        """Resolve exactly one of session_id, email or company.

        With ``multi`` and a company, more than one match yields AMBIGUOUS
        with every candidate, newest first. Otherwise the most recent match
        is FOUND.

        Raises:
            ValueError: If none of the lookup keys is given.
        """
        session_id = (session_id or "").strip() or None
        email = (email or "").strip() or None
        company = (company or "").strip() or None
        if not (session_id or email or company):
            raise ValueError("Provide a session id, email or company to look up")

        if session_id:
            match = await self._store.find_session_by(session_id=session_id)
            return self._single(match, lookup="session_id")
        if email:
            match = await self._store.find_session_by(email=email)
            return self._single(match, lookup="email")

        if not multi:
            match = await self._store.find_session_by(company=company)
            return self._single(match, lookup="company")

        candidates = list(await self._store.find_session_by(company=company, multi=True) or [])
        if not candidates:
            logger.info("No session matched identity lookup", lookup="company")
            return IdentityResolution(outcome=ResolutionOutcome.NOT_FOUND)
        if len(candidates) == 1:
            return IdentityResolution(outcome=ResolutionOutcome.FOUND, session=candidates[0])
        logger.info("Company lookup is ambiguous", candidate_count=len(candidates))
        return IdentityResolution(
            outcome=ResolutionOutcome.AMBIGUOUS,
            session=candidates[0],
            candidates=candidates,
        )

    async def create_session(
        self,
        email: str | None,
        company: str | None,
        respondent_name: str | None = None,
        user_ip_address: str | None = None,
        user_agent: str | None = None,
        allow_duplicate: bool = False,
    ) -> IdentityResolution:
        """Create a session unless the email already has one.

        Args:
            email: Respondent email; checked for an existing session first.
            company: Company name.
            respondent_name: Optional respondent name.
            user_ip_address: Optional client address.
            user_agent: Optional client user agent.
            allow_duplicate: Skip the existing-email check and always create.

        Returns:
            CREATED with the new session, or DUPLICATE with the existing one
            (nothing is written in that case).
        """
        email = (email or "").strip() or None
        company = (company or "").strip() or None

        if email and not allow_duplicate:
            existing = await self._store.find_session_by(email=email)
            if existing is not None:
                logger.info(
                    "Existing session found for email; creation deferred",
                    session_id=existing.session_id,
                )
                return IdentityResolution(outcome=ResolutionOutcome.DUPLICATE, session=existing)

        record = await self._store.create_session(
            {
                "session_id": new_session_id(),
                "user_identifier": derive_user_identifier(email, company),
                "company_name": company,
                "respondent_email": email,
                "respondent_name": (respondent_name or "").strip() or None,
                "user_ip_address": user_ip_address,
                "user_agent": user_agent,
                "total_questions": self._total_questions,
            }
        )
        return IdentityResolution(outcome=ResolutionOutcome.CREATED, session=record)

    @staticmethod
    def _single(match: Any | None, lookup: str) -> IdentityResolution:
        if match is None:
            logger.info("No session matched identity lookup", lookup=lookup)
            return IdentityResolution(outcome=ResolutionOutcome.NOT_FOUND)
        return IdentityResolution(outcome=ResolutionOutcome.FOUND, session=match)
