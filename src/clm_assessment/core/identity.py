"""Respondent identity helpers.

``user_identifier`` is a correlation hash of the respondent's email and
company. It is not unique: intentional duplicate respondents share it.
"""

import enum
import hashlib
import uuid
from dataclasses import dataclass, field
from typing import Any

_USER_IDENTIFIER_LENGTH: int = 16


def normalise_key(value: str | None) -> str:
    """Lower-case and trim an email or company name for comparison."""
    return (value or "").strip().lower()


def derive_user_identifier(email: str | None, company: str | None) -> str:
    """First 16 hex chars of sha256('<email>_<company>'), both lower-cased."""
    combined = f"{normalise_key(email)}_{normalise_key(company)}"
    return hashlib.sha256(combined.encode("utf-8")).hexdigest()[:_USER_IDENTIFIER_LENGTH]


def new_session_id() -> str:
    return str(uuid.uuid4())


class ResolutionOutcome(str, enum.Enum):
    """Result categories for identity lookups and session creation."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"
    DUPLICATE = "duplicate"
    CREATED = "created"


@dataclass
class IdentityResolution:
    """Outcome of resolving or creating a respondent's session.

    Attributes:
        outcome: What the lookup or creation produced.
        session: The resolved, created or pre-existing session (FOUND,
            CREATED, DUPLICATE).
        candidates: All matching sessions, newest first (AMBIGUOUS).
    """

    outcome: ResolutionOutcome
    session: Any | None = None
    candidates: list[Any] = field(default_factory=list)

    @property
    def needs_choice(self) -> bool:
        return self.outcome in (ResolutionOutcome.AMBIGUOUS, ResolutionOutcome.DUPLICATE)
