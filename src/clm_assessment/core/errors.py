"""Domain exceptions for the CLM assessment service.

Services raise these; the routes layer translates them into HTTP responses.
Ambiguous and duplicate identities are not errors and are reported through
``IdentityResolution`` instead.
"""


class AssessmentError(Exception):
    """Base class for all CLM assessment domain errors."""


class SessionNotFoundError(AssessmentError):
    """Raised when identity resolution finds no matching session."""

    def __init__(self, message: str = "Session not found. Please check your information or start a new survey.") -> None:
        super().__init__(message)


class InvalidAnswerError(AssessmentError):
    """Raised for a single answer that cannot be stored.

    Covers out-of-range ratings and questions whose capability cannot be
    resolved. Batch writers skip the offending answer and continue.
    """


class PersistenceError(AssessmentError):
    """Raised when the underlying store fails (transient I/O, driver errors)."""


class InvalidStateError(AssessmentError):
    """Raised when a session controller operation is not valid in its current state."""
