"""Translation of domain exceptions into HTTP errors."""

from fastapi import HTTPException, status

from clm_assessment.core.errors import (
    AssessmentError,
    InvalidAnswerError,
    InvalidStateError,
    PersistenceError,
    SessionNotFoundError,
)

_STATUS_BY_ERROR: tuple[tuple[type[AssessmentError], int], ...] = (
    (SessionNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidAnswerError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidStateError, status.HTTP_409_CONFLICT),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def to_http_error(exc: AssessmentError) -> HTTPException:
    """Map a domain exception to an HTTPException with a client-safe detail."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            if status_code == status.HTTP_503_SERVICE_UNAVAILABLE:
                return HTTPException(
                    status_code=status_code,
                    detail="Storage is temporarily unavailable. Please try again.",
                )
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
