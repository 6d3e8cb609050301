"""Translate service-layer errors into HTTP responses."""

from fastapi import HTTPException, status

from creds.api.v1.auth import unauthorized
from creds.core.errors import (
    AccessDenied,
    CredsError,
    DuplicateUsernameError,
    NoSuchUserError,
    NotFoundError,
    StoreError,
    ValidationError,
)

# The cause of a StoreError is only in the server log.
STORE_ERROR_DETAIL = "Internal storage error"


def http_error(e: CredsError) -> HTTPException:
    if isinstance(e, AccessDenied):
        return unauthorized()
    if isinstance(e, (ValidationError, DuplicateUsernameError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    if isinstance(e, (NoSuchUserError, NotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    if isinstance(e, StoreError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=STORE_ERROR_DETAIL,
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)
