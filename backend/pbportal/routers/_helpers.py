"""Shared helpers for PB Portal routers."""

import logging

from fastapi import HTTPException, Response, status

from pbportal.deps import _safe_error
from pbportal.errors import (
    AuthenticationError,
    BackendError,
    ConflictError,
    DataServiceError,
    InvalidRecordError,
    InvalidTransitionError,
    NotFoundError,
    ProfileMissingError,
    UnsupportedOperationError,
)

logger = logging.getLogger(__name__)

# Checked in order; ProfileMissingError must precede its base class
_STATUS_BY_ERROR: list[tuple[type[DataServiceError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ProfileMissingError, status.HTTP_404_NOT_FOUND),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (UnsupportedOperationError, status.HTTP_501_NOT_IMPLEMENTED),
    (InvalidTransitionError, status.HTTP_400_BAD_REQUEST),
    (InvalidRecordError, status.HTTP_422_UNPROCESSABLE_ENTITY),
]


def service_http_error(operation: str, e: DataServiceError) -> HTTPException:
    """Translate a data service error into the ``HTTPException`` to raise.

    Backend failures are logged in full and answered with a generic 502;
    every other typed error carries its own message.
    """
    if isinstance(e, BackendError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=_safe_error(operation, e),
        )
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(e, error_type):
            logger.info("%s rejected: %s", operation, e)
            return HTTPException(status_code=status_code, detail=str(e))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=_safe_error(operation, e),
    )


def csv_response(csv_content: str, filename: str) -> Response:
    return Response(
        content=csv_content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
