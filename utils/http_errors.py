"""Translate core errors into HTTP responses with distinct status codes."""

import logging
from typing import Awaitable, TypeVar

from fastapi import HTTPException

from utils.errors import (
    Forbidden,
    LedgerError,
    NotFound,
    PersistenceError,
    Unauthenticated,
    ValidationError,
)

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (Unauthenticated, 401),
    (Forbidden, 403),
    (NotFound, 404),
    (PersistenceError, 503),
)


def to_http_exception(exc: LedgerError) -> HTTPException:
    """Map a typed core error to an HTTPException carrying its message."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


async def call_controller(awaitable: Awaitable[T]) -> T:
    """Await a controller, converting core errors and unexpected failures to HTTP errors."""
    try:
        return await awaitable
    except HTTPException:
        raise
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pylint: disable=broad-exception-caught
        LOGGER.exception("Unhandled error while processing request")
        raise HTTPException(status_code=500, detail="Internal server error.") from exc
