"""Map domain errors to HTTP responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from personnel_ledger.errors import (
    AliasCollision,
    AlreadySuperseded,
    ConcurrentModification,
    DuplicateEmployeeNumber,
    InvalidHours,
    InvalidStatusTransition,
    MissingRate,
    NotFoundError,
    PersonnelLedgerError,
    ReviewAlreadyResolved,
)

logger = structlog.get_logger()

# First match wins.
STATUS_CODES: list[tuple[type[PersonnelLedgerError], int]] = [
    (NotFoundError, 404),
    (InvalidHours, 422),
    (MissingRate, 422),
    (AliasCollision, 409),
    (DuplicateEmployeeNumber, 409),
    (AlreadySuperseded, 409),
    (InvalidStatusTransition, 409),
    (ConcurrentModification, 409),
    (ReviewAlreadyResolved, 409),
]


def status_code_for(error: PersonnelLedgerError) -> int:
    for error_type, status_code in STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 400


async def personnel_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render a PersonnelLedgerError as {"error": ..., "detail": ...}."""
    status_code = status_code_for(exc) if isinstance(exc, PersonnelLedgerError) else 400
    logger.info(
        "request failed",
        path=request.url.path,
        error=type(exc).__name__,
        status_code=status_code,
    )
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PersonnelLedgerError, personnel_error_handler)
