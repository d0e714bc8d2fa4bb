"""Mapping from domain exceptions to HTTP errors"""

from fastapi import HTTPException

from obligation_engine.domain.exceptions import (
    DomainException,
    InvalidObligationError,
    InvalidParameterError,
    InvalidTransitionError,
    LedgerAPIError,
    NotFoundError,
)


def to_http_error(error: DomainException) -> HTTPException:
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, InvalidTransitionError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, (InvalidObligationError, InvalidParameterError)):
        return HTTPException(status_code=422, detail=str(error))
    if isinstance(error, LedgerAPIError):
        return HTTPException(status_code=503, detail="Transaction ledger unavailable")
    return HTTPException(status_code=500, detail="Internal server error")
