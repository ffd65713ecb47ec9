"""Translate domain errors into HTTP responses."""

from fastapi import HTTPException, status
import logging

from railstay.errors import (
    DomainError, ValidationError, AuthorizationError, InvalidSessionError,
    AllocationError, NotFoundError, ConsistencyError
)

logger = logging.getLogger(__name__)

def http_exception(error: DomainError) -> HTTPException:
    """Map a domain error family onto an HTTPException"""
    detail = {"code": error.code.value, "message": error.message}

    if isinstance(error, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
    if isinstance(error, InvalidSessionError):
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )
    if isinstance(error, AuthorizationError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
    if isinstance(error, AllocationError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)

    if isinstance(error, ConsistencyError):
        logger.error("consistency fault: %s", error.message)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"code": error.code.value, "message": "Internal server error"},
    )
