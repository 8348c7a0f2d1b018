"""Translation of domain failures into stable HTTP error responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..domain.errors import (
    AuthenticationFailure,
    AuthenticationUnavailable,
    DuplicateEmail,
    DuplicateUsername,
    EncodingError,
    IdentityError,
    NotFound,
    StoreError,
    TransientStoreError,
    ValidationError,
)
from ..security.tokens import TokenRejected

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[IdentityError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    DuplicateEmail: status.HTTP_400_BAD_REQUEST,
    DuplicateUsername: status.HTTP_400_BAD_REQUEST,
    EncodingError: status.HTTP_400_BAD_REQUEST,
    AuthenticationFailure: status.HTTP_401_UNAUTHORIZED,
    NotFound: status.HTTP_404_NOT_FOUND,
    AuthenticationUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_response(status_code: int, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": code})


async def _identity_error(request: Request, exc: IdentityError) -> JSONResponse:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, mapped in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            status_code = mapped
            break
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return error_response(status_code, exc.code)


async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("rejected malformed %s %s body", request.method, request.url.path)
    return error_response(status.HTTP_400_BAD_REQUEST, ValidationError.code)


async def _token_rejected(request: Request, exc: TokenRejected) -> JSONResponse:
    logger.info("bearer token rejected: %s", exc)
    return error_response(status.HTTP_401_UNAUTHORIZED, "invalid_token")


async def _store_error(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("%s %s store failure: %s", request.method, request.url.path, exc)
    if isinstance(exc, TransientStoreError):
        return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "store_unavailable")
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "unexpected_error")


async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("%s %s raised an unhandled error", request.method, request.url.path)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "unexpected_error")


def install_exception_handlers(app: FastAPI) -> None:
    """Register handlers so no internal message or traceback reaches a client."""
    app.add_exception_handler(IdentityError, _identity_error)
    app.add_exception_handler(RequestValidationError, _request_validation_error)
    app.add_exception_handler(TokenRejected, _token_rejected)
    app.add_exception_handler(StoreError, _store_error)
    app.add_exception_handler(Exception, _unexpected_error)
