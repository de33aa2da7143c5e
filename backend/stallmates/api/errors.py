"""Error mapping and global handlers; every JSON error carries the request id."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from stallmates.domain.common.errors import (
    AlreadyExists,
    InvalidInput,
    NotAuthenticated,
    NotFound,
    NotYourTurn,
    PartialFailure,
    PermissionDenied,
    RateLimited,
    Stale,
    StallmatesError,
)
from stallmates.infra.documents import DocumentStoreError

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (NotAuthenticated, status.HTTP_401_UNAUTHORIZED),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (AlreadyExists, status.HTTP_409_CONFLICT),
    (NotYourTurn, status.HTTP_409_CONFLICT),
    (InvalidInput, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (PartialFailure, status.HTTP_207_MULTI_STATUS),
    (Stale, status.HTTP_410_GONE),
    (RateLimited, status.HTTP_429_TOO_MANY_REQUESTS),
)


def map_error(exc: Exception) -> HTTPException:
    if isinstance(exc, StallmatesError):
        for error_type, code in _STATUS_BY_ERROR:
            if isinstance(exc, error_type):
                return HTTPException(code, detail=exc.reason)
        return HTTPException(status.HTTP_400_BAD_REQUEST, detail=exc.reason)
    return HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc))


def get_request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-Id")


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        payload = {"detail": exc.detail, "request_id": get_request_id(request)}
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        payload = {"detail": "validation_error", "errors": exc.errors(), "request_id": get_request_id(request)}
        return JSONResponse(status_code=422, content=payload)

    @app.exception_handler(StallmatesError)
    async def domain_exc_handler(request: Request, exc: StallmatesError):  # type: ignore[override]
        mapped = map_error(exc)
        payload = {"detail": mapped.detail, "request_id": get_request_id(request)}
        return JSONResponse(status_code=mapped.status_code, content=payload)

    @app.exception_handler(DocumentStoreError)
    async def store_exc_handler(request: Request, exc: DocumentStoreError):  # type: ignore[override]
        logger.exception("document store failure", exc_info=exc)
        payload = {"detail": "store_unavailable", "request_id": get_request_id(request)}
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=payload)
