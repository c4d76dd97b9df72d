"""FastAPI application factory with role-based route mounting."""

import os
from typing import Literal

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from roomledger.domain.errors import BookingError
from roomledger.observability.correlation import (
    CORRELATION_ID_HEADER,
    correlation_scope,
)
from roomledger.observability.logging import get_logger
from roomledger.observability.redaction import safe_log_context

from .routers import public, worker

AppRole = Literal["public", "worker"]

logger = get_logger(__name__)


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Render domain errors with the HTTP status they declare."""
    if exc.status_code >= 500:
        logger.error(
            "unhandled booking error",
            extra={"extra_fields": safe_log_context(code=exc.code, path=request.url.path)},
        )
    else:
        logger.info(
            "request rejected",
            extra={
                "extra_fields": safe_log_context(
                    code=exc.code, status_code=exc.status_code, path=request.url.path
                )
            },
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(role: AppRole | None = None) -> FastAPI:
    """Create FastAPI app with routes based on APP_ROLE.

    Args:
        role: Explicit role override. If None, reads from APP_ROLE env var.
              Defaults to "public" if env var is not set.

    Returns:
        Configured FastAPI application.
    """
    if role is None:
        role = os.environ.get("APP_ROLE", "public")  # type: ignore[assignment]

    app = FastAPI(
        title="roomledger",
        docs_url=None,
        redoc_url=None,
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        with correlation_scope(request.headers.get(CORRELATION_ID_HEADER)) as cid:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response

    app.add_exception_handler(BookingError, booking_error_handler)

    # Health is mounted for every role
    app.include_router(public.router)

    if role == "public":
        app.include_router(public.api_router)

    # Mount worker routes only for worker role
    if role == "worker":
        app.include_router(worker.router)

    return app
