"""FastAPI application setup."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taskboard.api.dependencies import close_config, init_config
from taskboard.api.models import APIResponse, ErrorShape
from taskboard.api.routes import rpc
from taskboard.board import (
    BoardError,
    BoardNotInitializedError,
    InvalidFieldError,
    InvalidStatusError,
    MalformedRecordError,
    TicketNotFoundError,
    WipLimitExceededError,
)
from taskboard.config import TaskboardConfig, get_config

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)

# Exception type -> (HTTP status, error code). First match wins.
ERROR_CODES: list[tuple[type[Exception], int, str]] = [
    (BoardNotInitializedError, status.HTTP_409_CONFLICT, "NOT_INITIALIZED"),
    (TicketNotFoundError, status.HTTP_404_NOT_FOUND, "NOT_FOUND"),
    (WipLimitExceededError, status.HTTP_409_CONFLICT, "WIP_LIMIT"),
    (InvalidStatusError, status.HTTP_400_BAD_REQUEST, "INVALID_REQUEST"),
    (InvalidFieldError, status.HTTP_400_BAD_REQUEST, "INVALID_REQUEST"),
    (MalformedRecordError, status.HTTP_500_INTERNAL_SERVER_ERROR, "MALFORMED_RECORD"),
]


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=APIResponse[None](
            data=None, error=ErrorShape(code=code, message=message)
        ).model_dump(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map board errors and request validation failures to error responses."""

    @app.exception_handler(BoardError)
    async def board_error_handler(_request: Request, exc: BoardError) -> JSONResponse:
        for exc_type, status_code, code in ERROR_CODES:
            if isinstance(exc, exc_type):
                if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
                    logger.error("Board request failed: %s", exc)
                return error_response(status_code, code, str(exc))
        logger.exception("Unhandled board error")
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL", "Internal server error"
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        problems = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            problems.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
        return error_response(
            status.HTTP_400_BAD_REQUEST, "INVALID_REQUEST", "; ".join(problems) or "Invalid request"
        )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    config = app.state.config if hasattr(app.state, "config") else get_config()
    init_config(config)
    logger.info("Serving boards from %s", config.workspace_root)
    yield
    # Shutdown
    close_config()


def create_app(config: TaskboardConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Configuration to serve; resolved with get_config() at
            startup when omitted.
    """
    app = FastAPI(
        title="taskboard API",
        description="RPC API for agent Kanban boards",
        version="0.1.0",
        lifespan=lifespan,
    )

    if config is not None:
        app.state.config = config

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include routers
    app.include_router(rpc.router, prefix="/api/v1")

    return app


# Default app instance
app = create_app()
