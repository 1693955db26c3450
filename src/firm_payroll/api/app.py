"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from firm_payroll import __version__
from firm_payroll.api.routes import health_router, payroll_runs_router
from firm_payroll.database import dispose_db, init_db
from firm_payroll.errors import (
    CalculationTimeoutError,
    ConcurrencyConflictError,
    InvalidAmountError,
    InvalidStateError,
    InvalidTransitionError,
    LedgerPostingError,
    NotFoundError,
    PayrollError,
    TenantMismatchError,
)

logger = logging.getLogger(__name__)

# Most specific first; anything unlisted is a 500
ERROR_STATUS_CODES: list[tuple[type[PayrollError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (TenantMismatchError, status.HTTP_404_NOT_FOUND),
    (InvalidStateError, status.HTTP_400_BAD_REQUEST),
    (InvalidTransitionError, status.HTTP_400_BAD_REQUEST),
    (InvalidAmountError, status.HTTP_400_BAD_REQUEST),
    (ConcurrencyConflictError, status.HTTP_409_CONFLICT),
    (CalculationTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (LedgerPostingError, status.HTTP_502_BAD_GATEWAY),
]


def error_payload(exc: PayrollError) -> tuple[int, dict[str, Any]]:
    """HTTP status and body for a domain error."""
    if isinstance(exc, TenantMismatchError):
        # Same answer as a missing run so other tenants' ids are not disclosed
        return status.HTTP_404_NOT_FOUND, {
            "detail": f"{exc.entity} {exc.entity_id} not found",
            "code": NotFoundError.code,
        }

    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            context = {
                key: str(value)
                for key, value in vars(exc).items()
                if value is not None and not key.startswith("_")
            }
            return status_code, {"detail": str(exc), "code": exc.code, "context": context or None}

    return status.HTTP_500_INTERNAL_SERVER_ERROR, {
        "detail": "An unexpected error occurred",
        "code": "INTERNAL_ERROR",
    }


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    init_db()
    yield
    # Shutdown
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Firm Payroll API",
        description="Payroll runs for law firms and solo practitioners",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(PayrollError)
    async def payroll_exception_handler(request: Request, exc: PayrollError) -> JSONResponse:
        """Map domain errors to HTTP responses."""
        status_code, content = error_payload(exc)
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(payroll_runs_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
