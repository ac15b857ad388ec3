"""Borrower Desk back-office API - FastAPI entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from borrowerdesk.api import borrowers, loans, session, status
from borrowerdesk.config import Settings, settings as default_settings
from borrowerdesk.database import Backend, build_backend
from borrowerdesk.middleware.error_capture import ErrorCaptureMiddleware
from borrowerdesk.services.document_store import SqlDocumentStore
from borrowerdesk.services.errors import BorrowerDeskError

logger = logging.getLogger(__name__)

SERVICE_NAME = "borrowerdesk-api"
VERSION = "0.1.0"


# ── Security headers middleware ──────────────────────────────────
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds standard security headers to every response."""

    def __init__(self, app, environment: str = "development"):
        super().__init__(app)
        self.environment = environment

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "camera=(), microphone=(), geolocation=()"
        if self.environment != "development":
            response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains"
        return response


# ── Error rendering ──────────────────────────────────────────────
async def _borrowerdesk_error_handler(request: Request, exc: BorrowerDeskError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def _http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Invalid request."})


def create_app(backend: Optional[Backend] = None, app_settings: Optional[Settings] = None) -> FastAPI:
    """Build the application.

    ``backend`` is normally built from settings in the lifespan; tests pass
    one in directly.
    """
    app_settings = app_settings or (backend.settings if backend else default_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.getLogger("borrowerdesk").setLevel(app_settings.log_level.upper())
        owned = app.state.backend is None
        if owned:
            app.state.backend = build_backend(app_settings)
        store = app.state.backend.store
        if isinstance(store, SqlDocumentStore):
            await store.create_all()
        logger.info(
            "Borrower desk API started (store=%s, environment=%s)",
            type(store).__name__ if store else "none",
            app_settings.environment,
        )
        yield
        if owned:
            await app.state.backend.aclose()
            app.state.backend = None

    app = FastAPI(
        title="Borrower Desk API",
        description="Back-office API for borrower KYC review and follow-up",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.backend = backend

    app.state.limiter = session.limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(BorrowerDeskError, _borrowerdesk_error_handler)
    app.add_exception_handler(HTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    # Error capture middleware (records handler errors and 5xx responses)
    app.add_middleware(ErrorCaptureMiddleware)

    # Security headers
    app.add_middleware(SecurityHeadersMiddleware, environment=app_settings.environment)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "X-Requested-With"],
    )

    # Routers
    app.include_router(borrowers.router, prefix="/api/borrowers", tags=["Borrowers"])
    app.include_router(loans.router, prefix="/api/loans", tags=["Loans"])
    app.include_router(session.router, prefix="/api/session", tags=["Session"])
    app.include_router(status.router, prefix="/api/status", tags=["Status"])

    @app.get("/api/health")
    async def health_check():
        return {"status": "healthy", "service": SERVICE_NAME, "version": VERSION}

    return app


app = create_app()
