"""FastAPI middleware that captures unhandled exceptions and error responses.

Every 5xx response not already logged by its handler is recorded in the
``errorLogs`` collection (when the document store is configured) so failures
can be reviewed later; 4xx responses other than 401/403 are logged as warnings.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from borrowerdesk.services.error_logger import ErrorSeverity, log_error

logger = logging.getLogger("borrowerdesk.middleware")


def _store_for(request: Request):
    backend = getattr(request.app.state, "backend", None)
    return backend.store if backend is not None else None


class ErrorCaptureMiddleware(BaseHTTPMiddleware):
    """Catches unhandled exceptions, returns 500, and records the error."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.time()
        ip_address: Optional[str] = request.client.host if request.client else None

        try:
            response = await call_next(request)
        except Exception as exc:
            elapsed_ms = round((time.time() - start) * 1000, 2)
            logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
            await log_error(
                exc,
                store=_store_for(request),
                severity=ErrorSeverity.CRITICAL,
                module="middleware.error_capture",
                request_method=request.method,
                request_path=str(request.url.path),
                status_code=500,
                response_time_ms=elapsed_ms,
                ip_address=ip_address,
            )
            return JSONResponse(status_code=500, content={"error": "Internal server error."})

        elapsed_ms = round((time.time() - start) * 1000, 2)
        if response.status_code >= 500:
            if getattr(request.state, "error_logged", False):
                # the handler already recorded this failure
                return response
            severity = ErrorSeverity.ERROR
        elif response.status_code >= 400 and response.status_code not in (401, 403):
            severity = ErrorSeverity.WARNING
        else:
            return response

        await log_error(
            Exception(f"HTTP {response.status_code} on {request.method} {request.url.path}"),
            store=_store_for(request) if severity is ErrorSeverity.ERROR else None,
            severity=severity,
            module="middleware.error_capture",
            function_name="dispatch",
            request_method=request.method,
            request_path=str(request.url.path),
            status_code=response.status_code,
            response_time_ms=elapsed_ms,
            ip_address=ip_address,
        )
        return response
