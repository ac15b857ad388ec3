"""Centralised error logging: captures exceptions to the Python logger and
the ``errorLogs`` collection.

Usage:
    from borrowerdesk.services.error_logger import log_error
    try:
        ...
    except StoreError as e:
        await log_error(e, store=backend.store, module="borrowers", function_name="clear_follow_up")
        raise HTTPException(status_code=500, detail="...")

The middleware records unhandled request errors the same way.
"""

from __future__ import annotations

import enum
import logging
import traceback as tb_module
from datetime import datetime, timezone
from typing import Optional

from borrowerdesk.services.document_store import DocumentStore

logger = logging.getLogger("borrowerdesk.errors")

ERROR_LOG_COLLECTION = "errorLogs"


class ErrorSeverity(str, enum.Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _sanitize_text(value: object, *, max_len: Optional[int] = None) -> str:
    """Normalize control characters before persisting text."""
    text = str(value)
    text = "".join(ch if (ch >= " " or ch in "\n\r\t") else " " for ch in text)
    if max_len is not None:
        return text[:max_len]
    return text


async def log_error(
    exc: Exception,
    *,
    store: Optional[DocumentStore] = None,
    severity: ErrorSeverity = ErrorSeverity.ERROR,
    module: Optional[str] = None,
    function_name: Optional[str] = None,
    request_method: Optional[str] = None,
    request_path: Optional[str] = None,
    status_code: Optional[int] = None,
    response_time_ms: Optional[float] = None,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> Optional[str]:
    """Log an exception and, when a store is available, persist it.

    Returns the id of the ``errorLogs`` document, or None if the write was
    skipped or failed.
    """
    error_type = type(exc).__name__
    message = _sanitize_text(exc, max_len=2000)

    if exc.__traceback__ and not module:
        frame = exc.__traceback__
        while frame.tb_next:
            frame = frame.tb_next
        module = frame.tb_frame.f_code.co_filename
        function_name = function_name or frame.tb_frame.f_code.co_name

    log_msg = f"[{severity.value.upper()}] {error_type}: {message}"
    if request_path:
        log_msg = f"{request_method or '?'} {request_path} -> {log_msg}"
    if severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL):
        logger.error(log_msg, exc_info=exc)
    else:
        logger.warning(log_msg)

    if store is None:
        return None

    entry = {
        "severity": severity.value,
        "errorType": error_type,
        "message": message,
        "createdAt": datetime.now(timezone.utc),
    }
    if exc.__traceback__:
        entry["traceback"] = _sanitize_text(
            "".join(tb_module.format_exception(type(exc), exc, exc.__traceback__)),
            max_len=10000,
        )
    optional = {
        "module": _sanitize_text(module, max_len=300) if module else None,
        "functionName": _sanitize_text(function_name, max_len=200) if function_name else None,
        "requestMethod": request_method,
        "requestPath": _sanitize_text(request_path, max_len=500) if request_path else None,
        "statusCode": status_code,
        "responseTimeMs": response_time_ms,
        "userId": user_id,
        "ipAddress": _sanitize_text(ip_address, max_len=45) if ip_address else None,
    }
    entry.update({key: value for key, value in optional.items() if value is not None})

    try:
        entry_id = store.new_id(ERROR_LOG_COLLECTION)
        await store.set(f"{ERROR_LOG_COLLECTION}/{entry_id}", entry, merge=False)
        return entry_id
    except Exception as store_err:
        # Never let error-logging itself crash the request
        logger.warning("Failed to persist error log: %s", store_err)
        return None
