"""Staff session endpoints: exchange an identity token for a session cookie."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from borrowerdesk.database import Backend, get_backend
from borrowerdesk.schemas import SessionCreatePayload, read_payload
from borrowerdesk.services.errors import (
    AuthenticationError,
    ConfigurationError,
    StaffNotFoundError,
    StoreError,
    ValidationError,
)

logger = logging.getLogger(__name__)

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)


def _cookie_options(backend: Backend) -> dict:
    return {
        "httponly": True,
        "secure": backend.settings.environment == "production",
        "samesite": "lax",
        "path": "/",
    }


@router.post("")
@limiter.limit("20/minute")
async def create_session(
    request: Request,
    backend: Backend = Depends(get_backend),
):
    payload = await read_payload(request, SessionCreatePayload)
    id_token = payload.id_token.strip() if payload.id_token else ""
    if not id_token:
        raise ValidationError("Missing id token.")

    try:
        cookie = await backend.sessions.create_session_cookie(backend.identity, id_token)
    except (StaffNotFoundError, ConfigurationError):
        raise
    except (AuthenticationError, StoreError) as e:
        logger.warning("Session creation failed: %s", e)
        raise HTTPException(status_code=500, detail="Unable to create session.")

    response = JSONResponse({"status": "ok"})
    response.set_cookie(
        backend.settings.session_cookie_name,
        cookie,
        max_age=backend.sessions.max_age_seconds,
        **_cookie_options(backend),
    )
    return response


@router.delete("")
async def delete_session(backend: Backend = Depends(get_backend)):
    response = JSONResponse({"status": "ok"})
    response.set_cookie(
        backend.settings.session_cookie_name,
        "",
        max_age=0,
        **_cookie_options(backend),
    )
    return response
