"""Service status for signed-in staff."""

from fastapi import APIRouter, Depends

from borrowerdesk.auth_utils import get_current_staff
from borrowerdesk.database import Backend, get_backend
from borrowerdesk.services.sessions import StaffSession

router = APIRouter()


@router.get("")
async def service_status(
    staff: StaffSession = Depends(get_current_staff),
    backend: Backend = Depends(get_backend),
):
    store = backend.require_store()
    branches = await store.query("branches", limit=1)
    return {"status": "ok", "branchesCached": len(branches)}
