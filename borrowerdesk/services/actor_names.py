"""Display-name lookup for staff members recorded on notes and decisions."""

import logging
from typing import Iterable, Optional

from borrowerdesk.services.document_store import DocumentStore
from borrowerdesk.services.errors import StoreError
from borrowerdesk.services.note_builder import sanitize_name

logger = logging.getLogger(__name__)


def _normalize_display_name(value) -> Optional[str]:
    if isinstance(value, str):
        trimmed = value.strip()
        return trimmed or None
    return None


async def get_user_display_names(store: DocumentStore, user_ids: Iterable[str]) -> dict[str, str]:
    """Map user id -> display name for the ids that have one.

    A failed lookup is logged and treated as "no names found"; callers fall
    back to whatever name they were given.
    """
    unique_ids = list(dict.fromkeys(
        uid for uid in user_ids
        if isinstance(uid, str) and uid.strip() and "/" not in uid
    ))
    if not unique_ids:
        return {}

    try:
        snaps = await store.get_all([f"users/{uid}" for uid in unique_ids])
    except (StoreError, ValueError) as exc:
        # ValueError: an id that does not name a single users/ document
        logger.warning("Unable to fetch user names: %s", exc)
        return {}

    names = {}
    for uid, snap in zip(unique_ids, snaps):
        if not snap.exists:
            continue
        name = _normalize_display_name(snap.data.get("displayName"))
        if name:
            names[uid] = name
    return names


async def resolve_actor_name(
    store: DocumentStore,
    actor_user_id: Optional[str] = None,
    fallback_name: Optional[str] = None,
) -> str:
    """Staff record name first, then the name the client sent, then "Unknown staff"."""
    resolved = None
    if actor_user_id:
        names = await get_user_display_names(store, [actor_user_id])
        resolved = names.get(actor_user_id)
    return sanitize_name(resolved if resolved is not None else fallback_name)
