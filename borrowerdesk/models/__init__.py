"""SQLAlchemy models for the Borrower Desk SQL document store."""

from borrowerdesk.models.document import StoredDocument

__all__ = [
    "StoredDocument",
]
