"""Error taxonomy shared by the services and the HTTP layer.

Every error carries the HTTP status it maps to and a message that is safe to
return to the client.
"""

CREDENTIALS_MISSING_MESSAGE = "Firebase Admin credentials are not configured."


class BorrowerDeskError(Exception):
    status_code = 500
    default_message = "Unexpected error."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(BorrowerDeskError):
    """Malformed or missing request field. Raised before any store access."""
    status_code = 400
    default_message = "Invalid request."


class AuthenticationError(BorrowerDeskError):
    status_code = 401
    default_message = "Unauthorized."


class StaffNotFoundError(BorrowerDeskError):
    status_code = 403
    default_message = "Staff record not found or inactive."


class NotFoundError(BorrowerDeskError):
    status_code = 404
    default_message = "Record not found."


class ConflictError(BorrowerDeskError):
    """The record's current state rules the request out."""
    status_code = 409
    default_message = "Conflicting record state."


class ConfigurationError(BorrowerDeskError):
    """The document store (or identity provider) has no credentials."""
    status_code = 500
    default_message = CREDENTIALS_MISSING_MESSAGE


class StoreError(BorrowerDeskError):
    """A read or write against the document store failed.

    The message holds driver detail for the logs; handlers replace it with a
    generic one before answering the client.
    """
    status_code = 500
    default_message = "Document store request failed."
