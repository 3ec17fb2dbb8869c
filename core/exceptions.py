"""
Domain exceptions raised by the service layer.

Routers never build error responses themselves; ``app.py`` maps each of
these onto a single user-facing notice.
"""


class BCMSError(Exception):
    """Base exception for all complaint management errors."""

    status_code = 500
    default_message = "Request failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AccessDenied(BCMSError):
    """
    Raised when a policy rule rejects a mutation.

    The message is deliberately the same whether the row is missing or
    merely invisible to the principal.
    """

    status_code = 403
    default_message = "Access denied"


class NotFound(BCMSError):
    """Raised when a row is absent or not readable by the principal."""

    status_code = 404
    default_message = "Not found"


class ValidationError(BCMSError):
    """Raised when input is missing a required field or has an invalid enum value."""

    status_code = 422


class TransientIOError(BCMSError):
    """Raised when the database cannot be reached."""

    status_code = 503
    default_message = "Storage temporarily unavailable, please retry"
