"""
Domain exceptions - Semantic error types for the account lifecycle.

Every error carries a fixed HTTP-style status and a human-readable
message; the API layer surfaces both verbatim.
"""


class AccountError(Exception):
    """Base class for account domain errors."""

    status: int = 500
    default_message: str = "Internal Server Error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequest(AccountError):
    """Malformed or missing input, expired or invalid OTP, role mismatch."""

    status = 400
    default_message = "Bad request"


class Unauthorized(AccountError):
    """Missing, malformed or expired bearer token."""

    status = 401
    default_message = "Not authorized to access this route"


class Forbidden(AccountError):
    """Authenticated caller may not act on the requested account."""

    status = 403
    default_message = "Not authorized to access this profile"


class NotFound(AccountError):
    """No matching Identity or Profile."""

    status = 404
    default_message = "Account not found"


class Conflict(AccountError):
    """Email, username or contact already claimed by a verified account."""

    status = 409
    default_message = "Account already exists"


class InternalError(AccountError):
    """Downstream delivery or store failure."""

    status = 500
