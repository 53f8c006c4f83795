from abc import ABC


class UserError(ABC, Exception):
    """Base class for user-related errors.

    All errors that inherit from UserError will have their messages
    displayed to the user. These errors should not contain any
    sensitive information.
    """


class NotFoundError(UserError):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str = "Session not found") -> None:
        super().__init__(message)


class AuthenticationError(UserError):
    """Raised when there is no valid session or the login data is rejected."""

    def __init__(self, message: str = "Invalid or expired session") -> None:
        super().__init__(message)


class AccessDeniedError(UserError):
    """Raised when a caller is not allowed to use an internal endpoint."""


class ValidationError(UserError):
    """Raised when user input fails validation."""


class MissingFieldsError(ValidationError):
    """Raised when an assertion lacks one of the required fields."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__("Missing required authentication fields")


class NotConfiguredError(UserError):
    """Raised when a secret needed by an endpoint is not configured on the server."""


class VerificationError(Exception):
    """Base class for assertion verification failures.

    Subclasses describe which check failed. The detail is for logs only,
    callers see a generic AuthenticationError.
    """


class MalformedAssertionError(VerificationError):
    """Raised when assertion fields cannot be parsed."""


class AssertionExpiredError(VerificationError):
    """Raised when auth_date is older than the freshness window."""


class BadSignatureError(VerificationError):
    """Raised when the HMAC does not match."""


class StoreError(Exception):
    """Raised when the session store backend fails."""
