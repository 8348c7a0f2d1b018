"""Error taxonomy for the identity core.

Domain errors carry a stable ``code`` that the HTTP boundary returns verbatim;
their messages are for logs only. Storage errors are raised by the repository
and transaction coordinator and translated by the account service.
"""

from __future__ import annotations


class IdentityError(Exception):
    """Base class for domain-level failures."""

    code = "unexpected_error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)


class ValidationError(IdentityError):
    code = "validation_error"


class DuplicateEmail(IdentityError):
    code = "duplicate_email"


class DuplicateUsername(IdentityError):
    code = "duplicate_username"


class AuthenticationFailure(IdentityError):
    """Generic login failure; never says whether the email or the password was wrong."""

    code = "invalid_credentials"


class AuthenticationUnavailable(IdentityError):
    code = "authentication_unavailable"


class NotFound(IdentityError):
    code = "not_found"


class UnexpectedError(IdentityError):
    code = "unexpected_error"


class EncodingError(IdentityError):
    """Raised by the credential hasher for non-representable secrets or malformed digests."""

    code = "validation_error"


class StoreError(Exception):
    """Failure reported by the relational store."""


class TransientStoreError(StoreError):
    """Connectivity or timeout failure; the caller may retry."""


class Conflict(StoreError):
    """A unique index rejected a write."""

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(message or f"unique constraint violated on {field}")
        self.field = field
