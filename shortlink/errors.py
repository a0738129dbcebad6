"""Domain exceptions for the shortlink service.

Every error raised by the core carries an ``ErrorKind`` so callers can branch
on the category rather than on the concrete type. The HTTP layer maps kinds
to status codes in one place.

Error Hierarchy
===============
::
    ShortLinkError
    ├─ ValidationError          (validation)
    ├─ NotFoundError            (not_found)
    ├─ ConflictError            (conflict)
    ├─ UnauthorizedError        (unauthorized)
    ├─ InternalError            (internal)
    │   ├─ RetriesExhaustedError
    │   ├─ CodeGenerationError
    │   └─ StoreError
    │       └─ UniquenessViolation
    └─ CacheError               (internal, never surfaced to callers)

Key Behaviours
===============
- ``message`` is safe to show for every kind except ``internal``.
- ``public_message`` hides internal details behind a generic text.
- ``UniquenessViolation`` is the only store failure the creation loop retries.
"""

from shortlink.enums import ErrorKind

__all__ = [
    "CacheError",
    "CodeGenerationError",
    "ConflictError",
    "InternalError",
    "NotFoundError",
    "RetriesExhaustedError",
    "ShortLinkError",
    "StoreError",
    "UnauthorizedError",
    "UniquenessViolation",
    "ValidationError",
]

GENERIC_INTERNAL_MESSAGE = "An internal error occurred. Please try again later."


class ShortLinkError(Exception):
    """Base exception for the shortlink service."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, original_error: Exception | None = None):
        self.message = message
        self.original_error = original_error
        super().__init__(f"{self.kind.value}: {message}")

    @property
    def public_message(self) -> str:
        if self.kind is ErrorKind.INTERNAL:
            return GENERIC_INTERNAL_MESSAGE
        return self.message


class ValidationError(ShortLinkError):
    """Raised when a long URL, short code or user id is malformed."""

    kind = ErrorKind.VALIDATION


class NotFoundError(ShortLinkError):
    """Raised when no record exists for a short code or id."""

    kind = ErrorKind.NOT_FOUND


class ConflictError(ShortLinkError):
    """Uniqueness conflict kind.

    Code collisions are absorbed by the creation retry loop and surface only
    as ``RetriesExhaustedError``, so no current path raises this; it keeps
    the error taxonomy and its 409 mapping complete.
    """

    kind = ErrorKind.CONFLICT


class UnauthorizedError(ShortLinkError):
    """Raised when the acting user does not own the record."""

    kind = ErrorKind.UNAUTHORIZED


class InternalError(ShortLinkError):
    kind = ErrorKind.INTERNAL


class RetriesExhaustedError(InternalError):
    """Raised when every creation attempt collided with an existing code."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"could not allocate a unique short code after {attempts} attempts")


class CodeGenerationError(InternalError):
    """Raised when the random source fails while generating a short code."""


class StoreError(InternalError):
    """Raised when the persistent store fails for a reason other than absence."""


class UniquenessViolation(StoreError):
    """Raised when an insert is rejected by the short-code unique constraint."""

    def __init__(self, short_code: str, original_error: Exception | None = None):
        self.short_code = short_code
        super().__init__(f"short code '{short_code}' already exists", original_error)


class CacheError(ShortLinkError):
    """Raised by cache backends; the service always degrades to a miss."""

    kind = ErrorKind.INTERNAL
