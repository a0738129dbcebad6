"""Input validators for long URLs, short codes and user ids.

These run inside the service so every entry point (HTTP, scripts, tests) gets
the same rules. They raise ``ValidationError`` with a message that is safe to
return to the caller.
"""

import re
from urllib.parse import urlparse

from shortlink.errors import ValidationError

__all__ = [
    "MAX_SHORT_CODE_LENGTH",
    "MAX_URL_LENGTH",
    "MIN_SHORT_CODE_LENGTH",
    "validate_long_url",
    "validate_short_code",
    "validate_user_id",
]

MAX_URL_LENGTH = 2048
MIN_SHORT_CODE_LENGTH = 4
MAX_SHORT_CODE_LENGTH = 20
ALLOWED_SCHEMES = frozenset({"http", "https"})

_FORBIDDEN_URL_CHARS_RE = re.compile(r"[\s\x00-\x1f\x7f]")
_SHORT_CODE_RE = re.compile(r"^[0-9a-zA-Z]+$")


def validate_long_url(url: str, max_length: int | None = MAX_URL_LENGTH) -> str:
    """
    Validate a long URL and return it with surrounding whitespace removed.

    This is the single URL rule: the request schemas and the service both
    call it.

    Args:
        url: The URL to validate
        max_length: Maximum allowed length (default: 2048). ``None`` skips
            the length check for callers that enforce a configured limit
            later.

    Returns:
        The stripped URL

    Raises:
        ValidationError: If the URL is empty, too long, contains whitespace
            or control characters, is not http/https, or has no host
    """
    if not isinstance(url, str) or not url.strip():
        raise ValidationError("URL cannot be empty")

    url = url.strip()
    if max_length is not None and len(url) > max_length:
        raise ValidationError(f"URL cannot exceed {max_length} characters")
    if _FORBIDDEN_URL_CHARS_RE.search(url):
        raise ValidationError("URL cannot contain whitespace or control characters")

    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError as exc:
        raise ValidationError("invalid URL format") from exc

    if not parsed.scheme:
        raise ValidationError("URL must include a scheme (http:// or https://)")
    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise ValidationError("URL must use http or https scheme")
    if not hostname:
        raise ValidationError("URL must include a valid host")

    return url


def validate_short_code(
    short_code: str,
    min_length: int = MIN_SHORT_CODE_LENGTH,
    max_length: int = MAX_SHORT_CODE_LENGTH,
) -> str:
    if not isinstance(short_code, str) or not short_code.strip():
        raise ValidationError("short code cannot be empty")

    short_code = short_code.strip()
    if not min_length <= len(short_code) <= max_length:
        raise ValidationError(f"short code must be between {min_length} and {max_length} characters")
    if not _SHORT_CODE_RE.match(short_code):
        raise ValidationError("short code can only contain alphanumeric characters")

    return short_code


def validate_user_id(user_id: str) -> str:
    if not isinstance(user_id, str) or not user_id.strip():
        raise ValidationError("user ID cannot be empty")
    return user_id.strip()
