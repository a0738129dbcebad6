"""Shared enums for the shortlink application.

This module defines all status and kind enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["CacheStatus", "ErrorKind", "HealthStatus", "RequestStatus"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DISABLED = "disabled"


class ErrorKind(StrEnum):
    """Category of a domain error, independent of the exception type."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    INTERNAL = "internal"


class RequestStatus(StrEnum):
    """Outcome label for request metrics."""

    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    EXHAUSTED = "exhausted"
    ERROR = "error"


class CacheStatus(StrEnum):
    """Cache lookup outcome label for metrics."""

    HIT = "hit"
    MISS = "miss"
