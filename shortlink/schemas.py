"""Pydantic schemas for request/response validation in the shortlink API.

Schema Hierarchy
=================
::
    URLCreate (Input)
    └─ long_url: str (validated URL)

    URLUpdate (Input)
    └─ long_url: str (validated URL)

    URLCreated (Output)
    ├─ id: str
    ├─ short_code: str
    └─ short_url: str (computed)

    URLResponse (Output)
    ├─ id, short_code, long_url, short_url
    ├─ redirect_count: int
    ├─ created_at: datetime
    └─ updated_at: datetime | None

    AnalyticsResponse / ResolveResponse / MessageResponse / HealthResponse

Key Behaviours
===============
- Request bodies are checked with the same ``validate_long_url`` rule the
  service applies; failures are 422 responses generated by FastAPI.
- Length is left to the service, which enforces ``MAX_URL_LENGTH`` from
  settings and answers 400.
- Models are configured for ORM attribute mapping.
"""

import datetime

from pydantic import BaseModel, Field, field_validator

from shortlink.enums import HealthStatus
from shortlink.errors import ValidationError
from shortlink.models import ShortURL
from shortlink.validators import validate_long_url

__all__ = [
    "AnalyticsResponse",
    "HealthResponse",
    "MessageResponse",
    "ResolveResponse",
    "URLCreate",
    "URLCreated",
    "URLResponse",
    "URLUpdate",
]


def _check_url(v: str) -> str:
    # Length is enforced by the service against Settings.MAX_URL_LENGTH.
    try:
        return validate_long_url(v, max_length=None)
    except ValidationError as exc:
        raise ValueError(exc.message) from exc


class URLCreate(BaseModel):
    long_url: str = Field(..., description="The long URL to shorten")

    @field_validator("long_url")
    @classmethod
    def check_long_url(cls, v: str) -> str:
        return _check_url(v)


class URLUpdate(BaseModel):
    long_url: str = Field(..., description="The new target URL")

    @field_validator("long_url")
    @classmethod
    def check_long_url(cls, v: str) -> str:
        return _check_url(v)


class URLCreated(BaseModel):
    id: str
    short_code: str
    short_url: str


class URLResponse(BaseModel):
    id: str
    short_code: str
    long_url: str
    short_url: str
    redirect_count: int
    created_at: datetime.datetime
    updated_at: datetime.datetime | None = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_model(cls, record: ShortURL, base_url: str) -> "URLResponse":
        return cls(
            id=record.id,
            short_code=record.short_code,
            long_url=record.long_url,
            short_url=f"{base_url}/{record.short_code}",
            redirect_count=record.redirect_count,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class AnalyticsResponse(BaseModel):
    short_code: str
    redirect_count: int = Field(..., ge=0)


class ResolveResponse(BaseModel):
    short_code: str
    long_url: str


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
    cache: HealthStatus
