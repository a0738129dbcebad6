"""SQLAlchemy ORM models for the shortlink application.

Data Model Layout
=================
::
    short_urls table
    ├─ id (VARCHAR(36) PRIMARY KEY, uuid4)
    ├─ owner_id (VARCHAR(64), INDEXED)
    ├─ short_code (VARCHAR(20) UNIQUE, INDEXED)
    ├─ long_url (VARCHAR(2048) NOT NULL)
    ├─ redirect_count (INTEGER DEFAULT 0)
    ├─ created_at (TIMESTAMPTZ NOT NULL)
    └─ updated_at (TIMESTAMPTZ NULL)

How to Use
===========
**Step 1: Build a new record**::
    record = ShortURL.new(owner_id="user-1", short_code="aZ3kP9q", long_url="https://example.com")

**Step 2: Hand it to the store**::
    saved = await store.save(record)

**Step 3: Check ownership before mutating**::
    if not saved.is_owned_by(user_id):
        raise UnauthorizedError("not authorized to update this URL")

Key Behaviours
===============
- The UNIQUE index on short_code is the sole arbiter of code uniqueness.
- id, owner_id, short_code and created_at never change after creation.
- redirect_count only grows, through an atomic ``redirect_count + 1`` update.
- updated_at is set whenever long_url or redirect_count changes.

Classes:
    ShortURL:  A long URL, its short code, its owner and its redirect count.
"""

import datetime
import uuid

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from shortlink.database import Base

__all__ = ["ShortURL", "utcnow"]


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class ShortURL(Base):
    __tablename__ = "short_urls"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    short_code: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)
    long_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    redirect_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True, nullable=False
    )
    updated_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @classmethod
    def new(cls, owner_id: str, short_code: str, long_url: str) -> "ShortURL":
        return cls(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            short_code=short_code,
            long_url=long_url,
            redirect_count=0,
            created_at=utcnow(),
            updated_at=None,
        )

    def is_owned_by(self, user_id: str) -> bool:
        return self.owner_id == user_id

    def __repr__(self) -> str:
        return f"<ShortURL(id={self.id}, short_code='{self.short_code}', redirect_count={self.redirect_count})>"
