"""
Declarative base for the production kernel's ORM models.

Every table gets an opaque uuid4 primary key; the human-readable order
number lives in ``Order.code``, never in a key.  Datetimes are stored
timezone-aware.  Ids from the identity provider use the same ``UUIDString``
column type as our own keys.

``ActorStampedBase`` adds who/when columns to rows that are created by one
actor and later moved along by others (the order header).  Services take
both timestamps from the injected clock.  The server default and ``onupdate`` on
``updated_at`` only apply to writes that do not go through a service.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID held as its 36-character text form."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class ActorStampedBase(Base):
    """Creator and last-mover columns.

    ``created_*`` never change after insert.  ``updated_*`` follow the
    latest stage transition on the row.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    created_by_id: Mapped[UUID] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False,
    )
    updated_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
