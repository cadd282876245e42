"""
Module: production_kernel.models.order_event
Responsibility: ORM persistence for the per-order audit trail.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - OrderEvent rows are append-only; no UPDATE or DELETE (db/immutability.py).

Audit relevance:
    Every mutating workflow operation writes exactly one OrderEvent in the
    same transaction as the state change it describes, so the trail and the
    state can never disagree.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, Identity, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from production_kernel.db.base import Base, UUIDString


class OrderEventAction(str, Enum):
    """Types of recorded workflow actions."""

    ORDER_CREATED = "order_created"
    STAGE_ASSIGNED = "stage_assigned"
    EVIDENCE_ATTACHED = "evidence_attached"
    NOTES_SAVED = "notes_saved"
    STAGE_APPROVED = "stage_approved"
    STAGE_STARTED = "stage_started"
    ORDER_COMPLETED = "order_completed"


class OrderEvent(Base):
    """One audit trail entry for an order.

    ``sequence`` is database-assigned and orders events written in the same
    transaction with the same clock timestamp.
    """

    __tablename__ = "order_events"

    __table_args__ = (
        Index("idx_order_events_order", "order_id", "occurred_at"),
        Index("idx_order_events_actor", "actor_id"),
    )

    sequence: Mapped[int] = mapped_column(
        BigInteger,
        Identity(),
        nullable=False,
        unique=True,
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("production_orders.id"),
        nullable=False,
    )

    stage: Mapped[str | None] = mapped_column(String(30), nullable=True)

    action: Mapped[str] = mapped_column(String(50), nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    actor_role: Mapped[str | None] = mapped_column(String(30), nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<OrderEvent {self.action} order={self.order_id} stage={self.stage}>"
