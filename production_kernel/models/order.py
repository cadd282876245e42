"""
Module: production_kernel.models.order
Responsibility: ORM persistence for the order aggregate -- the order header,
    its immutable line-item snapshots, and its six per-stage records.
Architecture position: Kernel > Models.  May import from db/base.py and the
    pure domain enums only.

Invariants enforced:
    - Order.code is unique (uq_production_order_code).
    - One StageRecord per (order, stage) (uq_stage_record_order_stage).
    - At most one in_progress StageRecord per order (partial unique index
      ix_stage_records_single_in_progress, PostgreSQL only).
    - Line item unit_count > 0 (ck_order_line_items_positive_units).
    - Evidence and image references are opaque, unbounded Text.  Name,
      channel, product id and category lengths are bounded by the
      ``*_MAX_LENGTH`` constants, which OrderService checks before insert.
    - Line items are never updated or deleted; orders and stage records are
      never deleted; stage status never moves backward (db/immutability.py).

Failure modes:
    - IntegrityError on duplicate code or a second in_progress record;
      the facade maps a code conflict to a bounded retry.
    - ImmutabilityViolationError from the ORM listeners.

Audit relevance:
    StageRecord carries who was assigned, who attached evidence and who
    approved, each with a timestamp from the injected clock.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from production_kernel.db.base import ActorStampedBase, Base, UUIDString
from production_kernel.domain.dtos import OrderStatus, OrderType, StageStatus
from production_kernel.domain.stages import Stage

CLIENT_NAME_MAX_LENGTH = 200
SALES_CHANNEL_MAX_LENGTH = 50
PRODUCT_NAME_MAX_LENGTH = 200
PRODUCT_ID_MAX_LENGTH = 100
CATEGORY_MAX_LENGTH = 100


class Order(ActorStampedBase):
    """
    Manufacturing order header.

    Contract:
        ``current_stage`` always names the stage whose record is
        in_progress, except after completion where it stays ``dispatch``.

    Non-goals:
        - The due date shown to users may be projected from lead times;
          only an explicitly supplied date is stored here.
    """

    __tablename__ = "production_orders"

    __table_args__ = (
        UniqueConstraint("code", name="uq_production_order_code"),
        CheckConstraint(
            "status IN ('active', 'completed')",
            name="ck_production_orders_valid_status",
        ),
        CheckConstraint(
            "quantity > 0",
            name="ck_production_orders_positive_quantity",
        ),
        Index("idx_production_orders_status", "status", "created_at"),
    )

    code: Mapped[str] = mapped_column(String(40), nullable=False)

    client_name: Mapped[str] = mapped_column(String(CLIENT_NAME_MAX_LENGTH), nullable=False)

    sales_channel: Mapped[str] = mapped_column(String(SALES_CHANNEL_MAX_LENGTH), nullable=False)

    order_type: Mapped[OrderType] = mapped_column(
        String(20),
        default=OrderType.SALE.value,
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[OrderStatus] = mapped_column(
        String(20),
        default=OrderStatus.ACTIVE.value,
        nullable=False,
    )

    current_stage: Mapped[Stage] = mapped_column(String(30), nullable=False)

    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    line_items: Mapped[list["OrderLineItem"]] = relationship(
        "OrderLineItem",
        back_populates="order",
        order_by="OrderLineItem.position",
        cascade="save-update, merge",
    )

    stage_records: Mapped[list["StageRecord"]] = relationship(
        "StageRecord",
        back_populates="order",
        order_by="StageRecord.position",
        cascade="save-update, merge",
    )

    def __repr__(self) -> str:
        return f"<Order {self.code} {self.status} at {self.current_stage}>"


class OrderLineItem(Base):
    """
    Snapshot of one product line placed on an order.

    Copied from the catalog at creation; later catalog edits never reach it.
    """

    __tablename__ = "order_line_items"

    __table_args__ = (
        UniqueConstraint("order_id", "position", name="uq_order_line_item_position"),
        CheckConstraint(
            "unit_count > 0",
            name="ck_order_line_items_positive_units",
        ),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("production_orders.id"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    product_id: Mapped[str | None] = mapped_column(String(PRODUCT_ID_MAX_LENGTH), nullable=True)

    product_name: Mapped[str] = mapped_column(String(PRODUCT_NAME_MAX_LENGTH), nullable=False)

    image_ref: Mapped[str | None] = mapped_column(Text, nullable=True)

    category: Mapped[str | None] = mapped_column(String(CATEGORY_MAX_LENGTH), nullable=True)

    unit_count: Mapped[int] = mapped_column(Integer, nullable=False)

    lead_time_days: Mapped[int | None] = mapped_column(Integer, nullable=True)

    order: Mapped["Order"] = relationship("Order", back_populates="line_items")

    def __repr__(self) -> str:
        return f"<OrderLineItem {self.position}: {self.product_name} x{self.unit_count}>"


class StageRecord(Base):
    """
    Per-(order, stage) workflow record.

    Contract:
        status moves pending -> in_progress -> approved and never back.
        ``notes`` stays editable regardless of status.
    """

    __tablename__ = "stage_records"

    __table_args__ = (
        UniqueConstraint("order_id", "stage", name="uq_stage_record_order_stage"),
        CheckConstraint(
            "status IN ('pending', 'in_progress', 'approved')",
            name="ck_stage_records_valid_status",
        ),
        Index(
            "ix_stage_records_single_in_progress",
            "order_id",
            unique=True,
            postgresql_where="status = 'in_progress'",
        ),
        Index("idx_stage_records_assignee", "assigned_user_id", "status"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("production_orders.id"),
        nullable=False,
    )

    stage: Mapped[Stage] = mapped_column(String(30), nullable=False)

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[StageStatus] = mapped_column(
        String(20),
        default=StageStatus.PENDING.value,
        nullable=False,
    )

    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    evidence_ref: Mapped[str | None] = mapped_column(Text, nullable=True)
    evidence_attached_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    evidence_attached_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    qc_acknowledged: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False,
    )

    assigned_user_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    assigned_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    assigned_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    order: Mapped["Order"] = relationship("Order", back_populates="stage_records")

    def __repr__(self) -> str:
        return f"<StageRecord {self.order_id}:{self.stage} {self.status}>"
