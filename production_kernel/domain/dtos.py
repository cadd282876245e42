"""
DTOs -- immutable data flowing in and out of the workflow services.

Responsibility:
    Status enumerations for orders and stage records, the input shape for
    new line items, and frozen read models (OrderInfo, LineItemSnapshot,
    StageRecordInfo, OrderEventInfo, TransitionResult) returned by services
    and selectors instead of ORM entities.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ``from_model()`` class methods are
    boundary converters called only from services and selectors.

Invariants enforced:
    - Stage status order is pending < in_progress < approved; a record may
      only move one step forward at a time (``is_forward_step``).
    - Line item snapshots are frozen copies taken at order creation, never
      references to the live catalog.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any
from uuid import UUID

from production_kernel.domain.stages import Stage
from production_kernel.exceptions import OrderNotFoundError

if TYPE_CHECKING:
    from production_kernel.models.order import Order, OrderLineItem, StageRecord
    from production_kernel.models.order_event import OrderEvent


class OrderStatus(str, Enum):
    """Order lifecycle status."""

    ACTIVE = "active"
    COMPLETED = "completed"


class StageStatus(str, Enum):
    """Stage record status.

    Contract: pending -> in_progress -> approved, never backward.
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    APPROVED = "approved"


class OrderType(str, Enum):
    """Small retail sale vs. a production run (by total quantity)."""

    SALE = "sale"
    PRODUCTION = "production"


class OrderListFilter(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ALL = "all"


STAGE_STATUS_RANK: MappingProxyType = MappingProxyType({
    StageStatus.PENDING: 0,
    StageStatus.IN_PROGRESS: 1,
    StageStatus.APPROVED: 2,
})


def is_forward_step(old: StageStatus, new: StageStatus) -> bool:
    """True if ``old -> new`` is unchanged or exactly one step forward."""
    delta = STAGE_STATUS_RANK[StageStatus(new)] - STAGE_STATUS_RANK[StageStatus(old)]
    return delta in (0, 1)


def classify_order_type(quantity: int, production_threshold: int) -> OrderType:
    """Orders at or above the threshold are production runs."""
    return OrderType.PRODUCTION if quantity >= production_threshold else OrderType.SALE


def coerce_order_id(order_id: "UUID | str") -> UUID:
    """Parse a boundary order id; malformed ids are simply not found."""
    if isinstance(order_id, UUID):
        return order_id
    try:
        return UUID(str(order_id))
    except ValueError:
        raise OrderNotFoundError(str(order_id)) from None


@dataclass(frozen=True)
class NewLineItem:
    """Caller-supplied line item, copied from the catalog at order time."""

    product_name: str
    unit_count: int
    product_id: str | None = None
    image_ref: str | None = None
    category: str | None = None
    lead_time_days: int | None = None


@dataclass(frozen=True)
class LineItemSnapshot:
    """Immutable snapshot of a placed line item."""

    id: UUID
    order_id: UUID
    position: int
    product_id: str | None
    product_name: str
    image_ref: str | None
    category: str | None
    unit_count: int
    lead_time_days: int | None

    @classmethod
    def from_model(cls, model: OrderLineItem) -> LineItemSnapshot:
        return cls(
            id=model.id,
            order_id=model.order_id,
            position=model.position,
            product_id=model.product_id,
            product_name=model.product_name,
            image_ref=model.image_ref,
            category=model.category,
            unit_count=model.unit_count,
            lead_time_days=model.lead_time_days,
        )


@dataclass(frozen=True)
class StageRecordInfo:
    """Read model of one (order, stage) record."""

    id: UUID
    order_id: UUID
    stage: Stage
    position: int
    status: StageStatus
    started_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by_id: UUID | None = None
    evidence_ref: str | None = None
    evidence_attached_at: datetime | None = None
    evidence_attached_by_id: UUID | None = None
    notes: str | None = None
    qc_acknowledged: bool = False
    assigned_user_id: UUID | None = None
    assigned_by_id: UUID | None = None
    assigned_at: datetime | None = None

    @property
    def is_in_progress(self) -> bool:
        return self.status == StageStatus.IN_PROGRESS

    @property
    def is_approved(self) -> bool:
        return self.status == StageStatus.APPROVED

    @classmethod
    def from_model(cls, model: StageRecord) -> StageRecordInfo:
        return cls(
            id=model.id,
            order_id=model.order_id,
            stage=Stage(model.stage),
            position=model.position,
            status=StageStatus(model.status),
            started_at=model.started_at,
            approved_at=model.approved_at,
            approved_by_id=model.approved_by_id,
            evidence_ref=model.evidence_ref,
            evidence_attached_at=model.evidence_attached_at,
            evidence_attached_by_id=model.evidence_attached_by_id,
            notes=model.notes,
            qc_acknowledged=model.qc_acknowledged,
            assigned_user_id=model.assigned_user_id,
            assigned_by_id=model.assigned_by_id,
            assigned_at=model.assigned_at,
        )


@dataclass(frozen=True)
class OrderInfo:
    """Read model of an order header."""

    id: UUID
    code: str
    client_name: str
    sales_channel: str
    order_type: OrderType
    quantity: int
    status: OrderStatus
    current_stage: Stage
    created_by_id: UUID
    created_at: datetime | None = None
    due_date: date | None = None
    completed_at: datetime | None = None

    @property
    def is_completed(self) -> bool:
        return self.status == OrderStatus.COMPLETED

    @classmethod
    def from_model(cls, model: Order) -> OrderInfo:
        return cls(
            id=model.id,
            code=model.code,
            client_name=model.client_name,
            sales_channel=model.sales_channel,
            order_type=OrderType(model.order_type),
            quantity=model.quantity,
            status=OrderStatus(model.status),
            current_stage=Stage(model.current_stage),
            created_by_id=model.created_by_id,
            created_at=model.created_at,
            due_date=model.due_date,
            completed_at=model.completed_at,
        )


@dataclass(frozen=True)
class OrderEventInfo:
    """Read model of one audit trail entry."""

    id: UUID
    order_id: UUID
    action: str
    actor_id: UUID
    actor_role: str | None
    occurred_at: datetime
    stage: Stage | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_model(cls, model: OrderEvent) -> OrderEventInfo:
        return cls(
            id=model.id,
            order_id=model.order_id,
            action=model.action,
            actor_id=model.actor_id,
            actor_role=model.actor_role,
            occurred_at=model.occurred_at,
            stage=Stage(model.stage) if model.stage else None,
            payload=dict(model.payload or {}),
        )


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of approve_stage_and_advance."""

    order_id: UUID
    approved_stage: Stage
    current_stage: Stage
    order_status: OrderStatus
    approved_at: datetime

    @property
    def completed(self) -> bool:
        return self.order_status == OrderStatus.COMPLETED
