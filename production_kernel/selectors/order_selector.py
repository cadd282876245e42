"""
Module: production_kernel.selectors.order_selector
Responsibility: Read-only queries over orders, line items, stage records and
    the order event trail.
Architecture position: Kernel > Selectors.  Reads models, returns DTOs.

Invariants enforced:
    - Read-only: no add/delete/flush/commit.
    - Missing or malformed order ids raise OrderNotFoundError.
    - Unknown list filters raise UnknownOrderFilterError.
    - Orders list newest first; line items by position; stage records in
      workflow order; events oldest first.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from production_kernel.domain.authorization import can_view
from production_kernel.domain.dtos import (
    LineItemSnapshot,
    OrderEventInfo,
    OrderInfo,
    OrderListFilter,
    OrderStatus,
    StageRecordInfo,
    coerce_order_id,
)
from production_kernel.domain.roles import ActorContext
from production_kernel.domain.stages import Stage, parse_stage
from production_kernel.exceptions import (
    OrderNotFoundError,
    StageRecordNotFoundError,
    UnknownOrderFilterError,
)
from production_kernel.models.order import Order, OrderLineItem, StageRecord
from production_kernel.models.order_event import OrderEvent
from production_kernel.selectors.base import BaseSelector


class OrderSelector(BaseSelector[Order]):
    """Query interface for the order aggregate."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get_order(self, order_id: UUID | str) -> OrderInfo:
        return OrderInfo.from_model(self._load_order(order_id))

    def get_order_by_code(self, code: str) -> OrderInfo:
        order = self.session.execute(
            select(Order).where(Order.code == code)
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(code)
        return OrderInfo.from_model(order)

    def list_orders(
        self,
        status_filter: OrderListFilter | str = OrderListFilter.ACTIVE,
    ) -> list[OrderInfo]:
        """
        Orders matching the filter, newest first.

        Args:
            status_filter: ``active``, ``completed`` or ``all``.

        Raises:
            UnknownOrderFilterError: Any other filter value.
        """
        try:
            status_filter = OrderListFilter(status_filter)
        except ValueError:
            raise UnknownOrderFilterError(str(status_filter)) from None
        query = select(Order).order_by(Order.created_at.desc(), Order.code.desc())
        if status_filter is OrderListFilter.ACTIVE:
            query = query.where(Order.status == OrderStatus.ACTIVE.value)
        elif status_filter is OrderListFilter.COMPLETED:
            query = query.where(Order.status == OrderStatus.COMPLETED.value)

        orders = self.session.execute(query).scalars().all()
        return [OrderInfo.from_model(o) for o in orders]

    def list_line_items(self, order_id: UUID | str) -> list[LineItemSnapshot]:
        order = self._load_order(order_id)
        items = self.session.execute(
            select(OrderLineItem)
            .where(OrderLineItem.order_id == order.id)
            .order_by(OrderLineItem.position)
        ).scalars().all()
        return [LineItemSnapshot.from_model(item) for item in items]

    def list_stage_records(self, order_id: UUID | str) -> list[StageRecordInfo]:
        order = self._load_order(order_id)
        records = self.session.execute(
            select(StageRecord)
            .where(StageRecord.order_id == order.id)
            .order_by(StageRecord.position)
        ).scalars().all()
        return [StageRecordInfo.from_model(r) for r in records]

    def get_stage_record(self, order_id: UUID | str, stage: Stage | str) -> StageRecordInfo:
        stage = parse_stage(stage)
        order = self._load_order(order_id)
        record = self.session.execute(
            select(StageRecord).where(
                StageRecord.order_id == order.id,
                StageRecord.stage == stage.value,
            )
        ).scalar_one_or_none()
        if record is None:
            raise StageRecordNotFoundError(str(order.id), stage.value)
        return StageRecordInfo.from_model(record)

    def visible_stage_records(
        self,
        order_id: UUID | str,
        actor: ActorContext,
    ) -> list[StageRecordInfo]:
        """Stage records the actor may see (managers: all of them)."""
        return [r for r in self.list_stage_records(order_id) if can_view(actor, r)]

    def list_events(self, order_id: UUID | str) -> list[OrderEventInfo]:
        order = self._load_order(order_id)
        events = self.session.execute(
            select(OrderEvent)
            .where(OrderEvent.order_id == order.id)
            .order_by(OrderEvent.sequence)
        ).scalars().all()
        return [OrderEventInfo.from_model(e) for e in events]

    def _load_order(self, order_id: UUID | str) -> Order:
        oid = coerce_order_id(order_id)
        order = self.session.get(Order, oid)
        if order is None:
            raise OrderNotFoundError(str(oid))
        return order
