"""
OrderService -- order creation and the aggregate lock.

Responsibility:
    Creates an order together with its line-item snapshots and its six
    stage records in one flush, and provides ``lock_aggregate`` which every
    mutating workflow operation uses to serialize work on one order.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by OrderWorkflow (production_services) and StageTransitionService.

Invariants enforced:
    - Only admin/supervisor create orders.
    - Non-blank client name, known sales channel, at least one line item,
      every unit count positive, text fields within their column limits.
    - Exactly six stage records per order; ``sale`` starts in_progress,
      the rest pending; ``current_stage`` is ``sale``.
    - quantity is the sum of line-item unit counts; order_type is derived
      from it against the production threshold.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - ValidationError subclasses on bad input (nothing written).
    - AuthorizationError subclasses for non-managers or inactive actors.
    - DuplicateOrderCodeError when the code is already taken.
    - OrderNotFoundError / ConcurrentTransitionError from lock_aggregate.

Audit relevance:
    Creation writes an ``order_created`` OrderEvent and logs
    ``order_created`` with the code, quantity and type.
"""

from dataclasses import dataclass
from datetime import date
from typing import Mapping, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from production_kernel.db.locking import is_lock_timeout, set_lock_timeout
from production_kernel.domain.authorization import require_manager
from production_kernel.domain.clock import Clock
from production_kernel.domain.dtos import (
    NewLineItem,
    OrderInfo,
    OrderStatus,
    StageStatus,
    classify_order_type,
    coerce_order_id,
)
from production_kernel.domain.roles import ActorContext
from production_kernel.domain.stages import FIRST_STAGE, STAGE_SEQUENCE, Stage, position
from production_kernel.exceptions import (
    ConcurrentTransitionError,
    DueDateRequiredError,
    DuplicateOrderCodeError,
    EmptyLineItemsError,
    InvalidClientNameError,
    InvalidLineItemError,
    MissingClientNameError,
    OrderNotFoundError,
    StageRecordNotFoundError,
    UnknownSalesChannelError,
)
from production_kernel.logging_config import get_logger
from production_kernel.models.order import (
    CATEGORY_MAX_LENGTH,
    CLIENT_NAME_MAX_LENGTH,
    PRODUCT_ID_MAX_LENGTH,
    PRODUCT_NAME_MAX_LENGTH,
    SALES_CHANNEL_MAX_LENGTH,
    Order,
    OrderLineItem,
    StageRecord,
)
from production_kernel.models.order_event import OrderEventAction
from production_kernel.services.base import BaseService
from production_kernel.services.code_generator import OrderCodeService
from production_kernel.services.order_event_recorder import OrderEventRecorder

logger = get_logger("services.order")

DEFAULT_PRODUCTION_THRESHOLD = 20


@dataclass
class OrderAggregate:
    """A locked order row and its stage records, keyed by stage."""

    order: Order
    records: dict[Stage, StageRecord]

    @property
    def current_stage(self) -> Stage:
        return Stage(self.order.current_stage)

    def record(self, stage: Stage) -> StageRecord:
        try:
            return self.records[stage]
        except KeyError:
            raise StageRecordNotFoundError(str(self.order.id), stage.value) from None


class OrderService(BaseService[Order]):
    """
    Service for creating orders and locking order aggregates.

    ``sales_channels`` maps each accepted channel name to whether it
    requires a due date.  When omitted every non-blank channel is accepted
    and none requires a date.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        code_service: OrderCodeService | None = None,
        sales_channels: Mapping[str, bool] | None = None,
        production_quantity_threshold: int = DEFAULT_PRODUCTION_THRESHOLD,
        lock_timeout_ms: int | None = None,
    ):
        super().__init__(session, clock)
        self._codes = code_service or OrderCodeService(
            session, self._clock, lock_timeout_ms=lock_timeout_ms,
        )
        self._sales_channels = dict(sales_channels) if sales_channels is not None else None
        self._production_threshold = production_quantity_threshold
        self._lock_timeout_ms = lock_timeout_ms
        self._events = OrderEventRecorder(session, self._clock)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_order(
        self,
        actor: ActorContext,
        client_name: str,
        sales_channel: str,
        line_items: Sequence[NewLineItem],
        due_date: date | None = None,
        manual_code: str | None = None,
    ) -> OrderInfo:
        """
        Create an order, its line items and its six stage records.

        Raises:
            InactiveActorError, StageActionNotPermittedError: Actor may not
                create orders.
            MissingClientNameError, InvalidClientNameError, UnknownSalesChannelError,
            EmptyLineItemsError, InvalidLineItemError,
            DueDateRequiredError, InvalidOrderCodeError: Bad input.
            DuplicateOrderCodeError: Code already taken.
            CodeAllocationError: Counter lock wait timed out.
        """
        require_manager(actor, "create_order")

        client = (client_name or "").strip()
        if not client:
            raise MissingClientNameError()
        if len(client) > CLIENT_NAME_MAX_LENGTH:
            raise InvalidClientNameError(f"longer than {CLIENT_NAME_MAX_LENGTH} characters")

        channel = self._validate_channel(sales_channel)
        items = self._validate_line_items(line_items)

        if due_date is None and self._requires_due_date(channel):
            raise DueDateRequiredError(channel)

        if manual_code is not None:
            code = self._codes.reserve_code(manual_code)
        else:
            code = self._codes.next_code(self._clock.now().year)

        now = self._clock.now()
        quantity = sum(item.unit_count for item in items)
        order_type = classify_order_type(quantity, self._production_threshold)

        order = Order(
            code=code,
            client_name=client,
            sales_channel=channel,
            order_type=order_type.value,
            quantity=quantity,
            due_date=due_date,
            status=OrderStatus.ACTIVE.value,
            current_stage=FIRST_STAGE.value,
            created_at=now,
            updated_at=now,
            created_by_id=actor.user_id,
        )
        self.session.add(order)
        try:
            self.session.flush()
        except IntegrityError as exc:
            if "uq_production_order_code" in str(exc.orig):
                raise DuplicateOrderCodeError(code) from exc
            raise

        for index, item in enumerate(items, start=1):
            self.session.add(
                OrderLineItem(
                    order_id=order.id,
                    position=index,
                    product_id=item.product_id,
                    product_name=item.product_name.strip(),
                    image_ref=item.image_ref,
                    category=item.category,
                    unit_count=item.unit_count,
                    lead_time_days=item.lead_time_days,
                )
            )

        for stage in STAGE_SEQUENCE:
            is_first = stage is FIRST_STAGE
            self.session.add(
                StageRecord(
                    order_id=order.id,
                    stage=stage.value,
                    position=position(stage),
                    status=(StageStatus.IN_PROGRESS if is_first else StageStatus.PENDING).value,
                    started_at=now if is_first else None,
                    qc_acknowledged=False,
                )
            )
        self.session.flush()

        self._events.record(
            order.id,
            OrderEventAction.ORDER_CREATED,
            actor,
            stage=FIRST_STAGE,
            payload={
                "code": code,
                "manual_code": manual_code is not None,
                "client_name": client,
                "sales_channel": channel,
                "quantity": quantity,
                "order_type": order_type.value,
                "line_item_count": len(items),
                "due_date": due_date.isoformat() if due_date else None,
            },
        )

        logger.info(
            "order_created",
            extra={
                "order_id": str(order.id),
                "order_code": code,
                "quantity": quantity,
                "order_type": order_type.value,
                "sales_channel": channel,
                "actor_id": str(actor.user_id),
            },
        )
        return OrderInfo.from_model(order)

    def _validate_channel(self, sales_channel: str) -> str:
        channel = (sales_channel or "").strip().lower()
        if not channel or len(channel) > SALES_CHANNEL_MAX_LENGTH:
            raise UnknownSalesChannelError(sales_channel or "")
        if self._sales_channels is not None and channel not in self._sales_channels:
            raise UnknownSalesChannelError(channel)
        return channel

    def _requires_due_date(self, channel: str) -> bool:
        if self._sales_channels is None:
            return False
        return bool(self._sales_channels.get(channel, False))

    @staticmethod
    def _validate_line_items(line_items: Sequence[NewLineItem]) -> list[NewLineItem]:
        items = list(line_items or [])
        if not items:
            raise EmptyLineItemsError()
        for index, item in enumerate(items, start=1):
            name = (item.product_name or "").strip()
            if not name:
                raise InvalidLineItemError(index, "product name is required")
            for field, value, limit in (
                ("product name", name, PRODUCT_NAME_MAX_LENGTH),
                ("product id", item.product_id, PRODUCT_ID_MAX_LENGTH),
                ("category", item.category, CATEGORY_MAX_LENGTH),
            ):
                if value is not None and len(value) > limit:
                    raise InvalidLineItemError(index, f"{field} longer than {limit} characters")
            if isinstance(item.unit_count, bool) or not isinstance(item.unit_count, int):
                raise InvalidLineItemError(index, "unit count must be an integer")
            if item.unit_count <= 0:
                raise InvalidLineItemError(index, "unit count must be positive")
            if item.lead_time_days is not None and item.lead_time_days < 0:
                raise InvalidLineItemError(index, "lead time cannot be negative")
        return items

    # ------------------------------------------------------------------
    # Aggregate lock
    # ------------------------------------------------------------------

    def lock_aggregate(self, order_id: UUID | str) -> OrderAggregate:
        """
        Lock the order row FOR UPDATE and load its stage records.

        The lock is held until the caller's transaction ends.  Rows are
        re-read even if already in the identity map, so a caller that
        waited on the lock sees the state the previous holder committed.

        Raises:
            OrderNotFoundError: No such order.
            ConcurrentTransitionError: Lock wait exceeded lock_timeout.
        """
        oid = coerce_order_id(order_id)
        set_lock_timeout(self.session, self._lock_timeout_ms)
        try:
            order = self.session.execute(
                select(Order)
                .where(Order.id == oid)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        except OperationalError as exc:
            if is_lock_timeout(exc):
                logger.warning(
                    "order_lock_timeout",
                    extra={"order_id": str(oid), "lock_timeout_ms": self._lock_timeout_ms},
                )
                raise ConcurrentTransitionError(str(oid)) from exc
            raise

        if order is None:
            raise OrderNotFoundError(str(oid))

        records = self.session.execute(
            select(StageRecord)
            .where(StageRecord.order_id == oid)
            .execution_options(populate_existing=True)
        ).scalars().all()

        return OrderAggregate(
            order=order,
            records={Stage(record.stage): record for record in records},
        )
