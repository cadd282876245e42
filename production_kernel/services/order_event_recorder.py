"""
OrderEventRecorder -- append-only audit trail writer.

Responsibility:
    Writes one OrderEvent per mutating workflow operation, inside the same
    transaction as the state change.

Architecture position:
    Kernel > Services -- called by OrderService and StageTransitionService.

Invariants enforced:
    - Events are only ever inserted (db/immutability.py blocks the rest).
    - occurred_at comes from the injected clock.
"""

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from production_kernel.domain.clock import Clock
from production_kernel.domain.roles import ActorContext
from production_kernel.domain.stages import Stage
from production_kernel.logging_config import get_logger
from production_kernel.models.order_event import OrderEvent, OrderEventAction
from production_kernel.services.base import BaseService

logger = get_logger("services.order_events")


class OrderEventRecorder(BaseService[OrderEvent]):
    """Records workflow actions against an order."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def record(
        self,
        order_id: UUID,
        action: OrderEventAction,
        actor: ActorContext,
        stage: Stage | None = None,
        payload: dict[str, Any] | None = None,
    ) -> OrderEvent:
        event = OrderEvent(
            order_id=order_id,
            stage=stage.value if stage is not None else None,
            action=OrderEventAction(action).value,
            actor_id=actor.user_id,
            actor_role=actor.role_value,
            occurred_at=self._clock.now(),
            payload=dict(payload or {}),
        )
        self.session.add(event)
        self.session.flush()

        logger.debug(
            "order_event_recorded",
            extra={
                "event_action": event.action,
                "order_id": str(order_id),
                "event_stage": event.stage,
            },
        )
        return event
