"""Write-side kernel services (flush-only; the caller owns the transaction)."""

from production_kernel.services.code_generator import OrderCodeCounter, OrderCodeService
from production_kernel.services.order_event_recorder import OrderEventRecorder
from production_kernel.services.order_service import OrderAggregate, OrderService
from production_kernel.services.stage_transition_service import StageTransitionService

__all__ = [
    "OrderCodeCounter",
    "OrderCodeService",
    "OrderEventRecorder",
    "OrderAggregate",
    "OrderService",
    "StageTransitionService",
]
