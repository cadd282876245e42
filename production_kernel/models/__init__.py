"""Persistence models for the production kernel."""

from production_kernel.models.order import Order, OrderLineItem, StageRecord
from production_kernel.models.order_event import OrderEvent, OrderEventAction

__all__ = [
    "Order",
    "OrderLineItem",
    "StageRecord",
    "OrderEvent",
    "OrderEventAction",
]
