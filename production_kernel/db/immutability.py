"""
ORM-Level Immutability Enforcement.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | Rule
----------------|----------------------------------------------------------
OrderLineItem   | ALWAYS immutable (snapshot taken at order creation)
OrderEvent      | ALWAYS immutable (audit trail)
Order           | Never deleted; a completed order never reverts to active
StageRecord     | Never deleted; status only moves one step forward;
                | order_id / stage / position never change

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires mapper events before UPDATE/DELETE statements are emitted:

    session.flush()
         |
         v
    [before_update] --> _check_*() --> ImmutabilityViolationError
    [before_delete] --> _check_*() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Status changes are detected through attribute history: ``history.deleted``
holds the loaded value, ``history.added`` the pending one.

===============================================================================
USAGE
===============================================================================

    from production_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

Tests that need to write forbidden rows may call
``unregister_immutability_listeners()`` and re-register afterwards.
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from production_kernel.domain.dtos import OrderStatus, StageStatus, is_forward_step
from production_kernel.exceptions import ImmutabilityViolationError
from production_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_STAGE_RECORD_FROZEN_FIELDS = ("order_id", "stage", "position")


def _block(entity_type: str, target, operation: str, reason: str, **fields) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            **fields,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_line_item_update(mapper, connection, target):
    _block(
        "OrderLineItem", target, "UPDATE",
        "Order line items are snapshots and cannot be modified",
    )


def _check_line_item_delete(mapper, connection, target):
    _block(
        "OrderLineItem", target, "DELETE",
        "Order line items cannot be deleted",
    )


def _check_order_event_update(mapper, connection, target):
    _block(
        "OrderEvent", target, "UPDATE",
        "Order events are immutable and cannot be modified",
    )


def _check_order_event_delete(mapper, connection, target):
    _block(
        "OrderEvent", target, "DELETE",
        "Order events cannot be deleted",
    )


def _check_order_update(mapper, connection, target):
    """A completed order stays completed."""
    status_history = get_history(target, "status")
    if not (status_history.deleted and status_history.added):
        return

    old_status = OrderStatus(status_history.deleted[0])
    new_status = OrderStatus(status_history.added[0])
    if old_status is OrderStatus.COMPLETED and new_status is not OrderStatus.COMPLETED:
        _block(
            "Order", target, "UPDATE",
            "Completed orders cannot be reopened",
            field="status",
        )


def _check_order_delete(mapper, connection, target):
    _block("Order", target, "DELETE", "Orders cannot be deleted")


def _check_stage_record_update(mapper, connection, target):
    """Status is monotonic; identity fields are frozen."""
    for field in _STAGE_RECORD_FROZEN_FIELDS:
        if get_history(target, field).deleted:
            _block(
                "StageRecord", target, "UPDATE",
                f"Cannot modify field '{field}' on a stage record",
                field=field,
            )

    status_history = get_history(target, "status")
    if not (status_history.deleted and status_history.added):
        return

    old_status = StageStatus(status_history.deleted[0])
    new_status = StageStatus(status_history.added[0])
    if not is_forward_step(old_status, new_status):
        _block(
            "StageRecord", target, "UPDATE",
            f"Stage status cannot move from {old_status.value} to {new_status.value}",
            field="status",
        )


def _check_stage_record_delete(mapper, connection, target):
    _block("StageRecord", target, "DELETE", "Stage records cannot be deleted")


def _listeners():
    from production_kernel.models.order import Order, OrderLineItem, StageRecord
    from production_kernel.models.order_event import OrderEvent

    return (
        (OrderLineItem, "before_update", _check_line_item_update),
        (OrderLineItem, "before_delete", _check_line_item_delete),
        (OrderEvent, "before_update", _check_order_event_update),
        (OrderEvent, "before_delete", _check_order_event_delete),
        (Order, "before_update", _check_order_update),
        (Order, "before_delete", _check_order_delete),
        (StageRecord, "before_update", _check_stage_record_update),
        (StageRecord, "before_delete", _check_stage_record_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once; already registered listeners are skipped.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
