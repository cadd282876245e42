"""
Due-date display helpers.

An order either carries an explicit due date or none.  When none was set,
the projected date is the creation date plus the longest line-item lead
time.  The projection is computed at read time and never written back.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterable
from uuid import UUID

from production_kernel.domain.dtos import OrderStatus

DUE_SOON_DAYS = 2
UPCOMING_DAYS = 5


class DueState(str, Enum):
    COMPLETED = "completed"
    UNSCHEDULED = "unscheduled"
    OVERDUE = "overdue"
    DUE_SOON = "due_soon"
    UPCOMING = "upcoming"
    ON_TRACK = "on_track"


def projected_due_date(
    created_on: date,
    due_date: date | None,
    lead_times: Iterable[int | None],
) -> date | None:
    """Explicit due date, else creation date plus the longest lead time."""
    if due_date is not None:
        return due_date
    known = [days for days in lead_times if days is not None and days >= 0]
    if not known:
        return None
    return created_on + timedelta(days=max(known))


def days_until(due: date, today: date) -> int:
    """Whole days from ``today`` to ``due``; negative once overdue."""
    return (due - today).days


def due_state(due: date | None, status: OrderStatus, today: date) -> DueState:
    if OrderStatus(status) is OrderStatus.COMPLETED:
        return DueState.COMPLETED
    if due is None:
        return DueState.UNSCHEDULED
    remaining = days_until(due, today)
    if remaining < 0:
        return DueState.OVERDUE
    if remaining <= DUE_SOON_DAYS:
        return DueState.DUE_SOON
    if remaining <= UPCOMING_DAYS:
        return DueState.UPCOMING
    return DueState.ON_TRACK


@dataclass(frozen=True)
class DueSummary:
    """Display-time due information for one order."""

    order_id: UUID
    due_date: date | None
    projected_due_date: date | None
    state: DueState
    days_remaining: int | None


def summarize(
    order_id: UUID,
    created_on: date,
    due_date: date | None,
    lead_times: Iterable[int | None],
    status: OrderStatus,
    today: date,
) -> DueSummary:
    projected = projected_due_date(created_on, due_date, lead_times)
    return DueSummary(
        order_id=order_id,
        due_date=due_date,
        projected_due_date=projected,
        state=due_state(projected, status, today),
        days_remaining=days_until(projected, today) if projected is not None else None,
    )
