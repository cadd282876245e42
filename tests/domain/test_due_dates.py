"""
Tests for due-date projection and urgency (``production_kernel.domain.due_dates``).
"""

from datetime import date
from uuid import uuid4

import pytest

from production_kernel.domain.dtos import OrderStatus
from production_kernel.domain.due_dates import (
    DueState,
    days_until,
    due_state,
    projected_due_date,
    summarize,
)

CREATED = date(2026, 3, 2)


class TestProjectedDueDate:
    def test_explicit_date_wins(self):
        assert projected_due_date(CREATED, date(2026, 4, 1), [30]) == date(2026, 4, 1)

    def test_longest_lead_time(self):
        assert projected_due_date(CREATED, None, [3, 10, None, 7]) == date(2026, 3, 12)

    def test_zero_lead_time_is_creation_date(self):
        assert projected_due_date(CREATED, None, [0]) == CREATED

    @pytest.mark.parametrize("lead_times", [[], [None], [None, None]])
    def test_no_lead_times_means_unscheduled(self, lead_times):
        assert projected_due_date(CREATED, None, lead_times) is None

    def test_negative_lead_times_ignored(self):
        assert projected_due_date(CREATED, None, [-4, 2]) == date(2026, 3, 4)


class TestDueState:
    today = date(2026, 3, 10)

    def test_completed_orders(self):
        assert due_state(date(2026, 1, 1), OrderStatus.COMPLETED, self.today) is DueState.COMPLETED

    def test_unscheduled(self):
        assert due_state(None, OrderStatus.ACTIVE, self.today) is DueState.UNSCHEDULED

    @pytest.mark.parametrize(
        "due,expected",
        [
            (date(2026, 3, 9), DueState.OVERDUE),
            (date(2026, 3, 10), DueState.DUE_SOON),
            (date(2026, 3, 12), DueState.DUE_SOON),
            (date(2026, 3, 13), DueState.UPCOMING),
            (date(2026, 3, 15), DueState.UPCOMING),
            (date(2026, 3, 16), DueState.ON_TRACK),
        ],
    )
    def test_thresholds(self, due, expected):
        assert due_state(due, OrderStatus.ACTIVE, self.today) is expected

    def test_accepts_raw_status_string(self):
        assert due_state(None, "completed", self.today) is DueState.COMPLETED

    def test_days_until(self):
        assert days_until(date(2026, 3, 8), self.today) == -2


class TestSummarize:
    def test_projected_summary(self):
        order_id = uuid4()
        summary = summarize(
            order_id=order_id,
            created_on=CREATED,
            due_date=None,
            lead_times=[5],
            status=OrderStatus.ACTIVE,
            today=date(2026, 3, 3),
        )
        assert summary.order_id == order_id
        assert summary.due_date is None
        assert summary.projected_due_date == date(2026, 3, 7)
        assert summary.days_remaining == 4
        assert summary.state is DueState.UPCOMING

    def test_unscheduled_summary(self):
        summary = summarize(uuid4(), CREATED, None, [], OrderStatus.ACTIVE, CREATED)
        assert summary.projected_due_date is None
        assert summary.days_remaining is None
        assert summary.state is DueState.UNSCHEDULED
