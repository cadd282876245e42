"""
Concurrent order code allocation tests.

Codes come from a per-(prefix, year) counter row taken with SELECT ... FOR UPDATE.
Concurrent creations must never share a code, including the very first
allocation of a year when the counter row does not exist yet and several
transactions race to create it.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from production_kernel.exceptions import CodeAllocationError
from production_kernel.services.code_generator import OrderCodeService
from production_services.workflow import OrderWorkflow

pytestmark = [pytest.mark.postgres, pytest.mark.slow_locks]


@pytest.fixture
def workflow(pg_session_factory, deterministic_clock):
    return OrderWorkflow(pg_session_factory, clock=deterministic_clock)


def _create_concurrently(workflow, actor, items, count):
    barrier = Barrier(count)

    def _worker(index):
        barrier.wait()
        return workflow.create_order(actor, f"Club {index}", "retail", items)

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(_worker, range(count)))


class TestConcurrentAllocation:
    def test_first_allocation_of_year(self, workflow, admin, make_line_items):
        orders = _create_concurrently(workflow, admin, make_line_items(2), 10)

        codes = sorted(o.code for o in orders)
        assert codes == [f"OP-2026-{n:04d}" for n in range(1, 11)]

    def test_existing_counter(self, workflow, admin, make_line_items):
        workflow.create_order(admin, "Seed", "retail", make_line_items(1))

        orders = _create_concurrently(workflow, admin, make_line_items(1), 12)

        codes = {o.code for o in orders}
        assert len(codes) == 12
        assert codes == {f"OP-2026-{n:04d}" for n in range(2, 14)}

    def test_counter_matches_orders(self, workflow, admin, make_line_items, pg_session_factory):
        _create_concurrently(workflow, admin, make_line_items(1), 6)

        check = pg_session_factory()
        try:
            assert OrderCodeService(check).current_value(2026) == 6
        finally:
            check.close()
        assert len(workflow.list_orders("all")) == 6


class TestCounterLockTimeout:
    def test_held_counter_lock(
        self, workflow, admin, make_line_items, pg_session_factory, deterministic_clock,
    ):
        workflow.create_order(admin, "Seed", "retail", make_line_items(1))

        holder = pg_session_factory()
        waiter = pg_session_factory()
        try:
            OrderCodeService(holder, deterministic_clock).next_code()

            with pytest.raises(CodeAllocationError) as exc_info:
                OrderCodeService(waiter, deterministic_clock, lock_timeout_ms=200).next_code()
            assert exc_info.value.year == 2026
        finally:
            waiter.rollback()
            holder.rollback()

        order = workflow.create_order(admin, "After", "retail", make_line_items(1))
        assert order.code == "OP-2026-0002"
