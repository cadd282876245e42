"""
Tests for order code allocation (``production_kernel.services.code_generator``).

Invariants tested:
- Codes are ``OP-<year>-NNNN`` and strictly increasing within a year.
- Each (prefix, year) pair has its own counter.
- The first allocation in a year seeds from existing codes; unparseable
  suffixes are ignored.
- Reserved manual codes keep the counter ahead of them.
- A failed seeding scan degrades to a timestamp code, logged at WARNING.
"""

from uuid import uuid4

import pytest
from sqlalchemy.exc import SQLAlchemyError

from production_kernel.exceptions import DuplicateOrderCodeError, InvalidOrderCodeError
from production_kernel.models.order import Order
from production_kernel.services.code_generator import OrderCodeService


def _insert_order(session, code):
    """Insert a bare order header, as rows created before the counter existed."""
    session.add(Order(
        code=code,
        client_name="Legacy client",
        sales_channel="retail",
        order_type="sale",
        quantity=1,
        status="active",
        current_stage="sale",
        created_by_id=uuid4(),
    ))
    session.flush()


class TestFormatting:
    def test_format_code(self, code_service):
        assert code_service.format_code(2026, 7) == "OP-2026-0007"
        assert code_service.format_code(2026, 12345) == "OP-2026-12345"

    def test_custom_prefix_and_padding(self, session, deterministic_clock):
        service = OrderCodeService(session, deterministic_clock, prefix="PO", padding=6)
        assert service.format_code(2027, 3) == "PO-2027-000003"

    @pytest.mark.parametrize(
        "code,expected",
        [
            ("OP-2026-0042", 42),
            ("OP-2026-1", 1),
            ("OP-2026-T1772442000000", None),
            ("OP-2026-00A1", None),
            ("OP-2025-0042", None),
            ("XX-2026-0042", None),
        ],
    )
    def test_parse_suffix(self, code_service, code, expected):
        assert code_service.parse_suffix(code, 2026) == expected


class TestNextCode:
    def test_first_code_of_year(self, code_service):
        assert code_service.next_code() == "OP-2026-0001"
        assert code_service.current_value(2026) == 1

    def test_strictly_increasing(self, code_service):
        codes = [code_service.next_code() for _ in range(5)]
        assert codes == [f"OP-2026-{n:04d}" for n in range(1, 6)]

    def test_years_are_independent(self, code_service):
        code_service.next_code(2026)
        code_service.next_code(2026)
        assert code_service.next_code(2027) == "OP-2027-0001"
        assert code_service.current_value(2026) == 2

    def test_year_defaults_to_clock(self, code_service, deterministic_clock):
        from datetime import datetime, timezone

        deterministic_clock.set_time(datetime(2027, 1, 1, 0, 0, tzinfo=timezone.utc))
        assert code_service.next_code() == "OP-2027-0001"

    def test_seeds_from_existing_codes(self, session, code_service):
        _insert_order(session, "OP-2026-0007")
        _insert_order(session, "OP-2026-0012")
        _insert_order(session, "OP-2025-0099")
        assert code_service.next_code() == "OP-2026-0013"

    def test_seeding_ignores_unparseable_suffixes(self, session, code_service):
        _insert_order(session, "OP-2026-0003")
        _insert_order(session, "OP-2026-T1772442000000")
        _insert_order(session, "OP-2026-special")
        assert code_service.next_code() == "OP-2026-0004"

    def test_seeding_only_counts_its_own_prefix(self, session, deterministic_clock):
        _insert_order(session, "PO-2026-0050")
        service = OrderCodeService(session, deterministic_clock, prefix="OP")
        assert service.next_code() == "OP-2026-0001"

    def test_each_prefix_keeps_its_own_counter(self, session, deterministic_clock):
        op = OrderCodeService(session, deterministic_clock, prefix="OP")
        po = OrderCodeService(session, deterministic_clock, prefix="PO")
        op.next_code()
        op.next_code()

        assert po.next_code() == "PO-2026-0001"
        assert op.next_code() == "OP-2026-0003"
        assert po.current_value(2026) == 1
        assert op.current_value(2026) == 3

    def test_skips_codes_already_taken(self, session, code_service, captured_logs):
        code_service.next_code()
        _insert_order(session, "OP-2026-0002")
        _insert_order(session, "OP-2026-0003")

        assert code_service.next_code() == "OP-2026-0004"
        skipped = [r for r in captured_logs() if r["message"] == "order_code_skipped_taken"]
        assert [r["order_code"] for r in skipped] == ["OP-2026-0002", "OP-2026-0003"]

    def test_allocation_logged(self, code_service, captured_logs):
        code_service.next_code()
        records = [r for r in captured_logs() if r["message"] == "order_code_allocated"]
        assert records[0]["order_code"] == "OP-2026-0001"
        assert records[0]["value"] == 1


class TestFallback:
    def test_seed_scan_failure_degrades_to_timestamp_code(
        self, code_service, deterministic_clock, monkeypatch, captured_logs,
    ):
        def _fail(year):
            raise SQLAlchemyError("scan failed")

        monkeypatch.setattr(code_service, "_highest_existing_suffix", _fail)

        code = code_service.next_code()

        assert code == f"OP-2026-T{deterministic_clock.epoch_millis()}"
        assert code_service.current_value(2026) is None
        levels = {r["message"]: r["level"] for r in captured_logs()}
        assert levels["order_code_seed_scan_failed"] == "WARNING"
        assert levels["order_code_fallback"] == "WARNING"


class TestReserveCode:
    def test_pattern_code_raises_counter(self, code_service):
        assert code_service.reserve_code("OP-2026-0040") == "OP-2026-0040"
        assert code_service.current_value(2026) == 40

    def test_lower_code_does_not_lower_counter(self, code_service):
        for _ in range(3):
            code_service.next_code()
        code_service.reserve_code("OP-2026-0002")
        assert code_service.current_value(2026) == 3

    def test_free_form_code_accepted(self, code_service):
        assert code_service.reserve_code("  CLUB-SPECIAL-7 ") == "CLUB-SPECIAL-7"
        assert code_service.current_value(2026) is None

    @pytest.mark.parametrize("code", ["", "   ", "OP 2026 1", "X" * 41])
    def test_invalid_codes(self, code_service, code):
        with pytest.raises(InvalidOrderCodeError):
            code_service.reserve_code(code)

    def test_duplicate_rejected(self, session, code_service):
        _insert_order(session, "OP-2026-0005")
        with pytest.raises(DuplicateOrderCodeError) as exc_info:
            code_service.reserve_code("OP-2026-0005")
        assert exc_info.value.order_code == "OP-2026-0005"
