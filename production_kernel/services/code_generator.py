"""
OrderCodeService -- human-readable order codes via locked counter rows.

Responsibility:
    Allocates codes of the form ``OP-<year>-NNNN`` (prefix and padding are
    configurable).  Uses one counter row per (prefix, year) with row-level locking
    (``SELECT ... FOR UPDATE``) so concurrent order creations never read the
    same "latest" code and produce duplicates.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by OrderService.create_order.

Invariants enforced:
    - Allocation goes through the locked counter row.  Reading the latest
      code and adding one is never used outside the one-time seeding scan.
    - The first allocation in a year seeds the counter from the highest
      parseable suffix among existing codes for that year, so codes created
      before the counter existed are never reissued.
    - A reserved manual code raises the counter to at least its suffix.
    - A counter value whose code is already used by an order is skipped.

Failure modes:
    - IntegrityError: concurrent counter creation (savepoint rollback and
      retry against the winner's row).
    - CodeAllocationError: the counter lock wait exceeded lock_timeout.
    - Seeding scan failure: degrades to a timestamp-derived code, logged at
      WARNING.  The unique constraint on Order.code still guards it.
"""

import re

from sqlalchemy import Integer, String, UniqueConstraint, select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Mapped, Session, mapped_column

from production_kernel.db.base import Base
from production_kernel.db.locking import is_lock_timeout, set_lock_timeout
from production_kernel.domain.clock import Clock
from production_kernel.exceptions import (
    CodeAllocationError,
    DuplicateOrderCodeError,
    InvalidOrderCodeError,
)
from production_kernel.logging_config import get_logger
from production_kernel.models.order import Order
from production_kernel.services.base import BaseService

logger = get_logger("services.code_generator")

MAX_CODE_LENGTH = 40


class OrderCodeCounter(Base):
    """
    Order code counter, one row per (prefix, year).

    ``current_value`` is the last suffix handed out.  A new ``code_prefix``
    starts its own numbering.
    """

    __tablename__ = "order_code_counters"

    __table_args__ = (
        UniqueConstraint("prefix", "year", name="uq_order_code_counter_prefix_year"),
    )

    prefix: Mapped[str] = mapped_column(String(20), nullable=False)

    year: Mapped[int] = mapped_column(Integer, nullable=False)

    current_value: Mapped[int] = mapped_column(nullable=False, default=0)


class OrderCodeService(BaseService[OrderCodeCounter]):
    """
    Allocates and reserves order codes.

    Guarantees:
        - Codes handed out for one year are strictly increasing while the
          counter path is healthy.
        - The increment is transactional: it is visible only once the
          caller commits, and a rollback returns the value.

    Non-goals:
        - Does NOT call ``session.commit()``.

    Usage:
        code = OrderCodeService(session, clock).next_code()
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        prefix: str = "OP",
        padding: int = 4,
        lock_timeout_ms: int | None = None,
    ):
        super().__init__(session, clock)
        self._prefix = prefix
        self._padding = padding
        self._lock_timeout_ms = lock_timeout_ms
        self._pattern = re.compile(rf"^{re.escape(prefix)}-(\d{{4}})-(\d+)$")

    # ------------------------------------------------------------------
    # Format helpers
    # ------------------------------------------------------------------

    def year_prefix(self, year: int) -> str:
        return f"{self._prefix}-{year}-"

    def format_code(self, year: int, value: int) -> str:
        return f"{self.year_prefix(year)}{value:0{self._padding}d}"

    def parse_suffix(self, code: str, year: int) -> int | None:
        """Numeric suffix of ``code`` for ``year``, or None if unparseable."""
        prefix = self.year_prefix(year)
        if not code.startswith(prefix):
            return None
        suffix = code[len(prefix):]
        if not suffix.isdigit():
            return None
        return int(suffix)

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    def next_code(self, year: int | None = None) -> str:
        """
        Allocate the next code for ``year`` (default: the clock's year).

        Raises:
            CodeAllocationError: Counter lock wait timed out.
        """
        year = year if year is not None else self._clock.now().year
        try:
            counter = self._acquire_counter(year)
        except OperationalError as exc:
            if is_lock_timeout(exc):
                raise CodeAllocationError(year, "counter lock wait timed out") from exc
            raise

        if counter is None:
            return self._fallback_code(year)

        counter.current_value += 1
        code = self.format_code(year, counter.current_value)
        while self._code_taken(code):
            logger.warning(
                "order_code_skipped_taken",
                extra={"year": year, "order_code": code},
            )
            counter.current_value += 1
            code = self.format_code(year, counter.current_value)
        self.session.flush()

        logger.info(
            "order_code_allocated",
            extra={"year": year, "value": counter.current_value, "order_code": code},
        )
        return code

    def reserve_code(self, code: str) -> str:
        """
        Validate a manually supplied code and keep the counter ahead of it.

        Codes following the ``<prefix>-<year>-<digits>`` pattern raise that
        year's counter to at least their suffix.  Other non-blank codes are
        accepted as-is.

        Raises:
            InvalidOrderCodeError: Blank, too long, or containing whitespace.
            DuplicateOrderCodeError: An order already uses the code.
            CodeAllocationError: Counter lock wait timed out.
        """
        normalized = (code or "").strip()
        if not normalized:
            raise InvalidOrderCodeError(code or "", "code is blank")
        if len(normalized) > MAX_CODE_LENGTH:
            raise InvalidOrderCodeError(normalized, f"longer than {MAX_CODE_LENGTH} characters")
        if any(ch.isspace() for ch in normalized):
            raise InvalidOrderCodeError(normalized, "code contains whitespace")

        if self._code_taken(normalized):
            raise DuplicateOrderCodeError(normalized)

        match = self._pattern.match(normalized)
        if match is None:
            logger.info("order_code_reserved", extra={"order_code": normalized})
            return normalized

        year, suffix = int(match.group(1)), int(match.group(2))
        try:
            counter = self._acquire_counter(year)
        except OperationalError as exc:
            if is_lock_timeout(exc):
                raise CodeAllocationError(year, "counter lock wait timed out") from exc
            raise

        if counter is not None and counter.current_value < suffix:
            counter.current_value = suffix
            self.session.flush()

        logger.info(
            "order_code_reserved",
            extra={"order_code": normalized, "year": year, "value": suffix},
        )
        return normalized

    def current_value(self, year: int) -> int | None:
        """Last allocated suffix for ``year`` without locking or incrementing."""
        return self.session.execute(
            select(OrderCodeCounter.current_value).where(
                OrderCodeCounter.prefix == self._prefix,
                OrderCodeCounter.year == year,
            )
        ).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _code_taken(self, code: str) -> bool:
        return self.session.execute(
            select(Order.id).where(Order.code == code)
        ).first() is not None

    def _lock_counter(self, year: int) -> OrderCodeCounter | None:
        set_lock_timeout(self.session, self._lock_timeout_ms)
        return self.session.execute(
            select(OrderCodeCounter)
            .where(OrderCodeCounter.prefix == self._prefix, OrderCodeCounter.year == year)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _acquire_counter(self, year: int) -> OrderCodeCounter | None:
        """Locked counter row for ``year``, created on first use.

        Returns None when the seeding scan failed.
        """
        counter = self._lock_counter(year)
        if counter is not None:
            return counter

        try:
            seed = self._highest_existing_suffix(year)
        except SQLAlchemyError:
            logger.warning(
                "order_code_seed_scan_failed",
                extra={"year": year},
                exc_info=True,
            )
            return None

        # Another transaction may be creating the same row; the savepoint
        # keeps the caller's work intact if our insert loses.
        savepoint = self.session.begin_nested()
        try:
            counter = OrderCodeCounter(year=year, prefix=self._prefix, current_value=seed)
            self.session.add(counter)
            self.session.flush()
            savepoint.commit()
            logger.debug(
                "order_code_counter_created",
                extra={"year": year, "seed": seed},
            )
            return counter
        except IntegrityError:
            logger.debug(
                "order_code_counter_race_retry",
                extra={"year": year},
            )
            savepoint.rollback()
            counter = self._lock_counter(year)
            if counter is None:
                raise CodeAllocationError(year, "counter row vanished after creation race")
            return counter

    def _highest_existing_suffix(self, year: int) -> int:
        prefix = self.year_prefix(year)
        with self.session.begin_nested():
            codes = self.session.execute(
                select(Order.code).where(Order.code.startswith(prefix, autoescape=True))
            ).scalars().all()

        highest = 0
        for code in codes:
            suffix = self.parse_suffix(code, year)
            if suffix is None:
                logger.debug(
                    "order_code_suffix_unparseable",
                    extra={"order_code": code, "year": year},
                )
                continue
            highest = max(highest, suffix)
        return highest

    def _fallback_code(self, year: int) -> str:
        # The "T" marker keeps fallback codes out of later seeding scans.
        code = f"{self.year_prefix(year)}T{self._clock.epoch_millis()}"
        logger.warning(
            "order_code_fallback",
            extra={"year": year, "order_code": code},
        )
        return code
