"""
BaseService -- shared constructor for write-side kernel services.

Every service works inside the caller's transaction: it adds and flushes,
and never commits or rolls back.  ``OrderWorkflow``, ``session_scope`` or
the test harness owns the transaction, so a failed operation leaves nothing
behind.

Timestamps come from the injected clock; ``SystemClock`` is used when the
caller does not supply one.
"""

from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from production_kernel.db.base import Base
from production_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(Generic[ModelType]):
    """Holds the session and clock.  Reads live in ``selectors/``."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()
