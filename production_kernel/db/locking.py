"""
Row-lock helpers.

Every mutating workflow operation takes ``SELECT ... FOR UPDATE`` on a single
row (the order header or a code counter).  Waits are bounded with
``SET LOCAL lock_timeout`` so a stuck transaction surfaces as an error
instead of an indefinite hang.  PostgreSQL reports the expiry as SQLSTATE
55P03 (lock_not_available).
"""

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

LOCK_NOT_AVAILABLE = "55P03"


def set_lock_timeout(session: Session, lock_timeout_ms: int | None) -> None:
    """Bound lock waits for the rest of the current transaction."""
    if not lock_timeout_ms:
        return
    if session.get_bind().dialect.name != "postgresql":
        return
    session.execute(text(f"SET LOCAL lock_timeout = {int(lock_timeout_ms)}"))


def is_lock_timeout(exc: OperationalError) -> bool:
    """True if the driver error is a lock wait expiry."""
    return getattr(exc.orig, "pgcode", None) == LOCK_NOT_AVAILABLE
