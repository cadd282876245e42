"""Database layer - engine, base classes and immutability guards."""

from production_kernel.db.base import ActorStampedBase, Base, UUIDString
from production_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    session_scope,
)

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "ActorStampedBase",
    "UUIDString",
]
