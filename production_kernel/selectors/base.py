"""
Read side of the kernel.

Selectors take the caller's session, only ever SELECT, and hand back frozen
DTOs from ``production_kernel.domain.dtos`` so no ORM instance escapes to
callers.  They never add, flush or commit.
"""

from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from production_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(Generic[ModelType]):
    def __init__(self, session: Session):
        self.session = session
