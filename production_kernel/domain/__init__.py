"""
Pure domain layer.

Stage catalog, roles, authorization rules, DTOs, due-date helpers and the
clock.  No ORM, no database, no I/O.
"""

from production_kernel.domain.authorization import (
    AuthorizationDecision,
    StageAction,
    authorize,
    can_act,
    can_approve,
    can_view,
    require,
    require_manager,
)
from production_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from production_kernel.domain.dtos import (
    LineItemSnapshot,
    NewLineItem,
    OrderEventInfo,
    OrderInfo,
    OrderListFilter,
    OrderStatus,
    OrderType,
    StageRecordInfo,
    StageStatus,
    TransitionResult,
)
from production_kernel.domain.due_dates import (
    DueState,
    DueSummary,
    days_until,
    due_state,
    projected_due_date,
    summarize,
)
from production_kernel.domain.roles import ActorContext, Role, parse_role
from production_kernel.domain.stages import (
    FIRST_STAGE,
    QUALITY_REVIEW_AUDIT_NOTE,
    STAGE_SEQUENCE,
    TERMINAL_STAGE,
    Stage,
    parse_stage,
    successor,
)

__all__ = [
    # Stages
    "Stage",
    "STAGE_SEQUENCE",
    "FIRST_STAGE",
    "TERMINAL_STAGE",
    "QUALITY_REVIEW_AUDIT_NOTE",
    "parse_stage",
    "successor",
    # Roles and authorization
    "Role",
    "ActorContext",
    "parse_role",
    "StageAction",
    "AuthorizationDecision",
    "authorize",
    "can_act",
    "can_approve",
    "can_view",
    "require",
    "require_manager",
    # DTOs
    "NewLineItem",
    "LineItemSnapshot",
    "OrderInfo",
    "OrderEventInfo",
    "OrderListFilter",
    "OrderStatus",
    "OrderType",
    "StageRecordInfo",
    "StageStatus",
    "TransitionResult",
    # Due dates
    "DueState",
    "DueSummary",
    "summarize",
    "days_until",
    "due_state",
    "projected_due_date",
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
]
