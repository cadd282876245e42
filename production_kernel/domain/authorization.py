"""
Authorization resolver -- who may act on a stage.

Responsibility:
    Decides whether an actor may work, approve, or assign a stage record.
    Used by the transition engine both before doing anything and again
    after the order aggregate is locked, against the freshly loaded
    record.  Client-supplied "allowed" flags are never consulted.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Rules:
    - admin / supervisor: every action on every stage, always.
    - operator: may WORK a stage only while assigned to it AND the stage
      is the order's current, in-progress stage.  Operators never APPROVE
      or ASSIGN (separation of duties between doer and approver).
    - no role, or inactive profile: denied.

Every Role member must have a rule in ``_ROLE_RULES``; the module refuses
to import otherwise.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from production_kernel.domain.dtos import StageRecordInfo, StageStatus
from production_kernel.domain.roles import ActorContext, Role
from production_kernel.domain.stages import Stage
from production_kernel.exceptions import (
    InactiveActorError,
    StageActionNotPermittedError,
)


class StageAction(str, Enum):
    """Actions gated by the resolver."""

    WORK = "work"  # attach evidence / notes as the doer
    APPROVE = "approve"
    ASSIGN = "assign"


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    reason: str = ""


_ALLOW = AuthorizationDecision(allowed=True)


def _deny(reason: str) -> AuthorizationDecision:
    return AuthorizationDecision(allowed=False, reason=reason)


def _manager_rule(
    actor: ActorContext,
    action: StageAction,
    record: StageRecordInfo,
    current_stage: Stage,
) -> AuthorizationDecision:
    return _ALLOW


def _operator_rule(
    actor: ActorContext,
    action: StageAction,
    record: StageRecordInfo,
    current_stage: Stage,
) -> AuthorizationDecision:
    if action is not StageAction.WORK:
        return _deny(f"{action.value} requires admin or supervisor")
    if record.assigned_user_id != actor.user_id:
        return _deny("operator is not assigned to this stage")
    if record.stage != current_stage or record.status != StageStatus.IN_PROGRESS:
        return _deny("stage is not the order's current in-progress stage")
    return _ALLOW


_ROLE_RULES: dict[Role, Callable[..., AuthorizationDecision]] = {
    Role.ADMIN: _manager_rule,
    Role.SUPERVISOR: _manager_rule,
    Role.OPERATOR: _operator_rule,
}

assert set(_ROLE_RULES) == set(Role), "every Role needs an authorization rule"


def authorize(
    actor: ActorContext,
    action: StageAction,
    record: StageRecordInfo,
    current_stage: Stage,
) -> AuthorizationDecision:
    """Evaluate the rules for one action on one stage record."""
    if not actor.is_active:
        return _deny("actor is inactive")
    if actor.role is None:
        return _deny("actor has no role")
    return _ROLE_RULES[actor.role](actor, StageAction(action), record, current_stage)


def can_act(actor: ActorContext, record: StageRecordInfo, current_stage: Stage) -> bool:
    """Whether the actor may work the stage (upload evidence, write as doer)."""
    return authorize(actor, StageAction.WORK, record, current_stage).allowed


def can_approve(actor: ActorContext, record: StageRecordInfo, current_stage: Stage) -> bool:
    """Whether the actor may approve the stage.

    Role check only; whether the record is approvable right now is a state
    question answered by the transition engine.
    """
    return authorize(actor, StageAction.APPROVE, record, current_stage).allowed


def can_view(actor: ActorContext, record: StageRecordInfo) -> bool:
    """Operators see their assigned stages and their home stage."""
    if not actor.is_active or actor.role is None:
        return False
    if actor.is_manager:
        return True
    return record.assigned_user_id == actor.user_id or record.stage == actor.home_stage


def require(
    actor: ActorContext,
    action: StageAction,
    record: StageRecordInfo,
    current_stage: Stage,
) -> None:
    """Raise unless the actor is authorized.

    Raises:
        InactiveActorError: Actor profile is deactivated.
        StageActionNotPermittedError: Any other denial.
    """
    if not actor.is_active:
        raise InactiveActorError(str(actor.user_id))
    decision = authorize(actor, action, record, current_stage)
    if not decision.allowed:
        raise StageActionNotPermittedError(
            actor_id=str(actor.user_id),
            role=actor.role_value,
            action=StageAction(action).value,
            stage=record.stage.value,
            reason=decision.reason,
        )


def require_manager(actor: ActorContext, action: str, stage: str = "*") -> None:
    """Raise unless the actor is an active admin or supervisor.

    Used for operations that are not tied to an existing stage record
    (order creation).
    """
    if not actor.is_active:
        raise InactiveActorError(str(actor.user_id))
    if not actor.is_manager:
        raise StageActionNotPermittedError(
            actor_id=str(actor.user_id),
            role=actor.role_value,
            action=action,
            stage=stage,
            reason=f"{action} requires admin or supervisor",
        )
