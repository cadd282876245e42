"""
StageTransitionService -- the atomic stage workflow protocol.

Responsibility:
    Assigns people to stages, attaches evidence and notes, and approves the
    current stage while activating its successor (or completing the order).
    Every operation locks the order aggregate first and re-checks
    authorization against the freshly loaded record before writing.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by OrderWorkflow (production_services).

Invariants enforced:
    - The lock is taken before any state is read for a decision, so two
      concurrent approvals of the same stage serialize: the first wins,
      the second sees ``approved`` and fails with StageNotApprovableError.
    - Exactly one stage record is in_progress until the order completes;
      ``current_stage`` always names it.
    - Approval happens only for the order's current in_progress stage.
    - quality_review is approved with an explicit acknowledgment and gets
      the fixed audit note; it never takes evidence.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - OrderNotFoundError, StageRecordNotFoundError, UnknownStageError.
    - StageActionNotPermittedError / InactiveActorError.
    - StageNotActiveError, StageNotApprovableError.
    - EvidenceNotAcceptedError, QualityReviewNotAcknowledgedError.
    - ConcurrentTransitionError when the order lock wait times out.

Audit relevance:
    Each operation writes one or two OrderEvents (approval also records the
    successor start or the completion) and logs a snake_case event.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from production_kernel.domain.authorization import StageAction, require, require_manager
from production_kernel.domain.clock import Clock
from production_kernel.domain.dtos import (
    OrderStatus,
    StageRecordInfo,
    StageStatus,
    TransitionResult,
)
from production_kernel.domain.roles import ActorContext
from production_kernel.domain.stages import (
    QUALITY_REVIEW_AUDIT_NOTE,
    Stage,
    parse_stage,
    requires_evidence,
    successor,
)
from production_kernel.exceptions import (
    EvidenceNotAcceptedError,
    InactiveActorError,
    QualityReviewNotAcknowledgedError,
    StageActionNotPermittedError,
    StageNotActiveError,
    StageNotApprovableError,
)
from production_kernel.logging_config import LogContext, get_logger
from production_kernel.models.order import StageRecord
from production_kernel.models.order_event import OrderEventAction
from production_kernel.services.base import BaseService
from production_kernel.services.order_event_recorder import OrderEventRecorder
from production_kernel.services.order_service import OrderAggregate, OrderService

logger = get_logger("services.stage_transition")


class StageTransitionService(BaseService[StageRecord]):
    """
    Service for stage-level workflow operations.

    Non-goals:
        - Does NOT upload evidence files; it stores the reference the
          evidence gateway returned.
        - Does NOT call ``session.commit()``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        order_service: OrderService | None = None,
        lock_timeout_ms: int | None = None,
    ):
        super().__init__(session, clock)
        self._orders = order_service or OrderService(
            session, self._clock, lock_timeout_ms=lock_timeout_ms,
        )
        self._events = OrderEventRecorder(session, self._clock)

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    def assign(
        self,
        order_id: UUID | str,
        stage: Stage | str,
        user_id: UUID | None,
        actor: ActorContext,
    ) -> StageRecordInfo:
        """
        Assign (or with ``user_id=None`` unassign) a stage.

        Allowed for admin/supervisor on a record in any status.  The record
        status is left unchanged.
        """
        stage = parse_stage(stage)
        require_manager(actor, StageAction.ASSIGN.value, stage.value)

        with LogContext.bind(actor_id=actor.user_id, order_id=order_id, stage=stage):
            aggregate = self._orders.lock_aggregate(order_id)
            record = aggregate.record(stage)
            require(actor, StageAction.ASSIGN, StageRecordInfo.from_model(record),
                    aggregate.current_stage)

            previous = record.assigned_user_id
            record.assigned_user_id = user_id
            record.assigned_by_id = actor.user_id
            record.assigned_at = self._clock.now()
            self.session.flush()

            self._events.record(
                aggregate.order.id,
                OrderEventAction.STAGE_ASSIGNED,
                actor,
                stage=stage,
                payload={
                    "assigned_user_id": str(user_id) if user_id else None,
                    "previous_user_id": str(previous) if previous else None,
                },
            )
            logger.info(
                "stage_assigned",
                extra={
                    "assigned_user_id": str(user_id) if user_id else None,
                    "previous_user_id": str(previous) if previous else None,
                },
            )
            return StageRecordInfo.from_model(record)

    # ------------------------------------------------------------------
    # Evidence and notes
    # ------------------------------------------------------------------

    def attach_evidence(
        self,
        order_id: UUID | str,
        stage: Stage | str,
        evidence_ref: str,
        actor: ActorContext,
        notes: str | None = None,
    ) -> StageRecordInfo:
        """
        Store an evidence reference (and optionally notes) on a stage.

        Requires an actor who can work the stage and an in_progress record.

        Raises:
            EvidenceNotAcceptedError: quality_review, or a blank reference.
            StageActionNotPermittedError: Actor may not work the stage.
            StageNotActiveError: Record is pending or already approved.
        """
        stage = parse_stage(stage)
        if not requires_evidence(stage):
            raise EvidenceNotAcceptedError(
                stage.value, "quality review is approved with an acknowledgment, not evidence",
            )
        reference = (evidence_ref or "").strip()
        if not reference:
            raise EvidenceNotAcceptedError(stage.value, "evidence reference is empty")

        with LogContext.bind(actor_id=actor.user_id, order_id=order_id, stage=stage):
            aggregate = self._orders.lock_aggregate(order_id)
            record = self._require_workable(aggregate, stage, actor)

            now = self._clock.now()
            replaced = record.evidence_ref
            record.evidence_ref = reference
            record.evidence_attached_at = now
            record.evidence_attached_by_id = actor.user_id
            if notes is not None:
                record.notes = notes
            self.session.flush()

            self._events.record(
                aggregate.order.id,
                OrderEventAction.EVIDENCE_ATTACHED,
                actor,
                stage=stage,
                payload={
                    "evidence_ref": reference,
                    "replaced_ref": replaced,
                    "notes_updated": notes is not None,
                },
            )
            logger.info("evidence_attached", extra={"evidence_ref": reference})
            return StageRecordInfo.from_model(record)

    def check_can_attach(
        self,
        order_id: UUID | str,
        stage: Stage | str,
        actor: ActorContext,
    ) -> StageRecordInfo:
        """
        Run the attach_evidence checks without writing anything.

        Used before an upload so a file is never sent to the store for a
        stage the actor cannot work.  The lock is released when the caller
        ends the transaction; attach_evidence checks again afterwards.
        """
        stage = parse_stage(stage)
        if not requires_evidence(stage):
            raise EvidenceNotAcceptedError(
                stage.value, "quality review is approved with an acknowledgment, not evidence",
            )
        aggregate = self._orders.lock_aggregate(order_id)
        return StageRecordInfo.from_model(self._require_workable(aggregate, stage, actor))

    def save_notes(
        self,
        order_id: UUID | str,
        stage: Stage | str,
        text: str | None,
        actor: ActorContext,
    ) -> StageRecordInfo:
        """
        Replace a stage's notes.  Allowed in any status.

        Not gated by assignment; only an active actor with a role is needed.
        """
        stage = parse_stage(stage)
        if not actor.is_active:
            raise InactiveActorError(str(actor.user_id))
        if actor.role is None:
            raise StageActionNotPermittedError(
                actor_id=str(actor.user_id),
                role=None,
                action="save_notes",
                stage=stage.value,
                reason="actor has no role",
            )

        with LogContext.bind(actor_id=actor.user_id, order_id=order_id, stage=stage):
            aggregate = self._orders.lock_aggregate(order_id)
            record = aggregate.record(stage)
            record.notes = text
            self.session.flush()

            self._events.record(
                aggregate.order.id,
                OrderEventAction.NOTES_SAVED,
                actor,
                stage=stage,
                payload={"length": len(text or "")},
            )
            logger.info("notes_saved", extra={"notes_length": len(text or "")})
            return StageRecordInfo.from_model(record)

    # ------------------------------------------------------------------
    # Approval
    # ------------------------------------------------------------------

    def approve_stage_and_advance(
        self,
        order_id: UUID | str,
        stage: Stage | str,
        actor: ActorContext,
        qc_acknowledged: bool = False,
    ) -> TransitionResult:
        """
        Approve the order's current stage and move the order forward.

        Marks the record approved, then either starts the successor stage
        and moves ``current_stage`` to it, or, for the terminal stage,
        completes the order.  All of it happens under the order lock in the
        caller's transaction.

        Raises:
            StageActionNotPermittedError / InactiveActorError: Not a manager.
            StageNotApprovableError: Record is not the current in_progress
                stage (pending, already approved, or order completed).
            QualityReviewNotAcknowledgedError: quality_review without the
                acknowledgment.
            ConcurrentTransitionError: Lock wait timed out.
        """
        stage = parse_stage(stage)
        require_manager(actor, StageAction.APPROVE.value, stage.value)

        with LogContext.bind(actor_id=actor.user_id, order_id=order_id, stage=stage):
            aggregate = self._orders.lock_aggregate(order_id)
            order = aggregate.order
            record = aggregate.record(stage)
            current = aggregate.current_stage
            require(actor, StageAction.APPROVE, StageRecordInfo.from_model(record), current)

            if (
                StageStatus(record.status) is not StageStatus.IN_PROGRESS
                or stage is not current
                or OrderStatus(order.status) is OrderStatus.COMPLETED
            ):
                logger.info(
                    "stage_not_approvable",
                    extra={"record_status": record.status, "current_stage": current.value},
                )
                raise StageNotApprovableError(
                    order_id=str(order.id),
                    stage=stage.value,
                    status=StageStatus(record.status).value,
                    current_stage=current.value,
                )

            if stage is Stage.QUALITY_REVIEW:
                if not qc_acknowledged:
                    raise QualityReviewNotAcknowledgedError(str(order.id))
                record.notes = QUALITY_REVIEW_AUDIT_NOTE
                record.qc_acknowledged = True

            now = self._clock.now()
            record.status = StageStatus.APPROVED.value
            record.approved_at = now
            record.approved_by_id = actor.user_id
            # The approved row must reach the database before the successor
            # becomes in_progress (single in_progress per order index).
            self.session.flush()

            self._events.record(
                order.id,
                OrderEventAction.STAGE_APPROVED,
                actor,
                stage=stage,
                payload={"qc_acknowledged": bool(record.qc_acknowledged)},
            )

            next_stage = successor(stage)
            order.updated_by_id = actor.user_id
            order.updated_at = now
            if next_stage is not None:
                self._start_stage(aggregate, next_stage, actor, now)
            else:
                order.status = OrderStatus.COMPLETED.value
                order.completed_at = now
                self.session.flush()
                self._events.record(
                    order.id,
                    OrderEventAction.ORDER_COMPLETED,
                    actor,
                    stage=stage,
                    payload={"code": order.code},
                )

            result = TransitionResult(
                order_id=order.id,
                approved_stage=stage,
                current_stage=Stage(order.current_stage),
                order_status=OrderStatus(order.status),
                approved_at=now,
            )
            logger.info(
                "stage_approved",
                extra={
                    "next_stage": next_stage.value if next_stage else None,
                    "order_status": result.order_status.value,
                },
            )
            if result.completed:
                logger.info("order_completed", extra={"order_code": order.code})
            return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_workable(
        self,
        aggregate: OrderAggregate,
        stage: Stage,
        actor: ActorContext,
    ) -> StageRecord:
        record = aggregate.record(stage)
        require(actor, StageAction.WORK, StageRecordInfo.from_model(record),
                aggregate.current_stage)
        if StageStatus(record.status) is not StageStatus.IN_PROGRESS:
            raise StageNotActiveError(
                order_id=str(aggregate.order.id),
                stage=stage.value,
                status=StageStatus(record.status).value,
            )
        return record

    def _start_stage(self, aggregate: OrderAggregate, stage: Stage, actor: ActorContext, now) -> None:
        record = aggregate.record(stage)
        record.status = StageStatus.IN_PROGRESS.value
        record.started_at = now
        aggregate.order.current_stage = stage.value
        self.session.flush()

        self._events.record(
            aggregate.order.id,
            OrderEventAction.STAGE_STARTED,
            actor,
            stage=stage,
        )
