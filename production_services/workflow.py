"""
production_services.workflow -- caller-facing workflow facade.

Responsibility:
    Wires the kernel services together from a ``WorkflowConfig`` and runs
    each public operation in its own transaction: commit on success,
    rollback on any error.  Actors are resolved through the identity
    provider before a transaction is opened; evidence files are uploaded
    between two transactions so no database lock is held across the
    object store call.

Architecture position:
    Services -- above production_kernel and production_config.  This is the
    only place that opens and commits sessions for workflow operations.

Invariants enforced:
    - One transaction per operation; nothing is partially committed.
    - Order creation is retried, a bounded number of times, only when an
      automatically generated code collides with an existing one.
    - Evidence attachment re-checks authorization and status after the
      upload, under the order lock.

Usage:
    workflow = OrderWorkflow(
        session_factory=get_session_factory(),
        config=get_active_config(),
        profile_directory=directory,
        evidence_store=store,
    )
    order = workflow.create_order(user_id, "ACME", "retail", items)
    workflow.approve_stage_and_advance(order.id, Stage.SALE, user_id)
"""

from contextlib import contextmanager
from datetime import date
from typing import Callable, Iterator, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from production_config import WorkflowConfig, get_active_config
from production_kernel.db.immutability import register_immutability_listeners
from production_kernel.domain.clock import Clock, SystemClock
from production_kernel.domain.dtos import (
    LineItemSnapshot,
    NewLineItem,
    OrderEventInfo,
    OrderInfo,
    OrderListFilter,
    StageRecordInfo,
    TransitionResult,
)
from production_kernel.domain.due_dates import DueSummary, summarize
from production_kernel.domain.roles import ActorContext
from production_kernel.domain.stages import Stage
from production_kernel.exceptions import (
    AuthorizationError,
    DuplicateOrderCodeError,
    IdentityLookupError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from production_kernel.logging_config import LogContext, get_logger
from production_kernel.selectors.order_selector import OrderSelector
from production_kernel.services.code_generator import OrderCodeService
from production_kernel.services.order_service import OrderService
from production_kernel.services.stage_transition_service import StageTransitionService
from production_services.evidence import EvidenceGateway, EvidenceStore
from production_services.identity import IdentityResolver, ProfileDirectory

logger = get_logger("services.workflow")

ActorRef = ActorContext | UUID | str

# Caller mistakes and lost races; logged without a traceback.
_EXPECTED_REJECTIONS = (ValidationError, NotFoundError, AuthorizationError, StateConflictError)


class OrderWorkflow:
    """Per-operation transactional facade over the stage workflow.

    ``actor`` arguments accept an already resolved ``ActorContext`` or a
    user id, which is resolved through ``identity``.

    Pass raw adapters as ``profile_directory`` / ``evidence_store`` to have
    them wrapped with the configured identity and evidence timeouts.  A
    ready-made ``identity`` or ``evidence`` keeps its own timeout.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        config: WorkflowConfig | None = None,
        clock: Clock | None = None,
        identity: IdentityResolver | None = None,
        evidence: EvidenceGateway | None = None,
        profile_directory: ProfileDirectory | None = None,
        evidence_store: EvidenceStore | None = None,
    ):
        self._session_factory = session_factory
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()
        if identity is None and profile_directory is not None:
            identity = IdentityResolver.from_config(profile_directory, self._config)
        if evidence is None and evidence_store is not None:
            evidence = EvidenceGateway.from_config(evidence_store, self._config, self._clock)
        self._identity = identity
        self._evidence = evidence
        register_immutability_listeners()

    @property
    def config(self) -> WorkflowConfig:
        return self._config

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except _EXPECTED_REJECTIONS as exc:
            session.rollback()
            logger.info(
                "transaction_rolled_back",
                extra={"operation": operation, "error_code": exc.code},
            )
            raise
        except Exception:
            session.rollback()
            logger.warning(
                "transaction_rolled_back",
                extra={"operation": operation},
                exc_info=True,
            )
            raise
        finally:
            session.close()

    def _order_service(self, session: Session) -> OrderService:
        codes = OrderCodeService(
            session,
            self._clock,
            prefix=self._config.code_prefix,
            padding=self._config.code_padding,
            lock_timeout_ms=self._config.lock_timeout_ms,
        )
        return OrderService(
            session,
            self._clock,
            code_service=codes,
            sales_channels=self._config.due_date_policy,
            production_quantity_threshold=self._config.production_quantity_threshold,
            lock_timeout_ms=self._config.lock_timeout_ms,
        )

    def _transitions(self, session: Session) -> StageTransitionService:
        return StageTransitionService(
            session,
            self._clock,
            order_service=self._order_service(session),
        )

    def resolve_actor(self, actor: ActorRef) -> ActorContext:
        if isinstance(actor, ActorContext):
            return actor
        if self._identity is None:
            raise IdentityLookupError(str(actor), "no identity resolver configured")
        return self._identity.resolve(actor)

    # ------------------------------------------------------------------
    # Order creation
    # ------------------------------------------------------------------

    def create_order(
        self,
        actor: ActorRef,
        client_name: str,
        sales_channel: str,
        line_items: Sequence[NewLineItem],
        due_date: date | None = None,
        manual_code: str | None = None,
    ) -> OrderInfo:
        actor = self.resolve_actor(actor)
        attempts = 1 if manual_code is not None else self._config.code_allocation_retries

        with LogContext.bind(actor_id=actor.user_id):
            for attempt in range(1, attempts + 1):
                try:
                    with self._transaction("create_order") as session:
                        return self._order_service(session).create_order(
                            actor,
                            client_name,
                            sales_channel,
                            line_items,
                            due_date=due_date,
                            manual_code=manual_code,
                        )
                except DuplicateOrderCodeError as exc:
                    if attempt >= attempts:
                        raise
                    logger.warning(
                        "order_code_conflict_retry",
                        extra={"attempt": attempt, "order_code": exc.order_code},
                    )
        raise AssertionError("unreachable")

    # ------------------------------------------------------------------
    # Stage operations
    # ------------------------------------------------------------------

    def assign(
        self,
        order_id: UUID | str,
        stage: Stage | str,
        user_id: UUID | None,
        actor: ActorRef,
    ) -> StageRecordInfo:
        actor = self.resolve_actor(actor)
        with self._transaction("assign") as session:
            return self._transitions(session).assign(order_id, stage, user_id, actor)

    def attach_evidence(
        self,
        order_id: UUID | str,
        stage: Stage | str,
        evidence_ref: str,
        actor: ActorRef,
        notes: str | None = None,
    ) -> StageRecordInfo:
        actor = self.resolve_actor(actor)
        with self._transaction("attach_evidence") as session:
            return self._transitions(session).attach_evidence(
                order_id, stage, evidence_ref, actor, notes=notes,
            )

    def upload_evidence(
        self,
        order_id: UUID | str,
        stage: Stage | str,
        actor: ActorRef,
        filename: str,
        content: bytes,
        content_type: str | None = None,
        notes: str | None = None,
    ) -> StageRecordInfo:
        """
        Upload an evidence file and attach its reference to the stage.

        The actor's right to work the stage is checked before the upload
        and again when the reference is attached.  A failed or timed-out
        upload leaves the stage record untouched.
        """
        if self._evidence is None:
            raise RuntimeError("OrderWorkflow was built without an evidence gateway")
        actor = self.resolve_actor(actor)

        with self._transaction("upload_evidence_check") as session:
            self._transitions(session).check_can_attach(order_id, stage, actor)

        reference = self._evidence.upload(order_id, stage, filename, content, content_type)

        with self._transaction("attach_evidence") as session:
            return self._transitions(session).attach_evidence(
                order_id, stage, reference, actor, notes=notes,
            )

    def save_notes(
        self,
        order_id: UUID | str,
        stage: Stage | str,
        text: str | None,
        actor: ActorRef,
    ) -> StageRecordInfo:
        actor = self.resolve_actor(actor)
        with self._transaction("save_notes") as session:
            return self._transitions(session).save_notes(order_id, stage, text, actor)

    def approve_stage_and_advance(
        self,
        order_id: UUID | str,
        stage: Stage | str,
        actor: ActorRef,
        qc_acknowledged: bool = False,
    ) -> TransitionResult:
        actor = self.resolve_actor(actor)
        with self._transaction("approve_stage_and_advance") as session:
            return self._transitions(session).approve_stage_and_advance(
                order_id, stage, actor, qc_acknowledged=qc_acknowledged,
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_order(self, order_id: UUID | str) -> OrderInfo:
        with self._transaction("get_order") as session:
            return OrderSelector(session).get_order(order_id)

    def list_orders(
        self,
        status_filter: OrderListFilter | str = OrderListFilter.ACTIVE,
    ) -> list[OrderInfo]:
        with self._transaction("list_orders") as session:
            return OrderSelector(session).list_orders(status_filter)

    def list_line_items(self, order_id: UUID | str) -> list[LineItemSnapshot]:
        with self._transaction("list_line_items") as session:
            return OrderSelector(session).list_line_items(order_id)

    def list_stage_records(self, order_id: UUID | str) -> list[StageRecordInfo]:
        with self._transaction("list_stage_records") as session:
            return OrderSelector(session).list_stage_records(order_id)

    def get_stage_record(self, order_id: UUID | str, stage: Stage | str) -> StageRecordInfo:
        with self._transaction("get_stage_record") as session:
            return OrderSelector(session).get_stage_record(order_id, stage)

    def visible_stage_records(self, order_id: UUID | str, actor: ActorRef) -> list[StageRecordInfo]:
        actor = self.resolve_actor(actor)
        with self._transaction("visible_stage_records") as session:
            return OrderSelector(session).visible_stage_records(order_id, actor)

    def list_events(self, order_id: UUID | str) -> list[OrderEventInfo]:
        with self._transaction("list_events") as session:
            return OrderSelector(session).list_events(order_id)

    def due_summary(self, order_id: UUID | str) -> DueSummary:
        """Explicit or projected due date and its urgency as of today."""
        with self._transaction("due_summary") as session:
            selector = OrderSelector(session)
            order = selector.get_order(order_id)
            items = selector.list_line_items(order.id)

        created_on = (order.created_at or self._clock.now()).date()
        return summarize(
            order_id=order.id,
            created_on=created_on,
            due_date=order.due_date,
            lead_times=[item.lead_time_days for item in items],
            status=order.status,
            today=self._clock.today(),
        )
