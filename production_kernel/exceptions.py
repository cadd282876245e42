"""
Typed Exception Hierarchy for the Production Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (UI or API layers) react differently to each failure class:

  - ValidationError          -> show the message, let the user fix input
  - NotFoundError            -> 404 / stale link
  - AuthorizationError       -> block the action, maybe re-authenticate
  - StateConflictError       -> reload and retry
  - ExternalDependencyError  -> transient, safe to retry

So every error:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Has a RETRYABLE class attribute
  4. Carries structured DATA as attributes (not just a message string)

Example:
    try:
        workflow.approve_stage_and_advance(order_id, Stage.SALE, actor)
    except StageNotApprovableError as e:
        api_response(status=409, code=e.code, stage=e.stage)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ProductionKernelError (base)
    |
    +-- ValidationError
    |   +-- MissingClientNameError
    |   +-- InvalidClientNameError
    |   +-- EmptyLineItemsError
    |   +-- InvalidLineItemError
    |   +-- DueDateRequiredError
    |   +-- UnknownSalesChannelError
    |   +-- UnknownStageError
    |   +-- UnknownRoleError
    |   +-- UnknownOrderFilterError
    |   +-- InvalidOrderCodeError
    |   +-- EvidenceNotAcceptedError
    |   +-- QualityReviewNotAcknowledgedError
    |
    +-- NotFoundError
    |   +-- OrderNotFoundError
    |   +-- StageRecordNotFoundError
    |
    +-- AuthorizationError
    |   +-- StageActionNotPermittedError
    |   +-- InactiveActorError
    |
    +-- StateConflictError (retryable)
    |   +-- StageNotActiveError
    |   +-- StageNotApprovableError
    |   +-- ConcurrentTransitionError
    |   +-- DuplicateOrderCodeError
    |
    +-- ExternalDependencyError (retryable)
    |   +-- IdentityLookupError
    |   +-- EvidenceStoreError
    |   |   +-- EvidenceStoreTimeoutError
    |   +-- CodeAllocationError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
"""


class ProductionKernelError(Exception):
    """
    Base exception for all production kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PRODUCTION_KERNEL_ERROR"
    retryable: bool = False


# Validation errors


class ValidationError(ProductionKernelError):
    """Base exception for rejected input. No state was changed."""

    code: str = "VALIDATION_ERROR"


class MissingClientNameError(ValidationError):
    """Order has no client name."""

    code: str = "MISSING_CLIENT_NAME"

    def __init__(self):
        super().__init__("Client name is required")


class InvalidClientNameError(ValidationError):
    """Client name present but unusable (for example, too long)."""

    code: str = "INVALID_CLIENT_NAME"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid client name: {reason}")


class EmptyLineItemsError(ValidationError):
    """Order was submitted without line items."""

    code: str = "EMPTY_LINE_ITEMS"

    def __init__(self):
        super().__init__("An order requires at least one line item")


class InvalidLineItemError(ValidationError):
    """A line item failed validation."""

    code: str = "INVALID_LINE_ITEM"

    def __init__(self, position: int, reason: str):
        self.position = position
        self.reason = reason
        super().__init__(f"Invalid line item at position {position}: {reason}")


class DueDateRequiredError(ValidationError):
    """The sales channel mandates a due date and none was given."""

    code: str = "DUE_DATE_REQUIRED"

    def __init__(self, sales_channel: str):
        self.sales_channel = sales_channel
        super().__init__(
            f"Sales channel '{sales_channel}' requires a due date"
        )


class UnknownSalesChannelError(ValidationError):
    """Sales channel is not configured."""

    code: str = "UNKNOWN_SALES_CHANNEL"

    def __init__(self, sales_channel: str):
        self.sales_channel = sales_channel
        super().__init__(f"Unknown sales channel: '{sales_channel}'")


class UnknownStageError(ValidationError):
    """Value is not a recognized production stage."""

    code: str = "UNKNOWN_STAGE"

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Unknown production stage: {value!r}")


class UnknownRoleError(ValidationError):
    """Value is not a recognized role."""

    code: str = "UNKNOWN_ROLE"

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Unknown role: {value!r}")


class UnknownOrderFilterError(ValidationError):
    """Order list filter is not one of active, completed or all."""

    code: str = "UNKNOWN_ORDER_FILTER"

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Unknown order filter: {value!r}")


class InvalidOrderCodeError(ValidationError):
    """Manually supplied order code is malformed."""

    code: str = "INVALID_ORDER_CODE"

    def __init__(self, order_code: str, reason: str):
        self.order_code = order_code
        self.reason = reason
        super().__init__(f"Invalid order code {order_code!r}: {reason}")


class EvidenceNotAcceptedError(ValidationError):
    """Evidence cannot be attached to this stage, or the reference is empty."""

    code: str = "EVIDENCE_NOT_ACCEPTED"

    def __init__(self, stage: str, reason: str):
        self.stage = stage
        self.reason = reason
        super().__init__(f"Evidence not accepted for stage {stage}: {reason}")


class QualityReviewNotAcknowledgedError(ValidationError):
    """Quality review approval attempted without the acknowledgment."""

    code: str = "QC_NOT_ACKNOWLEDGED"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(
            f"Quality review for order {order_id} must be acknowledged "
            "as reviewed and accepted before approval"
        )


# Not-found errors


class NotFoundError(ProductionKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class OrderNotFoundError(NotFoundError):
    """Order with given ID was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class StageRecordNotFoundError(NotFoundError):
    """Order has no record for the requested stage."""

    code: str = "STAGE_RECORD_NOT_FOUND"

    def __init__(self, order_id: str, stage: str):
        self.order_id = order_id
        self.stage = stage
        super().__init__(f"Order {order_id} has no stage record for {stage}")


# Authorization errors


class AuthorizationError(ProductionKernelError):
    """Base exception for role / assignment failures. No state was changed."""

    code: str = "AUTHORIZATION_ERROR"


class StageActionNotPermittedError(AuthorizationError):
    """Actor may not perform the action on this stage."""

    code: str = "STAGE_ACTION_NOT_PERMITTED"

    def __init__(self, actor_id: str, role: str | None, action: str, stage: str, reason: str):
        self.actor_id = actor_id
        self.role = role
        self.action = action
        self.stage = stage
        self.reason = reason
        super().__init__(
            f"Actor {actor_id} (role={role}) may not {action} stage {stage}: {reason}"
        )


class InactiveActorError(AuthorizationError):
    """Actor profile is deactivated."""

    code: str = "INACTIVE_ACTOR"

    def __init__(self, actor_id: str):
        self.actor_id = actor_id
        super().__init__(f"Actor {actor_id} is inactive")


# State conflict errors


class StateConflictError(ProductionKernelError):
    """Base exception for stale or conflicting workflow state. Retryable."""

    code: str = "STATE_CONFLICT"
    retryable: bool = True


class StageNotActiveError(StateConflictError):
    """Stage record is not in progress."""

    code: str = "STAGE_NOT_ACTIVE"

    def __init__(self, order_id: str, stage: str, status: str):
        self.order_id = order_id
        self.stage = stage
        self.status = status
        super().__init__(
            f"Stage {stage} of order {order_id} is {status}, not in_progress"
        )


class StageNotApprovableError(StateConflictError):
    """Stage is not currently approvable (not current, pending or already approved)."""

    code: str = "STAGE_NOT_APPROVABLE"

    def __init__(self, order_id: str, stage: str, status: str, current_stage: str):
        self.order_id = order_id
        self.stage = stage
        self.status = status
        self.current_stage = current_stage
        super().__init__(
            f"Stage {stage} of order {order_id} is not currently approvable "
            f"(status={status}, current_stage={current_stage})"
        )


class ConcurrentTransitionError(StateConflictError):
    """Could not acquire the order lock in time."""

    code: str = "CONCURRENT_TRANSITION"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(
            f"Order {order_id} is being modified by another transaction"
        )


class DuplicateOrderCodeError(StateConflictError):
    """Order code already taken."""

    code: str = "DUPLICATE_ORDER_CODE"

    def __init__(self, order_code: str):
        self.order_code = order_code
        super().__init__(f"Order code already exists: {order_code}")


# External dependency errors


class ExternalDependencyError(ProductionKernelError):
    """Base exception for identity / blob store / lock-wait failures. Retryable."""

    code: str = "EXTERNAL_DEPENDENCY_ERROR"
    retryable: bool = True


class IdentityLookupError(ExternalDependencyError):
    """Identity provider lookup failed, timed out, or returned no profile."""

    code: str = "IDENTITY_LOOKUP_FAILED"

    def __init__(self, user_id: str, reason: str):
        self.user_id = user_id
        self.reason = reason
        super().__init__(f"Identity lookup failed for {user_id}: {reason}")


class EvidenceStoreError(ExternalDependencyError):
    """Evidence upload failed."""

    code: str = "EVIDENCE_STORE_FAILED"

    def __init__(self, object_key: str, reason: str):
        self.object_key = object_key
        self.reason = reason
        super().__init__(f"Evidence upload failed for {object_key}: {reason}")


class EvidenceStoreTimeoutError(EvidenceStoreError):
    """Evidence upload did not complete within the timeout."""

    code: str = "EVIDENCE_STORE_TIMEOUT"

    def __init__(self, object_key: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(object_key, f"timed out after {timeout_seconds}s")


class CodeAllocationError(ExternalDependencyError):
    """Order code counter could not be locked in time."""

    code: str = "CODE_ALLOCATION_FAILED"

    def __init__(self, year: int, reason: str):
        self.year = year
        self.reason = reason
        super().__init__(f"Could not allocate order code for {year}: {reason}")


# Immutability errors


class ImmutabilityError(ProductionKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Line items and order events are immutable from creation; orders and
    stage records are never deleted and stage status never moves backward.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
