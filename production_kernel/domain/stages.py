"""
Stage catalog -- the fixed, ordered production stages.

Responsibility:
    Static definition of the six stages an order passes through, their
    human labels, and the successor relation.  Pure data, no state, no
    failure modes except rejecting unknown identifiers at the boundary.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - The order is fixed and total; every stage but ``dispatch`` has
      exactly one successor.
    - ``quality_review`` is the only stage that takes an acknowledgment
      instead of evidence.
"""

from enum import Enum
from types import MappingProxyType

from production_kernel.exceptions import UnknownStageError


class Stage(str, Enum):
    """Production stage identifiers, declared in workflow order."""

    SALE = "sale"
    DESIGN = "design"
    PRINTING = "printing"
    SEWING = "sewing"
    QUALITY_REVIEW = "quality_review"
    DISPATCH = "dispatch"


STAGE_SEQUENCE: tuple[Stage, ...] = (
    Stage.SALE,
    Stage.DESIGN,
    Stage.PRINTING,
    Stage.SEWING,
    Stage.QUALITY_REVIEW,
    Stage.DISPATCH,
)

FIRST_STAGE: Stage = STAGE_SEQUENCE[0]
TERMINAL_STAGE: Stage = STAGE_SEQUENCE[-1]

STAGE_LABELS: MappingProxyType = MappingProxyType({
    Stage.SALE: "Sale",
    Stage.DESIGN: "Design",
    Stage.PRINTING: "Printing",
    Stage.SEWING: "Sewing",
    Stage.QUALITY_REVIEW: "Quality review",
    Stage.DISPATCH: "Dispatch",
})

# Fixed note written on the quality_review record when it is approved.
QUALITY_REVIEW_AUDIT_NOTE = "QC: reviewed and approved"

_POSITIONS: MappingProxyType = MappingProxyType(
    {stage: index for index, stage in enumerate(STAGE_SEQUENCE)}
)

_SUCCESSORS: MappingProxyType = MappingProxyType({
    stage: (STAGE_SEQUENCE[index + 1] if index + 1 < len(STAGE_SEQUENCE) else None)
    for index, stage in enumerate(STAGE_SEQUENCE)
})


def parse_stage(value: "Stage | str") -> Stage:
    """Convert a boundary value into a Stage.

    Raises:
        UnknownStageError: If the value is not a recognized stage.
    """
    if isinstance(value, Stage):
        return value
    try:
        return Stage(str(value).strip().lower())
    except ValueError:
        raise UnknownStageError(str(value)) from None


def label(stage: Stage) -> str:
    """Human-readable label for a stage."""
    return STAGE_LABELS[parse_stage(stage)]


def position(stage: Stage) -> int:
    """Zero-based index of the stage in the workflow."""
    return _POSITIONS[parse_stage(stage)]


def successor(stage: Stage) -> Stage | None:
    """The stage that follows ``stage``, or None for the terminal stage."""
    return _SUCCESSORS[parse_stage(stage)]


def is_terminal(stage: Stage) -> bool:
    return parse_stage(stage) is TERMINAL_STAGE


def requires_evidence(stage: Stage) -> bool:
    """Whether the stage takes an evidence reference.

    quality_review is checklist-only: it is approved with an
    acknowledgment, never with an uploaded file.
    """
    return parse_stage(stage) is not Stage.QUALITY_REVIEW
