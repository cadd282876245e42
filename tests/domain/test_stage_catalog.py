"""
Tests for the stage catalog (``production_kernel.domain.stages``).

Invariants tested:
- The six stages form one fixed, total order.
- Every stage but dispatch has exactly one successor; dispatch has none.
- quality_review is the only stage that does not take evidence.
- Boundary values are parsed case-insensitively; anything else is rejected.
"""

import pytest

from production_kernel.domain.stages import (
    FIRST_STAGE,
    QUALITY_REVIEW_AUDIT_NOTE,
    STAGE_LABELS,
    STAGE_SEQUENCE,
    TERMINAL_STAGE,
    Stage,
    is_terminal,
    label,
    parse_stage,
    position,
    requires_evidence,
    successor,
)
from production_kernel.exceptions import UnknownStageError


class TestStageSequence:
    def test_workflow_order(self):
        assert [s.value for s in STAGE_SEQUENCE] == [
            "sale",
            "design",
            "printing",
            "sewing",
            "quality_review",
            "dispatch",
        ]

    def test_sequence_covers_every_stage_once(self):
        assert set(STAGE_SEQUENCE) == set(Stage)
        assert len(STAGE_SEQUENCE) == len(set(STAGE_SEQUENCE))

    def test_first_and_terminal(self):
        assert FIRST_STAGE is Stage.SALE
        assert TERMINAL_STAGE is Stage.DISPATCH

    def test_positions_are_zero_based_indexes(self):
        for index, stage in enumerate(STAGE_SEQUENCE):
            assert position(stage) == index

    def test_every_stage_has_a_label(self):
        assert set(STAGE_LABELS) == set(Stage)
        assert label(Stage.QUALITY_REVIEW) == "Quality review"


class TestSuccessor:
    @pytest.mark.parametrize(
        "stage,expected",
        [
            (Stage.SALE, Stage.DESIGN),
            (Stage.DESIGN, Stage.PRINTING),
            (Stage.PRINTING, Stage.SEWING),
            (Stage.SEWING, Stage.QUALITY_REVIEW),
            (Stage.QUALITY_REVIEW, Stage.DISPATCH),
        ],
    )
    def test_successor(self, stage, expected):
        assert successor(stage) is expected

    def test_dispatch_has_no_successor(self):
        assert successor(Stage.DISPATCH) is None
        assert is_terminal(Stage.DISPATCH)

    def test_only_dispatch_is_terminal(self):
        assert [s for s in STAGE_SEQUENCE if is_terminal(s)] == [Stage.DISPATCH]

    def test_walking_successors_visits_every_stage(self):
        visited = []
        stage = FIRST_STAGE
        while stage is not None:
            visited.append(stage)
            stage = successor(stage)
        assert tuple(visited) == STAGE_SEQUENCE


class TestEvidenceRequirement:
    def test_quality_review_takes_no_evidence(self):
        assert requires_evidence(Stage.QUALITY_REVIEW) is False

    @pytest.mark.parametrize(
        "stage", [s for s in STAGE_SEQUENCE if s is not Stage.QUALITY_REVIEW],
    )
    def test_other_stages_take_evidence(self, stage):
        assert requires_evidence(stage) is True

    def test_audit_note_text(self):
        assert QUALITY_REVIEW_AUDIT_NOTE == "QC: reviewed and approved"


class TestParseStage:
    def test_passes_stage_through(self):
        assert parse_stage(Stage.SEWING) is Stage.SEWING

    @pytest.mark.parametrize("raw", ["printing", "PRINTING", "  Printing "])
    def test_parses_strings(self, raw):
        assert parse_stage(raw) is Stage.PRINTING

    @pytest.mark.parametrize("raw", ["", "packing", "qc", "quality review"])
    def test_rejects_unknown(self, raw):
        with pytest.raises(UnknownStageError) as exc_info:
            parse_stage(raw)
        assert exc_info.value.code == "UNKNOWN_STAGE"
        assert exc_info.value.value == raw
