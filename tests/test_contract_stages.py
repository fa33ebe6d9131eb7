"""Unit tests for the contract stage engine.

Tests cover:
- stage_position / can_advance / next_stage along the progression path
- legal_actions table, including terminal and unknown stages
- status_for derivation
- validate_transition: legal moves, illegal moves, same-stage requests
- review_target mapping
"""

from __future__ import annotations

import pytest

from src.app.contracts.errors import IllegalTransitionError
from src.app.contracts.stages import (
    LEGAL_ACTIONS,
    STAGE_ORDER,
    ContractStage,
    ContractStatus,
    ReviewAction,
    can_advance,
    is_terminal,
    legal_actions,
    next_stage,
    review_target,
    stage_position,
    status_for,
    validate_transition,
)


class TestStagePosition:
    def test_path_positions(self) -> None:
        assert [stage_position(s) for s in STAGE_ORDER] == [0, 1, 2, 3, 4]

    def test_accepts_raw_values(self) -> None:
        assert stage_position("under_review") == 2

    def test_off_path_and_unknown_stages_have_no_position(self) -> None:
        assert stage_position(ContractStage.REJECTED) is None
        assert stage_position(ContractStage.EXPIRED) is None
        assert stage_position("archived") is None


class TestNextStage:
    def test_next_stage_follows_path(self) -> None:
        assert next_stage(ContractStage.DRAFT) == ContractStage.NEGOTIATING
        assert next_stage(ContractStage.SIGNED) == ContractStage.COMPLETED

    def test_last_stage_cannot_advance(self) -> None:
        assert can_advance(ContractStage.COMPLETED) is False
        assert next_stage(ContractStage.COMPLETED) is None

    def test_off_path_stages_cannot_advance(self) -> None:
        assert can_advance(ContractStage.REJECTED) is False
        assert next_stage("bogus") is None


class TestLegalActions:
    def test_table_matches_negotiation_flow(self) -> None:
        assert legal_actions(ContractStage.DRAFT) == {
            ContractStage.NEGOTIATING,
            ContractStage.REJECTED,
        }
        assert legal_actions(ContractStage.NEGOTIATING) == {
            ContractStage.UNDER_REVIEW,
            ContractStage.REJECTED,
        }
        assert legal_actions(ContractStage.UNDER_REVIEW) == {
            ContractStage.SIGNED,
            ContractStage.NEGOTIATING,
            ContractStage.REJECTED,
        }

    @pytest.mark.parametrize(
        "stage",
        [ContractStage.SIGNED, ContractStage.COMPLETED, ContractStage.REJECTED, ContractStage.EXPIRED],
    )
    def test_no_requestable_moves(self, stage: ContractStage) -> None:
        assert legal_actions(stage) == frozenset()

    def test_unknown_stage_has_no_actions(self) -> None:
        assert legal_actions("archived") == frozenset()

    def test_every_stage_has_an_entry(self) -> None:
        assert set(LEGAL_ACTIONS) == set(ContractStage)

    def test_terminal_stages(self) -> None:
        assert is_terminal(ContractStage.COMPLETED)
        assert is_terminal("expired")
        assert not is_terminal(ContractStage.SIGNED)


class TestStatusFor:
    @pytest.mark.parametrize(
        ("stage", "status"),
        [
            (ContractStage.DRAFT, ContractStatus.DRAFT),
            (ContractStage.NEGOTIATING, ContractStatus.PENDING),
            (ContractStage.UNDER_REVIEW, ContractStatus.PENDING),
            (ContractStage.SIGNED, ContractStatus.APPROVED),
            (ContractStage.COMPLETED, ContractStatus.COMPLETED),
            (ContractStage.REJECTED, ContractStatus.REJECTED),
            (ContractStage.EXPIRED, ContractStatus.EXPIRED),
        ],
    )
    def test_derived_status(self, stage: ContractStage, status: ContractStatus) -> None:
        assert status_for(stage) == status

    def test_unknown_stage_raises(self) -> None:
        with pytest.raises(ValueError):
            status_for("archived")


class TestValidateTransition:
    def test_legal_move_returns_target(self) -> None:
        assert (
            validate_transition(ContractStage.NEGOTIATING, "under_review")
            == ContractStage.UNDER_REVIEW
        )

    def test_skipping_a_stage_is_illegal(self) -> None:
        with pytest.raises(IllegalTransitionError) as exc_info:
            validate_transition(ContractStage.DRAFT, ContractStage.SIGNED)
        err = exc_info.value
        assert err.code == "illegal_transition"
        assert err.allowed == {ContractStage.NEGOTIATING, ContractStage.REJECTED}
        assert "draft -> signed" in err.message

    def test_same_stage_is_illegal(self) -> None:
        with pytest.raises(IllegalTransitionError):
            validate_transition(ContractStage.NEGOTIATING, ContractStage.NEGOTIATING)

    def test_signed_cannot_be_completed_by_request(self) -> None:
        with pytest.raises(IllegalTransitionError):
            validate_transition(ContractStage.SIGNED, ContractStage.COMPLETED)

    def test_unknown_target_is_illegal(self) -> None:
        with pytest.raises(IllegalTransitionError) as exc_info:
            validate_transition(ContractStage.DRAFT, "archived")
        assert "archived" in exc_info.value.message


class TestReviewTarget:
    def test_mapping(self) -> None:
        assert review_target(ReviewAction.ACCEPT) == ContractStage.SIGNED
        assert review_target("modify") == ContractStage.NEGOTIATING
        assert review_target(ReviewAction.REJECT) == ContractStage.REJECTED
