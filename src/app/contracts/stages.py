"""Contract stage engine -- the single source of truth for negotiation stages.

Pure lookup logic: the ordered stage list, the legal-action table keyed by
stage, the stage -> status label mapping, and the review-action mapping.
Nothing here touches persistence; the workflow orchestrator calls into this
module before every write so no caller can bypass the transition table.

``deal_stage`` is canonical. ``status`` is only ever derived from it via
STAGE_STATUS, never written independently.
"""

from __future__ import annotations

from enum import Enum

from src.app.contracts.errors import IllegalTransitionError


class ContractStage(str, Enum):
    """Fine-grained negotiation stage of a contract."""

    DRAFT = "draft"
    NEGOTIATING = "negotiating"
    UNDER_REVIEW = "under_review"
    SIGNED = "signed"
    COMPLETED = "completed"
    REJECTED = "rejected"
    EXPIRED = "expired"


class ContractStatus(str, Enum):
    """Coarse display label derived from the stage."""

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    COMPLETED = "completed"
    REJECTED = "rejected"
    EXPIRED = "expired"


class ReviewAction(str, Enum):
    """Actions available to the agent while a contract is under review."""

    ACCEPT = "accept"
    MODIFY = "modify"
    REJECT = "reject"


class SigningParty(str, Enum):
    """The two signer slots on a contract."""

    AGENT = "agent"
    TEAM = "team"


# ── Stage Pipeline Order ────────────────────────────────────────────────────

# Progression path. REJECTED and EXPIRED are off-path terminal stages.
STAGE_ORDER: list[ContractStage] = [
    ContractStage.DRAFT,
    ContractStage.NEGOTIATING,
    ContractStage.UNDER_REVIEW,
    ContractStage.SIGNED,
    ContractStage.COMPLETED,
]

TERMINAL_STAGES: frozenset[ContractStage] = frozenset({
    ContractStage.COMPLETED,
    ContractStage.REJECTED,
    ContractStage.EXPIRED,
})

EXPIRABLE_STAGES: frozenset[ContractStage] = frozenset({
    ContractStage.DRAFT,
    ContractStage.NEGOTIATING,
    ContractStage.UNDER_REVIEW,
})

# ── Legal Action Table ──────────────────────────────────────────────────────

# Maps each stage to the set of stages a party may move it TO.
# SIGNED -> COMPLETED happens only through the final signature, never by request.
LEGAL_ACTIONS: dict[ContractStage, frozenset[ContractStage]] = {
    ContractStage.DRAFT: frozenset({ContractStage.NEGOTIATING, ContractStage.REJECTED}),
    ContractStage.NEGOTIATING: frozenset({ContractStage.UNDER_REVIEW, ContractStage.REJECTED}),
    ContractStage.UNDER_REVIEW: frozenset({
        ContractStage.SIGNED,
        ContractStage.NEGOTIATING,
        ContractStage.REJECTED,
    }),
    ContractStage.SIGNED: frozenset(),
    ContractStage.COMPLETED: frozenset(),
    ContractStage.REJECTED: frozenset(),
    ContractStage.EXPIRED: frozenset(),
}

STAGE_STATUS: dict[ContractStage, ContractStatus] = {
    ContractStage.DRAFT: ContractStatus.DRAFT,
    ContractStage.NEGOTIATING: ContractStatus.PENDING,
    ContractStage.UNDER_REVIEW: ContractStatus.PENDING,
    ContractStage.SIGNED: ContractStatus.APPROVED,
    ContractStage.COMPLETED: ContractStatus.COMPLETED,
    ContractStage.REJECTED: ContractStatus.REJECTED,
    ContractStage.EXPIRED: ContractStatus.EXPIRED,
}

REVIEW_TARGETS: dict[ReviewAction, ContractStage] = {
    ReviewAction.ACCEPT: ContractStage.SIGNED,
    ReviewAction.MODIFY: ContractStage.NEGOTIATING,
    ReviewAction.REJECT: ContractStage.REJECTED,
}


# ── Lookups ─────────────────────────────────────────────────────────────────


def coerce_stage(stage: ContractStage | str) -> ContractStage | None:
    """Return the ContractStage for a member or raw value, None if unknown."""
    if isinstance(stage, ContractStage):
        return stage
    try:
        return ContractStage(stage)
    except ValueError:
        return None


def stage_position(stage: ContractStage | str) -> int | None:
    """Index of ``stage`` in STAGE_ORDER.

    Returns None for values outside the progression path, which covers
    unknown strings as well as the off-path REJECTED and EXPIRED stages.
    """
    resolved = coerce_stage(stage)
    if resolved is None or resolved not in STAGE_ORDER:
        return None
    return STAGE_ORDER.index(resolved)


def can_advance(stage: ContractStage | str) -> bool:
    """True unless the stage is last in the path, off-path, or unknown."""
    idx = stage_position(stage)
    return idx is not None and idx + 1 < len(STAGE_ORDER)


def next_stage(stage: ContractStage | str) -> ContractStage | None:
    """The stage immediately after ``stage`` in STAGE_ORDER, or None."""
    if not can_advance(stage):
        return None
    return STAGE_ORDER[stage_position(stage) + 1]  # type: ignore[operator]


def legal_actions(stage: ContractStage | str) -> frozenset[ContractStage]:
    """Stages a party may move ``stage`` to. Empty for terminal or unknown stages."""
    resolved = coerce_stage(stage)
    if resolved is None:
        return frozenset()
    return LEGAL_ACTIONS.get(resolved, frozenset())


def status_for(stage: ContractStage | str) -> ContractStatus:
    """Derive the coarse status label for a stage.

    Raises:
        ValueError: If ``stage`` is not a known ContractStage.
    """
    resolved = coerce_stage(stage)
    if resolved is None:
        raise ValueError(f"Unknown contract stage: {stage}")
    return STAGE_STATUS[resolved]


def review_target(action: ReviewAction | str) -> ContractStage:
    """Stage a review action leads to (accept -> signed, modify -> negotiating, reject -> rejected)."""
    return REVIEW_TARGETS[ReviewAction(action)]


def is_terminal(stage: ContractStage | str) -> bool:
    return coerce_stage(stage) in TERMINAL_STAGES


def validate_transition(
    from_stage: ContractStage, to_stage: ContractStage | str
) -> ContractStage:
    """Validate that moving from ``from_stage`` to ``to_stage`` is legal.

    Unlike a no-op tolerant check, a same-stage request is rejected: it is
    never in the legal-action set.

    Args:
        from_stage: Current stage of the contract.
        to_stage: Requested target stage (member or raw value).

    Returns:
        The resolved target ContractStage.

    Raises:
        IllegalTransitionError: If the target is unknown or not allowed.
    """
    allowed = legal_actions(from_stage)
    resolved = coerce_stage(to_stage)
    if resolved is None or resolved not in allowed:
        raise IllegalTransitionError(from_stage, resolved or to_stage, allowed)
    return resolved
