"""Contract workflow error taxonomy.

Every failure the workflow reports to a caller is one of four kinds:
not-found, illegal-transition, precondition-violation, or upstream-failure.
Each carries a stable machine ``code`` so the API layer can map it to a
distinct HTTP status and structured body without string matching.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.app.contracts.stages import ContractStage


class ContractWorkflowError(Exception):
    """Base class for all errors raised by the contract workflow."""

    code: str = "contract_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        """Structured representation for API error bodies."""
        return {"code": self.code, "message": self.message}


class ContractNotFoundError(ContractWorkflowError):
    """A referenced contract, pitch, or related record does not exist."""

    code = "not_found"

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} not found: {entity_id}")


class IllegalTransitionError(ContractWorkflowError, ValueError):
    """Raised when a stage change is not in the legal-action set of the current stage."""

    code = "illegal_transition"

    def __init__(
        self,
        from_stage: ContractStage,
        to_stage: ContractStage | str,
        allowed: frozenset[ContractStage] | set[ContractStage] = frozenset(),
    ) -> None:
        self.from_stage = from_stage
        self.to_stage = to_stage
        self.allowed = frozenset(allowed)
        to_value = getattr(to_stage, "value", to_stage)
        allowed_values = ", ".join(sorted(s.value for s in self.allowed)) or "none"
        super().__init__(
            f"Invalid stage transition: {from_stage.value} -> {to_value}. "
            f"Allowed transitions from {from_stage.value}: {allowed_values}"
        )


class PreconditionViolationError(ContractWorkflowError):
    """The operation is well-formed but the contract is not in a state that permits it."""

    code = "precondition_violation"


class InvalidSignatureOrderError(PreconditionViolationError):
    """Signature slots were filled out of order (team before agent, or twice)."""

    code = "invalid_signature_order"


class UpstreamFailureError(ContractWorkflowError):
    """The persistence layer or file storage failed underneath the workflow."""

    code = "upstream_failure"

    def __init__(self, operation: str, cause: BaseException) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"Upstream failure during {operation}: {cause}")
