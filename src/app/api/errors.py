"""HTTP mapping for contract workflow errors.

Every workflow error class gets its own status code and the response
detail is the error's ``{"code", "message"}`` dict.
"""

from __future__ import annotations

from fastapi import HTTPException, status

from src.app.contracts.errors import (
    ContractNotFoundError,
    ContractWorkflowError,
    IllegalTransitionError,
    PreconditionViolationError,
    UpstreamFailureError,
)

ERROR_STATUS: tuple[tuple[type[ContractWorkflowError], int], ...] = (
    (ContractNotFoundError, status.HTTP_404_NOT_FOUND),
    (IllegalTransitionError, status.HTTP_409_CONFLICT),
    (PreconditionViolationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (UpstreamFailureError, status.HTTP_502_BAD_GATEWAY),
)


def to_http_error(exc: ContractWorkflowError) -> HTTPException:
    """Map a workflow error to an HTTPException carrying its code and message."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_cls, mapped in ERROR_STATUS:
        if isinstance(exc, error_cls):
            status_code = mapped
            break
    return HTTPException(status_code=status_code, detail=exc.to_dict())
