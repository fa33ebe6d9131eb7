"""Tests for contract workflow metrics and the /metrics exposition."""

from __future__ import annotations

import pytest
from prometheus_client import REGISTRY

from src.app.contracts.errors import PreconditionViolationError
from src.app.contracts.stages import ContractStage
from src.app.core.monitoring import (
    get_metrics_response,
    record_stage_transition,
    track_contract_operation,
)


def _sample(name: str, labels: dict[str, str]) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


@pytest.mark.asyncio
async def test_track_operation_success():
    labels = {"operation": "test_success_op", "status": "success"}
    before = _sample("contract_operations_total", labels)

    async with track_contract_operation("test_success_op"):
        pass

    assert _sample("contract_operations_total", labels) == before + 1


@pytest.mark.asyncio
async def test_track_operation_counts_error_code():
    error_labels = {"operation": "test_error_op", "code": "precondition_violation"}
    before = _sample("contract_operation_errors_total", error_labels)

    with pytest.raises(PreconditionViolationError):
        async with track_contract_operation("test_error_op"):
            raise PreconditionViolationError("nope")

    assert _sample("contract_operation_errors_total", error_labels) == before + 1
    assert _sample(
        "contract_operations_total", {"operation": "test_error_op", "status": "error"}
    ) >= 1


@pytest.mark.asyncio
async def test_workflow_records_stage_transitions(driver, tenant_id):
    labels = {"from_stage": "draft", "to_stage": "negotiating", "tenant_id": tenant_id}
    await driver.negotiating()
    assert _sample("contract_transitions_total", labels) == 1


def test_metrics_response_exposes_counters():
    record_stage_transition(ContractStage.DRAFT.value, ContractStage.REJECTED.value, "metrics-test")
    response = get_metrics_response()

    assert response.media_type.startswith("text/plain")
    assert b"contract_transitions_total" in response.body
