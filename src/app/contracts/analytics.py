"""Contract pipeline analytics.

Pure aggregation over a list of contracts: grouping by stage, counts,
open value, success rate, and the most recently active contracts.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from src.app.contracts.schemas import ContractRead
from src.app.contracts.stages import ContractStage

# Stages whose value no longer counts toward the pipeline total.
_CLOSED_WITHOUT_DEAL: frozenset[ContractStage] = frozenset({
    ContractStage.REJECTED,
    ContractStage.EXPIRED,
})

_SUCCESSFUL: frozenset[ContractStage] = frozenset({
    ContractStage.SIGNED,
    ContractStage.COMPLETED,
})

RECENT_ACTIVITY_LIMIT = 5

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class ContractPipeline(BaseModel):
    """Pipeline view grouping contracts by stage."""

    stages: dict[str, list[ContractRead]] = Field(default_factory=dict)
    stage_counts: dict[str, int] = Field(default_factory=dict)
    total_contracts: int = 0
    total_value: float = 0.0
    success_rate: float = 0.0
    recent_activity: list[ContractRead] = Field(default_factory=list)


def _activity_key(contract: ContractRead) -> datetime:
    return contract.last_activity_at or contract.updated_at or contract.created_at or _EPOCH


def build_pipeline(contracts: list[ContractRead]) -> ContractPipeline:
    """Aggregate contracts into a pipeline view.

    Every stage appears as a key, even when empty. success_rate is the
    percentage of contracts that reached signed or completed, rounded to one
    decimal place.
    """
    stages: dict[str, list[ContractRead]] = {stage.value: [] for stage in ContractStage}
    total_value = 0.0
    successful = 0

    for contract in contracts:
        stages[contract.deal_stage.value].append(contract)
        if contract.deal_stage not in _CLOSED_WITHOUT_DEAL:
            total_value += contract.contract_value or 0.0
        if contract.deal_stage in _SUCCESSFUL:
            successful += 1

    total = len(contracts)
    success_rate = round(successful / total * 100, 1) if total else 0.0
    recent = sorted(contracts, key=_activity_key, reverse=True)[:RECENT_ACTIVITY_LIMIT]

    return ContractPipeline(
        stages=stages,
        stage_counts={stage: len(items) for stage, items in stages.items()},
        total_contracts=total,
        total_value=total_value,
        success_rate=success_rate,
        recent_activity=recent,
    )
