"""Fire-and-forget timeline hook for completed contracts.

Runs after a contract is finalized to put a transfer event on the team's
timeline. Errors are logged but never raised: the contract is already
completed and a missing timeline entry must not surface as a failure.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from src.app.contracts.schemas import ContractRead
from src.app.timeline.repository import TimelineRepository
from src.app.timeline.schemas import TimelineEventCreate, TimelineEventType

logger = structlog.get_logger(__name__)


class TimelineRecorder:
    """Records contract milestones on team timelines.

    Args:
        repository: TimelineRepository used to persist events.
    """

    def __init__(self, repository: TimelineRepository) -> None:
        self._repo = repository

    async def record_transfer_completed(self, tenant_id: str, contract: ContractRead) -> bool:
        """Add a transfer event for a completed contract.

        Returns:
            True if the event was recorded, False if recording failed.
        """
        summary = contract.financial_summary
        value = summary.contract_value if summary else contract.contract_value
        finalized_at = (summary.finalized_at if summary else None) or datetime.now(timezone.utc)

        try:
            await self._repo.create_event(
                tenant_id,
                TimelineEventCreate(
                    team_id=contract.team_id,
                    event_type=TimelineEventType.TRANSFER,
                    title="Transfer completed",
                    description=(
                        f"Contract finalized for {value or 0:,.2f} {contract.currency}"
                    ),
                    event_date=finalized_at.date(),
                    player_id=contract.player_id,
                    contract_id=contract.id,
                    metadata={
                        "pitch_id": contract.pitch_id,
                        "agent_id": contract.agent_id,
                        "contract_value": value,
                        "currency": contract.currency,
                    },
                ),
            )
        except Exception:
            logger.warning(
                "timeline.transfer_record_failed",
                tenant_id=tenant_id,
                contract_id=contract.id,
                exc_info=True,
            )
            return False

        logger.info("timeline.transfer_recorded", tenant_id=tenant_id, contract_id=contract.id)
        return True
