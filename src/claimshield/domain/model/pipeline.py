"""Claim lifecycle audit trail."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from .enums import PipelineStatus, TriggeredBy


@dataclass(frozen=True, slots=True)
class PipelineStatusChange:
    from_status: PipelineStatus | None
    to_status: PipelineStatus
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    triggered_by: TriggeredBy = TriggeredBy.SYSTEM
    reason: str = ""


@dataclass(frozen=True, slots=True)
class ClaimPipelineState:
    claim_id: str
    status: PipelineStatus
    status_history: tuple[PipelineStatusChange, ...]
    priority_hash: str | None = None
    spatial_lock_timestamp: datetime | None = None

    @property
    def is_protected(self) -> bool:
        return self.priority_hash is not None
