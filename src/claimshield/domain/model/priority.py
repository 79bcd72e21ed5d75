"""Priority-of-sale ledger entries and protection outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .enums import ProtectOutcome

if TYPE_CHECKING:
    from datetime import datetime

    from .primitives import Polygon


@dataclass(frozen=True, slots=True)
class ProtectClaimRequest:
    claim_id: str
    grantor_name: str
    indenture_hash: str
    polygon: Polygon
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class PriorityOfSaleRecord:
    """Tamper-evident precedence record. Written once, never updated or deleted."""

    claim_id: str
    priority_hash: str
    grantor_name: str
    indenture_hash: str
    polygon: Polygon
    claimed_at: datetime
    locked_at: datetime


@dataclass(frozen=True, slots=True)
class ProtectClaimResult:
    outcome: ProtectOutcome
    message: str
    record: PriorityOfSaleRecord | None = None
    conflicting_claim_id: str | None = None
    iou_score: float | None = None

    @property
    def success(self) -> bool:
        return self.outcome in {ProtectOutcome.PROTECTED, ProtectOutcome.ALREADY_PROTECTED}

    @property
    def priority_hash(self) -> str | None:
        return self.record.priority_hash if self.record is not None else None
