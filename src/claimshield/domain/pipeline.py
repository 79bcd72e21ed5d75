"""Claim lifecycle state machine.

Claims move forward one step at a time::

    INTAKE_PENDING -> AI_VERIFIED -> SPATIAL_LOCKED -> MINTED -> GOVT_TITLE_SYNC

``REJECTED`` and ``DISPUTED`` can be entered from any non-terminal status and are
absorbing. ``GOVT_TITLE_SYNC`` is terminal. Every accepted transition is appended
to the claim's history; a rejected one leaves the history untouched.

The functions here operate on an already-entered unit of work and never commit;
the caller owns the transaction boundary.
"""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Final, NoReturn

from claimshield.domain.model import (
    ClaimPipelineState,
    PipelineStatus,
    PipelineStatusChange,
    TriggeredBy,
)
from claimshield.domain.priority import record_covers_claim

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from claimshield.domain.model import Claim
    from claimshield.domain.ports import ClaimUnitOfWork

log = getLogger(__name__)

_FORWARD: Final[dict[PipelineStatus, PipelineStatus]] = {
    PipelineStatus.INTAKE_PENDING: PipelineStatus.AI_VERIFIED,
    PipelineStatus.AI_VERIFIED: PipelineStatus.SPATIAL_LOCKED,
    PipelineStatus.SPATIAL_LOCKED: PipelineStatus.MINTED,
    PipelineStatus.MINTED: PipelineStatus.GOVT_TITLE_SYNC,
}

TERMINAL_STATUSES: Final[frozenset[PipelineStatus]] = frozenset(
    {PipelineStatus.GOVT_TITLE_SYNC, PipelineStatus.REJECTED, PipelineStatus.DISPUTED}
)


class InvalidTransitionError(RuntimeError):
    """Raised when a claim is asked to make a move its lifecycle does not allow."""

    def __init__(
        self,
        claim_id: str,
        from_status: PipelineStatus,
        to_status: PipelineStatus,
        detail: str,
    ) -> None:
        super().__init__(
            f"Claim {claim_id} cannot move from {from_status} to {to_status}: {detail}"
        )
        self.claim_id = claim_id
        self.from_status = from_status
        self.to_status = to_status


class ClaimNotFoundError(LookupError):
    """Raised when an operation names a claim the store does not hold."""

    def __init__(self, claim_id: str) -> None:
        super().__init__(f"Claim {claim_id} not found")
        self.claim_id = claim_id


def allowed_targets(status: PipelineStatus) -> frozenset[PipelineStatus]:
    if status in TERMINAL_STATUSES:
        return frozenset()
    targets = {PipelineStatus.REJECTED, PipelineStatus.DISPUTED}
    forward = _FORWARD.get(status)
    if forward is not None:
        targets.add(forward)
    return frozenset(targets)


def can_transition(from_status: PipelineStatus, to_status: PipelineStatus) -> bool:
    return to_status in allowed_targets(from_status)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _describe(history: Sequence[PipelineStatusChange]) -> str:
    return " -> ".join(
        f"{change.to_status}@{change.timestamp.isoformat()}" for change in history
    ) or "<empty>"


def register_claim(
    uow: ClaimUnitOfWork,
    claim: Claim,
    *,
    triggered_by: TriggeredBy = TriggeredBy.SYSTEM,
    reason: str = "Claim received",
) -> PipelineStatusChange:
    """Store a new claim together with the first entry of its history."""

    change = PipelineStatusChange(
        from_status=None,
        to_status=claim.status,
        timestamp=claim.created_at,
        triggered_by=triggered_by,
        reason=reason,
    )
    uow.repositories.claims.add(claim)
    uow.repositories.pipeline_history.append(claim.claim_id, change)
    return change


def transition(
    uow: ClaimUnitOfWork,
    claim_id: str,
    to_status: PipelineStatus,
    *,
    triggered_by: TriggeredBy = TriggeredBy.SYSTEM,
    reason: str = "",
    clock: Callable[[], datetime] = _utcnow,
) -> ClaimPipelineState:
    """Move ``claim_id`` to ``to_status`` and append the change to its history.

    Raises ``ClaimNotFoundError`` for an unknown claim and
    ``InvalidTransitionError`` when the move is not allowed, including a move to
    ``SPATIAL_LOCKED`` for a claim without a priority-of-sale record covering its
    current boundary and grantor. The status is written back only if it is still
    the one read here, so of two concurrent moves from the same status exactly
    one succeeds.
    """

    repositories = uow.repositories
    claim = repositories.claims.get(claim_id)
    if claim is None:
        raise ClaimNotFoundError(claim_id)
    history = list(repositories.pipeline_history.history_for(claim_id))
    from_status = claim.status

    if not can_transition(from_status, to_status):
        _reject(claim_id, from_status, to_status, "transition not allowed", history)

    record = repositories.priority_records.get_for_claim(claim_id)
    if to_status is PipelineStatus.SPATIAL_LOCKED:
        if record is None:
            _reject(claim_id, from_status, to_status, "no priority-of-sale record", history)
        if not record_covers_claim(record, claim):
            _reject(
                claim_id,
                from_status,
                to_status,
                "priority-of-sale record does not cover the claim's boundary and grantor",
                history,
            )

    timestamp = clock()
    if history and timestamp < history[-1].timestamp:
        timestamp = history[-1].timestamp
    change = PipelineStatusChange(
        from_status=from_status,
        to_status=to_status,
        timestamp=timestamp,
        triggered_by=triggered_by,
        reason=reason,
    )

    claim.status = to_status
    if record is not None:
        claim.priority_hash = record.priority_hash
    if not repositories.claims.update(claim, expected_status=from_status):
        _reject(claim_id, from_status, to_status, "claim status changed concurrently", history)
    repositories.pipeline_history.append(claim_id, change)
    log.info("Claim %s moved %s -> %s (%s)", claim_id, from_status, to_status, triggered_by)

    history.append(change)
    return _state(claim, history, record.priority_hash if record is not None else None)


def _reject(
    claim_id: str,
    from_status: PipelineStatus,
    to_status: PipelineStatus,
    detail: str,
    history: Sequence[PipelineStatusChange],
) -> NoReturn:
    log.error(
        "Rejected transition for claim %s: %s -> %s (%s); history: %s",
        claim_id,
        from_status,
        to_status,
        detail,
        _describe(history),
    )
    raise InvalidTransitionError(claim_id, from_status, to_status, detail)


def pipeline_state(uow: ClaimUnitOfWork, claim_id: str) -> ClaimPipelineState:
    repositories = uow.repositories
    claim = repositories.claims.get(claim_id)
    if claim is None:
        raise ClaimNotFoundError(claim_id)
    history = repositories.pipeline_history.history_for(claim_id)
    record = repositories.priority_records.get_for_claim(claim_id)
    return _state(claim, history, record.priority_hash if record is not None else None)


def _state(
    claim: Claim,
    history: Sequence[PipelineStatusChange],
    priority_hash: str | None,
) -> ClaimPipelineState:
    lock_timestamp = next(
        (
            change.timestamp
            for change in history
            if change.to_status is PipelineStatus.SPATIAL_LOCKED
        ),
        None,
    )
    return ClaimPipelineState(
        claim_id=claim.claim_id,
        status=claim.status,
        status_history=tuple(history),
        priority_hash=priority_hash,
        spatial_lock_timestamp=lock_timestamp,
    )
