"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import (
    ClaimRepository,
    ConflictReviewRepository,
    PipelineHistoryRepository,
    PriorityRecordRepository,
    Repository,
)
from .satellite import SatelliteVerdictProvider
from .unit_of_work import ClaimRepositories, ClaimUnitOfWork, RepositoryCollection, UnitOfWork

__all__ = [
    "ClaimRepositories",
    "ClaimRepository",
    "ClaimUnitOfWork",
    "ConflictReviewRepository",
    "PipelineHistoryRepository",
    "PriorityRecordRepository",
    "Repository",
    "RepositoryCollection",
    "SatelliteVerdictProvider",
    "UnitOfWork",
]
