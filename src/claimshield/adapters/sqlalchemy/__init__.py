"""SQLAlchemy adapter package for claimshield."""

from __future__ import annotations

from .mappings import metadata
from .repositories import (
    SqlAlchemyClaimRepository,
    SqlAlchemyConflictReviewRepository,
    SqlAlchemyPipelineHistoryRepository,
    SqlAlchemyPriorityRecordRepository,
)
from .unit_of_work import (
    SqlAlchemyClaimUnitOfWork,
    StartupError,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyClaimRepository",
    "SqlAlchemyClaimUnitOfWork",
    "SqlAlchemyConflictReviewRepository",
    "SqlAlchemyPipelineHistoryRepository",
    "SqlAlchemyPriorityRecordRepository",
    "StartupError",
    "is_started",
    "metadata",
    "shutdown",
    "startup",
]
