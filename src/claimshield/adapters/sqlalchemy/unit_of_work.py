"""SQLAlchemy-backed unit of work for the claim store.

``startup()`` binds the adapter to one engine and brings its schema to the
latest revision. Each ``SqlAlchemyClaimUnitOfWork`` then opens its own session
on that engine. Leaving the context without ``commit()`` discards every write,
including the region locks taken through the priority ledger.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from claimshield.adapters.sqlalchemy.migrations import upgrade_head
from claimshield.adapters.sqlalchemy.repositories import (
    SqlAlchemyClaimRepository,
    SqlAlchemyConflictReviewRepository,
    SqlAlchemyPipelineHistoryRepository,
    SqlAlchemyPriorityRecordRepository,
)
from claimshield.config.storage import get_database_uri
from claimshield.domain.ports.unit_of_work import ClaimRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine


class StartupError(RuntimeError):
    """Raised when the claim store is used before ``startup()`` or outside a unit of work."""


@dataclass(slots=True)
class _Binding:
    engine: Engine | None = None
    sessions: sessionmaker[Session] | None = None


_BINDING = _Binding()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bind the adapter to ``engine`` (or a new one for ``database_uri``) and migrate it."""

    if _BINDING.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    resolved_engine = engine or create_engine(database_uri or get_database_uri(), future=True)
    upgrade_head(engine=resolved_engine)
    _BINDING.engine = resolved_engine
    _BINDING.sessions = sessionmaker(bind=resolved_engine, expire_on_commit=False)


def is_started() -> bool:
    return _BINDING.engine is not None


def shutdown() -> None:
    """Dispose the bound engine and unbind the adapter."""

    if _BINDING.engine is not None:
        _BINDING.engine.dispose()
    _BINDING.engine = None
    _BINDING.sessions = None


class SqlAlchemyClaimUnitOfWork:
    """One session shared by the claim, ledger, history and review repositories."""

    def __init__(self) -> None:
        if _BINDING.sessions is None:
            raise StartupError(
                "Claim store not initialised. Call claimshield.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        self._sessions = _BINDING.sessions
        self._session: Session | None = None
        self._repositories: ClaimRepositories | None = None

    def __enter__(self) -> SqlAlchemyClaimUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work already entered")
        session = self._sessions()
        self._session = session
        self._repositories = ClaimRepositories(
            claims=SqlAlchemyClaimRepository(session),
            priority_records=SqlAlchemyPriorityRecordRepository(session),
            pipeline_history=SqlAlchemyPipelineHistoryRepository(session),
            conflict_reviews=SqlAlchemyConflictReviewRepository(session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work used outside its context")
        return self._session

    @property
    def repositories(self) -> ClaimRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work used outside its context")
        return self._repositories

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


if TYPE_CHECKING:
    from claimshield.domain.ports.unit_of_work import ClaimUnitOfWork

    _uow_check: ClaimUnitOfWork = SqlAlchemyClaimUnitOfWork()
