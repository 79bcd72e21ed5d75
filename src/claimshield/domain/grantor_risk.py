"""Seller history profiling.

Grantor identity is an exact string match; aliasing and entity resolution happen
upstream. A profile only prioritises human review, it never blocks a claim.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

from claimshield.config.policy import DEFAULT_POLICY
from claimshield.domain.model import GrantorHistoryResult, PipelineStatus, RiskLevel

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from claimshield.config.policy import PolicyConfig
    from claimshield.domain.model import Claim

log = getLogger(__name__)


def profile_grantor(
    grantor_name: str,
    claims: Iterable[Claim],
    *,
    policy: PolicyConfig = DEFAULT_POLICY,
) -> GrantorHistoryResult:
    """Aggregate the claims naming ``grantor_name`` into a dispute-rate profile."""

    history = [claim for claim in claims if claim.grantor_name == grantor_name]
    total = len(history)
    disputed = sum(1 for claim in history if claim.status is PipelineStatus.DISPUTED)
    rejected = sum(1 for claim in history if claim.status is PipelineStatus.REJECTED)
    dispute_rate = disputed / total if total else 0.0

    if dispute_rate >= policy.grantor_dispute_rate_high_risk:
        risk_level = RiskLevel.HIGH
    elif dispute_rate >= policy.grantor_dispute_rate_warning:
        risk_level = RiskLevel.MEDIUM
    else:
        risk_level = RiskLevel.LOW

    # one disputed sale out of one is not yet a pattern
    is_red_flag = risk_level is not RiskLevel.LOW and total >= policy.grantor_red_flag_min_claims

    return GrantorHistoryResult(
        grantor_name=grantor_name,
        total_claims=total,
        disputed_claims=disputed,
        rejected_claims=rejected,
        dispute_rate=dispute_rate,
        risk_level=risk_level,
        is_red_flag=is_red_flag,
        reasoning=_reasoning(grantor_name, total, disputed, dispute_rate, risk_level, is_red_flag),
    )


def _reasoning(
    name: str,
    total: int,
    disputed: int,
    dispute_rate: float,
    risk_level: RiskLevel,
    is_red_flag: bool,
) -> str:
    if total == 0:
        return f"No prior transaction history found for {name}"
    rate = f"{dispute_rate * 100:.0f}%"
    if is_red_flag and risk_level is RiskLevel.HIGH:
        return f"RED FLAG SELLER: {name} has a {rate} dispute rate across {total} transactions"
    if is_red_flag:
        return f"WARNING: {name} has an elevated dispute rate ({rate}) across {total} transactions"
    if risk_level is not RiskLevel.LOW:
        return (
            f"{name} has a {rate} dispute rate but only {total} transaction(s); "
            "not yet a pattern"
        )
    return f"{name} has clean transaction history: {total} claims, {disputed} disputes"


class GrantorClaimSource(Protocol):
    def by_grantor(self, grantor_name: str) -> Sequence[Claim]: ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class GrantorProfiler:
    """Profile grantors from the claim store, caching results for ``policy.grantor_cache_ttl``.

    Expired entries are dropped on every lookup, and past ``max_entries`` the
    oldest profile goes first.
    """

    policy: PolicyConfig = DEFAULT_POLICY
    clock: Callable[[], datetime] = _utcnow
    max_entries: int = 1024
    _cache: dict[str, tuple[datetime, GrantorHistoryResult]] = field(
        default_factory=dict[str, tuple[datetime, GrantorHistoryResult]]
    )
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def profile(self, grantor_name: str, source: GrantorClaimSource) -> GrantorHistoryResult:
        now = self.clock()
        with self._lock:
            self._evict_expired(now)
            cached = self._cache.get(grantor_name)
        if cached is not None:
            return cached[1]

        result = profile_grantor(grantor_name, source.by_grantor(grantor_name), policy=self.policy)
        if result.is_red_flag:
            log.warning(
                "Red-flag grantor %s: %s/%s disputed",
                grantor_name,
                result.disputed_claims,
                result.total_claims,
            )
        with self._lock:
            self._cache.pop(grantor_name, None)
            self._cache[grantor_name] = (now, result)
            while len(self._cache) > self.max_entries:
                del self._cache[next(iter(self._cache))]
        return result

    def _evict_expired(self, now: datetime) -> None:
        ttl = self.policy.grantor_cache_ttl
        expired = [name for name, (stored_at, _) in self._cache.items() if now - stored_at >= ttl]
        for name in expired:
            del self._cache[name]

    @property
    def cache_size(self) -> int:
        with self._lock:
            return len(self._cache)

    def invalidate(self, grantor_name: str | None = None) -> None:
        with self._lock:
            if grantor_name is None:
                self._cache.clear()
            else:
                self._cache.pop(grantor_name, None)
