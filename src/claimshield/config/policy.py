"""Risk policy thresholds.

Every constant here is a product decision rather than an algorithmic truth, so each
one can be overridden through a ``CLAIMSHIELD_*`` environment variable.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Final

from .env import optional_env_float, optional_env_int
from .errors import ConfigurationError

IOU_CRITICAL_THRESHOLD: Final[float] = 0.30
IOU_WARNING_THRESHOLD: Final[float] = 0.10
OVERLAP_WARNING_PERCENT: Final[float] = 5.0
SATELLITE_CONFIDENCE_THRESHOLD: Final[float] = 0.70
GRANTOR_DISPUTE_RATE_WARNING: Final[float] = 0.20
GRANTOR_DISPUTE_RATE_HIGH_RISK: Final[float] = 0.40
GRANTOR_RED_FLAG_MIN_CLAIMS: Final[int] = 3
DOUBLE_SALE_WINDOW_DAYS: Final[int] = 90
GRANTOR_CACHE_TTL_SECONDS: Final[float] = 300.0


@dataclass(frozen=True, slots=True)
class PolicyConfig:
    iou_critical_threshold: float = IOU_CRITICAL_THRESHOLD
    iou_warning_threshold: float = IOU_WARNING_THRESHOLD
    overlap_warning_percent: float = OVERLAP_WARNING_PERCENT
    satellite_confidence_threshold: float = SATELLITE_CONFIDENCE_THRESHOLD
    grantor_dispute_rate_warning: float = GRANTOR_DISPUTE_RATE_WARNING
    grantor_dispute_rate_high_risk: float = GRANTOR_DISPUTE_RATE_HIGH_RISK
    grantor_red_flag_min_claims: int = GRANTOR_RED_FLAG_MIN_CLAIMS
    double_sale_window: timedelta = timedelta(days=DOUBLE_SALE_WINDOW_DAYS)
    grantor_cache_ttl: timedelta = timedelta(seconds=GRANTOR_CACHE_TTL_SECONDS)

    def __post_init__(self) -> None:
        if not 0.0 < self.iou_warning_threshold <= self.iou_critical_threshold <= 1.0:
            raise ConfigurationError(
                "IoU thresholds must satisfy 0 < warning <= critical <= 1 "
                f"(got warning={self.iou_warning_threshold}, "
                f"critical={self.iou_critical_threshold})"
            )
        if not 0.0 <= self.grantor_dispute_rate_warning <= self.grantor_dispute_rate_high_risk:
            raise ConfigurationError("Grantor dispute rates must satisfy 0 <= warning <= high")
        if self.double_sale_window < timedelta(0):
            raise ConfigurationError("Double-sale window must be non-negative")


DEFAULT_POLICY: Final[PolicyConfig] = PolicyConfig()


def get_policy_config() -> PolicyConfig:
    """Build the policy from defaults and ``CLAIMSHIELD_*`` overrides."""

    return PolicyConfig(
        iou_critical_threshold=optional_env_float(
            "CLAIMSHIELD_IOU_CRITICAL_THRESHOLD", IOU_CRITICAL_THRESHOLD
        ),
        iou_warning_threshold=optional_env_float(
            "CLAIMSHIELD_IOU_WARNING_THRESHOLD", IOU_WARNING_THRESHOLD
        ),
        overlap_warning_percent=optional_env_float(
            "CLAIMSHIELD_OVERLAP_WARNING_PERCENT", OVERLAP_WARNING_PERCENT
        ),
        satellite_confidence_threshold=optional_env_float(
            "CLAIMSHIELD_SATELLITE_CONFIDENCE_THRESHOLD", SATELLITE_CONFIDENCE_THRESHOLD
        ),
        grantor_dispute_rate_warning=optional_env_float(
            "CLAIMSHIELD_GRANTOR_DISPUTE_RATE_WARNING", GRANTOR_DISPUTE_RATE_WARNING
        ),
        grantor_dispute_rate_high_risk=optional_env_float(
            "CLAIMSHIELD_GRANTOR_DISPUTE_RATE_HIGH_RISK", GRANTOR_DISPUTE_RATE_HIGH_RISK
        ),
        grantor_red_flag_min_claims=optional_env_int(
            "CLAIMSHIELD_GRANTOR_RED_FLAG_MIN_CLAIMS", GRANTOR_RED_FLAG_MIN_CLAIMS
        ),
        double_sale_window=timedelta(
            days=optional_env_int("CLAIMSHIELD_DOUBLE_SALE_WINDOW_DAYS", DOUBLE_SALE_WINDOW_DAYS)
        ),
        grantor_cache_ttl=timedelta(
            seconds=optional_env_float(
                "CLAIMSHIELD_GRANTOR_CACHE_TTL_SECONDS", GRANTOR_CACHE_TTL_SECONDS
            )
        ),
    )
