"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class PipelineStatus(StrEnum):
    INTAKE_PENDING = "INTAKE_PENDING"
    AI_VERIFIED = "AI_VERIFIED"
    SPATIAL_LOCKED = "SPATIAL_LOCKED"
    MINTED = "MINTED"
    GOVT_TITLE_SYNC = "GOVT_TITLE_SYNC"

    # absorbing
    REJECTED = "REJECTED"
    DISPUTED = "DISPUTED"


class TriggeredBy(StrEnum):
    SYSTEM = "SYSTEM"
    USER = "USER"
    ADMIN = "ADMIN"


class Severity(StrEnum):
    NONE = "NONE"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class AlertType(StrEnum):
    NONE = "NONE"
    OVERLAP_WARNING = "OVERLAP_WARNING"
    CRITICAL_CONFLICT = "CRITICAL_CONFLICT"
    DOUBLE_SALE_SUSPECTED = "DOUBLE_SALE_SUSPECTED"


class AlertSeverity(StrEnum):
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ConflictStatus(StrEnum):
    CLEAR = "CLEAR"
    POTENTIAL_DISPUTE = "POTENTIAL_DISPUTE"
    HIGH_RISK = "HIGH_RISK"


class RiskLevel(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Recommendation(StrEnum):
    PROCEED = "PROCEED"
    REVIEW = "REVIEW"
    REJECT = "REJECT"


class ProtectOutcome(StrEnum):
    PROTECTED = "PROTECTED"
    ALREADY_PROTECTED = "ALREADY_PROTECTED"
    REGION_CONFLICT = "REGION_CONFLICT"
    INVALID_POLYGON = "INVALID_POLYGON"
