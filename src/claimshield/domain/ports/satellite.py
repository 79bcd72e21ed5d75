"""Port for the external satellite verdict service."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from claimshield.domain.model import SatelliteVerdict


@runtime_checkable
class SatelliteVerdictProvider(Protocol):
    """Advisory environmental check at a point.

    Implementations return ``SatelliteUnavailable`` instead of raising when the
    service times out or misbehaves.
    """

    def get_verdict(self, lat: float, lng: float) -> SatelliteVerdict: ...
