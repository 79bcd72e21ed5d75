"""HTTP client for the satellite geofence service."""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from claimshield.adapters.http_resilience import ResilientClient
from claimshield.config import CacheConfig, RateLimit, ResilienceConfig, SatelliteConfig
from claimshield.domain.model import SatelliteGeofenceResult, SatelliteUnavailable

from .schema import SatelliteGeofencePayload

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from claimshield.domain.model import SatelliteVerdict
    from claimshield.domain.ports import SatelliteVerdictProvider

log = getLogger(__name__)

GEOFENCE_PATH = "/api/satellite/geofence"


def _should_cache_payload(payload: object) -> bool:
    try:
        SatelliteGeofencePayload.model_validate(payload)
    except ValidationError:
        return False
    return True


def resilience_for(config: SatelliteConfig) -> ResilienceConfig:
    headers = {"Authorization": f"Bearer {config.api_key}"} if config.api_key else None
    return ResilienceConfig(
        name="satellite",
        base_url=config.base_url,
        timeout_seconds=config.timeout_seconds,
        ratelimit=RateLimit(
            max_calls=max(1, math.floor(config.max_calls_per_second)), per_seconds=1.0
        ),
        cache=CacheConfig(
            backend="memory",
            default_ttl_seconds=config.cache_ttl_seconds,
            should_cache=_should_cache_payload,
        ),
        default_headers=headers,
    )


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def to_domain(payload: SatelliteGeofencePayload) -> SatelliteGeofenceResult:
    return SatelliteGeofenceResult(
        is_valid=payload.is_valid,
        land_exists=payload.land_exists,
        confidence_score=payload.confidence_score,
        water_body_detected=payload.water_body_detected,
        protected_area_detected=payload.protected_area_detected,
        existing_structures_detected=payload.existing_structures_detected,
        land_cover_type=payload.land_cover_type,
        satellite_image_url=payload.satellite_image_url,
        reasoning=payload.reasoning,
    )


@dataclass(slots=True)
class SatelliteVerdictClient:
    """Fetch a geofence verdict at a point; failures become ``SatelliteUnavailable``.

    The HTTP client is built on first use and kept, so its response cache and call
    budget span lookups. Synchronous callers share one event loop owned by this
    object; release both with ``close()`` or a ``with`` block. Async callers
    await ``fetch_verdict`` and ``aclose`` on their own loop instead.
    """

    config: SatelliteConfig = field(default_factory=SatelliteConfig.from_environment)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _client: ResilientClient | None = field(default=None, init=False, repr=False)
    _runner: asyncio.Runner | None = field(default=None, init=False, repr=False)

    def __enter__(self) -> SatelliteVerdictClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def get_verdict(self, lat: float, lng: float) -> SatelliteVerdict:
        if self._runner is None:
            self._runner = asyncio.Runner()
        return self._runner.run(self.fetch_verdict(lat, lng))

    def close(self) -> None:
        runner, self._runner = self._runner, None
        if runner is None:
            return
        try:
            runner.run(self.aclose())
        finally:
            runner.close()

    async def aclose(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()

    async def fetch_verdict(self, lat: float, lng: float) -> SatelliteVerdict:
        try:
            async with asyncio.timeout(self.config.timeout_seconds):
                payload = await self._request(lat, lng)
        except TimeoutError:
            log.warning("Satellite verdict timed out at (%s, %s)", lat, lng)
            return SatelliteUnavailable(
                reason=f"timed out after {self.config.timeout_seconds:.1f}s"
            )
        except httpx.HTTPStatusError as exc:
            log.warning("Satellite service returned %s", exc.response.status_code)
            return SatelliteUnavailable(
                reason=f"service returned HTTP {exc.response.status_code}"
            )
        except httpx.HTTPError as exc:
            log.warning("Satellite service unreachable: %s", exc)
            return SatelliteUnavailable(reason=f"service unreachable ({type(exc).__name__})")
        except (ValidationError, ValueError) as exc:
            log.warning("Malformed satellite payload: %s", exc)
            return SatelliteUnavailable(reason="malformed response payload")
        return to_domain(payload)

    async def _request(self, lat: float, lng: float) -> SatelliteGeofencePayload:
        if self._client is None:
            self._client = self.client_factory(resilience_for(self.config))
        response = await self._client.get(GEOFENCE_PATH, params={"lat": lat, "lng": lng})
        response.raise_for_status()
        return SatelliteGeofencePayload.model_validate(response.json())


if TYPE_CHECKING:
    _provider_check: SatelliteVerdictProvider = SatelliteVerdictClient()
