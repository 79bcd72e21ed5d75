# ruff: noqa: T201

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING, Any, cast

from dotenv import load_dotenv

from claimshield.adapters.satellite import SatelliteVerdictClient
from claimshield.app import (
    advance_claim,
    check_claim,
    get_claim_review,
    get_pipeline_state,
    intake_claim,
    profile_grantor,
    protect_claim,
)
from claimshield.config import (
    ConfigurationError,
    configure_logging,
    get_policy_config,
    get_satellite_config,
    satellite_configured,
)
from claimshield.domain.model import Claim, PipelineStatus, Polygon, TriggeredBy
from claimshield.domain.pipeline import ClaimNotFoundError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Land claim conflict checks and protection")
    subparsers = parser.add_subparsers(dest="command", required=True)

    intake = subparsers.add_parser("intake", help="Register a new claim")
    intake.add_argument("--grantor", required=True, help="Seller of record")
    intake.add_argument(
        "--polygon",
        required=True,
        type=Path,
        help="GeoJSON file holding a Polygon geometry or a Feature with one",
    )
    intake.add_argument("--claim-id", type=str, help="Use this id instead of a generated one")

    check = subparsers.add_parser("check", help="Run the full spatial check on a claim")
    check.add_argument("claim_id")
    check.add_argument(
        "--no-satellite",
        action="store_true",
        help="Skip the satellite verdict even when SATELLITE_API_URL is set",
    )

    protect = subparsers.add_parser("protect", help="Record priority of sale for a claim")
    protect.add_argument("claim_id")
    protect.add_argument("--indenture-hash", required=True, help="Hash of the sale deed")
    protect.add_argument(
        "--timestamp",
        type=str,
        help="ISO-8601 time of sale (defaults to now)",
    )

    advance = subparsers.add_parser("advance", help="Move a claim through its pipeline")
    advance.add_argument("claim_id")
    advance.add_argument("status", choices=[status.value for status in PipelineStatus])
    advance.add_argument("--reason", default="", help="Free-text audit note")
    advance.add_argument(
        "--triggered-by",
        choices=[actor.value for actor in TriggeredBy],
        default=TriggeredBy.USER.value,
    )

    status = subparsers.add_parser("status", help="Show a claim's pipeline state")
    status.add_argument("claim_id")

    grantor = subparsers.add_parser("grantor", help="Profile a grantor's transaction history")
    grantor.add_argument("name")

    review = subparsers.add_parser("review", help="Show a claim's review flag and conflicts")
    review.add_argument("claim_id")

    return parser.parse_args(list(argv))


def _parse_iso_datetime(value: str) -> datetime:
    try:
        normalized = value.strip()
        if normalized.endswith("Z"):
            normalized = normalized[:-1] + "+00:00"
        dt = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise ValueError(f"Invalid ISO timestamp: {value}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _load_polygon(path: Path) -> Polygon:
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ValueError(f"Cannot read polygon file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ValueError(f"Polygon file {path} is not valid JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise ValueError(f"Polygon file {path} does not hold a GeoJSON object")
    geometry = cast(dict[str, Any], document)
    if geometry.get("type") == "Feature":
        geometry = cast(dict[str, Any], geometry.get("geometry") or {})
    return Polygon.from_geojson(geometry)


def _json_default(value: object) -> object:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Polygon):
        return value.to_geojson()
    raise TypeError(f"Cannot serialise {type(value).__name__}")


def _as_jsonable(value: object) -> object:
    if isinstance(value, Claim):
        return {
            "claim_id": value.claim_id,
            "grantor_name": value.grantor_name,
            "polygon": value.polygon.to_geojson(),
            "status": value.status,
            "priority_hash": value.priority_hash,
            "created_at": value.created_at,
        }
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            item.name: _as_jsonable(getattr(value, item.name))
            for item in dataclasses.fields(value)
        }
    if isinstance(value, tuple | list):
        return [_as_jsonable(item) for item in cast("Sequence[object]", value)]
    return value


def _emit(value: object) -> None:
    print(json.dumps(_as_jsonable(value), default=_json_default, indent=2))


def _satellite_provider(args: argparse.Namespace) -> SatelliteVerdictClient | None:
    if args.no_satellite or not satellite_configured():
        return None
    return SatelliteVerdictClient(config=get_satellite_config())


def _run(args: argparse.Namespace) -> int:
    policy = get_policy_config()
    if args.command == "intake":
        claim = intake_claim(
            grantor_name=args.grantor,
            polygon=_load_polygon(args.polygon),
            claim_id=args.claim_id,
        )
        _emit(claim)
    elif args.command == "check":
        satellite = _satellite_provider(args)
        try:
            _emit(check_claim(args.claim_id, satellite=satellite, policy=policy))
        finally:
            if satellite is not None:
                satellite.close()
    elif args.command == "protect":
        timestamp = _parse_iso_datetime(args.timestamp) if args.timestamp else None
        result = protect_claim(
            args.claim_id,
            indenture_hash=args.indenture_hash,
            timestamp=timestamp,
            triggered_by=TriggeredBy.USER,
            policy=policy,
        )
        _emit(result)
        if not result.success:
            return 1
    elif args.command == "advance":
        _emit(
            advance_claim(
                args.claim_id,
                PipelineStatus(args.status),
                triggered_by=TriggeredBy(args.triggered_by),
                reason=args.reason,
            )
        )
    elif args.command == "status":
        _emit(get_pipeline_state(args.claim_id))
    elif args.command == "grantor":
        _emit(profile_grantor(args.name, policy=policy))
    elif args.command == "review":
        _emit(get_claim_review(args.claim_id))
    else:
        raise ValueError(f"Unsupported command: {args.command}")
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    try:
        configure_logging()
    except ConfigurationError as exc:
        print(exc, file=sys.stderr)
        sys.exit(2)
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        if getattr(parsed_args, "timestamp", None):
            _parse_iso_datetime(parsed_args.timestamp)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        code = _run(parsed_args)
    except (ValueError, ConfigurationError, ClaimNotFoundError):
        log.exception("Invalid input")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)
    if code:
        sys.exit(code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
