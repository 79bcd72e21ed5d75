from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from claimshield.domain.model import (
    ClaimPipelineState,
    ClaimReview,
    ConflictStatus,
    PipelineStatus,
    ProtectClaimResult,
    ProtectOutcome,
    ReviewFlag,
    SpatialConflictRecord,
    TriggeredBy,
)
from claimshield.domain.pipeline import ClaimNotFoundError
from claimshield.ui import cli as cli_module
from tests.helpers.claims import make_claim, square

if TYPE_CHECKING:
    from pathlib import Path


def _write_feature(tmp_path: Path) -> Path:
    path = tmp_path / "parcel.geojson"
    feature = {"type": "Feature", "properties": {}, "geometry": square().to_geojson()}
    path.write_text(json.dumps(feature), encoding="utf-8")
    return path


def test_intake_reads_geojson_feature(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    captured: dict[str, object] = {}

    def fake_intake(**kwargs: object) -> object:
        captured.update(kwargs)
        return make_claim("claim-1")

    monkeypatch.setattr(cli_module, "intake_claim", fake_intake)

    cli_module.main(
        ["intake", "--grantor", "Ravi Kumar", "--polygon", str(_write_feature(tmp_path))]
    )

    assert captured["grantor_name"] == "Ravi Kumar"
    assert captured["polygon"] == square()
    assert captured["claim_id"] is None
    output = json.loads(capsys.readouterr().out)
    assert output["claim_id"] == "claim-1"
    assert output["status"] == "INTAKE_PENDING"
    assert output["polygon"]["type"] == "Polygon"


def test_intake_with_unreadable_polygon_exits_with_usage_error(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr(cli_module, "intake_claim", lambda **_: None)
    path = tmp_path / "broken.geojson"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(SystemExit) as exc:
        cli_module.main(["intake", "--grantor", "Ravi Kumar", "--polygon", str(path)])

    assert exc.value.code == 2


def test_protect_parses_timestamp(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_protect(claim_id: str, **kwargs: object) -> ProtectClaimResult:
        captured["claim_id"] = claim_id
        captured.update(kwargs)
        return ProtectClaimResult(outcome=ProtectOutcome.PROTECTED, message="ok")

    monkeypatch.setattr(cli_module, "protect_claim", fake_protect)

    cli_module.main(
        [
            "protect",
            "claim-1",
            "--indenture-hash",
            "deed-1",
            "--timestamp",
            "2025-02-14T12:30:00+02:00",
        ]
    )

    assert captured["claim_id"] == "claim-1"
    assert captured["indenture_hash"] == "deed-1"
    assert captured["timestamp"] == datetime(2025, 2, 14, 10, 30, tzinfo=UTC)
    assert captured["triggered_by"] is TriggeredBy.USER


def test_protect_refused_exits_with_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_protect(claim_id: str, **_: object) -> ProtectClaimResult:
        return ProtectClaimResult(
            outcome=ProtectOutcome.REGION_CONFLICT,
            message=f"{claim_id} overlaps",
            conflicting_claim_id="first",
            iou_score=0.5,
        )

    monkeypatch.setattr(cli_module, "protect_claim", fake_protect)

    with pytest.raises(SystemExit) as exc:
        cli_module.main(["protect", "claim-2", "--indenture-hash", "deed-2"])

    assert exc.value.code == 1


def test_invalid_timestamp_exits_before_running(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_protect(*_: object, **__: object) -> None:
        raise AssertionError("should not be called")

    monkeypatch.setattr(cli_module, "protect_claim", fake_protect)

    with pytest.raises(SystemExit) as exc:
        cli_module.main(
            ["protect", "claim-1", "--indenture-hash", "deed-1", "--timestamp", "yesterday"]
        )

    assert exc.value.code == 2


def test_advance_passes_enums(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    captured: dict[str, object] = {}

    def fake_advance(
        claim_id: str, to_status: PipelineStatus, **kwargs: object
    ) -> ClaimPipelineState:
        captured.update(kwargs, claim_id=claim_id, to_status=to_status)
        return ClaimPipelineState(claim_id=claim_id, status=to_status, status_history=())

    monkeypatch.setattr(cli_module, "advance_claim", fake_advance)

    cli_module.main(
        ["advance", "claim-1", "DISPUTED", "--reason", "Counter-claim", "--triggered-by", "ADMIN"]
    )

    assert captured["to_status"] is PipelineStatus.DISPUTED
    assert captured["triggered_by"] is TriggeredBy.ADMIN
    assert captured["reason"] == "Counter-claim"
    assert json.loads(capsys.readouterr().out)["status"] == "DISPUTED"


def test_unknown_claim_exits_with_usage_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_state(claim_id: str, **_: object) -> ClaimPipelineState:
        raise ClaimNotFoundError(claim_id)

    monkeypatch.setattr(cli_module, "get_pipeline_state", fake_state)

    with pytest.raises(SystemExit) as exc:
        cli_module.main(["status", "missing"])

    assert exc.value.code == 2


def test_check_without_satellite(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_check(claim_id: str, **kwargs: object) -> dict[str, object]:
        captured.update(kwargs, claim_id=claim_id)
        return {"claim_id": claim_id}

    monkeypatch.setenv("SATELLITE_API_URL", "https://satellite.example")
    monkeypatch.setattr(cli_module, "check_claim", fake_check)

    cli_module.main(["check", "claim-1", "--no-satellite"])

    assert captured["claim_id"] == "claim-1"
    assert captured["satellite"] is None


def test_unexpected_failure_exits_with_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_profile(name: str, **_: object) -> None:
        raise RuntimeError(f"store unavailable for {name}")

    monkeypatch.setattr(cli_module, "profile_grantor", fake_profile)

    with pytest.raises(SystemExit) as exc:
        cli_module.main(["grantor", "Ravi Kumar"])

    assert exc.value.code == 1


def test_check_closes_the_satellite_client(monkeypatch: pytest.MonkeyPatch) -> None:
    closed: list[bool] = []

    class FakeClient:
        def __init__(self, **_: object) -> None:
            pass

        def close(self) -> None:
            closed.append(True)

    def fake_check(claim_id: str, **kwargs: object) -> dict[str, object]:
        assert isinstance(kwargs["satellite"], FakeClient)
        raise RuntimeError(f"check failed for {claim_id}")

    monkeypatch.setenv("SATELLITE_API_URL", "https://satellite.example")
    monkeypatch.setattr(cli_module, "SatelliteVerdictClient", FakeClient)
    monkeypatch.setattr(cli_module, "check_claim", fake_check)

    with pytest.raises(SystemExit):
        cli_module.main(["check", "claim-1"])

    assert closed == [True]


def test_review_prints_flag_and_conflicts(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    flagged_at = datetime(2025, 3, 4, 8, tzinfo=UTC)

    def fake_review(claim_id: str, **_: object) -> ClaimReview:
        return ClaimReview(
            claim_id=claim_id,
            flag=ReviewFlag(
                claim_id=claim_id,
                reason="Spatial overlap detected",
                conflict_status=ConflictStatus.HIGH_RISK,
                is_litigation_flag=True,
                flagged_at=flagged_at,
            ),
            conflicts=(
                SpatialConflictRecord(
                    claim_id=claim_id,
                    conflicting_claim_id="claim-1",
                    overlap_area_sqm=1200.0,
                    overlap_percentage=50.0,
                    iou_score=0.33,
                    detected_at=flagged_at,
                ),
            ),
        )

    monkeypatch.setattr(cli_module, "get_claim_review", fake_review)

    cli_module.main(["review", "claim-2"])

    printed = json.loads(capsys.readouterr().out)
    assert printed["flag"]["conflict_status"] == "HIGH_RISK"
    assert printed["flag"]["flagged_at"] == flagged_at.isoformat()
    assert printed["conflicts"][0]["conflicting_claim_id"] == "claim-1"
