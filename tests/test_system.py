import json
import sys
from pathlib import Path

import cv2
import numpy as np
import pytest

from vps_localizer import run
from vps_localizer.errors import TransportError
from vps_localizer.vps_types import LocalizationResult


def _write_inputs(tmp_path: Path, orientation="landscape", position=(0.0, 0.0, 2.0)):
    image_path = tmp_path / "frame.png"
    image = np.full((480, 640, 3), 127, dtype=np.uint8)
    assert cv2.imwrite(str(image_path), image)

    transform = np.eye(4)
    transform[:3, 3] = position
    meta_path = tmp_path / "frame.json"
    meta_path.write_text(json.dumps({
        "intrinsics": {"fx": 500.0, "fy": 480.0, "cx": 320.0, "cy": 240.0},
        "orientation": orientation,
        "camera_transform": transform.tolist(),
        "tracking_state": "normal",
    }), encoding="utf-8")
    return image_path, meta_path


@pytest.mark.system
def test_cli_dry_run_prints_payload(tmp_path, monkeypatch, capsys):
    image_path, meta_path = _write_inputs(tmp_path)
    monkeypatch.setattr(sys, "argv", [
        "prog", "--image", str(image_path), "--frame-meta", str(meta_path),
        "--map-code", "MAP_X", "--dry-run",
    ])
    monkeypatch.delenv("VPS_MAP_SET_CODE", raising=False)

    assert run.main() == 0
    fields = json.loads(capsys.readouterr().out)
    assert fields["mapCode"] == "MAP_X"
    assert "mapSetCode" not in fields
    assert fields["width"] == "960" and fields["height"] == "720"
    assert float(fields["fx"]) == pytest.approx(500.0 * 960 / 640)
    assert float(fields["fy"]) == pytest.approx(480.0 * 720 / 480)
    assert fields["queryImageBytes"] > 0


@pytest.mark.system
def test_cli_missing_map_code_is_configuration_error(tmp_path, monkeypatch, capsys):
    image_path, meta_path = _write_inputs(tmp_path)
    monkeypatch.setattr(sys, "argv", ["prog", "--image", str(image_path), "--frame-meta", str(meta_path)])
    monkeypatch.delenv("VPS_MAP_CODE", raising=False)
    monkeypatch.delenv("VPS_MAP_SET_CODE", raising=False)

    assert run.main() == 2
    assert "Configuration error" in capsys.readouterr().err


@pytest.mark.system
def test_cli_localizes_and_archives_session(tmp_path, monkeypatch, capsys):
    image_path, meta_path = _write_inputs(tmp_path)
    sessions = tmp_path / "sessions"
    monkeypatch.setattr(sys, "argv", [
        "prog", "--image", str(image_path), "--frame-meta", str(meta_path),
        "--map-set-code", "SET_1", "--token", "tok",
        "--out", str(sessions), "--save-queries",
    ])
    monkeypatch.delenv("VPS_MAP_CODE", raising=False)

    sent = []

    def _fake_localize(self, payload, credential):
        sent.append((payload.fields, credential))
        return LocalizationResult(
            pose_found=True,
            position=np.array([1.0, 0.0, 0.0], dtype=np.float32),
            rotation=np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float32),
            confidence=0.9,
            map_ids=("M1",),
            raw={"poseFound": True},
        )

    monkeypatch.setattr("vps_localizer.services.client.LocalizationClient.localize", _fake_localize)

    assert run.main() == 0
    out = capsys.readouterr().out
    assert "status: localized" in out

    fields, credential = sent[0]
    assert credential == "tok"
    assert fields["mapSetCode"] == "SET_1"

    session_dir = next(sessions.glob("SET_1_vps_*"))
    assert (session_dir / "config.json").exists()
    assert json.loads((session_dir / "config.json").read_text())["token"] == "***"
    assert (session_dir / "queries" / "query_000001.jpg").exists()
    assert (session_dir / "results" / "result_000001.json").exists()
    assert (session_dir / "localizations.csv").exists()
    session_log = (session_dir / "logs" / "session.log").read_text(encoding="utf-8")
    assert f"[SET_1/{session_dir.name}]" in session_log
    assert "localized confidence=0.900" in session_log


@pytest.mark.system
def test_cli_transport_failure_exit_code(tmp_path, monkeypatch, capsys):
    image_path, meta_path = _write_inputs(tmp_path)
    monkeypatch.setattr(sys, "argv", [
        "prog", "--image", str(image_path), "--frame-meta", str(meta_path),
        "--map-code", "MAP_X", "--token", "tok",
    ])
    monkeypatch.delenv("VPS_MAP_SET_CODE", raising=False)

    def _fail(self, payload, credential):
        raise TransportError("unreachable")

    monkeypatch.setattr("vps_localizer.services.client.LocalizationClient.localize", _fail)

    assert run.main() == 1
    out = capsys.readouterr().out
    assert "status: failed" in out
    assert "error: TransportError" in out


@pytest.mark.system
@pytest.mark.parametrize("meta,needle", [
    ({"orientation": "landscape"}, "intrinsics"),
    ({"intrinsics": {"fx": 1.0, "fy": 1.0, "cx": 0.0}}, "cy"),
    ({"intrinsics": {"fx": 1.0, "fy": 1.0, "cx": 0.0, "cy": 0.0}, "tracking_state": "lost"}, "lost"),
])
def test_cli_bad_frame_metadata_exit_code(tmp_path, monkeypatch, capsys, meta, needle):
    image_path, meta_path = _write_inputs(tmp_path)
    meta_path.write_text(json.dumps(meta), encoding="utf-8")
    monkeypatch.setattr(sys, "argv", [
        "prog", "--image", str(image_path), "--frame-meta", str(meta_path), "--map-code", "MAP_X",
    ])
    monkeypatch.delenv("VPS_MAP_SET_CODE", raising=False)

    assert run.main() == 2
    err = capsys.readouterr().err
    assert "Frame error" in err
    assert needle in err


@pytest.mark.system
def test_cli_unreadable_image_exit_code(tmp_path, monkeypatch, capsys):
    _image_path, meta_path = _write_inputs(tmp_path)
    monkeypatch.setattr(sys, "argv", [
        "prog", "--image", str(tmp_path / "missing.png"), "--frame-meta", str(meta_path), "--map-code", "MAP_X",
    ])
    monkeypatch.delenv("VPS_MAP_SET_CODE", raising=False)

    assert run.main() == 2
    assert "Could not read image" in capsys.readouterr().err


@pytest.mark.system
def test_cli_bad_config_file_exit_code(tmp_path, monkeypatch, capsys):
    image_path, meta_path = _write_inputs(tmp_path)
    cfg_path = tmp_path / "vps.json"
    cfg_path.write_text(json.dumps({"map_code": "M", "jpeg_quality": 500}), encoding="utf-8")
    monkeypatch.setattr(sys, "argv", [
        "prog", "--config", str(cfg_path), "--image", str(image_path), "--frame-meta", str(meta_path),
    ])

    assert run.main() == 2
    assert "jpeg_quality" in capsys.readouterr().err
