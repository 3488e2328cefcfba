import argparse
import json
import logging
import sys
from pathlib import Path

import cv2
import numpy as np

from .config import VpsConfig, load_config
from .errors import VpsError
from .facade import RelocalizationFacade
from .factory import StrategyFactory
from .logging_utils import add_session_handler, remove_session_handler, setup_logger
from .output import CsvOriginSink, LoggingOriginSink
from .services.storage import SessionStorage
from .vps_types import CameraFrame, Orientation, RelocalizationOutcome, SessionState, TrackingState


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Relocalize one captured frame against a VPS map")
    ap.add_argument("--config", help="Path to JSON/YAML config")
    ap.add_argument("--image", required=True, help="Captured frame (any format OpenCV reads)")
    ap.add_argument("--frame-meta", required=True,
                    help="JSON with intrinsics, orientation, camera_transform, tracking_state")

    ap.add_argument("--map-code")
    ap.add_argument("--map-set-code")
    ap.add_argument("--map-type", choices=["map", "map_set"])
    ap.add_argument("--query-url")
    ap.add_argument("--token", help="Bearer token (default: config or $VPS_TOKEN)")
    ap.add_argument("--timeout", type=float)
    ap.add_argument("--out", help="Session root for archived queries")
    ap.add_argument("--save-queries", action="store_true")
    ap.add_argument("--dry-run", action="store_true", help="Build the request payload but do not send it")
    ap.add_argument("--log-level")

    return ap


def _apply_args(cfg: VpsConfig, args: argparse.Namespace) -> VpsConfig:
    cfg.apply_overrides(
        map_code=args.map_code,
        map_set_code=args.map_set_code,
        map_type=args.map_type,
        query_url=args.query_url,
        token=args.token,
        timeout_sec=args.timeout,
        session_root=args.out,
        save_queries=True if args.save_queries else None,
        log_level=args.log_level.upper() if args.log_level else None,
    )
    return cfg


def _intrinsics_from_meta(raw) -> np.ndarray:
    if isinstance(raw, dict):
        K = np.eye(3)
        missing = [k for k in ("fx", "fy", "cx", "cy") if k not in raw]
        if missing:
            raise ValueError(f"intrinsics missing {', '.join(missing)}")
        K[0, 0] = float(raw["fx"])
        K[1, 1] = float(raw["fy"])
        K[0, 2] = float(raw["cx"])
        K[1, 2] = float(raw["cy"])
        return K
    K = np.asarray(raw, dtype=np.float64)
    if K.shape != (3, 3):
        raise ValueError("intrinsics must be a 3x3 matrix or {fx, fy, cx, cy}")
    return K


def load_frame(image_path: str, meta_path: str) -> CameraFrame:
    image = cv2.imread(str(image_path), cv2.IMREAD_COLOR)
    if image is None:
        raise FileNotFoundError(f"Could not read image: {image_path}")

    with Path(meta_path).open("r", encoding="utf-8") as fp:
        meta = json.load(fp)

    if not isinstance(meta, dict) or "intrinsics" not in meta:
        raise ValueError(f"{meta_path}: missing 'intrinsics'")
    transform = np.asarray(meta.get("camera_transform", np.eye(4)), dtype=np.float64)
    if transform.shape != (4, 4):
        raise ValueError("camera_transform must be a 4x4 matrix")

    return CameraFrame(
        image=image,
        intrinsics=_intrinsics_from_meta(meta["intrinsics"]),
        orientation=Orientation.parse(meta.get("orientation", "landscape")),
        camera_transform=transform,
        tracking_state=TrackingState(meta.get("tracking_state", TrackingState.NORMAL.value)),
        timestamp=float(meta.get("timestamp", 0.0)),
    )


def _print_outcome(outcome: RelocalizationOutcome) -> None:
    print(f"status: {outcome.status}")
    print(f"message: {outcome.message}")
    if outcome.error is not None:
        print(f"error: {type(outcome.error).__name__}")
    if outcome.result is not None:
        print(f"confidence: {outcome.result.confidence:.3f}")
        print(f"map_ids: {', '.join(outcome.result.map_ids)}")
    if outcome.transform is not None:
        np.set_printoptions(precision=5, suppress=True)
        print(f"position: {outcome.transform.position}")
        print(f"rotation: {outcome.transform.rotation}")
        print("corrective_matrix:")
        print(outcome.transform.matrix)


def main() -> int:
    ap = _build_parser()
    args = ap.parse_args()

    try:
        cfg = load_config(args.config) if args.config else VpsConfig()
        cfg = _apply_args(cfg, args)
        cfg.apply_env()
        selector = StrategyFactory.selector_from_config(cfg)
    except (OSError, ValueError, VpsError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    logger = setup_logger(selector.code, getattr(logging, cfg.log_level, logging.INFO))
    try:
        frame = load_frame(args.image, args.frame_meta)
    except (OSError, KeyError, ValueError) as e:
        print(f"Frame error: {e}", file=sys.stderr)
        return 2
    adj, enc, client, res = StrategyFactory.from_config(cfg)

    if args.dry_run:
        try:
            query = adj.adjust(frame)
            payload = enc.encode(query, selector, cfg.right_handed)
        except VpsError as e:
            print(f"{type(e).__name__}: {e}", file=sys.stderr)
            return 1
        print(json.dumps({**payload.fields, "queryImageBytes": len(payload.image_bytes)}, indent=2))
        return 0

    storage = None
    sinks = [LoggingOriginSink(logger)]
    if cfg.save_queries:
        storage = SessionStorage(cfg.session_root, name=f"{selector.code}_vps")
        sinks.append(CsvOriginSink())

    state = SessionState()
    facade = RelocalizationFacade(
        adj, enc, client, res,
        selector,
        StrategyFactory.credentials_from_config(cfg),
        logger=logger,
        sinks=sinks,
        state=state,
        storage=storage,
        right_handed=cfg.right_handed,
    )

    session_handler = None
    session_path = facade.open()
    if session_path:
        storage.write_manifest(cfg.as_dict())
        session_handler = add_session_handler(selector.code, session_path)
        logger.info("session started: %s", session_path)

    try:
        outcome = facade.localize(frame)
    finally:
        facade.close()
        if session_handler is not None:
            remove_session_handler(session_handler)

    _print_outcome(outcome)
    return 0 if outcome.ok else 1


if __name__ == "__main__":
    sys.exit(main())
