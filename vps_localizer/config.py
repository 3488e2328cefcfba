from __future__ import annotations

import json
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Optional

import yaml

from .services.client import DEFAULT_QUERY_URL


@dataclass
class VpsConfig:
    query_url: str = DEFAULT_QUERY_URL
    map_code: str = ""
    map_set_code: str = ""
    map_type: Optional[str] = None  # "map", "map_set" or None (infer from codes)
    right_handed: bool = True
    target_width: int = 960
    target_height: int = 720
    jpeg_quality: int = 90
    timeout_sec: float = 30.0
    degenerate_epsilon: float = 1e-6
    token: Optional[str] = None
    session_root: str = "data/sessions"
    save_queries: bool = False
    log_level: str = "INFO"

    def as_dict(self) -> dict[str, Any]:
        d = asdict(self)
        if d.get("token"):
            d["token"] = "***"
        return d

    def apply_overrides(self, **kwargs: Any) -> "VpsConfig":
        for key, value in kwargs.items():
            if value is not None and hasattr(self, key):
                setattr(self, key, value)
        return self

    def apply_env(self, environ: Optional[dict[str, str]] = None) -> "VpsConfig":
        """Fill blanks from VPS_TOKEN / VPS_MAP_CODE / VPS_MAP_SET_CODE."""
        env = os.environ if environ is None else environ
        if not self.token and env.get("VPS_TOKEN"):
            self.token = env["VPS_TOKEN"]
        if not self.map_code and env.get("VPS_MAP_CODE"):
            self.map_code = env["VPS_MAP_CODE"]
        if not self.map_set_code and env.get("VPS_MAP_SET_CODE"):
            self.map_set_code = env["VPS_MAP_SET_CODE"]
        return self


def _normalize_map_type(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    key = str(value).strip().lower().replace("-", "_")
    if key in ("map", "map_set"):
        return key
    if key == "mapset":
        return "map_set"
    raise ValueError(f"map_type must be 'map' or 'map_set', got {value!r}")


def _parse_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in {"true", "yes", "on", "1"}:
        return True
    if text in {"false", "no", "off", "0", ""}:
        return False
    raise ValueError(f"{key} must be a boolean, got {value!r}")


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML config root must be a mapping")
    return data


def load_config(path: str | Path) -> VpsConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = _load_yaml(p)
    else:
        with p.open("r", encoding="utf-8") as fp:
            raw = json.load(fp)

    if not isinstance(raw, dict):
        raise ValueError("Config root must be a JSON/YAML object")

    cfg = VpsConfig()
    cfg.query_url = str(raw.get("query_url", cfg.query_url))
    cfg.map_code = str(raw.get("map_code", cfg.map_code) or "")
    cfg.map_set_code = str(raw.get("map_set_code", cfg.map_set_code) or "")
    cfg.map_type = _normalize_map_type(raw.get("map_type", cfg.map_type))
    cfg.right_handed = _parse_bool(raw.get("right_handed", cfg.right_handed), "right_handed")
    cfg.target_width = int(raw.get("target_width", cfg.target_width))
    cfg.target_height = int(raw.get("target_height", cfg.target_height))
    cfg.jpeg_quality = int(raw.get("jpeg_quality", cfg.jpeg_quality))
    cfg.timeout_sec = float(raw.get("timeout_sec", cfg.timeout_sec))
    cfg.degenerate_epsilon = float(raw.get("degenerate_epsilon", cfg.degenerate_epsilon))
    cfg.token = raw.get("token", cfg.token)
    cfg.session_root = str(raw.get("session_root", cfg.session_root))
    cfg.save_queries = _parse_bool(raw.get("save_queries", cfg.save_queries), "save_queries")
    cfg.log_level = str(raw.get("log_level", cfg.log_level)).upper()

    if not 1 <= cfg.jpeg_quality <= 100:
        raise ValueError("jpeg_quality must be within 1..100")
    if cfg.target_width <= 0 or cfg.target_height <= 0:
        raise ValueError("target_width and target_height must be positive")

    return cfg
