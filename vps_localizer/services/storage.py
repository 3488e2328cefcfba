from pathlib import Path
import json

import numpy as np


def _jsonable(value):
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, (np.floating, np.integer)):
        return value.item()
    if isinstance(value, Path):
        return str(value)
    raise TypeError(f"Not JSON serializable: {type(value).__name__}")


class SessionStorage:
    """Archives query images and service responses for one localization session."""

    def __init__(self, root: str, name: str = "vps_session"):
        self.root = Path(root)
        self.session_dir = None
        self.queries_dir = None
        self.results_dir = None
        self.logs_dir = None
        self.last_path = None
        self.name = name
        self.count = 0

    def begin(self) -> str:
        from time import strftime
        sid = f"{self.name}_{strftime('%Y%m%d_%H%M%S')}"
        self.session_dir = self.root / sid
        self.queries_dir = self.session_dir / "queries"
        self.results_dir = self.session_dir / "results"
        self.logs_dir = self.session_dir / "logs"
        for d in (self.queries_dir, self.results_dir, self.logs_dir):
            d.mkdir(parents=True, exist_ok=True)
        return str(self.session_dir)

    def save_query(self, image_bytes: bytes, fields: dict) -> str:
        """Save the encoded query image plus its form fields."""
        self.count += 1
        p = self.queries_dir / f"query_{self.count:06d}.jpg"
        p.write_bytes(image_bytes)
        with open(self.queries_dir / f"query_{self.count:06d}.json", "w") as fp:
            json.dump(fields, fp, indent=2)
        self.last_path = str(p)
        return str(p)

    def save_result(self, record: dict) -> str:
        p = self.results_dir / f"result_{self.count:06d}.json"
        with open(p, "w") as fp:
            json.dump(record, fp, indent=2, default=_jsonable)
        return str(p)

    def write_manifest(self, meta: dict):
        with open(self.session_dir / "config.json", "w") as fp:
            json.dump(meta, fp, indent=2, default=_jsonable)
