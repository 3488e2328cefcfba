from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

import numpy as np


class Orientation(Enum):
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"

    @property
    def is_portrait(self) -> bool:
        return self is Orientation.PORTRAIT

    @classmethod
    def parse(cls, value: "str | Orientation") -> "Orientation":
        if isinstance(value, Orientation):
            return value
        key = (value or "").strip().lower()
        if key.startswith("portrait"):
            return cls.PORTRAIT
        if key.startswith("landscape"):
            return cls.LANDSCAPE
        raise ValueError(f"Unknown orientation: {value!r}")


class TrackingState(Enum):
    NOT_AVAILABLE = "not_available"
    NORMAL = "normal"
    LIMITED_EXCESSIVE_MOTION = "limited_excessive_motion"
    LIMITED_INITIALIZING = "limited_initializing"
    LIMITED_INSUFFICIENT_FEATURES = "limited_insufficient_features"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CameraFrame:
    image: Any  # (H, W, 3) uint8 ndarray, raw sensor buffer
    intrinsics: Any  # 3x3 pinhole matrix
    orientation: Orientation = Orientation.LANDSCAPE
    camera_transform: Any = field(default_factory=lambda: np.eye(4))  # camera-to-world
    tracking_state: TrackingState = TrackingState.NORMAL
    timestamp: float = 0.0

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    @property
    def fx(self) -> float:
        return float(self.intrinsics[0][0])

    @property
    def fy(self) -> float:
        return float(self.intrinsics[1][1])

    @property
    def cx(self) -> float:
        return float(self.intrinsics[0][2])

    @property
    def cy(self) -> float:
        return float(self.intrinsics[1][2])


@dataclass
class ResizedQuery:
    image_bytes: bytes
    width: int
    height: int
    fx: float
    fy: float
    px: float
    py: float
    mime_type: str = "image/jpeg"


@dataclass(frozen=True)
class MapSelector:
    """Either a single map or a map set; never both."""

    kind: str  # "map" | "map_set"
    code: str

    MAP = "map"
    MAP_SET = "map_set"

    @classmethod
    def map(cls, code: str) -> "MapSelector":
        return cls(cls.MAP, code)

    @classmethod
    def map_set(cls, code: str) -> "MapSelector":
        return cls(cls.MAP_SET, code)

    @property
    def field_name(self) -> str:
        return "mapCode" if self.kind == self.MAP else "mapSetCode"


@dataclass
class RequestPayload:
    fields: dict[str, str]
    image_bytes: bytes
    mime_type: str = "image/jpeg"
    file_field: str = "queryImage"
    filename: str = "frame.jpg"


@dataclass
class LocalizationResult:
    pose_found: bool
    position: Any = field(default_factory=lambda: np.zeros(3))
    rotation: Any = field(default_factory=lambda: np.array([0.0, 0.0, 0.0, 1.0]))  # x, y, z, w
    confidence: float = 0.0
    map_ids: tuple[str, ...] = ()
    raw: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class CapturePose:
    position: Any  # (3,)
    rotation: Any  # (4,) x, y, z, w
    timestamp: float = 0.0


@dataclass
class CorrectiveTransform:
    matrix: Any  # 4x4, map space -> local tracking space
    position: Any
    rotation: Any  # x, y, z, w


@dataclass
class RelocalizationOutcome:
    status: str  # "localized" | "not_found" | "failed" | "cancelled"
    result: Optional[LocalizationResult] = None
    transform: Optional[CorrectiveTransform] = None
    error: Optional[Exception] = None
    message: str = ""

    LOCALIZED = "localized"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def ok(self) -> bool:
        return self.status == self.LOCALIZED


class SessionState:
    """Observable state owned by the caller (tracking label, loading flag, last message)."""

    def __init__(self):
        self.tracking_state = ""
        self.is_loading = False
        self.message = ""
        self.last_outcome: Optional[RelocalizationOutcome] = None
        self._lock = threading.Lock()
        self._listeners: list[Callable[["SessionState"], None]] = []

    def subscribe(self, listener: Callable[["SessionState"], None]) -> None:
        self._listeners.append(listener)

    def update(self, **changes: Any) -> None:
        with self._lock:
            for key, value in changes.items():
                if key.startswith("_") or not hasattr(self, key):
                    raise AttributeError(f"SessionState has no field {key!r}")
                setattr(self, key, value)
            listeners = list(self._listeners)
        for listener in listeners:
            listener(self)
