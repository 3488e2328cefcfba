import logging

import cv2
import numpy as np

from ..errors import EncodingError
from ..vps_types import CameraFrame, ResizedQuery

logger = logging.getLogger(__name__)


class IntrinsicsAdjuster:
    """
    Strategy: resize a captured frame to the canonical query resolution and
    remap its pinhole intrinsics to match.

    Portrait frames are rotated a quarter turn before scaling so the query
    image is upright; a raw pixel (x, y) lands at (H - y, x), hence the
    principal point becomes (H - cy, cx) and the focal lengths swap. The
    portrait target is the landscape target with width and height swapped.
    """

    def __init__(self, target_width: int = 960, target_height: int = 720, jpeg_quality: int = 90):
        if target_width <= 0 or target_height <= 0:
            raise ValueError("target size must be positive")
        self.target_width = int(target_width)
        self.target_height = int(target_height)
        self.jpeg_quality = int(jpeg_quality)

    def target_size(self, portrait: bool) -> tuple[int, int]:
        if portrait:
            return self.target_height, self.target_width
        return self.target_width, self.target_height

    def _orient(self, image: np.ndarray, portrait: bool) -> np.ndarray:
        if portrait:
            return cv2.rotate(image, cv2.ROTATE_90_CLOCKWISE)
        return image

    def _encode(self, image: np.ndarray) -> bytes:
        try:
            ok, buf = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality])
        except cv2.error as exc:
            raise EncodingError(f"JPEG encode failed: {exc}") from exc
        if not ok:
            raise EncodingError("JPEG encode returned no data")
        return buf.tobytes()

    def adjust(self, frame: CameraFrame) -> ResizedQuery:
        image = frame.image
        if image is None or getattr(image, "size", 0) == 0:
            raise EncodingError("Captured frame has no pixel data")

        portrait = frame.orientation.is_portrait
        orig_w, orig_h = frame.width, frame.height

        oriented = self._orient(image, portrait)
        oriented_h, oriented_w = oriented.shape[:2]

        target_w, target_h = self.target_size(portrait)
        scale_x = target_w / oriented_w
        scale_y = target_h / oriented_h

        interp = cv2.INTER_AREA if (scale_x < 1.0 and scale_y < 1.0) else cv2.INTER_LINEAR
        try:
            resized = cv2.resize(oriented, (target_w, target_h), interpolation=interp)
        except cv2.error as exc:
            raise EncodingError(f"Resize failed: {exc}") from exc
        image_bytes = self._encode(resized)

        fx, fy, cx, cy = frame.fx, frame.fy, frame.cx, frame.cy
        if portrait:
            new_fx = fy * scale_x
            new_fy = fx * scale_y
            new_px = (orig_h - cy) * scale_x
            new_py = cx * scale_y
        else:
            new_fx = fx * scale_x
            new_fy = fy * scale_y
            new_px = cx * scale_x
            new_py = cy * scale_y

        logger.debug(
            "adjusted %dx%d %s -> %dx%d scale=(%.4f, %.4f) jpeg=%d bytes",
            orig_w, orig_h, frame.orientation.value, target_w, target_h,
            scale_x, scale_y, len(image_bytes),
        )
        return ResizedQuery(
            image_bytes=image_bytes,
            width=target_w,
            height=target_h,
            fx=float(new_fx),
            fy=float(new_fy),
            px=float(new_px),
            py=float(new_py),
        )
