"""
HTTP client for the VPS map query endpoint.

One multipart POST per call, no retries; the caller owns retry policy.
A negative localization (poseFound=false) is returned as data, not raised.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Optional

import numpy as np
import requests

from ..errors import BadStatus, DecodeError, TransportError, Unauthorized
from ..vps_types import LocalizationResult, RequestPayload

logger = logging.getLogger(__name__)

DEFAULT_QUERY_URL = "https://api.multiset.ai/v1/vps/map/query-form"


def _vector(obj: Any, keys: str, name: str) -> np.ndarray:
    if not isinstance(obj, dict):
        raise DecodeError(f"'{name}' must be an object")
    try:
        return np.array([float(obj[k]) for k in keys], dtype=np.float32)
    except KeyError as exc:
        raise DecodeError(f"'{name}' is missing component {exc.args[0]!r}") from exc
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"'{name}' has a non-numeric component") from exc


def decode_response(data: Any) -> LocalizationResult:
    """Map the service JSON onto LocalizationResult, raising DecodeError on schema mismatch."""
    if not isinstance(data, dict):
        raise DecodeError("response root must be an object")
    if "poseFound" not in data or not isinstance(data["poseFound"], bool):
        raise DecodeError("'poseFound' missing or not a boolean")

    pose_found = data["poseFound"]
    if pose_found:
        position = _vector(data.get("position"), "xyz", "position")
        rotation = _vector(data.get("rotation"), "xyzw", "rotation")
    else:
        position = np.zeros(3, dtype=np.float32)
        rotation = np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float32)
        # Fields may still be present on a negative result; keep them if they parse.
        if isinstance(data.get("position"), dict):
            position = _vector(data["position"], "xyz", "position")
        if isinstance(data.get("rotation"), dict):
            rotation = _vector(data["rotation"], "xyzw", "rotation")

    try:
        confidence = float(data.get("confidence", 0.0) or 0.0)
    except (TypeError, ValueError) as exc:
        raise DecodeError("'confidence' is not numeric") from exc

    map_ids = data.get("mapIds", []) or []
    if not isinstance(map_ids, list):
        raise DecodeError("'mapIds' must be a list")

    return LocalizationResult(
        pose_found=pose_found,
        position=position,
        rotation=rotation,
        confidence=confidence,
        map_ids=tuple(str(m) for m in map_ids),
        raw=data,
    )


class LocalizationClient:
    def __init__(
        self,
        query_url: str = DEFAULT_QUERY_URL,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        max_workers: int = 1,
    ):
        """
        Args:
            query_url: VPS multipart query endpoint
            timeout: Per-request timeout in seconds
            session: Optional pre-configured requests.Session
            max_workers: Threads backing localize_async()
        """
        self.query_url = query_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None

    def localize(self, payload: RequestPayload, credential: Optional[str]) -> LocalizationResult:
        if not credential or not str(credential).strip():
            raise Unauthorized("Authentication token is missing. Please authenticate first.")

        headers = {"Authorization": f"Bearer {credential}"}
        files = {
            payload.file_field: (payload.filename, payload.image_bytes, payload.mime_type),
        }

        try:
            response = self.session.post(
                self.query_url,
                data=payload.fields,
                files=files,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            logger.warning("Localization request failed: %s", exc)
            raise TransportError(str(exc)) from exc

        status = response.status_code
        logger.info("HTTP status code: %d", status)
        if status in (401, 403):
            raise Unauthorized(f"service rejected credential (HTTP {status})")
        if not 200 <= status < 300:
            raise BadStatus(status, response.text)

        try:
            data = response.json()
        except ValueError as exc:
            raise DecodeError(f"invalid JSON: {exc}") from exc

        logger.debug("response body: %s", data)
        return decode_response(data)

    def localize_async(self, payload: RequestPayload, credential: Optional[str]) -> Future:
        """Run localize() on a worker thread; the Future carries the result or the LocalizationError."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="vps")
        return self._executor.submit(self.localize, payload, credential)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        self.session.close()
