from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from pathlib import Path
from typing import Optional

from .capture import capture_pose_from_frame
from .errors import VpsError
from .output import OriginSink
from .services.storage import SessionStorage
from .vps_types import (
    CameraFrame,
    CapturePose,
    LocalizationResult,
    MapSelector,
    RelocalizationOutcome,
    RequestPayload,
    SessionState,
)


class RelocalizationTask:
    """
    Handle for one in-flight relocalization attempt.

    The continuation closes over the CapturePose snapshotted before the
    request was sent. Once cancel() returns, the pose resolver never runs for
    this attempt.
    """

    def __init__(self, request: Optional[Future] = None):
        self._request = request
        self._outcome: Future = Future()
        self._lock = threading.Lock()
        self._cancelled = False

    @classmethod
    def completed(cls, outcome: RelocalizationOutcome) -> "RelocalizationTask":
        task = cls()
        task._outcome.set_result(outcome)
        return task

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        with self._lock:
            if self._outcome.done():
                return False
            self._cancelled = True
            if self._request is not None:
                self._request.cancel()
            self._outcome.set_result(
                RelocalizationOutcome(RelocalizationOutcome.CANCELLED, message="Localization cancelled")
            )
            return True

    def done(self) -> bool:
        return self._outcome.done()

    def result(self, timeout: Optional[float] = None) -> RelocalizationOutcome:
        return self._outcome.result(timeout)

    def add_done_callback(self, fn) -> None:
        """Call fn(task) once an outcome (or an unexpected exception) is available."""
        self._outcome.add_done_callback(lambda _f: fn(self))

    def _complete(self, build) -> None:
        with self._lock:
            if self._cancelled or self._outcome.done():
                return
            try:
                outcome = build()
            except Exception as exc:
                self._outcome.set_exception(exc)
                return
            self._outcome.set_result(outcome)


class RelocalizationFacade:
    def __init__(
        self,
        adjuster,
        encoder,
        client,
        resolver,
        selector: Optional[MapSelector],
        credentials,
        logger: Optional[logging.Logger] = None,
        sinks: Optional[list[OriginSink]] = None,
        state: Optional[SessionState] = None,
        storage: Optional[SessionStorage] = None,
        right_handed: bool = True,
    ):
        self.adj = adjuster
        self.enc = encoder
        self.client = client
        self.res = resolver
        self.selector = selector
        self.credentials = credentials
        self.log = logger or logging.getLogger(__name__)
        self.sinks = list(sinks or [])
        self.state = state or SessionState()
        self.store = storage
        self.right_handed = right_handed
        self.attempts = 0

    # -- session lifecycle -------------------------------------------------

    def open(self) -> Optional[str]:
        session_path = None
        if self.store is not None:
            session_path = self.store.begin()
        session_dir = Path(session_path) if session_path else None
        for sink in self.sinks:
            sink.open(session_dir)
        return session_path

    def close(self) -> None:
        for sink in self.sinks:
            try:
                sink.close()
            except OSError as e:
                self.log.warning("Sink close failed: %s", e)
        self.client.close()

    # -- pipeline ----------------------------------------------------------

    def _prepare(self, frame: CameraFrame) -> tuple[CapturePose, RequestPayload, Optional[str]]:
        """Everything that must succeed before a request goes out."""
        capture_pose = capture_pose_from_frame(frame, self.res.epsilon)
        query = self.adj.adjust(frame)
        payload = self.enc.encode(query, self.selector, self.right_handed)
        if self.store is not None and self.store.session_dir is not None:
            self.store.save_query(payload.image_bytes, payload.fields)
        return capture_pose, payload, self.credentials.get_token()

    def _finish(self, result: LocalizationResult, capture_pose: CapturePose) -> RelocalizationOutcome:
        if not result.pose_found:
            self.log.info("Pose not found. confidence=%.3f", result.confidence)
            return RelocalizationOutcome(
                RelocalizationOutcome.NOT_FOUND, result=result, message="Pose not found"
            )

        try:
            transform = self.res.resolve(result, capture_pose)
        except VpsError as e:
            return self._failed(e, result)

        for sink in self.sinks:
            sink.apply(transform, result)

        self.log.info(
            "localized confidence=%.3f maps=%s position=%s",
            result.confidence,
            ",".join(result.map_ids),
            [round(float(v), 4) for v in transform.position],
        )
        return RelocalizationOutcome(
            RelocalizationOutcome.LOCALIZED,
            result=result,
            transform=transform,
            message="Localization Success",
        )

    def _failed(self, e: VpsError, result: Optional[LocalizationResult] = None) -> RelocalizationOutcome:
        self.log.warning("Localization failed (%s): %s", type(e).__name__, e)
        return RelocalizationOutcome(
            RelocalizationOutcome.FAILED, result=result, error=e, message=str(e)
        )

    def _record(self, outcome: RelocalizationOutcome) -> RelocalizationOutcome:
        self.state.update(is_loading=False, message=outcome.message, last_outcome=outcome)
        if self.store is not None and self.store.session_dir is not None:
            self.store.save_result({
                "attempt": self.attempts,
                "recorded_at": time.time(),
                "status": outcome.status,
                "error": type(outcome.error).__name__ if outcome.error else None,
                "message": outcome.message,
                "response": outcome.result.raw if outcome.result else None,
                "corrective_matrix": outcome.transform.matrix if outcome.transform else None,
            })
        return outcome

    def localize(self, frame: CameraFrame) -> RelocalizationOutcome:
        """Run one attempt and block until it completes."""
        self.attempts += 1
        self.state.update(is_loading=True, message="Localizing...")
        try:
            capture_pose, payload, token = self._prepare(frame)
            result = self.client.localize(payload, token)
        except VpsError as e:
            return self._record(self._failed(e))
        return self._record(self._finish(result, capture_pose))

    def submit(self, frame: CameraFrame) -> RelocalizationTask:
        """Start one attempt without blocking; the request runs on the client's worker thread."""
        self.attempts += 1
        self.state.update(is_loading=True, message="Localizing...")
        try:
            capture_pose, payload, token = self._prepare(frame)
        except VpsError as e:
            return RelocalizationTask.completed(self._record(self._failed(e)))

        request = self.client.localize_async(payload, token)
        task = RelocalizationTask(request)

        def _continue(fut: Future, pose: CapturePose = capture_pose) -> None:
            def _build() -> RelocalizationOutcome:
                try:
                    result = fut.result()
                except VpsError as e:
                    return self._record(self._failed(e))
                return self._record(self._finish(result, pose))

            if fut.cancelled():
                # either task.cancel() or client.close() dropped the queued request
                task.cancel()
                return
            task._complete(_build)

        request.add_done_callback(_continue)
        task.add_done_callback(self._on_cancel)
        return task

    def _on_cancel(self, task: RelocalizationTask) -> None:
        if task.cancelled:
            outcome = task.result()
            self.log.info("Localization attempt cancelled")
            self.state.update(is_loading=False, message=outcome.message, last_outcome=outcome)
