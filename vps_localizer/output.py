"""Origin sinks: consumers of a CorrectiveTransform (anchor update, result log)."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import numpy as np

from .services.csv_writer import CsvWriter
from .vps_types import CorrectiveTransform, LocalizationResult


class OriginSink(ABC):
    @abstractmethod
    def open(self, session_dir: Optional[Path]) -> None: ...

    @abstractmethod
    def apply(self, transform: CorrectiveTransform, result: LocalizationResult) -> bool: ...

    @abstractmethod
    def close(self) -> None: ...


class LoggingOriginSink(OriginSink):
    """
    Stands in for the AR anchor controller: records the last applied pose.

    Non-finite positions or rotations are refused and leave the previous
    anchor pose untouched.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.position: Optional[np.ndarray] = None
        self.rotation: Optional[np.ndarray] = None

    def open(self, session_dir: Optional[Path]) -> None:
        return None

    def apply(self, transform: CorrectiveTransform, result: LocalizationResult) -> bool:
        position = np.asarray(transform.position, dtype=np.float64)
        rotation = np.asarray(transform.rotation, dtype=np.float64)
        if not np.all(np.isfinite(position)):
            self.logger.warning("Invalid position: %s", position.tolist())
            return False
        if not np.all(np.isfinite(rotation)):
            self.logger.warning("Invalid rotation: %s", rotation.tolist())
            return False
        self.position = position
        self.rotation = rotation
        self.logger.info(
            "anchor updated position=%s rotation=%s",
            np.round(position, 4).tolist(),
            np.round(rotation, 4).tolist(),
        )
        return True

    def reset(self) -> None:
        self.position = np.zeros(3)
        self.rotation = np.array([0.0, 0.0, 0.0, 1.0])

    def close(self) -> None:
        return None


class CsvOriginSink(OriginSink):
    def __init__(self, filename: str = "localizations.csv"):
        self.filename = filename
        self._writer: Optional[CsvWriter] = None
        self._attempt = 0

    def open(self, session_dir: Optional[Path]) -> None:
        if session_dir is None:
            return
        path = Path(session_dir) / self.filename
        self._writer = CsvWriter(str(path))
        self._writer.open()

    def apply(self, transform: CorrectiveTransform, result: LocalizationResult) -> bool:
        if self._writer is None:
            return False
        self._attempt += 1
        self._writer.append(
            time.time(),
            self._attempt,
            "localized",
            result.confidence,
            transform.position,
            transform.rotation,
            result.map_ids,
        )
        return True

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None


class NullOriginSink(OriginSink):
    def open(self, session_dir: Optional[Path]) -> None:
        return None

    def apply(self, transform: CorrectiveTransform, result: LocalizationResult) -> bool:
        return True

    def close(self) -> None:
        return None
