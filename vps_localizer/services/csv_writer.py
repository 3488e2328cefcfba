import csv
import io

import numpy as np


class CsvWriter:
    HEADER = [
        "recorded_at",
        "attempt", "status", "confidence",
        "pos_x", "pos_y", "pos_z",
        "rot_x", "rot_y", "rot_z", "rot_w",
        "map_ids",
    ]

    def __init__(self, csv_path: str):
        self.csv_path = csv_path
        self._opened = False
        self._fh = None
        self._w = None

    def open(self):
        self._fh = open(self.csv_path, "w", newline="")
        self._w = csv.writer(self._fh)
        self._w.writerow(self.HEADER)
        self._opened = True

    @staticmethod
    def _vec(vec, n):
        if vec is None:
            return [float("nan")] * n
        a = np.array(vec, dtype=np.float64).reshape(-1).tolist()
        if len(a) < n:
            a += [float("nan")] * (n - len(a))
        return a[:n]

    @classmethod
    def row(cls, ts_unix, attempt, status, confidence, position, rotation, map_ids):
        return [
            f"{ts_unix:.6f}",
            attempt, status, f"{confidence:.4f}",
            *cls._vec(position, 3),
            *cls._vec(rotation, 4),
            ";".join(map_ids or ()),
        ]

    def append(self, ts_unix, attempt, status, confidence, position, rotation, map_ids=()):
        self._w.writerow(self.row(ts_unix, attempt, status, confidence, position, rotation, map_ids))
        self._fh.flush()

    @classmethod
    def to_csv_line(cls, ts_unix, attempt, status, confidence, position, rotation, map_ids=()):
        buf = io.StringIO()
        w = csv.writer(buf)
        w.writerow(cls.row(ts_unix, attempt, status, confidence, position, rotation, map_ids))
        return buf.getvalue().strip()

    def close(self):
        if self._opened and self._fh:
            self._fh.close()
            self._opened = False
            self._fh = None
            self._w = None
