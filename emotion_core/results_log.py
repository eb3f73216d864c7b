"""
Per-run CSV log of realtime predictions.
"""
from __future__ import annotations
from typing import Optional
import csv
import logging

from emotion_core.models import RunLogRecord

logger = logging.getLogger(__name__)

REALTIME_HEADER = ["Frame", "Emotion", "Confidence", "TTA"]


class RealtimeLog:
    """
    Append-only `Frame,Emotion,Confidence,TTA` CSV.

    If the file cannot be opened or written, the log degrades to console-only
    reporting instead of stopping the stream.
    """

    def __init__(self, path: Optional[str]):
        self.path = path
        self._fh = None
        self._writer = None
        if not path:
            return
        try:
            self._fh = open(path, "w", newline="", encoding="utf-8")
            self._writer = csv.writer(self._fh)
            self._writer.writerow(REALTIME_HEADER)
            self._fh.flush()
            logger.debug(f"[results_log] writing realtime log to {path}")
        except OSError:
            logger.exception(f"[results_log] cannot open {path}; console-only reporting")
            self._close_quietly()

    @property
    def degraded(self) -> bool:
        return self._writer is None

    def append(self, record: RunLogRecord) -> None:
        row = record.to_row()
        if self._writer is None:
            logger.info(f"[results_log] {','.join(row)}")
            return
        try:
            self._writer.writerow(row)
            self._fh.flush()
        except OSError:
            logger.exception(f"[results_log] write to {self.path} failed; console-only reporting")
            self._close_quietly()
            logger.info(f"[results_log] {','.join(row)}")

    def _close_quietly(self) -> None:
        fh, self._fh, self._writer = self._fh, None, None
        if fh is not None:
            try:
                fh.close()
            except OSError:
                logger.warning(f"[results_log] failed to close {self.path}")

    def close(self) -> None:
        self._close_quietly()

    def __enter__(self) -> "RealtimeLog":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
