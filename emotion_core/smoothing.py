"""
Per-slot majority-vote smoothing of predicted labels.
"""
from __future__ import annotations
from collections import deque
from typing import Deque, Dict, Hashable, Iterable, List


def majority_label(labels: Iterable[str]) -> str:
    """
    Most frequent label; on a tie the first label to reach the winning count
    wins (single left-to-right scan).
    """
    counts: Dict[str, int] = {}
    best = None
    best_count = 0
    for label in labels:
        counts[label] = counts.get(label, 0) + 1
        if counts[label] > best_count:
            best, best_count = label, counts[label]
    if best is None:
        raise ValueError("majority of an empty buffer is undefined")
    return best


class TemporalSmoother:
    """Bounded FIFO of recent labels per slot; oldest entries are evicted first."""

    def __init__(self, window: int = 5):
        if int(window) < 1:
            raise ValueError(f"window must be >= 1, got {window}")
        self.window = int(window)
        self._buffers: Dict[Hashable, Deque[str]] = {}

    def push(self, slot: Hashable, label: str) -> None:
        buf = self._buffers.get(slot)
        if buf is None:
            buf = self._buffers[slot] = deque(maxlen=self.window)
        buf.append(label)

    def majority(self, slot: Hashable) -> str:
        buf = self._buffers.get(slot)
        if not buf:
            raise ValueError(f"no labels pushed for slot {slot!r}")
        return majority_label(buf)

    def history(self, slot: Hashable) -> List[str]:
        return list(self._buffers.get(slot, ()))

    def drop(self, slot: Hashable) -> None:
        self._buffers.pop(slot, None)

    def reset(self) -> None:
        self._buffers.clear()

    @property
    def slots(self) -> List[Hashable]:
        return list(self._buffers)
