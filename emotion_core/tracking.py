"""
Cross-frame association of face detections to smoothing slots.

Two policies:
  - "iou": greedy IoU matching against the previous frame's boxes, with a
    center-distance fallback; unmatched detections open new slot ids.
  - "positional": slot i is the i-th rectangle the detector returned.
"""
from __future__ import annotations
from typing import Dict, List, Sequence, Tuple
import logging
import math

from emotion_core.detection import Rect

logger = logging.getLogger(__name__)


def iou(a: Rect, b: Rect) -> float:
    ax0, ay0, aw, ah = a
    bx0, by0, bw, bh = b
    ax1, ay1 = ax0 + aw, ay0 + ah
    bx1, by1 = bx0 + bw, by0 + bh
    ix0, iy0 = max(ax0, bx0), max(ay0, by0)
    ix1, iy1 = min(ax1, bx1), min(ay1, by1)
    iw, ih = max(0, ix1 - ix0), max(0, iy1 - iy0)
    inter = iw * ih
    if inter <= 0:
        return 0.0
    return inter / float(aw * ah + bw * bh - inter)


def center_distance(a: Rect, b: Rect) -> float:
    """Distance between box centers relative to the larger side of `a`."""
    acx, acy = a[0] + a[2] / 2.0, a[1] + a[3] / 2.0
    bcx, bcy = b[0] + b[2] / 2.0, b[1] + b[3] / 2.0
    scale = max(1.0, float(max(a[2], a[3])))
    return math.hypot(acx - bcx, acy - bcy) / scale


class _Track:
    __slots__ = ("rect", "missed")

    def __init__(self, rect: Rect):
        self.rect = rect
        self.missed = 0


class SlotTracker:
    def __init__(self,
                 policy: str = "iou",
                 min_iou: float = 0.3,
                 max_center_dist: float = 0.5,
                 max_missed: int = 0):
        if policy not in ("iou", "positional"):
            raise ValueError(f"unknown slot policy: {policy!r}")
        self.policy = policy
        self.min_iou = float(min_iou)
        self.max_center_dist = float(max_center_dist)
        self.max_missed = int(max_missed)
        self._tracks: Dict[int, _Track] = {}
        self._next_slot = 0

    @property
    def active_slots(self) -> List[int]:
        return sorted(self._tracks)

    def reset(self) -> None:
        self._tracks.clear()
        self._next_slot = 0

    def assign(self, rects: Sequence[Rect]) -> Tuple[List[int], List[int]]:
        """
        Slot id for each rectangle (same order as `rects`) and the slots that
        expired this frame, whose smoothing history should be discarded.
        """
        if self.policy == "positional":
            return list(range(len(rects))), []

        slots: List[int | None] = [None] * len(rects)
        free_tracks = set(self._tracks)

        def _greedy(pairs: List[Tuple[float, int, int]]) -> None:
            for _, det_i, slot in sorted(pairs):
                if slots[det_i] is None and slot in free_tracks:
                    slots[det_i] = slot
                    free_tracks.discard(slot)

        # 1) IoU, highest first
        pairs = []
        for slot, tr in self._tracks.items():
            for i, r in enumerate(rects):
                ov = iou(tr.rect, r)
                if ov >= self.min_iou:
                    pairs.append((-ov, i, slot))
        _greedy(pairs)

        # 2) center distance for whatever is left, nearest first
        pairs = []
        for slot in free_tracks:
            tr = self._tracks[slot]
            for i, r in enumerate(rects):
                if slots[i] is not None:
                    continue
                d = center_distance(tr.rect, r)
                if d <= self.max_center_dist:
                    pairs.append((d, i, slot))
        _greedy(pairs)

        # 3) new identities in detector order
        for i, r in enumerate(rects):
            if slots[i] is None:
                slots[i] = self._next_slot
                self._tracks[self._next_slot] = _Track(r)
                logger.debug(f"[tracking] new slot {self._next_slot} rect={r}")
                self._next_slot += 1
            else:
                tr = self._tracks[slots[i]]
                tr.rect = r
                tr.missed = 0

        expired: List[int] = []
        for slot in sorted(free_tracks):
            tr = self._tracks[slot]
            tr.missed += 1
            if tr.missed > self.max_missed:
                del self._tracks[slot]
                expired.append(slot)
        if expired:
            logger.debug(f"[tracking] expired slots {expired}")
        return [int(s) for s in slots], expired
