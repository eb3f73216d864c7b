"""
Eye-based in-plane alignment of face crops (best effort).
"""
from __future__ import annotations
from typing import Optional, Sequence
import logging
import math

import cv2
import numpy as np

from emotion_core.augment import rotate
from emotion_core.detection import Detector, Rect

logger = logging.getLogger(__name__)


def eye_angle(eyes: Sequence[Rect]) -> Optional[float]:
    """
    Angle in degrees of the line joining two eye centers, left eye first.
    Returns None unless exactly two eyes are given.
    """
    if len(eyes) != 2:
        return None
    centers = sorted(
        ((x + w / 2.0, y + h / 2.0) for (x, y, w, h) in eyes),
        key=lambda c: c[0],
    )
    (lx, ly), (rx, ry) = centers
    return math.degrees(math.atan2(ry - ly, rx - lx))


def align_face(crop: np.ndarray, eye_detector: Optional[Detector]) -> np.ndarray:
    """
    Rotate the crop about its center so the eyes are level.

    Any eye count other than two is untrustworthy for the angle; the crop is
    returned unchanged in that case.
    """
    if eye_detector is None or crop.size == 0:
        return crop
    try:
        eyes = list(eye_detector.detect(crop))
    except cv2.error:
        logger.warning("[align] eye detection failed; using unaligned crop", exc_info=True)
        return crop
    angle = eye_angle(eyes)
    if angle is None:
        logger.debug(f"[align] {len(eyes)} eye(s) found; skipping alignment")
        return crop
    logger.debug(f"[align] rotating by {angle:.2f} deg")
    return rotate(crop, angle)
