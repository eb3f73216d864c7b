"""
Haar-cascade face / eye detection bindings.
"""
from __future__ import annotations
from typing import List, Protocol, Tuple
import logging
import os

import cv2
import numpy as np

from emotion_core.errors import DetectorLoadError

logger = logging.getLogger(__name__)

Rect = Tuple[int, int, int, int]

FACE_CASCADE = "haarcascade_frontalface_default.xml"
EYE_CASCADE = "haarcascade_eye.xml"


class Detector(Protocol):
    """Maps a grayscale image to a sequence of (x, y, w, h) rectangles."""
    def detect(self, gray: np.ndarray) -> List[Rect]: ...


def bundled_cascade(name: str) -> str:
    return os.path.join(cv2.data.haarcascades, name)


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """BGR(A) -> gray; single-channel images pass through."""
    if image.ndim == 2:
        return image
    if image.shape[2] == 1:
        return image[:, :, 0]
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


class HaarDetector:
    """cv2.CascadeClassifier.detectMultiScale behind the Detector interface."""

    def __init__(self,
                 cascade_path: str,
                 scale_factor: float = 1.1,
                 min_neighbors: int = 3,
                 min_size: int = 30):
        if not cascade_path or not os.path.exists(cascade_path):
            raise DetectorLoadError(f"Haar cascade not found: {cascade_path}")
        cascade = cv2.CascadeClassifier()
        if not cascade.load(cascade_path):
            raise DetectorLoadError(f"Failed to load Haar cascade from path: {cascade_path}")
        self.cascade = cascade
        self.scale_factor = float(scale_factor)
        self.min_neighbors = int(min_neighbors)
        self.min_size = (int(min_size), int(min_size))
        logger.debug(f"[detection] loaded cascade {cascade_path}")

    def detect(self, gray: np.ndarray) -> List[Rect]:
        if gray is None or gray.size == 0:
            return []
        found = self.cascade.detectMultiScale(
            to_grayscale(gray),
            scaleFactor=self.scale_factor,
            minNeighbors=self.min_neighbors,
            minSize=self.min_size,
        )
        return [(int(x), int(y), int(w), int(h)) for (x, y, w, h) in found]


def load_face_detector(path: str = "", scale_factor: float = 1.1,
                       min_neighbors: int = 3, min_size: int = 30) -> HaarDetector:
    return HaarDetector(path or bundled_cascade(FACE_CASCADE), scale_factor, min_neighbors, min_size)


def load_eye_detector(path: str = "", scale_factor: float = 1.1,
                      min_neighbors: int = 2, min_size: int = 20) -> HaarDetector:
    return HaarDetector(path or bundled_cascade(EYE_CASCADE), scale_factor, min_neighbors, min_size)


def crop_region(gray: np.ndarray, rect: Rect) -> np.ndarray:
    """Copy of the rectangle clamped to image bounds (may be empty)."""
    H, W = gray.shape[:2]
    x, y, w, h = rect
    x0 = max(0, min(int(x), W)); y0 = max(0, min(int(y), H))
    x1 = max(x0, min(int(x) + int(w), W)); y1 = max(y0, min(int(y) + int(h), H))
    return gray[y0:y1, x0:x1].copy()
