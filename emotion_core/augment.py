"""
Geometric variants of a face crop for test-time augmentation.
"""
from __future__ import annotations
from typing import List
import cv2
import numpy as np

DEFAULT_ROTATION_DEG = 10.0


def rotate(crop: np.ndarray, angle_deg: float) -> np.ndarray:
    """
    Rotate about the crop's own center, keeping its size.

    Positive angles rotate counter-clockwise on screen (OpenCV convention).
    Edges are replicated so no black borders are introduced.
    """
    h, w = crop.shape[:2]
    center = (w / 2.0, h / 2.0)
    rot_mat = cv2.getRotationMatrix2D(center, float(angle_deg), 1.0)
    return cv2.warpAffine(crop, rot_mat, (w, h),
                          flags=cv2.INTER_LINEAR,
                          borderMode=cv2.BORDER_REPLICATE)


def mirror(crop: np.ndarray) -> np.ndarray:
    return cv2.flip(crop, 1)


def augment(crop: np.ndarray, rotation_deg: float = DEFAULT_ROTATION_DEG) -> List[np.ndarray]:
    """[identity, horizontal mirror, rotate(-deg), rotate(+deg)]; the order is fixed."""
    return [
        crop.copy(),
        mirror(crop),
        rotate(crop, -rotation_deg),
        rotate(crop, rotation_deg),
    ]
