"""
Face crop -> model tensor conversion.
"""
from __future__ import annotations
from typing import Tuple
import cv2
import numpy as np

from emotion_core.detection import to_grayscale
from emotion_core.errors import InvalidInput


def center_square(crop: np.ndarray) -> np.ndarray:
    """Centered square sub-region; odd remainders bias toward the top-left."""
    h, w = crop.shape[:2]
    size = min(h, w)
    off_x = (w - size) // 2
    off_y = (h - size) // 2
    return crop[off_y:off_y + size, off_x:off_x + size]


def preprocess(crop: np.ndarray, target_size: Tuple[int, int]) -> np.ndarray:
    """
    Convert a grayscale face crop into the normalized tensor the model expects.

    Steps: center square crop -> bilinear resize to target_size (width, height)
    -> scale [0,255] to [0,1] -> map to [-1,1] via (x - 0.5) / 0.5.

    Returns:
        float32 array of shape (height, width, 1). The input is never modified.

    Raises:
        InvalidInput: if the crop is missing or has zero width/height.
    """
    if crop is None or crop.ndim < 2 or crop.shape[0] == 0 or crop.shape[1] == 0:
        shape = None if crop is None else crop.shape
        raise InvalidInput(f"empty face crop (shape={shape})")
    crop = to_grayscale(crop)

    width, height = int(target_size[0]), int(target_size[1])
    square = center_square(crop)
    resized = cv2.resize(square, (width, height), interpolation=cv2.INTER_LINEAR)

    scaled = resized.astype(np.float32) / 255.0
    normalized = (scaled - 0.5) / 0.5
    return normalized.reshape(height, width, 1)
