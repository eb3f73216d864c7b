
"""Visualization & video annotation helpers.

- draw_detections: draw rectangles & "label (confidence%)" tags for each face
- WindowSink: show annotated frames in an OpenCV window and poll the keyboard
- annotate_video: run a pipeline driver over a video file and write an annotated copy
"""
from __future__ import annotations
import logging
import os
from typing import Optional, Tuple

import cv2
import numpy as np

from emotion_core.models import FrameResult

logger = logging.getLogger(__name__)

GREEN = (0, 255, 0)
BLACK = (0, 0, 0)


def draw_detections(frame: np.ndarray,
                    result: Optional[FrameResult],
                    color: Tuple[int, int, int] = GREEN,
                    show_tta: bool = True) -> np.ndarray:
    """Draw bounding boxes and smoothed labels on a copy of the frame.

    Args:
        frame: BGR (or grayscale) image
        result: per-frame pipeline output; None draws nothing
        color: BGR color for boxes and label backgrounds
        show_tta: draw a "TTA ON/OFF" indicator in the top-left corner

    Returns:
        Annotated copy of the frame (the input is not modified)
    """
    out = frame.copy()
    if out.ndim == 2:
        out = cv2.cvtColor(out, cv2.COLOR_GRAY2BGR)
    h, w = out.shape[:2]
    if result is None:
        return out

    for face in result.faces:
        reg = face.region
        # clamp to image bounds
        x = max(0, min(reg.x, w - 1)); y = max(0, min(reg.y, h - 1))
        fw = max(0, min(reg.w, w - x)); fh = max(0, min(reg.h, h - y))
        cv2.rectangle(out, (x, y), (x + fw, y + fh), color, 2)

        text = f"{face.smoothed_label} ({face.prediction.confidence * 100:.2f}%)"
        (tw, th), _baseline = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, 0.5, 1)
        top = max(0, y - th - 5)
        cv2.rectangle(out, (x, top), (x + tw + 4, top + th + 4), color, cv2.FILLED)
        cv2.putText(out, text, (x + 2, top + th + 1), cv2.FONT_HERSHEY_SIMPLEX, 0.5, BLACK, 1, cv2.LINE_AA)

    if show_tta:
        cv2.putText(out, "TTA ON" if result.tta else "TTA OFF", (10, 20),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 0, 255), 2, cv2.LINE_AA)
    return out


class WindowSink:
    """Rendering sink backed by cv2.imshow; returns the polled key code (-1 if none)."""

    def __init__(self, title: str = "Emotion Recognition", delay_ms: int = 1):
        self.title = title
        self.delay_ms = int(delay_ms)

    def show(self, frame: np.ndarray, result: FrameResult) -> int:
        cv2.imshow(self.title, draw_detections(frame, result))
        key = cv2.waitKey(self.delay_ms)
        return -1 if key < 0 else (key & 0xFF)

    def close(self) -> None:
        cv2.destroyAllWindows()


class VideoWriterSink:
    """Writes annotated frames to a video file; never produces key presses."""

    def __init__(self, output_path: str, fps: float, size: Tuple[int, int]):
        fourcc = cv2.VideoWriter_fourcc(*"MJPG")  # robust across platforms for tests
        self.writer = cv2.VideoWriter(output_path, fourcc, fps, size)
        if not self.writer.isOpened():
            raise OSError(f"Could not open video writer: {output_path}")

    def show(self, frame: np.ndarray, result: FrameResult) -> int:
        self.writer.write(draw_detections(frame, result))
        return -1

    def close(self) -> None:
        self.writer.release()


def annotate_video(input_path: str, output_path: str, driver) -> str:
    """Annotate a video with face boxes, smoothed emotions and confidences.

    `driver` is a PipelineDriver; every frame is processed (no sampling), so
    smoothing behaves exactly as in the live window.
    Returns the path to the annotated video.
    """
    if not os.path.exists(input_path):
        raise FileNotFoundError(f"Video not found: {input_path}")

    cap = cv2.VideoCapture(input_path)
    if not cap.isOpened():
        raise RuntimeError(f"Could not open video: {input_path}")

    fps = cap.get(cv2.CAP_PROP_FPS) or 25.0
    width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
    height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
    try:
        sink = VideoWriterSink(output_path, fps, (width, height))
    except OSError:
        cap.release()
        raise

    logger.debug(f"[visual] annotating {input_path} -> {output_path} fps={fps} size={width}x{height}")
    try:
        driver.run(cap, sink=sink)
    finally:
        cap.release()
        sink.close()
    return output_path
