"""
Configuration for the emotion recognition pipeline.
"""
from pydantic import BaseModel
from typing import List
import os

DEFAULT_LABELS = "Anger,Disgust,Fear,Happiness,Sadness,Surprise,Neutral"
SLOT_POLICIES = ("iou", "positional")


def _env_bool(name: str, default: str) -> bool:
    return (os.getenv(name, default) or default).strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """
    Runtime settings with environment-variable overrides.
    """
    MODEL_PATH: str = os.getenv("MODEL_PATH", "models/mini_xception.onnx")
    # Empty -> OpenCV's bundled cascades (see emotion_core.detection)
    FACE_CASCADE_PATH: str = os.getenv("FACE_CASCADE_PATH", "")
    EYE_CASCADE_PATH: str = os.getenv("EYE_CASCADE_PATH", "")

    INPUT_WIDTH: int = int(os.getenv("INPUT_WIDTH", "64"))
    INPUT_HEIGHT: int = int(os.getenv("INPUT_HEIGHT", "64"))
    EMOTION_LABELS: List[str] = os.getenv("EMOTION_LABELS", DEFAULT_LABELS).split(",")
    CONFIDENCE_THRESHOLD: float = float(os.getenv("CONFIDENCE_THRESHOLD", "0.2"))

    SMOOTHING_WINDOW: int = int(os.getenv("SMOOTHING_WINDOW", "5"))
    TTA_ROTATION_DEG: float = float(os.getenv("TTA_ROTATION_DEG", "10"))
    USE_TTA: bool = _env_bool("USE_TTA", "false")

    SLOT_POLICY: str = os.getenv("SLOT_POLICY", "iou")
    TRACK_MIN_IOU: float = float(os.getenv("TRACK_MIN_IOU", "0.3"))
    TRACK_MAX_CENTER_DIST: float = float(os.getenv("TRACK_MAX_CENTER_DIST", "0.5"))
    TRACK_MAX_MISSED: int = int(os.getenv("TRACK_MAX_MISSED", "0"))

    FACE_SCALE_FACTOR: float = float(os.getenv("FACE_SCALE_FACTOR", "1.1"))
    FACE_MIN_NEIGHBORS: int = int(os.getenv("FACE_MIN_NEIGHBORS", "3"))
    FACE_MIN_SIZE: int = int(os.getenv("FACE_MIN_SIZE", "30"))
    EYE_SCALE_FACTOR: float = float(os.getenv("EYE_SCALE_FACTOR", "1.1"))
    EYE_MIN_NEIGHBORS: int = int(os.getenv("EYE_MIN_NEIGHBORS", "2"))
    EYE_MIN_SIZE: int = int(os.getenv("EYE_MIN_SIZE", "20"))

    CAMERA_INDEX: int = int(os.getenv("CAMERA_INDEX", "0"))
    REALTIME_LOG_PATH: str = os.getenv("REALTIME_LOG_PATH", "results.csv")
    BATCH_LOG_PATH: str = os.getenv("BATCH_LOG_PATH", "results1.csv")
    BATCH_EQUALIZE_HIST: bool = _env_bool("BATCH_EQUALIZE_HIST", "true")
    WINDOW_TITLE: str = os.getenv("WINDOW_TITLE", "Emotion Recognition")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    def __init__(self, **data):
        super().__init__(**data)
        labels = [l.strip() for l in self.EMOTION_LABELS if l and l.strip()]
        if not labels:
            raise ValueError("EMOTION_LABELS must name at least one label")
        object.__setattr__(self, "EMOTION_LABELS", labels)

        if not 0.0 <= self.CONFIDENCE_THRESHOLD <= 1.0:
            raise ValueError(f"CONFIDENCE_THRESHOLD must lie in [0, 1], got {self.CONFIDENCE_THRESHOLD}")
        if self.SMOOTHING_WINDOW < 1:
            raise ValueError(f"SMOOTHING_WINDOW must be >= 1, got {self.SMOOTHING_WINDOW}")
        if self.INPUT_WIDTH <= 0 or self.INPUT_HEIGHT <= 0:
            raise ValueError(f"input size must be positive, got {self.INPUT_WIDTH}x{self.INPUT_HEIGHT}")

        # Normalize SLOT_POLICY: lower-case, validate
        policy = (self.SLOT_POLICY or "iou").strip().lower()
        if policy not in SLOT_POLICIES:
            raise ValueError(f"SLOT_POLICY must be one of {SLOT_POLICIES}, got {self.SLOT_POLICY!r}")
        object.__setattr__(self, "SLOT_POLICY", policy)

        object.__setattr__(self, "LOG_LEVEL", (self.LOG_LEVEL or "INFO").strip().upper())

    @property
    def input_size(self) -> tuple[int, int]:
        """(width, height) as OpenCV expects it."""
        return (self.INPUT_WIDTH, self.INPUT_HEIGHT)
