"""
Pydantic data models for pipeline results, logs and API IO.
"""
from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Dict, List, Optional, Literal, Tuple


class FaceRegion(BaseModel):
    x: int
    y: int
    w: int
    h: int

    @classmethod
    def from_rect(cls, rect: Tuple[int, int, int, int]) -> "FaceRegion":
        x, y, w, h = rect
        return cls(x=int(x), y=int(y), w=int(w), h=int(h))

    def as_rect(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.w, self.h)


class Prediction(BaseModel):
    label: str
    confidence: float
    raw_label: Optional[str] = None   # arg-max label before confidence gating
    tta: bool = False
    probabilities: Dict[str, float] = Field(default_factory=dict)


class FaceResult(BaseModel):
    slot: int
    region: FaceRegion
    prediction: Prediction
    smoothed_label: str


class FrameResult(BaseModel):
    frame_index: int
    tta: bool
    faces: List[FaceResult] = Field(default_factory=list)


class RunLogRecord(BaseModel):
    frame_index: int
    label: str
    confidence: float
    augmentation_used: bool

    def to_row(self) -> List[str]:
        return [
            str(self.frame_index),
            self.label,
            f"{self.confidence:.6g}",
            "Yes" if self.augmentation_used else "No",
        ]


class BatchRecord(BaseModel):
    image: str
    true_label: str
    predicted: str


class AccuracyReport(BaseModel):
    correct: int
    total: int
    accuracy: float   # percent


# live / API models


class ImageFace(BaseModel):
    region: FaceRegion
    prediction: Prediction


class ImageAnalysis(BaseModel):
    faces: List[ImageFace] = Field(default_factory=list)


class LiveStatus(BaseModel):
    running: bool
    state: Literal["idle", "running", "stopped"] = "idle"
    tta: bool = False
    started_at: float | None = None
    last_frame: FrameResult | None = None
