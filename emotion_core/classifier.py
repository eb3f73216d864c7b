"""
Emotion classification over face crops, with optional test-time augmentation.
"""
from __future__ import annotations
from typing import List, Optional, Protocol, Sequence, Tuple
import logging
import os

import cv2
import numpy as np

from emotion_core.augment import DEFAULT_ROTATION_DEG, augment
from emotion_core.errors import ModelInferenceError, ModelLoadError
from emotion_core.models import Prediction
from emotion_core.preprocess import preprocess
from emotion_core.scoring import aggregate, argmax_with_confidence, softmax

logger = logging.getLogger(__name__)

UNCERTAIN_LABEL = "Uncertain"
UNKNOWN_LABEL = "Unknown"


class EmotionModel(Protocol):
    """Anything that maps a [1,H,W,1] float tensor to a raw score vector."""
    def forward(self, tensor: np.ndarray) -> np.ndarray: ...


class OnnxEmotionModel:
    """ONNX classifier loaded through OpenCV's DNN module."""

    def __init__(self, model_path: str, input_size: Tuple[int, int]):
        if not model_path or not os.path.exists(model_path):
            raise ModelLoadError(f"Model not found: {model_path}")
        try:
            net = cv2.dnn.readNetFromONNX(model_path)
        except cv2.error as e:
            raise ModelLoadError(f"Failed to load ONNX model from path: {model_path}") from e
        if net.empty():
            raise ModelLoadError(f"Failed to load ONNX model from path: {model_path}")
        self.net = net
        self.input_size = (int(input_size[0]), int(input_size[1]))
        logger.debug(f"[classifier] loaded model {model_path} input_size={self.input_size}")

    @property
    def expected_shape(self) -> Tuple[int, int, int, int]:
        w, h = self.input_size
        return (1, h, w, 1)

    def forward(self, tensor: np.ndarray) -> np.ndarray:
        if tensor.shape != self.expected_shape:
            raise ModelInferenceError(
                f"tensor shape {tuple(tensor.shape)} does not match model input {self.expected_shape}"
            )
        try:
            self.net.setInput(np.ascontiguousarray(tensor, dtype=np.float32))
            out = self.net.forward()
        except cv2.error as e:
            raise ModelInferenceError(f"forward failed: {e}") from e
        scores = np.asarray(out, dtype=np.float32).reshape(-1)
        if scores.size == 0:
            raise ModelInferenceError("model returned an empty score vector")
        return scores


def apply_confidence_gate(label: str, confidence: float, threshold: float) -> str:
    """Strictly-below-threshold predictions become "Uncertain"."""
    return UNCERTAIN_LABEL if confidence < threshold else label


class EmotionClassifier:
    """
    Preprocess -> model -> softmax (-> TTA average) -> arg-max -> gate.

    The label list maps score indices to names and must match the order the
    model was trained with.
    """

    def __init__(self,
                 model: EmotionModel,
                 labels: Sequence[str],
                 input_size: Tuple[int, int] = (64, 64),
                 confidence_threshold: float = 0.2,
                 rotation_deg: float = DEFAULT_ROTATION_DEG):
        if not labels:
            raise ValueError("labels must not be empty")
        self.model = model
        self.labels: List[str] = list(labels)
        self.input_size = (int(input_size[0]), int(input_size[1]))
        self.confidence_threshold = float(confidence_threshold)
        self.rotation_deg = float(rotation_deg)

    # ---- building blocks ----
    def _distribution(self, crop: np.ndarray) -> np.ndarray:
        tensor = preprocess(crop, self.input_size)[np.newaxis, ...]
        try:
            raw = self.model.forward(tensor)
        except ModelInferenceError:
            raise
        except Exception as e:
            raise ModelInferenceError(f"model invocation failed: {e}") from e
        try:
            return softmax(raw)
        except ValueError as e:
            raise ModelInferenceError(f"unusable model output: {e}") from e

    def variants(self, crop: np.ndarray) -> List[np.ndarray]:
        """The original crop followed by its four augmentations."""
        return [crop] + augment(crop, self.rotation_deg)

    def predict_distribution(self, crop: np.ndarray, use_tta: bool = False) -> np.ndarray:
        if not use_tta:
            return self._distribution(crop)
        dists = [self._distribution(v) for v in self.variants(crop)]
        return aggregate(dists)

    def label_for(self, index: int) -> str:
        return self.labels[index] if 0 <= index < len(self.labels) else UNKNOWN_LABEL

    # ---- public ----
    def classify(self, crop: np.ndarray, use_tta: bool = False) -> Prediction:
        """
        Single-frame label and confidence for a grayscale face crop.

        Raises:
            InvalidInput: empty crop.
            ModelInferenceError: the model call failed.
        """
        dist = self.predict_distribution(crop, use_tta)
        idx, confidence = argmax_with_confidence(dist)
        raw_label = self.label_for(idx)
        label = apply_confidence_gate(raw_label, confidence, self.confidence_threshold)

        prefix = "TTA " if use_tta else ""
        logger.info(f"[classifier] {prefix}{raw_label} ({confidence:.4f})")
        return Prediction(
            label=label,
            confidence=confidence,
            raw_label=raw_label,
            tta=use_tta,
            probabilities={name: float(dist[i]) for i, name in enumerate(self.labels) if i < dist.size},
        )


def load_classifier(model_path: str,
                    labels: Sequence[str],
                    input_size: Tuple[int, int],
                    confidence_threshold: float = 0.2,
                    rotation_deg: Optional[float] = None) -> EmotionClassifier:
    model = OnnxEmotionModel(model_path, input_size)
    return EmotionClassifier(
        model,
        labels,
        input_size=input_size,
        confidence_threshold=confidence_threshold,
        rotation_deg=DEFAULT_ROTATION_DEG if rotation_deg is None else rotation_deg,
    )
