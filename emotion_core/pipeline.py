# emotion_core/pipeline.py
from __future__ import annotations
from typing import List, Optional, Tuple
import logging
import os

import cv2
import numpy as np

from emotion_core.classifier import EmotionClassifier, load_classifier
from emotion_core.config import Settings
from emotion_core.detection import Detector, HaarDetector, load_eye_detector, load_face_detector, to_grayscale
from emotion_core.errors import InvalidInput, ModelInferenceError
from emotion_core.live import PipelineDriver, classify_face
from emotion_core.models import FaceRegion, FrameResult, ImageAnalysis, ImageFace
from emotion_core.results_log import RealtimeLog
from emotion_core.smoothing import TemporalSmoother
from emotion_core.tracking import SlotTracker

logger = logging.getLogger(__name__)


def build_classifier(settings: Settings) -> EmotionClassifier:
    """Load the ONNX model described by the settings (ModelLoadError on failure)."""
    logger.debug(f"[pipeline] loading model {settings.MODEL_PATH}")
    return load_classifier(
        settings.MODEL_PATH,
        settings.EMOTION_LABELS,
        settings.input_size,
        confidence_threshold=settings.CONFIDENCE_THRESHOLD,
        rotation_deg=settings.TTA_ROTATION_DEG,
    )


def build_detectors(settings: Settings) -> Tuple[HaarDetector, HaarDetector]:
    """(face detector, eye detector); DetectorLoadError on failure."""
    face = load_face_detector(settings.FACE_CASCADE_PATH, settings.FACE_SCALE_FACTOR,
                              settings.FACE_MIN_NEIGHBORS, settings.FACE_MIN_SIZE)
    eyes = load_eye_detector(settings.EYE_CASCADE_PATH, settings.EYE_SCALE_FACTOR,
                             settings.EYE_MIN_NEIGHBORS, settings.EYE_MIN_SIZE)
    return face, eyes


def build_tracker(settings: Settings) -> SlotTracker:
    return SlotTracker(
        policy=settings.SLOT_POLICY,
        min_iou=settings.TRACK_MIN_IOU,
        max_center_dist=settings.TRACK_MAX_CENTER_DIST,
        max_missed=settings.TRACK_MAX_MISSED,
    )


def build_driver(settings: Settings,
                 run_log: Optional[RealtimeLog] = None,
                 classifier: Optional[EmotionClassifier] = None,
                 face_detector: Optional[Detector] = None,
                 eye_detector: Optional[Detector] = None) -> PipelineDriver:
    """
    Assemble a driver from settings. Components that are passed in are used
    as-is; the rest are loaded (load errors propagate and abort the run).
    """
    if classifier is None:
        classifier = build_classifier(settings)
    if face_detector is None or eye_detector is None:
        face, eyes = build_detectors(settings)
        face_detector = face_detector or face
        eye_detector = eye_detector or eyes
    return PipelineDriver(
        classifier,
        face_detector,
        eye_detector=eye_detector,
        smoother=TemporalSmoother(settings.SMOOTHING_WINDOW),
        tracker=build_tracker(settings),
        run_log=run_log,
        use_tta=settings.USE_TTA,
    )


def analyze_image(image: np.ndarray,
                  classifier: EmotionClassifier,
                  face_detector: Detector,
                  eye_detector: Optional[Detector] = None,
                  use_tta: bool = True) -> ImageAnalysis:
    """
    Stateless single-image analysis: every detected face is aligned and
    classified; no smoothing. Faces that fail are left out.
    """
    gray = to_grayscale(image)
    faces: List[ImageFace] = []
    for rect in face_detector.detect(gray):
        try:
            pred = classify_face(gray, rect, classifier, eye_detector, use_tta)
        except (InvalidInput, ModelInferenceError) as e:
            logger.warning(f"[pipeline] face {rect} skipped: {e}")
            continue
        faces.append(ImageFace(region=FaceRegion.from_rect(rect), prediction=pred))
    logger.debug(f"[pipeline] analyze_image faces={len(faces)}")
    return ImageAnalysis(faces=faces)


def analyze_video(video_path: str,
                  settings: Settings,
                  use_tta: Optional[bool] = None,
                  driver: Optional[PipelineDriver] = None,
                  run_log: Optional[RealtimeLog] = None) -> List[FrameResult]:
    """
    Run a fresh driver over every frame of a video file and return the
    per-frame results (same smoothing and logging as the live window).
    """
    if not os.path.exists(video_path):
        raise FileNotFoundError(f"Video not found: {video_path}")

    logger.debug(f"[pipeline] analyze_video start video_path={video_path}")
    if driver is None:
        driver = build_driver(settings, run_log=run_log)
    if use_tta is not None:
        driver.use_tta = bool(use_tta)

    cap = cv2.VideoCapture(video_path)
    if not cap.isOpened():
        raise RuntimeError(f"Could not open video: {video_path}")

    results: List[FrameResult] = []
    try:
        driver.run(cap, on_result=results.append)
    finally:
        cap.release()
    logger.debug(f"[pipeline] analyze_video finished frames={len(results)}")
    return results
