# emotion_core/live.py
"""
Live (real-time) recognition.

PipelineDriver runs the per-frame loop:
  detect faces -> associate slots -> align -> classify (TTA toggle) ->
  confidence gate -> smooth per slot -> emit to the rendering sink and run log.

Frames are processed strictly in order; a stop request is only observed at
frame boundaries. LiveSession runs one driver on a background thread for the
API, and run_live_overlay drives the webcam window (t = toggle TTA, q/Esc = quit).
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from typing import Callable, List, Optional, Protocol, Tuple

import cv2
import numpy as np

from emotion_core.align import align_face
from emotion_core.classifier import EmotionClassifier
from emotion_core.config import Settings
from emotion_core.detection import Detector, Rect, crop_region, to_grayscale
from emotion_core.errors import InvalidInput, ModelInferenceError
from emotion_core.models import FaceRegion, FaceResult, FrameResult, LiveStatus, Prediction, RunLogRecord
from emotion_core.results_log import RealtimeLog
from emotion_core.smoothing import TemporalSmoother
from emotion_core.tracking import SlotTracker
from emotion_core.visual import WindowSink

logger = logging.getLogger(__name__)

TOGGLE_KEYS = (ord("t"), ord("T"))
QUIT_KEYS = (ord("q"), ord("Q"), 27)  # 27 = Esc


class DriverState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class FrameSource(Protocol):
    def read(self) -> Tuple[bool, Optional[np.ndarray]]: ...


class FrameSink(Protocol):
    def show(self, frame: np.ndarray, result: FrameResult) -> int: ...


def classify_face(gray: np.ndarray,
                  rect: Rect,
                  classifier: EmotionClassifier,
                  eye_detector: Optional[Detector],
                  use_tta: bool) -> Prediction:
    """Crop -> align -> classify for one detection. Raises InvalidInput / ModelInferenceError."""
    crop = crop_region(gray, rect)
    aligned = align_face(crop, eye_detector)
    return classifier.classify(aligned, use_tta)


class PipelineDriver:
    """Per-frame orchestration; the only component holding state across frames."""

    def __init__(self,
                 classifier: EmotionClassifier,
                 face_detector: Detector,
                 eye_detector: Optional[Detector] = None,
                 smoother: Optional[TemporalSmoother] = None,
                 tracker: Optional[SlotTracker] = None,
                 run_log: Optional[RealtimeLog] = None,
                 use_tta: bool = False):
        self.classifier = classifier
        self.face_detector = face_detector
        self.eye_detector = eye_detector
        self.smoother = smoother or TemporalSmoother()
        self.tracker = tracker or SlotTracker()
        self.run_log = run_log
        self.use_tta = bool(use_tta)
        self.state = DriverState.IDLE
        self.frame_index = 0
        self.last_result: Optional[FrameResult] = None
        self._stop = threading.Event()

    # ---- control signals ----
    def toggle_tta(self) -> bool:
        """Flip TTA; applies from the next frame on."""
        self.use_tta = not self.use_tta
        logger.info(f"[driver] TTA toggled {'ON' if self.use_tta else 'OFF'}")
        return self.use_tta

    def stop(self) -> None:
        self._stop.set()

    def handle_key(self, key: int) -> None:
        if key in TOGGLE_KEYS:
            self.toggle_tta()
        elif key in QUIT_KEYS:
            logger.info("[driver] quit requested")
            self.stop()

    # ---- per frame ----
    def process_frame(self, frame: np.ndarray) -> FrameResult:
        idx = self.frame_index
        use_tta = self.use_tta  # fixed for the whole frame
        gray = to_grayscale(frame)
        rects = list(self.face_detector.detect(gray))
        slots, expired = self.tracker.assign(rects)
        for slot in expired:
            self.smoother.drop(slot)
        logger.debug(f"[driver] frame={idx} faces={len(rects)} slots={slots} tta={use_tta}")

        faces: List[FaceResult] = []
        for rect, slot in zip(rects, slots):
            try:
                pred = classify_face(gray, rect, self.classifier, self.eye_detector, use_tta)
            except InvalidInput as e:
                logger.warning(f"[driver] frame={idx} slot={slot} skipped: {e}")
                continue
            except ModelInferenceError:
                logger.exception(f"[driver] frame={idx} slot={slot} inference failed; skipping face")
                continue

            self.smoother.push(slot, pred.label)
            smoothed = self.smoother.majority(slot)
            faces.append(FaceResult(
                slot=slot,
                region=FaceRegion.from_rect(rect),
                prediction=pred,
                smoothed_label=smoothed,
            ))
            if self.run_log is not None:
                self.run_log.append(RunLogRecord(
                    frame_index=idx,
                    label=pred.label,
                    confidence=pred.confidence,
                    augmentation_used=use_tta,
                ))

        result = FrameResult(frame_index=idx, tta=use_tta, faces=faces)
        self.frame_index += 1
        self.last_result = result
        return result

    # ---- stream loop ----
    def run(self,
            source: FrameSource,
            sink: Optional[FrameSink] = None,
            on_result: Optional[Callable[[FrameResult], None]] = None) -> int:
        """
        Idle -> Running -> Stopped. Ends on an empty frame, a quit key from the
        sink, or stop(). Returns the number of frames processed by this driver.
        """
        if self.state is DriverState.STOPPED:
            raise RuntimeError("driver already stopped; create a new one")
        self.state = DriverState.RUNNING
        logger.debug("[driver] running")
        try:
            while not self._stop.is_set():
                ok, frame = source.read()
                if not ok or frame is None or frame.size == 0:
                    logger.info(f"[driver] end of stream after {self.frame_index} frame(s)")
                    break
                result = self.process_frame(frame)
                if on_result is not None:
                    on_result(result)
                if sink is not None:
                    self.handle_key(sink.show(frame, result))
        finally:
            self.state = DriverState.STOPPED
            logger.debug("[driver] stopped")
        return self.frame_index


# -----------------------------------------------------------------------------
# LiveSession: one driver on a background thread (used by the API)
# -----------------------------------------------------------------------------
class LiveSession:
    """Runs the camera loop off the request thread; frames stay strictly ordered."""

    def __init__(self,
                 settings: Settings,
                 driver_factory: Optional[Callable[..., PipelineDriver]] = None,
                 capture_factory: Callable[[int], object] = cv2.VideoCapture):
        self.s = settings
        self._driver_factory = driver_factory
        self._capture_factory = capture_factory
        self._driver: Optional[PipelineDriver] = None
        self._thread: Optional[threading.Thread] = None
        self._log: Optional[RealtimeLog] = None
        self._started_at: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ---- lifecycle ----
    def start(self) -> bool:
        """False if already running. Load errors propagate (fatal at startup)."""
        if self.running:
            return False
        factory = self._driver_factory
        if factory is None:
            from emotion_core.pipeline import build_driver  # lazy: avoids import cycle
            factory = build_driver
        log = RealtimeLog(self.s.REALTIME_LOG_PATH)
        try:
            driver = factory(self.s, run_log=log)
            cap = self._capture_factory(self.s.CAMERA_INDEX)
            if not cap.isOpened():
                raise RuntimeError(f"Could not open camera index {self.s.CAMERA_INDEX}")
        except Exception:
            log.close()
            raise

        self._driver = driver
        self._log = log
        self._started_at = time.time()
        self._thread = threading.Thread(target=self._loop, args=(driver, cap, log), daemon=True)
        self._thread.start()
        return True

    def _loop(self, driver: PipelineDriver, cap, log: RealtimeLog) -> None:
        try:
            driver.run(cap)
        except Exception:
            logger.exception("[live] driver loop crashed")
        finally:
            cap.release()
            log.close()

    def stop(self, timeout: float = 5.0) -> bool:
        """False if not running, or if the loop is still blocked after timeout."""
        if not self.running:
            return False
        self._driver.stop()
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning(f"[live] driver thread still running after {timeout}s")
            return False
        return True

    def toggle_tta(self) -> bool:
        """Session-wide: kept in settings so a restarted driver picks it up."""
        self.s.USE_TTA = not self.s.USE_TTA
        if self.running:
            self._driver.use_tta = self.s.USE_TTA
        logger.info(f"[live] TTA toggled {'ON' if self.s.USE_TTA else 'OFF'}")
        return self.s.USE_TTA

    def status(self) -> LiveStatus:
        d = self._driver
        return LiveStatus(
            running=self.running,
            state=(d.state.value if d else DriverState.IDLE.value),
            tta=(d.use_tta if d and self.running else self.s.USE_TTA),
            started_at=self._started_at,
            last_frame=(d.last_result if d else None),
        )


# -----------------------------------------------------------------------------
# Live camera overlay window
# -----------------------------------------------------------------------------
def run_live_overlay(settings: Settings, camera_index: Optional[int] = None) -> int:
    """
    Open webcam, recognize emotions per frame and draw boxes + smoothed labels.

    Keys: 't' toggles TTA, 'q' or Esc quits. Rows go to REALTIME_LOG_PATH
    (console-only if the file cannot be written).
    Returns the number of processed frames.
    """
    from emotion_core.pipeline import build_driver

    cam_idx = settings.CAMERA_INDEX if camera_index is None else camera_index
    with RealtimeLog(settings.REALTIME_LOG_PATH) as log:
        driver = build_driver(settings, run_log=log)
        cap = cv2.VideoCapture(cam_idx)
        if not cap.isOpened():
            raise RuntimeError(f"Could not open camera index {cam_idx}")
        sink = WindowSink(settings.WINDOW_TITLE)
        try:
            return driver.run(cap, sink=sink)
        finally:
            cap.release()
            sink.close()
