"""
REST endpoints for emotion recognition.
"""
from typing import Optional, Tuple
import logging

import cv2
import numpy as np
from fastapi import APIRouter, UploadFile, File, HTTPException, Form
from fastapi.responses import JSONResponse

from emotion_core.classifier import EmotionClassifier
from emotion_core.config import Settings
from emotion_core.detection import Detector
from emotion_core.errors import DetectorLoadError, ModelLoadError
from emotion_core.live import LiveSession
from emotion_core.pipeline import analyze_image, build_classifier, build_detectors

router = APIRouter()
settings = Settings()
logger = logging.getLogger(__name__)

_components: dict = {}
live_session: Optional[LiveSession] = None


def _load_components() -> Tuple[EmotionClassifier, Detector, Detector]:
    """Model + detectors, loaded once per process."""
    if not _components:
        face, eyes = build_detectors(settings)
        _components["classifier"] = build_classifier(settings)
        _components["face"] = face
        _components["eyes"] = eyes
    return _components["classifier"], _components["face"], _components["eyes"]


def _get_live_session() -> LiveSession:
    global live_session
    if live_session is None:
        live_session = LiveSession(settings)
    return live_session


@router.post("/classify")
async def classify_image(
    file: UploadFile = File(...),
    tta: bool = Form(True),
):
    """
    Detect, align and classify every face in an uploaded image.

    Args:
        file: Uploaded image (any format OpenCV can decode).
        tta: Use test-time augmentation.

    Returns:
        JSONResponse: {"faces": [{"region": {...}, "prediction": {...}}, ...]}
    """
    logger.debug(f"[api] /classify filename={file.filename} tta={tta}")
    data = await file.read()
    image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR) if data else None
    if image is None:
        raise HTTPException(status_code=400, detail="Could not decode image upload")

    try:
        classifier, face_detector, eye_detector = _load_components()
    except (ModelLoadError, DetectorLoadError) as e:
        logger.exception("[api] model/detector load failed")
        raise HTTPException(status_code=503, detail=str(e))

    try:
        result = analyze_image(image, classifier, face_detector, eye_detector, use_tta=tta)
        return JSONResponse(result.model_dump())
    except Exception as e:
        logger.exception("[api] analyze_image failed")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/live/start")
async def live_start():
    session = _get_live_session()
    try:
        started = session.start()
    except (ModelLoadError, DetectorLoadError) as e:
        logger.exception("[api] live session load failed")
        raise HTTPException(status_code=503, detail=str(e))
    except RuntimeError as e:
        logger.exception("[api] live session failed to start")
        raise HTTPException(status_code=500, detail=str(e))
    return {"status": "started" if started else "already_running"}


@router.get("/live/status")
async def live_status():
    return JSONResponse(_get_live_session().status().model_dump())


@router.post("/live/tta")
async def live_toggle_tta():
    return {"tta": _get_live_session().toggle_tta()}


@router.post("/live/stop")
async def live_stop():
    if not _get_live_session().stop():
        return {"status": "not_running"}
    return {"status": "stopped"}
