"""Run live camera emotion recognition.

Usage:
    uvicorn api.main:app --reload  # (separate, for API)
    python scripts/live_overlay.py  # (to see camera overlay window)

Press 't' to toggle test-time augmentation, 'q' or Esc to quit.
"""
import logging
import sys

from emotion_core.config import Settings
from emotion_core.errors import DetectorLoadError, ModelLoadError
from emotion_core.live import run_live_overlay

if __name__ == '__main__':
    s = Settings()
    logging.basicConfig(level=getattr(logging, s.LOG_LEVEL, logging.INFO))
    try:
        run_live_overlay(s)
    except (ModelLoadError, DetectorLoadError, RuntimeError) as e:
        logging.getLogger("live_overlay").error(f"Fatal error: {e}")
        sys.exit(1)
