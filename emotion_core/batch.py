"""
Batch evaluation over a labelled image folder.

Layout: <test_dir>/<true label>/.../<image>. Each readable image is
classified with TTA, written to a CSV log (Image,TrueLabel,Predicted), and
accuracy is recomputed by re-reading that log.
"""
from __future__ import annotations
from typing import Dict, Iterator, List, Tuple
import csv
import logging
import os

import cv2

from emotion_core.classifier import EmotionClassifier
from emotion_core.errors import InvalidInput, ModelInferenceError
from emotion_core.models import AccuracyReport, BatchRecord

logger = logging.getLogger(__name__)

BATCH_HEADER = ["Image", "TrueLabel", "Predicted"]

# lower-case synonym -> canonical label
LABEL_SYNONYMS: Dict[str, str] = {
    "angry": "Anger",
    "anger": "Anger",
    "disgust": "Disgust",
    "fear": "Fear",
    "happy": "Happiness",
    "happiness": "Happiness",
    "neutral": "Neutral",
    "sad": "Sadness",
    "sadness": "Sadness",
    "surprise": "Surprise",
}


def normalize_label(raw: str) -> str:
    """Canonical label for known synonyms (case-insensitive); others pass through unchanged."""
    return LABEL_SYNONYMS.get(raw.strip().lower(), raw)


def iter_labelled_files(test_dir: str) -> Iterator[Tuple[str, str]]:
    """(path, top-level folder name) for every file below a label folder, in sorted order."""
    for label_dir in sorted(os.listdir(test_dir)):
        top = os.path.join(test_dir, label_dir)
        if not os.path.isdir(top):
            logger.warning(f"[batch] {top} is not inside a label folder; skipping")
            continue
        for root, dirs, files in os.walk(top):
            dirs.sort()
            for name in sorted(files):
                yield os.path.join(root, name), label_dir


def evaluate_directory(test_dir: str,
                       classifier: EmotionClassifier,
                       log_path: str,
                       equalize: bool = True,
                       use_tta: bool = True) -> AccuracyReport:
    """
    Classify every image under `test_dir` and write the CSV log.

    Unreadable files and faces the classifier rejects are skipped. Failure to
    write the log is fatal (OSError propagates).
    """
    if not os.path.isdir(test_dir):
        raise FileNotFoundError(f"Directory '{test_dir}' does not exist.")

    records: List[BatchRecord] = []
    with open(log_path, "w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        writer.writerow(BATCH_HEADER)
        for path, folder in iter_labelled_files(test_dir):
            img = cv2.imread(path, cv2.IMREAD_GRAYSCALE)
            if img is None or img.size == 0:
                logger.warning(f"[batch] failed to read image: {path}")
                continue
            if equalize:
                img = cv2.equalizeHist(img)  # improve contrast
            try:
                pred = classifier.classify(img, use_tta=use_tta)
            except (InvalidInput, ModelInferenceError):
                logger.exception(f"[batch] classification failed: {path}")
                continue

            rec = BatchRecord(
                image=os.path.basename(path),
                true_label=normalize_label(folder),
                predicted=pred.label,
            )
            writer.writerow([rec.image, rec.true_label, rec.predicted])
            records.append(rec)
            logger.info(f"[batch] {rec.image} | True: {rec.true_label} | Predicted: {rec.predicted}")

    logger.info(f"[batch] results written to {log_path} ({len(records)} rows)")
    return compute_accuracy(log_path)


def compute_accuracy(log_path: str) -> AccuracyReport:
    """Accuracy (percent) from a batch CSV log; 0 rows -> 0%."""
    correct = 0
    total = 0
    with open(log_path, newline="", encoding="utf-8") as fh:
        reader = csv.reader(fh)
        next(reader, None)  # header
        for row in reader:
            if not row:
                continue
            true_label = row[1] if len(row) > 1 else ""
            predicted = row[2] if len(row) > 2 else ""
            if normalize_label(true_label) == normalize_label(predicted):
                correct += 1
            total += 1

    accuracy = (correct / total * 100.0) if total > 0 else 0.0
    logger.info(f"[batch] Accuracy: {accuracy:g}% ({correct}/{total} correct predictions)")
    return AccuracyReport(correct=correct, total=total, accuracy=accuracy)