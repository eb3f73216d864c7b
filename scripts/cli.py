"""
CLI for offline recognition: batch evaluation over a labelled folder, or a video file -> JSON.
"""
from __future__ import annotations
import argparse, json, logging, os, sys
from emotion_core.batch import evaluate_directory
from emotion_core.config import Settings
from emotion_core.errors import DetectorLoadError, ModelLoadError
from emotion_core.pipeline import analyze_video, build_classifier, build_driver
from emotion_core.results_log import RealtimeLog
from emotion_core.visual import annotate_video


def _cmd_batch(args, settings: Settings) -> int:
    classifier = build_classifier(settings)
    report = evaluate_directory(
        args.test_dir,
        classifier,
        args.log or settings.BATCH_LOG_PATH,
        equalize=settings.BATCH_EQUALIZE_HIST and not args.no_equalize,
    )
    print(f"Accuracy: {report.accuracy:g}% ({report.correct}/{report.total} correct predictions)")
    return 0


def _cmd_video(args, settings: Settings) -> int:
    with RealtimeLog(args.log or settings.REALTIME_LOG_PATH) as log:
        driver = build_driver(settings, run_log=log)
        driver.use_tta = args.tta
        if args.annotate:
            annotate_video(args.video, args.annotate, driver)
            print(f"✅ Annotated video written to {args.annotate}")
            return 0
        results = analyze_video(args.video, settings, driver=driver)

    payload = [r.model_dump() for r in results]
    os.makedirs(os.path.dirname(args.out) or ".", exist_ok=True)
    with open(args.out, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)
    print(f"✅ Analysis of {len(results)} frame(s) written to {args.out}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Facial emotion recognition (offline modes)")
    sub = p.add_subparsers(dest="command", required=True)

    b = sub.add_parser("batch", help="Evaluate a folder whose subfolders are true labels")
    b.add_argument("test_dir", help="Folder of <label>/<image> files")
    b.add_argument("--log", default=None, help="CSV log path (default: BATCH_LOG_PATH)")
    b.add_argument("--no-equalize", action="store_true", help="Skip histogram equalization")
    b.set_defaults(func=_cmd_batch)

    v = sub.add_parser("video", help="Run the realtime pipeline over a video file")
    v.add_argument("video", help="Path to input video")
    v.add_argument("--tta", action="store_true", help="Enable test-time augmentation")
    v.add_argument("--log", default=None, help="CSV log path (default: REALTIME_LOG_PATH)")
    v.add_argument("--out", default="output/analysis.json", help="Path to output JSON")
    v.add_argument("--annotate", default=None, help="Write an annotated video instead of JSON")
    v.set_defaults(func=_cmd_video)
    return p


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings()
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL, logging.INFO))
    try:
        return args.func(args, settings)
    except (ModelLoadError, DetectorLoadError) as e:
        logging.getLogger(__name__).error(f"[cli] startup failed: {e}")
        return 1

if __name__ == "__main__":
    sys.exit(main())
