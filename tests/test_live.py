
import csv
import numpy as np
import pytest
import emotion_core.live as live
from emotion_core.classifier import EmotionClassifier
from emotion_core.errors import ModelInferenceError
from emotion_core.live import DriverState, LiveSession, PipelineDriver
from emotion_core.results_log import RealtimeLog
from emotion_core.smoothing import TemporalSmoother
from emotion_core.tracking import SlotTracker

A = (10, 10, 40, 40)
B = (90, 10, 40, 40)
HAPPY, SAD = 3, 4

def one_hot(i, n=7):
    v = np.zeros(n, dtype=np.float32)
    v[i] = 10.0
    return v

class DummyModel:
    """Queued score vectors (last repeats); each item may be an exception to raise."""
    def __init__(self, *items):
        self.items = list(items)
        self.calls = 0
    def forward(self, tensor):
        self.calls += 1
        item = self.items.pop(0) if len(self.items) > 1 else self.items[0]
        if isinstance(item, Exception):
            raise item
        return item

class DummyDetector:
    """Per-call list of rectangles; the last entry repeats."""
    def __init__(self, *frames):
        self.frames = list(frames)
    def detect(self, gray):
        return list(self.frames.pop(0) if len(self.frames) > 1 else self.frames[0])

class DummyCap:
    def __init__(self, n=3):
        self.n = n
        self.i = 0
        self.released = False
    def isOpened(self): return True
    def read(self):
        self.i += 1
        if self.i > self.n:
            return False, None
        return True, np.zeros((80, 160, 3), dtype=np.uint8)
    def release(self): self.released = True

def make_driver(labels, model, detector, **kw):
    return PipelineDriver(EmotionClassifier(model, labels), detector, **kw)

FRAME = np.zeros((80, 160, 3), dtype=np.uint8)

def test_process_frame_emits_and_logs(labels, tmp_path):
    path = tmp_path / "results.csv"
    with RealtimeLog(str(path)) as log:
        driver = make_driver(labels, DummyModel(one_hot(HAPPY)), DummyDetector([A, B]), run_log=log)
        res = driver.process_frame(FRAME)
    assert res.frame_index == 0 and not res.tta
    assert [f.slot for f in res.faces] == [0, 1]
    assert all(f.smoothed_label == "Happiness" for f in res.faces)
    assert res.faces[1].region.as_rect() == B
    assert driver.frame_index == 1 and driver.last_result is res
    with open(path, newline="") as f:
        rows = list(csv.reader(f))
    assert rows[0] == ["Frame", "Emotion", "Confidence", "TTA"]
    assert [r[0] for r in rows[1:]] == ["0", "0"]
    assert all(r[1] == "Happiness" and r[3] == "No" for r in rows[1:])

def test_tta_toggle_applies_from_next_frame(labels):
    model = DummyModel(one_hot(HAPPY))
    driver = make_driver(labels, model, DummyDetector([A]))
    driver.process_frame(FRAME)
    assert model.calls == 1
    assert driver.toggle_tta() is True
    res = driver.process_frame(FRAME)
    assert res.tta and res.faces[0].prediction.tta
    assert model.calls == 1 + 5

def test_smoothing_over_frames(labels):
    model = DummyModel(one_hot(HAPPY), one_hot(SAD), one_hot(SAD), np.zeros(7))
    driver = make_driver(labels, model, DummyDetector([A]))
    smoothed = [driver.process_frame(FRAME).faces[0].smoothed_label for _ in range(4)]
    assert smoothed == ["Happiness", "Happiness", "Sadness", "Sadness"]
    # the gated label is what enters the buffer
    assert driver.smoother.history(0) == ["Happiness", "Sadness", "Sadness", "Uncertain"]

def test_invalid_crop_is_skipped(labels):
    driver = make_driver(labels, DummyModel(one_hot(HAPPY)), DummyDetector([(500, 500, 40, 40), A]))
    res = driver.process_frame(FRAME)
    assert len(res.faces) == 1
    assert res.faces[0].region.as_rect() == A

def test_inference_error_skips_only_that_face(labels):
    model = DummyModel(ModelInferenceError("boom"), one_hot(SAD))
    driver = make_driver(labels, model, DummyDetector([A, B]))
    res = driver.process_frame(FRAME)
    assert [f.region.as_rect() for f in res.faces] == [B]
    assert res.faces[0].prediction.label == "Sadness"

def test_identity_association_keeps_history_with_each_face(labels):
    # faces swap places in the detector output on frame 3
    detector = DummyDetector([A, B], [A, B], [B, A])
    model = DummyModel(*[one_hot(i) for i in (HAPPY, SAD, HAPPY, SAD, SAD, HAPPY)])
    driver = make_driver(labels, model, detector, tracker=SlotTracker(policy="iou"))
    for _ in range(3):
        res = driver.process_frame(FRAME)
    by_rect = {f.region.as_rect(): f for f in res.faces}
    assert by_rect[A].slot == 0 and by_rect[A].smoothed_label == "Happiness"
    assert by_rect[B].slot == 1 and by_rect[B].smoothed_label == "Sadness"

def test_positional_slots_mix_histories(labels):
    detector = DummyDetector([A, B], [A, B], [B, A])
    model = DummyModel(*[one_hot(i) for i in (HAPPY, SAD, HAPPY, SAD, SAD, HAPPY)])
    driver = make_driver(labels, model, detector, tracker=SlotTracker(policy="positional"))
    for _ in range(3):
        res = driver.process_frame(FRAME)
    by_rect = {f.region.as_rect(): f for f in res.faces}
    assert by_rect[A].slot == 1
    assert by_rect[A].smoothed_label == "Sadness"

def test_lost_face_history_is_dropped(labels):
    detector = DummyDetector([A], [], [A])
    driver = make_driver(labels, DummyModel(one_hot(HAPPY)), detector)
    driver.process_frame(FRAME)
    assert driver.process_frame(FRAME).faces == []
    res = driver.process_frame(FRAME)
    assert res.faces[0].slot == 1
    assert driver.smoother.history(0) == []

def test_run_until_end_of_stream(labels):
    driver = make_driver(labels, DummyModel(one_hot(HAPPY)), DummyDetector([A]))
    assert driver.state is DriverState.IDLE
    seen = []
    n = driver.run(DummyCap(3), on_result=seen.append)
    assert n == 3 and [r.frame_index for r in seen] == [0, 1, 2]
    assert driver.state is DriverState.STOPPED
    with pytest.raises(RuntimeError):
        driver.run(DummyCap(1))

def test_run_keys_toggle_tta_and_quit(labels):
    class KeySink:
        def __init__(self, keys):
            self.keys = list(keys)
            self.shown = []
        def show(self, frame, result):
            self.shown.append(result)
            return self.keys.pop(0) if self.keys else -1

    driver = make_driver(labels, DummyModel(one_hot(HAPPY)), DummyDetector([A]))
    sink = KeySink([ord("t"), -1, ord("q")])
    n = driver.run(DummyCap(10), sink=sink)
    assert n == 3
    assert [r.tta for r in sink.shown] == [False, True, True]

def test_stop_is_observed_at_frame_boundary(labels):
    driver = make_driver(labels, DummyModel(one_hot(HAPPY)), DummyDetector([A]))
    driver.stop()
    assert driver.run(DummyCap(5)) == 0
    assert driver.state is DriverState.STOPPED

def test_live_session_runs_driver_in_background(labels, settings):
    cap = DummyCap(4)
    def factory(s, run_log=None):
        return PipelineDriver(EmotionClassifier(DummyModel(one_hot(SAD)), labels),
                              DummyDetector([A]), run_log=run_log,
                              smoother=TemporalSmoother(s.SMOOTHING_WINDOW))
    session = LiveSession(settings, driver_factory=factory, capture_factory=lambda idx: cap)
    assert session.status().state == "idle"
    assert session.start() is True
    session._thread.join(timeout=5)
    st = session.status()
    assert not st.running and st.state == "stopped"
    assert st.last_frame.frame_index == 3
    assert st.last_frame.faces[0].smoothed_label == "Sadness"
    assert cap.released
    assert session.stop() is False

def test_live_session_toggle_before_start(settings):
    session = LiveSession(settings, driver_factory=lambda s, run_log=None: None)
    assert session.toggle_tta() is True
    assert session.status().tta is True

def test_run_live_overlay(monkeypatch, labels, settings):
    import emotion_core.pipeline as pipeline
    monkeypatch.setattr(live.cv2, "VideoCapture", lambda idx: DummyCap(10))
    monkeypatch.setattr(live.cv2, "imshow", lambda *a, **k: None)
    monkeypatch.setattr(live.cv2, "destroyAllWindows", lambda: None)
    keys = iter([-1, -1, ord("q")])
    monkeypatch.setattr(live.cv2, "waitKey", lambda d: next(keys))
    monkeypatch.setattr(pipeline, "build_driver",
                        lambda s, run_log=None: make_driver(labels, DummyModel(one_hot(HAPPY)),
                                                            DummyDetector([A]), run_log=run_log))
    assert live.run_live_overlay(settings, camera_index=0) == 3
    with open(settings.REALTIME_LOG_PATH, newline="") as f:
        assert len(list(csv.reader(f))) == 1 + 3

def test_live_session_tta_survives_restart(labels, settings):
    def factory(s, run_log=None):
        return PipelineDriver(EmotionClassifier(DummyModel(one_hot(SAD)), labels),
                              DummyDetector([A]), run_log=run_log, use_tta=s.USE_TTA)
    session = LiveSession(settings, driver_factory=factory, capture_factory=lambda idx: DummyCap(2))
    assert session.start() is True
    session._thread.join(timeout=5)
    assert session.toggle_tta() is True
    assert session.status().tta is True
    assert session.start() is True
    assert session._driver.use_tta is True
    session._thread.join(timeout=5)
    assert session.status().tta is True
    assert session._driver.last_result.tta is True

def test_live_session_stop_reports_blocked_loop(labels, settings):
    import threading
    release = threading.Event()

    class BlockingCap(DummyCap):
        def read(self):
            release.wait(5)
            return False, None

    def factory(s, run_log=None):
        return PipelineDriver(EmotionClassifier(DummyModel(one_hot(SAD)), labels),
                              DummyDetector([A]), run_log=run_log)
    session = LiveSession(settings, driver_factory=factory, capture_factory=lambda idx: BlockingCap())
    assert session.start() is True
    assert session.stop(timeout=0.1) is False
    assert session.running
    release.set()
    session._thread.join(timeout=5)
    assert session.stop() is False
    assert session.status().state == "stopped"
