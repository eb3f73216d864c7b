
import pytest
from emotion_core.smoothing import TemporalSmoother, majority_label

def test_majority_of_full_window():
    s = TemporalSmoother(window=5)
    for label in ["Happy", "Happy", "Sad", "Happy", "Sad"]:
        s.push(0, label)
    assert s.majority(0) == "Happy"

def test_tie_goes_to_first_label_reaching_the_max():
    assert majority_label(["A", "B"]) == "A"
    # B reaches two votes before A does
    assert majority_label(["A", "B", "B", "A"]) == "B"

def test_oldest_entries_are_evicted():
    s = TemporalSmoother(window=5)
    for label in ["1", "2", "3", "4", "5", "6"]:
        s.push("slot", label)
    assert s.history("slot") == ["2", "3", "4", "5", "6"]

def test_slots_are_independent():
    s = TemporalSmoother(window=3)
    s.push(0, "Happy")
    s.push(1, "Sad")
    s.push(1, "Sad")
    assert s.majority(0) == "Happy"
    assert s.majority(1) == "Sad"
    assert sorted(s.slots) == [0, 1]

def test_empty_buffer_has_no_majority():
    s = TemporalSmoother()
    with pytest.raises(ValueError):
        s.majority(3)
    with pytest.raises(ValueError):
        majority_label([])

def test_drop_and_reset():
    s = TemporalSmoother()
    s.push(0, "A"); s.push(1, "B")
    s.drop(0)
    assert s.history(0) == [] and s.slots == [1]
    s.reset()
    assert s.slots == []

def test_window_must_be_positive():
    with pytest.raises(ValueError):
        TemporalSmoother(window=0)
