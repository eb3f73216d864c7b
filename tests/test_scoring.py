
import numpy as np
import pytest
from emotion_core.scoring import softmax, aggregate, argmax_with_confidence

def test_softmax_is_a_distribution():
    p = softmax([1.0, 2.0, 3.0, -4.0])
    assert np.all(p >= 0)
    assert p.sum() == pytest.approx(1.0)

def test_softmax_matches_plain_formula_for_normal_inputs():
    x = np.array([0.5, -1.0, 2.0, 0.0])
    plain = np.exp(x) / np.exp(x).sum()
    assert np.allclose(softmax(x), plain)

def test_softmax_is_stable_for_large_magnitudes():
    p = softmax([1000.0, 0.0, -1000.0])
    assert np.all(np.isfinite(p))
    assert p.sum() == pytest.approx(1.0)
    assert p[0] == pytest.approx(1.0)

def test_softmax_rejects_empty_and_non_finite():
    with pytest.raises(ValueError):
        softmax([])
    with pytest.raises(ValueError):
        softmax([1.0, np.nan])

def test_aggregate_identical_distributions_is_identity():
    d = softmax([0.1, 0.7, 0.2])
    assert np.allclose(aggregate([d] * 5), d)

def test_aggregate_is_the_elementwise_mean():
    out = aggregate([[1.0, 0.0], [0.0, 1.0], [0.5, 0.5], [1.0, 0.0]])
    assert np.allclose(out, [0.625, 0.375])

def test_aggregate_of_nothing_fails():
    with pytest.raises(ValueError):
        aggregate([])

def test_argmax_ties_go_to_lowest_index():
    assert argmax_with_confidence([0.4, 0.2, 0.4]) == (0, pytest.approx(0.4))
    idx, val = argmax_with_confidence([0.1, 0.6, 0.3])
    assert idx == 1 and val == pytest.approx(0.6)
